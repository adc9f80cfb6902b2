"""
Telephony Configuration Models

Typed views over the `pricing` and `lifecycle` sections of the YAML config.
Rates and the regional country set are configuration, not logic: swapping
them never touches the resolvers' control flow.
"""
from decimal import Decimal
from typing import FrozenSet

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from app.core.config import ConfigManager


# Calls between two of these countries settle at the regional rate.
# config/default.yaml carries the same list under pricing.regional_countries.
DEFAULT_REGIONAL_COUNTRIES: FrozenSet[str] = frozenset({
    "NG", "KE", "GH", "UG", "RW", "LR", "ZA", "ET", "TZ", "GM", "SN", "CI", "BF",
    "NE", "TG", "BJ", "MU", "SL", "TD", "CF", "CM", "CV", "ST", "GQ", "GA", "CG",
    "CD", "AO", "GW", "IO", "AC", "SC", "SD", "SO", "DJ", "BI", "MZ", "ZM", "MG",
    "RE", "ZW", "NA", "MW", "LS", "BW", "SZ", "KM", "SH", "ER", "AW", "FO", "GL",
})


class RatePlan(BaseModel):
    """Per-minute rates for each country tier"""
    local: Decimal = Field(default=Decimal("0.001"), gt=0)
    regional: Decimal = Field(default=Decimal("0.002"), gt=0)
    international: Decimal = Field(default=Decimal("0.003"), gt=0)
    regional_countries: FrozenSet[str] = DEFAULT_REGIONAL_COUNTRIES
    currency: str = "USD"

    model_config = ConfigDict(frozen=True)

    @field_validator("regional_countries", mode="before")
    @classmethod
    def normalize_countries(cls, value):
        if value is None:
            return frozenset()
        return frozenset(str(code).strip().upper() for code in value)

    @classmethod
    def from_config(cls, config: ConfigManager) -> "RatePlan":
        rates = config.get("pricing.rates", {}) or {}
        data = {
            "regional_countries": config.get("pricing.regional_countries", DEFAULT_REGIONAL_COUNTRIES),
            "currency": config.get("pricing.currency", "USD"),
        }
        for tier in ("local", "regional", "international"):
            if rates.get(tier) is not None:
                # str() first so YAML floats don't leak binary rounding into Decimal
                data[tier] = Decimal(str(rates[tier]))
        return cls(**data)


class LifecycleTimings(BaseModel):
    """Delays and ranges for the simulated call progression"""
    driver: str = "simulated"
    ring_delay_seconds: float = Field(default=1.0, ge=0)
    answer_delay_seconds: float = Field(default=2.0, ge=0)
    complete_delay_seconds: float = Field(default=5.0, ge=0)
    min_duration_seconds: int = Field(default=30, ge=0)
    max_duration_seconds: int = Field(default=329, ge=0)
    max_store_retries: int = Field(default=3, ge=0)
    retry_backoff_seconds: float = Field(default=0.5, ge=0)

    model_config = ConfigDict(frozen=True)

    @model_validator(mode="after")
    def check_duration_range(self) -> "LifecycleTimings":
        if self.min_duration_seconds > self.max_duration_seconds:
            raise ValueError(
                f"min_duration_seconds ({self.min_duration_seconds}) exceeds "
                f"max_duration_seconds ({self.max_duration_seconds})"
            )
        return self

    @classmethod
    def from_config(cls, config: ConfigManager) -> "LifecycleTimings":
        return cls(**config.section("lifecycle"))
