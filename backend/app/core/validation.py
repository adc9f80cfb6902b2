"""
Configuration Validation Module
Validates engine configuration on startup
"""
import logging
from typing import List, Optional, Tuple
from dataclasses import dataclass

from pydantic import ValidationError

from app.core.config import ConfigManager, Settings, settings as default_settings
from app.domain.models.telephony_config import LifecycleTimings, RatePlan
from app.domain.services.country_resolver import CountryResolver

logger = logging.getLogger(__name__)


@dataclass
class ValidationResult:
    """Result of a configuration validation check."""
    section: str
    setting: str
    is_valid: bool
    message: str


class ConfigValidator:
    """
    Validates engine configuration at startup.

    Ensures secrets, rates and lifecycle timings are usable before the
    application starts accepting calls.
    """

    def __init__(
        self,
        config: Optional[ConfigManager] = None,
        strict: bool = False,
        app_settings: Optional[Settings] = None,
    ):
        """
        Initialize validator.

        Args:
            config: Loaded configuration (default: ConfigManager())
            strict: If True, treat warnings as errors
            app_settings: Environment settings (default: module settings)
        """
        self.config = config or ConfigManager()
        self.settings = app_settings or default_settings
        self.strict = strict
        self.results: List[ValidationResult] = []

    def validate_all(self) -> Tuple[bool, List[ValidationResult]]:
        """
        Validate all configuration sections.

        Returns:
            Tuple of (all_valid, list of results)
        """
        self.results = []

        self._validate_auth()
        self._validate_pricing()
        self._validate_lifecycle()

        errors = [r for r in self.results if not r.is_valid]
        return len(errors) == 0, self.results

    def _validate_auth(self) -> None:
        if self.settings.jwt_secret:
            self._add_success("auth", "JWT_SECRET", "JWT verification secret configured")
        else:
            self._add_warning("auth", "JWT_SECRET",
                "JWT_SECRET not set - every authenticated request will be rejected")

    def _validate_pricing(self) -> None:
        try:
            plan = RatePlan.from_config(self.config)
        except (ValidationError, ArithmeticError, ValueError) as e:
            self._add_error("pricing", "pricing.rates", f"Invalid rate plan: {e}")
            return

        self._add_success("pricing", "pricing.rates",
            f"Rates local={plan.local} regional={plan.regional} international={plan.international} {plan.currency}")

        if not (plan.local <= plan.regional <= plan.international):
            self._add_warning("pricing", "pricing.rates",
                "Rates are not ordered local <= regional <= international")

        unknown = sorted(plan.regional_countries - CountryResolver().known_countries())
        if unknown:
            self._add_warning("pricing", "pricing.regional_countries",
                f"Regional countries with no dialing code: {', '.join(unknown)}")
        elif not plan.regional_countries:
            self._add_warning("pricing", "pricing.regional_countries",
                "No regional countries configured - regional rate will never apply")

    def _validate_lifecycle(self) -> None:
        try:
            timings = LifecycleTimings.from_config(self.config)
        except ValidationError as e:
            self._add_error("lifecycle", "lifecycle", f"Invalid lifecycle timings: {e}")
            return

        # Imported here: the factory pulls in driver implementations
        from app.infrastructure.telephony.factory import LifecycleDriverFactory

        if timings.driver not in LifecycleDriverFactory.list_drivers():
            self._add_error("lifecycle", "lifecycle.driver",
                f"Unknown lifecycle driver '{timings.driver}' "
                f"(available: {', '.join(LifecycleDriverFactory.list_drivers())})")
        else:
            self._add_success("lifecycle", "lifecycle.driver", f"Lifecycle driver '{timings.driver}'")

    def _add_success(self, section: str, setting: str, message: str):
        """Add successful validation result."""
        self.results.append(ValidationResult(
            section=section,
            setting=setting,
            is_valid=True,
            message=message
        ))

    def _add_error(self, section: str, setting: str, message: str):
        """Add error validation result."""
        self.results.append(ValidationResult(
            section=section,
            setting=setting,
            is_valid=False,
            message=message
        ))

    def _add_warning(self, section: str, setting: str, message: str):
        """Add warning validation result."""
        self.results.append(ValidationResult(
            section=section,
            setting=setting,
            is_valid=not self.strict,  # Warnings become errors in strict mode
            message=f"WARNING: {message}"
        ))

    def log_results(self):
        """Log all validation results."""
        errors = [r for r in self.results if not r.is_valid]
        warnings = [r for r in self.results if r.is_valid and "WARNING" in r.message]
        successes = [r for r in self.results if r.is_valid and "WARNING" not in r.message]

        if successes:
            logger.info("Engine configuration validated:")
            for r in successes:
                logger.info(f"  ✓ [{r.section}] {r.message}")

        if warnings:
            for r in warnings:
                logger.warning(f"  ⚠ [{r.section}] {r.message}")

        if errors:
            logger.error("Engine configuration errors:")
            for r in errors:
                logger.error(f"  ✗ [{r.section}] {r.message}")

    def get_error_summary(self) -> Optional[str]:
        """Get summary of errors for exception message."""
        errors = [r for r in self.results if not r.is_valid]
        if not errors:
            return None

        lines = ["Engine configuration errors:"]
        for r in errors:
            lines.append(f"  - {r.setting}: {r.message}")
        return "\n".join(lines)


def validate_config_on_startup(config: Optional[ConfigManager] = None, strict: bool = False) -> None:
    """
    Validate engine configuration at startup.

    Call this from the FastAPI lifespan.

    Args:
        config: Loaded configuration
        strict: If True, fail on warnings too

    Raises:
        RuntimeError: If configuration is unusable
    """
    validator = ConfigValidator(config, strict=strict)
    all_valid, results = validator.validate_all()
    validator.log_results()

    if not all_valid:
        error_msg = validator.get_error_summary()
        raise RuntimeError(error_msg)

    logger.info("Engine configuration validated successfully")
