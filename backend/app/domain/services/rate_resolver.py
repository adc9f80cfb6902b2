"""
Rate Resolver
Selects the per-minute rate tier for a pair of countries
"""
from decimal import Decimal
from enum import Enum
from typing import Optional

from app.domain.models.telephony_config import RatePlan


class RateTier(str, Enum):
    """Settlement tier for a call"""
    LOCAL = "local"
    REGIONAL = "regional"
    INTERNATIONAL = "international"


class RateResolver:
    """
    Rate policy, evaluated in order:
    1. Either country unknown -> international
    2. Same country -> local
    3. Both in the regional set -> regional
    4. Otherwise -> international
    """

    def __init__(self, plan: Optional[RatePlan] = None):
        self.plan = plan or RatePlan()

    def resolve_tier(self, to_country: Optional[str], from_country: Optional[str]) -> RateTier:
        if not to_country or not from_country:
            return RateTier.INTERNATIONAL
        if to_country == from_country:
            return RateTier.LOCAL
        regional = self.plan.regional_countries
        if to_country in regional and from_country in regional:
            return RateTier.REGIONAL
        return RateTier.INTERNATIONAL

    def rate_for(self, tier: RateTier) -> Decimal:
        return getattr(self.plan, tier.value)

    def resolve(self, to_country: Optional[str], from_country: Optional[str]) -> Decimal:
        """Per-minute rate for a call between the two countries"""
        return self.rate_for(self.resolve_tier(to_country, from_country))
