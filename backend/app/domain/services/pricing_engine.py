"""
Pricing Engine
Converts call duration into a cost at a per-minute rate
"""
from decimal import Decimal, ROUND_HALF_UP
from typing import Union

# Prices are reported to four decimal places, e.g. "0.0020"
PRICE_QUANTUM = Decimal("0.0001")


class PricingEngine:
    """Bills every started minute: ceil(seconds / 60) * rate."""

    @staticmethod
    def billable_minutes(duration_seconds: int) -> int:
        if duration_seconds < 0:
            raise ValueError(f"Duration cannot be negative: {duration_seconds}")
        return -(-duration_seconds // 60)

    def calculate(self, duration_seconds: int, rate_per_minute: Union[Decimal, str]) -> Decimal:
        """Exact cost of a call"""
        return self.billable_minutes(duration_seconds) * Decimal(rate_per_minute)

    def price(self, duration_seconds: int, rate_per_minute: Union[Decimal, str]) -> str:
        """Cost formatted as the record's price string"""
        amount = self.calculate(duration_seconds, rate_per_minute)
        return str(amount.quantize(PRICE_QUANTUM, rounding=ROUND_HALF_UP))
