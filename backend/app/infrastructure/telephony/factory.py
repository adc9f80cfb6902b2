"""
Lifecycle Driver Factory
"""
from typing import Dict, Type

from app.domain.interfaces.call_lifecycle_driver import CallLifecycleDriver
from app.domain.models.telephony_config import LifecycleTimings
from app.domain.services.call_lifecycle import CallLifecycle
from app.infrastructure.telephony.simulated_dialer import SimulatedDialer


class LifecycleDriverFactory:
    """Factory for creating lifecycle driver instances"""

    _drivers: Dict[str, Type[CallLifecycleDriver]] = {"simulated": SimulatedDialer}

    @classmethod
    def create(
        cls,
        driver_name: str,
        lifecycle: CallLifecycle,
        timings: LifecycleTimings,
    ) -> CallLifecycleDriver:
        """Create lifecycle driver instance"""
        if driver_name not in cls._drivers:
            available = ", ".join(cls._drivers.keys()) if cls._drivers else "None"
            raise ValueError(f"Unknown lifecycle driver: {driver_name}. Available: {available}")

        driver_class = cls._drivers[driver_name]
        return driver_class(lifecycle, timings)

    @classmethod
    def register(cls, name: str, driver_class: Type[CallLifecycleDriver]) -> None:
        """Register a driver (e.g. a carrier-backed dialer)"""
        cls._drivers[name] = driver_class

    @classmethod
    def list_drivers(cls) -> list[str]:
        """List available drivers"""
        return list(cls._drivers.keys())
