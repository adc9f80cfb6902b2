"""
Shared fixtures for call engine tests
"""
import pytest
from datetime import datetime, timedelta, timezone
from decimal import Decimal

from app.core.config import ConfigManager
from app.domain.interfaces.call_lifecycle_driver import CallLifecycleDriver
from app.domain.models.call import CallRecord, CallStatus
from app.domain.models.telephony_config import RatePlan
from app.domain.services.call_lifecycle import CallLifecycle
from app.domain.services.call_service import CallService
from app.domain.services.rate_resolver import RateResolver
from app.infrastructure.storage.memory_call_store import InMemoryCallStore


ACCOUNT_A = "AC" + "a" * 32
ACCOUNT_B = "AC" + "b" * 32


class FakeClock:
    """Manually advanced UTC clock"""

    def __init__(self, start: datetime = None):
        self.now = start or datetime(2024, 1, 1, 12, 0, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += timedelta(seconds=seconds)


class HeldDriver(CallLifecycleDriver):
    """Driver that never progresses calls; records what it was asked to do"""

    def __init__(self, lifecycle: CallLifecycle):
        super().__init__(lifecycle)
        self.started = []
        self.stopped = []

    async def start(self, record: CallRecord) -> None:
        self.started.append(record.sid)

    async def stop(self, account_sid: str, call_sid: str) -> None:
        self.stopped.append(call_sid)

    async def shutdown(self) -> None:
        pass

    def active_count(self) -> int:
        return 0

    @property
    def name(self) -> str:
        return "held"


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def store():
    return InMemoryCallStore()


@pytest.fixture
def lifecycle(store, clock):
    return CallLifecycle(store, clock=clock)


@pytest.fixture
def held_driver(lifecycle):
    return HeldDriver(lifecycle)


@pytest.fixture
def rate_plan():
    """Rate plan from the shipped default configuration"""
    return RatePlan.from_config(ConfigManager(env="test"))


@pytest.fixture
def call_service(store, lifecycle, held_driver, rate_plan, clock):
    return CallService(
        store=store,
        lifecycle=lifecycle,
        driver=held_driver,
        rate_resolver=RateResolver(rate_plan),
        clock=clock,
    )


@pytest.fixture
def make_record(clock):
    """Build a queued record without going through the service"""
    counter = {"n": 0}

    def _make(account_sid: str = ACCOUNT_A, **overrides) -> CallRecord:
        counter["n"] += 1
        data = dict(
            sid=f"CA{counter['n']:032x}",
            account_sid=account_sid,
            to_number="+234801234567",
            from_number="+234700000000",
            to_country="NG",
            from_country="NG",
            status=CallStatus.QUEUED,
            rate_per_minute=Decimal("0.001"),
            date_created=clock(),
            date_updated=clock(),
        )
        data.update(overrides)
        return CallRecord(**data)

    return _make


@pytest.fixture
def answer_call(lifecycle, clock):
    """Move a stored call queued -> ringing -> in-progress"""

    async def _answer(record: CallRecord, ring_seconds: float = 0) -> CallRecord:
        await lifecycle.advance(record.account_sid, record.sid, CallStatus.QUEUED, CallStatus.RINGING)
        clock.advance(ring_seconds)
        return await lifecycle.advance(
            record.account_sid, record.sid, CallStatus.RINGING, CallStatus.IN_PROGRESS
        )

    return _answer
