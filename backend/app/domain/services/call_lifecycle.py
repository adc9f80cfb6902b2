"""
Call Lifecycle
Guarded state machine for call records

Every transition is compare-before-transition: the caller names the status it
expects to find, and a record found in any other status is left untouched.
Timer-driven simulation, real dialer events and caller-issued hangups all go
through the same guard, so a stale timer firing after a hangup is a no-op.
"""
import inspect
import logging
import math
from datetime import datetime, timedelta, timezone
from typing import Awaitable, Callable, Dict, FrozenSet, List, Optional, Tuple, Union

from app.domain.interfaces.call_store import CallStore
from app.domain.models.call import CallRecord, CallStatus
from app.domain.services.pricing_engine import PricingEngine

logger = logging.getLogger(__name__)


ALLOWED_TRANSITIONS: Dict[CallStatus, FrozenSet[CallStatus]] = {
    CallStatus.QUEUED: frozenset({CallStatus.RINGING, CallStatus.FAILED, CallStatus.CANCELED}),
    CallStatus.RINGING: frozenset({
        CallStatus.IN_PROGRESS,
        CallStatus.BUSY,
        CallStatus.NO_ANSWER,
        CallStatus.FAILED,
        CallStatus.CANCELED,
    }),
    CallStatus.IN_PROGRESS: frozenset({CallStatus.COMPLETED, CallStatus.FAILED}),
}

# The only status a caller may hang up from
HANGUP_STATUS = CallStatus.IN_PROGRESS

TransitionListener = Callable[[CallRecord, CallRecord], Union[None, Awaitable[None]]]


class InvalidTransitionError(Exception):
    """Raised when a transition outside the state table is requested."""

    def __init__(self, current: CallStatus, target: CallStatus):
        self.current = current
        self.target = target
        super().__init__(f"Cannot transition call from {current.value} to {target.value}")


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def can_transition(current: CallStatus, target: CallStatus) -> bool:
    return target in ALLOWED_TRANSITIONS.get(current, frozenset())


def apply_transition(
    record: CallRecord,
    target: CallStatus,
    *,
    now: datetime,
    pricing: PricingEngine,
    duration_seconds: Optional[int] = None,
) -> CallRecord:
    """
    Produce the record that results from moving `record` to `target`.

    - Leaving queued sets start_time (once).
    - Completing sets end_time, duration and price together. With an explicit
      duration (simulation or dialer report) end_time is start_time + duration;
      without one the duration is measured as floor(now - start_time).
    - Other terminal statuses set end_time only; they are not billed.

    Raises:
        InvalidTransitionError: target is not reachable from the current status
    """
    if not can_transition(record.status, target):
        raise InvalidTransitionError(record.status, target)

    start_time = record.start_time or now
    update = {"status": target, "date_updated": now, "start_time": start_time}

    if target == CallStatus.COMPLETED:
        if duration_seconds is None:
            duration_seconds = max(0, math.floor((now - start_time).total_seconds()))
            end_time = now
        else:
            if duration_seconds < 0:
                raise ValueError(f"Duration cannot be negative: {duration_seconds}")
            end_time = start_time + timedelta(seconds=duration_seconds)
        update.update(
            end_time=end_time,
            duration_seconds=duration_seconds,
            price=pricing.price(duration_seconds, record.rate_per_minute),
        )
    elif target.is_terminal:
        update["end_time"] = now

    return record.model_copy(update=update)


class CallLifecycle:
    """
    Applies guarded transitions to stored records and notifies listeners.

    Listeners receive (previous, current) after each applied transition; this
    is where a status-callback sender attaches. A failing listener is logged
    and never undoes the transition.
    """

    def __init__(
        self,
        store: CallStore,
        pricing: Optional[PricingEngine] = None,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.store = store
        self.pricing = pricing or PricingEngine()
        self.clock = clock
        self._listeners: List[TransitionListener] = []

    def add_listener(self, listener: TransitionListener) -> None:
        self._listeners.append(listener)

    def remove_listener(self, listener: TransitionListener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    async def advance(
        self,
        account_sid: str,
        call_sid: str,
        expected: CallStatus,
        target: CallStatus,
        *,
        duration_seconds: Optional[int] = None,
    ) -> Optional[CallRecord]:
        """
        Move a call from `expected` to `target` if it is still in `expected`.

        Returns:
            The updated record, or None if the call is missing or has moved on
        """
        if not can_transition(expected, target):
            raise InvalidTransitionError(expected, target)

        def mutate(record: CallRecord) -> CallRecord:
            if record.status != expected:
                return record
            return apply_transition(
                record,
                target,
                now=self.clock(),
                pricing=self.pricing,
                duration_seconds=duration_seconds,
            )

        record, changed = await self._apply(account_sid, call_sid, mutate)
        return record if changed else None

    async def terminate(
        self,
        account_sid: str,
        call_sid: str,
        requested: Optional[CallStatus],
    ) -> Tuple[Optional[CallRecord], bool]:
        """
        Caller-issued hangup.

        Only a requested completed on an in-progress call is honoured
        (duration measured from start_time). Anything else, cancel requests
        included, leaves the record unchanged. Dialer-reported cancellation
        goes through report().

        Returns:
            (record, changed); record is None if the call does not exist
        """

        def mutate(record: CallRecord) -> CallRecord:
            if requested != CallStatus.COMPLETED or record.status != HANGUP_STATUS:
                return record
            return apply_transition(record, CallStatus.COMPLETED, now=self.clock(), pricing=self.pricing)

        return await self._apply(account_sid, call_sid, mutate)

    async def report(
        self,
        account_sid: str,
        call_sid: str,
        reported: CallStatus,
        *,
        duration_seconds: Optional[int] = None,
    ) -> Optional[CallRecord]:
        """
        Apply a progress event reported by a real dialer.

        The event is applied from whatever status the record is in now, if the
        state table allows it; duplicates and out-of-order events are ignored.

        Returns:
            The updated record, or None if the event was not applicable
        """

        def mutate(record: CallRecord) -> CallRecord:
            if not can_transition(record.status, reported):
                return record
            return apply_transition(
                record,
                reported,
                now=self.clock(),
                pricing=self.pricing,
                duration_seconds=duration_seconds,
            )

        record, changed = await self._apply(account_sid, call_sid, mutate)
        return record if changed else None

    async def _apply(
        self,
        account_sid: str,
        call_sid: str,
        mutate: Callable[[CallRecord], CallRecord],
    ) -> Tuple[Optional[CallRecord], bool]:
        """Run `mutate` under the record's lock; returns (stored record, changed)."""
        previous: List[CallRecord] = []

        def tracking(record: CallRecord) -> CallRecord:
            updated = mutate(record)
            if updated is not record:
                previous.append(record)
            return updated

        result = await self.store.update(account_sid, call_sid, tracking)
        if result is None or not previous:
            return result, False

        before = previous[0]
        if result.price is not None:
            logger.info(
                f"Call {call_sid} {before.status.value} -> {result.status.value} "
                f"(duration={result.duration_seconds}s, price={result.price} {result.price_unit})"
            )
        else:
            logger.info(f"Call {call_sid} {before.status.value} -> {result.status.value}")
        await self._notify(before, result)
        return result, True

    async def _notify(self, previous: CallRecord, current: CallRecord) -> None:
        for listener in list(self._listeners):
            try:
                outcome = listener(previous, current)
                if inspect.isawaitable(outcome):
                    await outcome
            except Exception as e:
                logger.error(f"Transition listener failed for call {current.sid}: {e}", exc_info=True)
