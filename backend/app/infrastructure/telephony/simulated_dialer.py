"""
Simulated Dialer
Timer-driven stand-in for a carrier connection

Each call gets one asyncio task that walks it through
queued -> ringing -> in-progress -> completed. Each step is armed only after
the previous one fired, and each step is a guarded transition: if the caller
hung up or the dialer reported an outcome in the meantime, the step finds the call in another
status, does nothing, and the task ends.
"""
import asyncio
import logging
import random
from typing import Awaitable, Callable, Dict, List, Optional, Tuple

from app.domain.interfaces.call_lifecycle_driver import CallLifecycleDriver
from app.domain.interfaces.call_store import CallStoreUnavailableError
from app.domain.models.call import CallRecord, CallStatus
from app.domain.models.telephony_config import LifecycleTimings
from app.domain.services.call_lifecycle import CallLifecycle

logger = logging.getLogger(__name__)

CallKey = Tuple[str, str]


class SimulatedDialer(CallLifecycleDriver):
    """
    Simulated call progression.

    The completed duration is drawn from [min_duration_seconds,
    max_duration_seconds] rather than measured; a hangup issued by the caller
    is still measured from start_time (see CallLifecycle.terminate).
    """

    def __init__(
        self,
        lifecycle: CallLifecycle,
        timings: Optional[LifecycleTimings] = None,
        rng: Optional[random.Random] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        super().__init__(lifecycle)
        self.timings = timings or LifecycleTimings()
        self._rng = rng or random.Random()
        self._sleep = sleep
        self._tasks: Dict[CallKey, asyncio.Task] = {}

    @property
    def name(self) -> str:
        return "simulated"

    async def start(self, record: CallRecord) -> None:
        key = (record.account_sid, record.sid)
        if key in self._tasks:
            logger.warning(f"Call {record.sid} is already being progressed")
            return

        task = asyncio.create_task(
            self._progress(record.account_sid, record.sid),
            name=f"call-lifecycle-{record.sid}",
        )
        self._tasks[key] = task
        task.add_done_callback(lambda t, key=key: self._on_done(key, t))
        logger.debug(f"Scheduled simulated progression for call {record.sid}")

    async def stop(self, account_sid: str, call_sid: str) -> None:
        task = self._tasks.pop((account_sid, call_sid), None)
        if task is not None and not task.done():
            task.cancel()
            logger.debug(f"Stopped simulated progression for call {call_sid}")

    async def shutdown(self) -> None:
        tasks = list(self._tasks.values())
        self._tasks.clear()
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
        logger.info(f"Simulated dialer stopped ({len(tasks)} pending calls cancelled)")

    async def drain(self) -> None:
        """Wait until every scheduled progression has finished"""
        while self._tasks:
            await asyncio.gather(*list(self._tasks.values()), return_exceptions=True)

    def active_count(self) -> int:
        return len(self._tasks)

    async def _progress(self, account_sid: str, call_sid: str) -> None:
        steps: List[Tuple[float, CallStatus, CallStatus]] = [
            (self.timings.ring_delay_seconds, CallStatus.QUEUED, CallStatus.RINGING),
            (self.timings.answer_delay_seconds, CallStatus.RINGING, CallStatus.IN_PROGRESS),
            (self.timings.complete_delay_seconds, CallStatus.IN_PROGRESS, CallStatus.COMPLETED),
        ]

        for delay, expected, target in steps:
            await self._sleep(delay)

            duration = None
            if target == CallStatus.COMPLETED:
                duration = self._rng.randint(
                    self.timings.min_duration_seconds,
                    self.timings.max_duration_seconds,
                )

            record = await self._advance_with_retry(account_sid, call_sid, expected, target, duration)
            if record is None:
                # Hung up or otherwise moved on
                logger.debug(f"Call {call_sid} no longer {expected.value}; simulation ends")
                return

    async def _advance_with_retry(
        self,
        account_sid: str,
        call_sid: str,
        expected: CallStatus,
        target: CallStatus,
        duration: Optional[int],
    ) -> Optional[CallRecord]:
        attempt = 0
        while True:
            try:
                return await self.lifecycle.advance(
                    account_sid, call_sid, expected, target, duration_seconds=duration
                )
            except CallStoreUnavailableError as e:
                if attempt >= self.timings.max_store_retries:
                    raise
                backoff = self.timings.retry_backoff_seconds * (2 ** attempt)
                attempt += 1
                logger.warning(
                    f"Store unavailable moving call {call_sid} to {target.value} "
                    f"(attempt {attempt}/{self.timings.max_store_retries}, retrying in {backoff}s): {e}"
                )
                await self._sleep(backoff)

    def _on_done(self, key: CallKey, task: asyncio.Task) -> None:
        if self._tasks.get(key) is task:
            del self._tasks[key]
        if task.cancelled():
            return
        error = task.exception()
        if error is not None:
            logger.error(f"Abandoned progression of call {key[1]}: {error}", exc_info=error)
