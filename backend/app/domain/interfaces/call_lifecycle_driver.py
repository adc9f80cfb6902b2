"""
Call Lifecycle Driver Interface
Abstract base class for whatever moves calls through their states
"""
from abc import ABC, abstractmethod

from app.domain.models.call import CallRecord
from app.domain.services.call_lifecycle import CallLifecycle


class CallLifecycleDriver(ABC):
    """
    Drives created calls from queued to a terminal status.

    The simulated driver does it with timers; a real dialer integration does
    it from carrier events. Either way every status change goes through
    CallLifecycle, whose guards make late or duplicate events harmless.
    """

    def __init__(self, lifecycle: CallLifecycle):
        self.lifecycle = lifecycle

    @abstractmethod
    async def start(self, record: CallRecord) -> None:
        """
        Begin progressing a newly created call.

        Must return without waiting for the call to progress.
        """
        pass

    @abstractmethod
    async def stop(self, account_sid: str, call_sid: str) -> None:
        """Stop progressing a call (e.g. after the caller hung up)"""
        pass

    @abstractmethod
    async def shutdown(self) -> None:
        """Release resources and stop all pending progressions"""
        pass

    @abstractmethod
    def active_count(self) -> int:
        """Number of calls currently being progressed"""
        pass

    @property
    @abstractmethod
    def name(self) -> str:
        """Driver name"""
        pass
