"""
Call Store Interface
Abstract base class for call record storage
"""
from abc import ABC, abstractmethod
from typing import Callable, List, Optional, Tuple

from app.domain.models.call import CallRecord


class CallStoreUnavailableError(Exception):
    """Raised by a store backend that cannot currently serve the request (transient)."""
    pass


# Receives the current snapshot, returns the replacement (or the same object to leave it)
CallMutator = Callable[[CallRecord], CallRecord]


class CallStore(ABC):
    """
    Keyed storage of call records, scoped by owning account.

    Implementations must serialize mutations of a single record and must
    never expose a partially applied mutation to readers.
    """

    @abstractmethod
    async def add(self, record: CallRecord) -> CallRecord:
        """
        Persist a new record.

        Returns:
            The stored record, with its creation sequence number assigned
        """
        pass

    @abstractmethod
    async def get(self, account_sid: str, call_sid: str) -> Optional[CallRecord]:
        """Get a record owned by the account, or None"""
        pass

    @abstractmethod
    async def list(self, account_sid: str, offset: int, limit: int) -> Tuple[List[CallRecord], int]:
        """
        List an account's records in creation order.

        Returns:
            (records in [offset, offset + limit), total count for the account)
        """
        pass

    @abstractmethod
    async def update(self, account_sid: str, call_sid: str, mutator: CallMutator) -> Optional[CallRecord]:
        """
        Atomically read-modify-write one record.

        Returns:
            The record after the mutator ran, or None if the record does not exist
        """
        pass

    @abstractmethod
    async def count(self) -> int:
        """Total records across all accounts"""
        pass
