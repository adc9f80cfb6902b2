"""
In-Memory Call Store
Indexed, process-lifetime storage for call records
"""
import asyncio
import itertools
import logging
from typing import Dict, List, Optional, Tuple

from app.domain.interfaces.call_store import CallMutator, CallStore
from app.domain.models.call import CallRecord

logger = logging.getLogger(__name__)

CallKey = Tuple[str, str]


class InMemoryCallStore(CallStore):
    """
    Call store backed by dicts.

    - Records keyed by (account_sid, call_sid)
    - Per-account list of call SIDs in insertion order for listing
    - One asyncio.Lock per record serializes read-modify-write
    - Records are frozen snapshots; update() swaps in a new one, so readers
      always see either the old or the new record, never a mix

    Constructed once at application start and injected; records are kept
    for the lifetime of the instance.
    """

    def __init__(self):
        self._records: Dict[CallKey, CallRecord] = {}
        self._by_account: Dict[str, List[str]] = {}
        self._locks: Dict[CallKey, asyncio.Lock] = {}
        self._sequence = itertools.count(1)

    async def add(self, record: CallRecord) -> CallRecord:
        key = (record.account_sid, record.sid)
        if key in self._records:
            raise ValueError(f"Call already exists: {record.sid}")

        stored = record.model_copy(update={"sequence": next(self._sequence)})
        self._records[key] = stored
        self._by_account.setdefault(record.account_sid, []).append(record.sid)
        self._locks[key] = asyncio.Lock()
        return stored

    async def get(self, account_sid: str, call_sid: str) -> Optional[CallRecord]:
        return self._records.get((account_sid, call_sid))

    async def list(self, account_sid: str, offset: int, limit: int) -> Tuple[List[CallRecord], int]:
        sids = self._by_account.get(account_sid, [])
        window = sids[offset:offset + limit] if limit > 0 else []
        return [self._records[(account_sid, sid)] for sid in window], len(sids)

    async def update(self, account_sid: str, call_sid: str, mutator: CallMutator) -> Optional[CallRecord]:
        key = (account_sid, call_sid)
        lock = self._locks.get(key)
        if lock is None:
            return None

        async with lock:
            current = self._records[key]
            updated = mutator(current)
            if updated is not current:
                self._records[key] = updated
            return updated

    async def count(self) -> int:
        return len(self._records)
