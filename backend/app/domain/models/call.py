"""
Call Domain Models
"""
from pydantic import BaseModel, ConfigDict, Field
from typing import FrozenSet, List, Literal, Optional
from datetime import datetime
from decimal import Decimal
from enum import Enum


class CallStatus(str, Enum):
    """Call status"""
    QUEUED = "queued"
    RINGING = "ringing"
    IN_PROGRESS = "in-progress"
    COMPLETED = "completed"
    BUSY = "busy"
    FAILED = "failed"
    NO_ANSWER = "no-answer"
    CANCELED = "canceled"

    @property
    def is_terminal(self) -> bool:
        return self in TERMINAL_STATUSES


TERMINAL_STATUSES: FrozenSet[CallStatus] = frozenset({
    CallStatus.COMPLETED,
    CallStatus.BUSY,
    CallStatus.FAILED,
    CallStatus.NO_ANSWER,
    CallStatus.CANCELED,
})


class CallDirection(str, Enum):
    """Call direction"""
    INBOUND = "inbound"
    OUTBOUND_API = "outbound-api"
    OUTBOUND_DIAL = "outbound-dial"


class CallOptions(BaseModel):
    """Creation-time call options, immutable once the call exists"""
    webhook_url: Optional[str] = Field(None, description="Customer URL for call events")
    webhook_method: Literal["GET", "POST"] = "POST"
    timeout_seconds: int = Field(default=60, ge=1, le=600, description="Ring timeout")
    record: bool = False
    machine_detection: bool = False

    model_config = ConfigDict(frozen=True, extra="forbid")


class CallRecord(BaseModel):
    """
    Call record

    Frozen snapshot: every state change produces a new record via
    model_copy(update=...), so a reader never sees a half-applied transition.
    """
    # Identity
    sid: str
    account_sid: str
    sequence: int = Field(default=0, ge=0, description="Creation order within the store")

    # Parties
    to_number: str
    from_number: str
    to_country: Optional[str] = None
    from_country: Optional[str] = None

    # State
    status: CallStatus = CallStatus.QUEUED
    direction: CallDirection = CallDirection.OUTBOUND_API

    # Pricing
    rate_per_minute: Decimal
    price_unit: str = "USD"
    price: Optional[str] = None

    # Timing
    start_time: Optional[datetime] = None
    end_time: Optional[datetime] = None
    duration_seconds: Optional[int] = None
    date_created: datetime
    date_updated: datetime

    # Creation options
    options: CallOptions = Field(default_factory=CallOptions)

    model_config = ConfigDict(frozen=True)

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES


class CallPage(BaseModel):
    """One page of an account's calls, in creation order"""
    calls: List[CallRecord]
    page: int
    page_size: int
    total: int
    num_pages: int
    start: int
    end: int
    has_previous: bool
    has_next: bool
