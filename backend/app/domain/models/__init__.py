"""Domain models"""

# Call models
from .call import (
    CallStatus,
    CallDirection,
    CallOptions,
    CallRecord,
    CallPage,
    TERMINAL_STATUSES,
)

# Configuration views
from .telephony_config import (
    RatePlan,
    LifecycleTimings,
)

__all__ = [
    "CallStatus",
    "CallDirection",
    "CallOptions",
    "CallRecord",
    "CallPage",
    "TERMINAL_STATUSES",
    "RatePlan",
    "LifecycleTimings",
]
