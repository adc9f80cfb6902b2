"""
SID Utility
Opaque, prefixed identifiers for calls
"""
import secrets

CALL_SID_PREFIX = "CA"


def generate_call_sid() -> str:
    """Generate a call identifier: "CA" followed by 32 hex characters."""
    return f"{CALL_SID_PREFIX}{secrets.token_hex(16)}"
