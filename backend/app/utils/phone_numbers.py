"""
Phone Number Utility
Normalization and validation of international (E.164-style) numbers
"""
import re
from typing import Optional

# "+" then 1-15 digits, first digit non-zero
CANONICAL_NUMBER_PATTERN = re.compile(r"^\+[1-9]\d{0,14}$")

_NON_DIGITS = re.compile(r"\D")


def normalize_phone_number(phone_number: str) -> str:
    """
    Normalize a phone number to canonical form.

    Strips every non-digit character and prefixes "+", so
    "+1 (555) 010-9999" and "15550109999" both become "+15550109999".
    The result is not guaranteed to be valid; see is_valid_phone_number.
    """
    return "+" + _NON_DIGITS.sub("", phone_number or "")


def is_valid_phone_number(phone_number: Optional[str]) -> bool:
    """Check whether a number is valid once normalized."""
    if not phone_number or not phone_number.strip():
        return False
    return bool(CANONICAL_NUMBER_PATTERN.match(normalize_phone_number(phone_number)))


def is_canonical(phone_number: str) -> bool:
    """True if the number is already in canonical form (no normalization needed)."""
    return bool(CANONICAL_NUMBER_PATTERN.match(phone_number or ""))
