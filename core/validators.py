# PATH: core/validators.py
"""
Unified validators for Sentinel.

Format checks for the values the agent takes from its environment:
endpoint URLs, hex addresses, private keys and positive integers.
Each check returns an error string, or None when the value is valid,
so callers can collect every problem before failing.
"""

import re
from typing import Optional
from urllib.parse import urlparse

ADDRESS_PATTERN = re.compile(r"^0x[a-fA-F0-9]{40}$")
PRIVATE_KEY_PATTERN = re.compile(r"^0x[a-fA-F0-9]{64}$")


def is_address(value: Optional[str]) -> bool:
    """True if value is a 0x-prefixed 20-byte hex address."""
    return bool(value) and ADDRESS_PATTERN.match(value) is not None


def same_address(a: Optional[str], b: Optional[str]) -> bool:
    """Case-insensitive address comparison (checksum casing is ignored)."""
    if not a or not b:
        return False
    return a.lower() == b.lower()


def validate_url(name: str, value: Optional[str]) -> Optional[str]:
    if not value:
        return f"{name}: required"
    parsed = urlparse(value)
    if parsed.scheme not in ("http", "https") or not parsed.netloc:
        return f"{name}: Invalid {name}"
    return None


def validate_address(name: str, value: Optional[str]) -> Optional[str]:
    if not value:
        return f"{name}: required"
    if not is_address(value):
        return f"{name}: Invalid {name} format"
    return None


def validate_private_key(name: str, value: Optional[str]) -> Optional[str]:
    # Never echo the value itself
    if not value:
        return f"{name}: required"
    if PRIVATE_KEY_PATTERN.match(value) is None:
        return f"{name}: Invalid {name} format"
    return None


def parse_positive_int(
    name: str,
    value: Optional[str],
    maximum: Optional[int] = None,
) -> tuple[Optional[int], Optional[str]]:
    """
    Parse a positive integer setting.

    Returns:
        (parsed_value, error) - exactly one of them is None
    """
    if value is None or not str(value).strip():
        return None, f"{name}: required"
    try:
        parsed = int(str(value).strip())
    except ValueError:
        return None, f"{name}: expected an integer, got {value!r}"
    if parsed <= 0:
        return None, f"{name}: must be positive"
    if maximum is not None and parsed > maximum:
        return None, f"{name}: must be <= {maximum}"
    return parsed, None
