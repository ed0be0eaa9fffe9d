# PATH: core/time.py
"""
Time utilities for Sentinel.

Ledger schedules are expressed in Unix seconds; process bookkeeping
(last run, uptime) in Unix milliseconds.
"""

import time
from datetime import datetime, timezone


def now_utc() -> datetime:
    """Get current UTC datetime."""
    return datetime.now(timezone.utc)


def now_iso() -> str:
    """Get current UTC datetime as ISO string."""
    return now_utc().isoformat()


def now_seconds() -> int:
    """Get current Unix timestamp in whole seconds (ledger time base)."""
    return int(time.time())


def now_ms() -> int:
    """Get current Unix timestamp in milliseconds."""
    return int(time.time() * 1000)


def monotonic_ms() -> int:
    """Monotonic clock in milliseconds, for durations."""
    return int(time.monotonic() * 1000)


def seconds_until(target_ts: int, current_ts: int | None = None) -> int:
    """
    Seconds remaining until a ledger timestamp (negative if overdue).

    Args:
        target_ts: Unix seconds
        current_ts: Current time (defaults to now)
    """
    current = now_seconds() if current_ts is None else current_ts
    return target_ts - current
