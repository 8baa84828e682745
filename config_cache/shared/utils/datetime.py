"""
UTC datetime utilities for consistent timezone handling.

Snapshot timestamps are timezone-aware UTC; record stamps are epoch
milliseconds. Use these helpers instead of datetime.now() or time.time().
"""

from datetime import UTC, datetime


def utc_now() -> datetime:
    """
    Return the current UTC datetime with timezone info.

    Returns:
        Timezone-aware datetime in UTC
    """
    return datetime.now(UTC)


def utc_now_ms() -> int:
    """Current time as integer Unix epoch milliseconds."""
    return int(utc_now().timestamp() * 1000)
