"""Timestamp utilities for TaskSync.

All task timestamps are Unix epoch milliseconds. Provides the default clock
and helpers to format timestamps for display.
"""

from datetime import datetime, timezone
from typing import Optional

# 9999-12-31 23:59:59.999 UTC, the last instant datetime can represent
MAX_TIMESTAMP_MS = 253_402_300_799_999


def now_ms() -> int:
    """Get current time as Unix epoch milliseconds.

    Returns:
        Current time in milliseconds since epoch
    """
    return int(datetime.now(tz=timezone.utc).timestamp() * 1000)


def format_timestamp(ts: Optional[int]) -> str:
    """Format epoch milliseconds to local timezone for display.

    Args:
        ts: Epoch milliseconds or None

    Returns:
        Formatted string "YYYY-MM-DD HH:MM:SS" in local timezone,
        or empty string if ts is None
    """
    if ts is None:
        return ""
    utc_dt = datetime.fromtimestamp(ts / 1000, tz=timezone.utc)
    local_dt = utc_dt.astimezone()
    return local_dt.strftime("%Y-%m-%d %H:%M:%S")

