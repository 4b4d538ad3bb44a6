"""
DateTime utilities for consistent timezone handling.
"""
from datetime import datetime, timezone
from typing import Optional


def utc_now() -> datetime:
    """
    Get the current UTC time with timezone awareness.

    Returns:
        datetime: Current UTC time with timezone info
    """
    return datetime.now(timezone.utc)


def elapsed_millis(start: datetime, end: Optional[datetime] = None) -> int:
    """
    Milliseconds between two aware datetimes.

    Args:
        start: Start of the interval
        end: End of the interval, defaults to now

    Returns:
        int: Elapsed whole milliseconds
    """
    end = end or utc_now()
    return int((end - start).total_seconds() * 1000)
