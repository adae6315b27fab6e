"""
Clock - Injectable source of "now" for every time-dependent operation
"""

from datetime import datetime, timezone
from typing import Callable, Optional

# All timestamps are naive UTC, matching the DateTime columns
Clock = Callable[[], datetime]


def utcnow() -> datetime:
    """Current UTC time without tzinfo"""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def to_naive_utc(value: Optional[datetime]) -> Optional[datetime]:
    """
    Normalize a timestamp for storage.

    Aware values are converted to UTC and stripped of tzinfo; naive values
    are taken to be UTC already.

    Example:
        to_naive_utc(datetime(2024, 5, 19, 9, 0, tzinfo=timezone(timedelta(hours=2))))
        # -> datetime(2024, 5, 19, 7, 0)
    """
    if value is None or value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)
