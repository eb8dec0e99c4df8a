"""Time helpers.

MongoDB hands datetimes back as naive UTC with millisecond precision, so the
services work in naive UTC throughout.
"""
from datetime import datetime, timezone
from typing import Callable

Clock = Callable[[], datetime]


def utcnow() -> datetime:
    """Current time as a naive UTC datetime truncated to milliseconds."""
    return to_storage_time(datetime.now(timezone.utc))


def to_storage_time(value: datetime) -> datetime:
    """
    Normalize a datetime to the form MongoDB stores.

    Aware datetimes are converted to UTC, tzinfo is dropped, and microseconds
    are truncated to whole milliseconds.

    Examples:
        >>> to_storage_time(datetime(2024, 1, 1, 9, 0, 0, 123456))
        datetime.datetime(2024, 1, 1, 9, 0, 0, 123000)
    """
    if value.tzinfo is not None:
        value = value.astimezone(timezone.utc).replace(tzinfo=None)
    return value.replace(microsecond=value.microsecond - value.microsecond % 1000)


def get_clock() -> Clock:
    """Dependency returning the clock used by the time tracking services."""
    return utcnow
