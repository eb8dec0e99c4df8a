"""Duration, earnings and hours arithmetic for time entries."""
import math
from datetime import datetime

SECONDS_PER_HOUR = 3600


def _epoch_millis(value: datetime) -> int:
    delta = value - datetime(1970, 1, 1, tzinfo=value.tzinfo)
    return (delta.days * 86400 + delta.seconds) * 1000 + delta.microseconds // 1000


def duration_seconds(start_time: datetime, end_time: datetime) -> int:
    """
    Whole seconds between two timestamps, truncating fractional seconds.

    Timestamps are compared at millisecond resolution. Callers validate that
    end_time is after start_time; the result is never negative.

    Examples:
        >>> from datetime import timedelta
        >>> start = datetime(2024, 1, 1, 9, 0, 0)
        >>> duration_seconds(start, start + timedelta(seconds=90, milliseconds=700))
        90
    """
    millis = _epoch_millis(end_time) - _epoch_millis(start_time)
    return max(millis // 1000, 0)


def compute_earnings(duration: int, billable: bool, hourly_rate: float) -> float:
    """Earnings for a duration at an hourly rate; zero when not billable."""
    if not billable or not hourly_rate:
        return 0.0
    return (duration / SECONDS_PER_HOUR) * hourly_rate


def round_hours(total_seconds: int) -> float:
    """
    Convert seconds to hours rounded half-up to two decimals.

    Examples:
        >>> round_hours(2550)
        0.71
        >>> round_hours(6150)
        1.71
    """
    hours = total_seconds / SECONDS_PER_HOUR
    return math.floor(hours * 100 + 0.5) / 100


def format_duration(duration: int) -> str:
    """
    Human readable duration.

    Examples:
        >>> format_duration(3725)
        '1h 2m'
        >>> format_duration(125)
        '2m 5s'
        >>> format_duration(42)
        '42s'
    """
    hours = duration // SECONDS_PER_HOUR
    minutes = (duration % SECONDS_PER_HOUR) // 60
    seconds = duration % 60

    if hours > 0:
        return f"{hours}h {minutes}m"
    if minutes > 0:
        return f"{minutes}m {seconds}s"
    return f"{seconds}s"
