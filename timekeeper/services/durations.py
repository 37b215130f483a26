"""
Duration capping policy shared by shift reconstruction and live metrics.
Guards totals against missing or garbled sign-outs.
"""
from datetime import datetime
from typing import Iterable, NamedTuple, Optional, Tuple

MAX_SHIFT_DURATION_HOURS = 24
MAX_SHIFT_DURATION_SECONDS = MAX_SHIFT_DURATION_HOURS * 3600


class CappedDuration(NamedTuple):
    seconds: int
    was_capped: bool
    original_seconds: int


def cap_duration(
    start: datetime,
    end: datetime,
    max_seconds: Optional[int] = None
) -> CappedDuration:
    """
    Duration between two instants, clamped to a maximum.

    Args:
        start: Interval start
        end: Interval end
        max_seconds: Cap in seconds (default MAX_SHIFT_DURATION_SECONDS)

    Returns:
        CappedDuration; zero when end <= start
    """
    if max_seconds is None:
        max_seconds = MAX_SHIFT_DURATION_SECONDS
    original = int((end - start).total_seconds())
    if original <= 0:
        return CappedDuration(0, False, 0)
    if original > max_seconds:
        return CappedDuration(max_seconds, True, original)
    return CappedDuration(original, False, original)


def total_capped_seconds(
    periods: Iterable[Tuple[datetime, datetime]],
    max_seconds: Optional[int] = None
) -> Tuple[int, int]:
    """
    Sum capped durations of (start, end) periods.

    Returns:
        (total_seconds, number_of_capped_periods)
    """
    total = 0
    capped = 0
    for start, end in periods:
        result = cap_duration(start, end, max_seconds)
        total += result.seconds
        if result.was_capped:
            capped += 1
    return total, capped


def time_in_period(
    periods: Iterable[Tuple[datetime, datetime]],
    period_start: datetime,
    max_seconds: Optional[int] = None
) -> int:
    """Capped seconds of the periods falling on or after period_start."""
    total = 0
    for start, end in periods:
        if end < period_start:
            continue
        total += cap_duration(max(start, period_start), end, max_seconds).seconds
    return total
