"""
Date-range shift reports.
Shifts are fetched over a widened window so that overnight shifts are paired
with their sign-in, then kept only when their anchor date is in range.
"""
from datetime import date, datetime, timedelta
from typing import Any, Iterable, List, Optional, Tuple

from ..config import settings
from ..schemas.attendance import ShiftRecord
from .engine_config import EngineConfig
from .shift_reconstruction import reconstruct_shifts
from .time_rules import local_day_bounds


def report_fetch_window(
    start_date: date,
    end_date: date,
    timezone: str,
    lookback_days: Optional[int] = None
) -> Tuple[datetime, datetime]:
    """
    UTC [start, end) of the events a storage collaborator should load.

    One day is added on each side by default: before, to catch sign-ins whose
    sign-out falls on the first day; after, to catch sign-outs of shifts
    anchored on the last day.
    """
    if lookback_days is None:
        lookback_days = settings.report_lookback_days
    window_start, _ = local_day_bounds(start_date - timedelta(days=lookback_days), timezone)
    _, window_end = local_day_bounds(end_date + timedelta(days=1), timezone)
    return window_start, window_end


def build_shift_report(
    events: Iterable[Any],
    timezone: str,
    start_date: date,
    end_date: date,
    *,
    employee_id: Optional[str] = None,
    now: Optional[datetime] = None,
    config: Optional[EngineConfig] = None
) -> List[ShiftRecord]:
    """
    Shift records anchored between start_date and end_date inclusive.

    Args:
        events: Events covering report_fetch_window(start_date, end_date)
        timezone: IANA timezone
        start_date: First local date in the report
        end_date: Last local date in the report
        employee_id: Restrict to one employee
        now: Marks still-open shifts as ongoing
        config: Engine thresholds

    Returns:
        Records ordered by anchor date descending, then employee name
    """
    if end_date < start_date:
        raise ValueError("end_date must not be before start_date")
    records = reconstruct_shifts(events, timezone, now, config=config)
    return [
        r
        for r in records
        if start_date <= r.anchor_date <= end_date
        and (employee_id is None or r.employee_id == str(employee_id))
    ]
