"""
Live attendance metrics.
Walks a user's punches as a small state machine (active / on break / signed
out) and closes whatever is still open at the caller-supplied "now".
"""
from datetime import datetime
from typing import Any, Iterable, List, Optional, Sequence, Tuple

import structlog

from ..schemas.attendance import (
    EngineDiagnostics,
    EventType,
    LiveMetrics,
)
from .durations import time_in_period, total_capped_seconds
from .engine_config import EngineConfig, resolve_config
from .events import group_records_by_user, normalize_events, sort_chronologically
from .formatting import format_duration, get_status_label
from .status import determine_user_status, get_last_activity
from .time_rules import ensure_utc, get_timezone, start_of_month, start_of_week

logger = structlog.get_logger(__name__)

Period = Tuple[datetime, datetime]


def overtime_seconds(work_seconds: int, config: Optional[EngineConfig] = None) -> int:
    """Work beyond the standard day, never more than the cap allows."""
    cfg = resolve_config(config)
    overtime = max(0, work_seconds - cfg.standard_workday_seconds)
    return min(overtime, cfg.max_overtime_seconds)


def _walk_events(events, now: datetime, diagnostics: EngineDiagnostics):
    work_periods: List[Period] = []
    break_periods: List[Period] = []
    is_active = False
    is_on_break = False
    active_start: Optional[datetime] = None
    break_start: Optional[datetime] = None

    for event in events:
        ts = event.timestamp

        if event.event_type == EventType.signin:
            if is_on_break and break_start is not None:
                break_periods.append((break_start, ts))
                break_start = None
            if is_active and active_start is not None:
                # The unmatched earlier sign-in has no end and is dropped
                diagnostics.duplicate_signins += 1
            is_on_break = False
            is_active = True
            active_start = ts

        elif event.event_type == EventType.signout:
            if not is_active and not is_on_break:
                diagnostics.orphaned_signouts += 1
            if is_active and active_start is not None:
                work_periods.append((active_start, ts))
            if is_on_break and break_start is not None:
                break_periods.append((break_start, ts))
            active_start = None
            break_start = None
            is_active = False
            is_on_break = False

        elif event.event_type == EventType.break_start:
            if is_on_break:
                # Restarts the break; the earlier start is dropped
                diagnostics.ignored_break_events += 1
            if is_active and active_start is not None:
                work_periods.append((active_start, ts))
            active_start = None
            is_active = False
            is_on_break = True
            break_start = ts

        elif event.event_type == EventType.break_end:
            if is_on_break and break_start is not None:
                break_periods.append((break_start, ts))
                break_start = None
            else:
                # Nothing to close; work still restarts here
                diagnostics.ignored_break_events += 1
            is_on_break = False
            is_active = True
            active_start = ts

    if is_active and active_start is not None:
        work_periods.append((active_start, now))
    if is_on_break and break_start is not None:
        break_periods.append((break_start, now))

    return work_periods, break_periods, is_active, is_on_break


def compute_live_metrics(
    events: Iterable[Any],
    timezone: str,
    now: datetime,
    *,
    user_id: Optional[str] = None,
    config: Optional[EngineConfig] = None
) -> LiveMetrics:
    """
    Point-in-time metrics for one user's events.

    The events are used exactly as given; scoping them to a day or any other
    window is the caller's job.

    Args:
        events: Punch events in any order
        timezone: IANA timezone (week/month boundaries)
        now: Current instant; open intervals are closed here
        user_id: Reported user id (defaults to the events' owner)
        config: Engine thresholds (default from settings)

    Returns:
        LiveMetrics

    Raises:
        InvalidTimezoneError: if timezone is not a valid IANA name
    """
    get_timezone(timezone)
    cfg = resolve_config(config)
    now = ensure_utc(now)
    diagnostics = EngineDiagnostics()

    ordered = sort_chronologically(normalize_events(events, diagnostics))
    if user_id is None and ordered:
        user_id = ordered[0].user_id

    work_periods, break_periods, is_active, is_on_break = _walk_events(
        ordered, now, diagnostics
    )

    max_seconds = cfg.max_duration_seconds
    work_seconds, capped_work = total_capped_seconds(work_periods, max_seconds)
    break_seconds, capped_breaks = total_capped_seconds(break_periods, max_seconds)
    diagnostics.capped_intervals = capped_work + capped_breaks

    status = determine_user_status(ordered)

    metrics = LiveMetrics(
        user_id=user_id,
        work_seconds=work_seconds,
        break_seconds=break_seconds,
        overtime_seconds=overtime_seconds(work_seconds, cfg),
        is_active=is_active,
        is_on_break=is_on_break,
        last_activity=get_last_activity(ordered),
        status=status,
        status_label=get_status_label(status),
        work_label=format_duration(work_seconds),
        week_seconds=time_in_period(work_periods, start_of_week(now, timezone), max_seconds),
        month_seconds=time_in_period(work_periods, start_of_month(now, timezone), max_seconds),
        was_capped=diagnostics.capped_intervals > 0,
        diagnostics=diagnostics,
    )
    logger.debug(
        "live_metrics_computed",
        user_id=user_id,
        work_seconds=work_seconds,
        break_seconds=break_seconds,
        is_active=is_active,
        is_on_break=is_on_break,
    )
    return metrics


def compute_team_metrics(
    events: Iterable[Any],
    timezone: str,
    now: datetime,
    user_ids: Optional[Sequence[str]] = None,
    *,
    config: Optional[EngineConfig] = None
) -> List[LiveMetrics]:
    """
    Live metrics per user from a mixed event list.

    Args:
        events: Punch events for any number of users
        timezone: IANA timezone
        now: Current instant
        user_ids: Users to report, in order; users without events get zero metrics.
            Defaults to every user present in the events, sorted by id.
        config: Engine thresholds

    Returns:
        List of LiveMetrics; records that fail validation are counted in
        the owning user's diagnostics.skipped_events
    """
    get_timezone(timezone)
    grouped, unowned = group_records_by_user(events)
    if unowned:
        logger.info("team_metrics_unowned_records_skipped", count=unowned)
    if user_ids is None:
        user_ids = sorted(grouped)
    return [
        compute_live_metrics(grouped.get(str(uid), []), timezone, now, user_id=str(uid), config=config)
        for uid in user_ids
    ]
