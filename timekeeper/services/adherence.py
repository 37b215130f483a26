"""
Shift adherence classification.
Compares today's attendance with a department's scheduled shift window.
Rules are evaluated in order and the first match wins.
"""
from datetime import date, datetime, timedelta
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple

from ..schemas.attendance import (
    AdherenceResult,
    AdherenceStatus,
    AdherenceSummary,
    EventType,
    LiveMetrics,
    ScheduleWindow,
    TeamMember,
)
from .engine_config import EngineConfig, resolve_config
from .events import group_by_user, normalize_events
from .formatting import format_shift_time, format_timestamp, get_adherence_label
from .metrics import compute_team_metrics
from .time_rules import combine_date_time, ensure_utc, get_timezone, local_date, utc_to_local


def _signins_on(events: Iterable[Any], day: date, timezone: str) -> List[datetime]:
    return [
        e.timestamp
        for e in normalize_events(events)
        if e.event_type == EventType.signin and local_date(e.timestamp, timezone) == day
    ]


def shift_window(schedule: ScheduleWindow, day: date, timezone: str) -> Tuple[datetime, datetime]:
    """
    UTC start and end of the scheduled shift on a local day.
    An end earlier than the start means the shift ends the next day.
    """
    start = combine_date_time(day, schedule.shift_start, timezone)
    end = combine_date_time(day, schedule.shift_end, timezone)
    if end < start:
        end += timedelta(hours=24)
    return start, end


def classify_adherence(
    metrics: LiveMetrics,
    schedule: Optional[ScheduleWindow],
    todays_events: Iterable[Any],
    now: datetime,
    timezone: str,
    *,
    manually_absent: bool = False,
    config: Optional[EngineConfig] = None
) -> Optional[AdherenceStatus]:
    """
    Classify an employee's adherence for the local day containing now.

    Args:
        metrics: The employee's live metrics
        schedule: Department shift window; None when the department has none
        todays_events: The employee's events; only sign-ins on today's local date count
        now: Current instant
        timezone: IANA timezone of the schedule
        manually_absent: External absence override
        config: Engine thresholds

    Returns:
        AdherenceStatus, or None when no schedule applies
    """
    get_timezone(timezone)
    cfg = resolve_config(config)
    now = ensure_utc(now)

    if manually_absent:
        return AdherenceStatus.absent

    if schedule is None or not schedule.is_set:
        return None

    # Being present counts as compliant regardless of arrival time
    if metrics.is_active or metrics.is_on_break:
        return AdherenceStatus.on_time

    today = local_date(now, timezone)
    signins_today = _signins_on(todays_events, today, timezone)

    # Showed up at some point and has since signed out
    if signins_today:
        return AdherenceStatus.on_time

    shift_start, _shift_end = shift_window(schedule, today, timezone)
    grace_minutes = schedule.grace_period_minutes
    if grace_minutes is None:
        grace_minutes = cfg.grace_period_minutes
    grace_end = shift_start + timedelta(minutes=grace_minutes)

    if now < shift_start:
        return AdherenceStatus.pending

    if now < grace_end and not signins_today:
        return AdherenceStatus.pending

    if not signins_today:
        if now >= shift_start + timedelta(seconds=cfg.absent_threshold_seconds):
            return AdherenceStatus.absent
        return AdherenceStatus.late

    arrival = classify_arrival(min(signins_today), schedule, timezone, config=cfg)
    if arrival == AdherenceStatus.early:
        return AdherenceStatus.early
    return AdherenceStatus.on_time


def classify_arrival(
    signed_in_at: datetime,
    schedule: ScheduleWindow,
    timezone: str,
    *,
    config: Optional[EngineConfig] = None
) -> Optional[AdherenceStatus]:
    """
    Classify a recorded sign-in against the shift starting on its local date.

    early: more than the early threshold before shift start
    on_time: from then until the end of the grace period
    late: after the grace period
    """
    if not schedule.is_set:
        return None
    cfg = resolve_config(config)
    signed_in_at = ensure_utc(signed_in_at)
    shift_start, _ = shift_window(schedule, local_date(signed_in_at, timezone), timezone)
    grace_minutes = schedule.grace_period_minutes
    if grace_minutes is None:
        grace_minutes = cfg.grace_period_minutes

    if signed_in_at < shift_start - timedelta(minutes=cfg.early_arrival_threshold_minutes):
        return AdherenceStatus.early
    if signed_in_at <= shift_start + timedelta(minutes=grace_minutes):
        return AdherenceStatus.on_time
    return AdherenceStatus.late


def is_eligible_for_absent_marking(
    status: Optional[AdherenceStatus],
    now: datetime,
    timezone: str,
    config: Optional[EngineConfig] = None
) -> bool:
    """Only late employees can be marked absent, and only after the local cutoff hour."""
    cfg = resolve_config(config)
    if status != AdherenceStatus.late:
        return False
    return utc_to_local(now, timezone).hour >= cfg.absent_cutoff_hour


def assess_adherence(
    user_id: str,
    metrics: LiveMetrics,
    schedule: Optional[ScheduleWindow],
    todays_events: Iterable[Any],
    now: datetime,
    timezone: str,
    *,
    manually_absent: bool = False,
    config: Optional[EngineConfig] = None
) -> AdherenceResult:
    todays_events = list(todays_events or [])
    status = classify_adherence(
        metrics,
        schedule,
        todays_events,
        now,
        timezone,
        manually_absent=manually_absent,
        config=config,
    )
    shift_label = None
    if schedule is not None and schedule.is_set:
        shift_label = f"{format_shift_time(schedule.shift_start)} - {format_shift_time(schedule.shift_end)}"
    signins_today = _signins_on(todays_events, local_date(ensure_utc(now), timezone), timezone)
    return AdherenceResult(
        user_id=str(user_id),
        status=status,
        label=get_adherence_label(status),
        eligible_for_absent=is_eligible_for_absent_marking(status, now, timezone, config),
        shift_label=shift_label,
        signed_in_label=format_timestamp(min(signins_today), timezone) if signins_today else None,
    )


def adherence_counts(results: Iterable[AdherenceResult]) -> Dict[str, int]:
    """Number of results per adherence status; statuses nobody has count as 0."""
    counts = {status.value: 0 for status in AdherenceStatus}
    for result in results:
        if result.status is not None:
            counts[result.status.value] += 1
    return counts


def assess_team_adherence(
    members: Sequence[TeamMember],
    todays_events: Iterable[Any],
    now: datetime,
    timezone: str,
    *,
    config: Optional[EngineConfig] = None
) -> AdherenceSummary:
    """
    Adherence for a group of employees, with counts per status.

    Args:
        members: Employees to assess, each with their own schedule
        todays_events: Today's events for any of the members
        now: Current instant
        timezone: IANA timezone of the schedules
        config: Engine thresholds

    Returns:
        AdherenceSummary; members without a schedule count as not applicable
    """
    events = list(todays_events or [])
    metrics = compute_team_metrics(events, timezone, now, [m.user_id for m in members], config=config)
    by_user = group_by_user(normalize_events(events))

    results: List[AdherenceResult] = [
        assess_adherence(
            member.user_id,
            member_metrics,
            member.schedule,
            by_user.get(str(member.user_id), []),
            now,
            timezone,
            manually_absent=member.manually_absent,
            config=config,
        )
        for member, member_metrics in zip(members, metrics)
    ]
    return AdherenceSummary(
        total=len(results),
        counts=adherence_counts(results),
        not_applicable=sum(1 for r in results if r.status is None),
        results=results,
    )
