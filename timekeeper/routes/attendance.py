from datetime import date, datetime, timezone as dt_timezone
from typing import List, Optional

import structlog
from fastapi import APIRouter, Depends, HTTPException, Query, Request
from sqlalchemy.orm import Session

from ..db import get_db
from ..schemas.attendance import (
    AdherenceResult,
    AdherenceSummary,
    LiveMetrics,
    PunchCreate,
    ShiftRecord,
    TeamMember,
)
from ..services.adherence import adherence_counts, assess_adherence, assess_team_adherence
from ..services.attendance_store import (
    fetch_logs,
    get_department_schedule,
    get_profile,
    list_profiles,
    logs_to_events,
    record_punch,
)
from ..services.metrics import compute_live_metrics, compute_team_metrics
from ..services.reports import build_shift_report, report_fetch_window
from ..services.time_rules import InvalidTimezoneError, is_valid_timezone, local_date, local_day_bounds
from ..services.timezone_cache import TimezoneCache


router = APIRouter(prefix="/attendance", tags=["attendance"])
logger = structlog.get_logger(__name__)


def get_now() -> datetime:
    return datetime.now(dt_timezone.utc)


def get_timezone_cache(request: Request) -> TimezoneCache:
    return request.app.state.timezone_cache


def current_timezone(cache: TimezoneCache = Depends(get_timezone_cache)) -> str:
    try:
        return cache.get()
    except InvalidTimezoneError as e:
        logger.error("stored_timezone_invalid", timezone=e.timezone_str)
        raise HTTPException(status_code=500, detail="Configured timezone is invalid")


def resolve_timezone(
    tz: Optional[str] = Query(default=None, description="IANA timezone override"),
    app_tz: str = Depends(current_timezone),
) -> str:
    if tz is None:
        return app_tz
    if not is_valid_timezone(tz):
        raise HTTPException(status_code=400, detail=f"Invalid timezone: {tz}")
    return tz


def _today_events(db: Session, user_ids: List[str], tz: str, now: datetime) -> List[dict]:
    start, end = local_day_bounds(local_date(now, tz), tz)
    return logs_to_events(fetch_logs(db, start, end, user_ids=user_ids))


@router.post("/events")
def create_event(
    payload: PunchCreate,
    db: Session = Depends(get_db),
    now: datetime = Depends(get_now),
):
    profile = get_profile(db, payload.user_id)
    if not profile:
        raise HTTPException(status_code=404, detail="Profile not found")
    log = record_punch(db, profile.id, payload.event_type, payload.timestamp or now)
    logger.info("punch_recorded", user_id=profile.id, event_type=log.event_type)
    return {
        "id": log.id,
        "user_id": log.user_id,
        "event_type": log.event_type,
        "timestamp": log.timestamp.isoformat(),
    }


@router.get("/metrics", response_model=LiveMetrics)
def user_metrics(
    user_id: str,
    db: Session = Depends(get_db),
    tz: str = Depends(resolve_timezone),
    now: datetime = Depends(get_now),
):
    profile = get_profile(db, user_id)
    if not profile:
        raise HTTPException(status_code=404, detail="Profile not found")
    events = _today_events(db, [profile.id], tz, now)
    return compute_live_metrics(events, tz, now, user_id=profile.id)


@router.get("/team-metrics", response_model=List[LiveMetrics])
def team_metrics(
    department_id: Optional[str] = None,
    db: Session = Depends(get_db),
    tz: str = Depends(resolve_timezone),
    now: datetime = Depends(get_now),
):
    user_ids = [p.id for p in list_profiles(db, department_id)]
    if not user_ids:
        return []
    events = _today_events(db, user_ids, tz, now)
    return compute_team_metrics(events, tz, now, user_ids)


@router.get("/reports", response_model=List[ShiftRecord])
def shift_report(
    start_date: date,
    end_date: date,
    employee_id: Optional[str] = None,
    db: Session = Depends(get_db),
    tz: str = Depends(resolve_timezone),
    now: datetime = Depends(get_now),
):
    if end_date < start_date:
        raise HTTPException(status_code=400, detail="end_date must not be before start_date")
    window_start, window_end = report_fetch_window(start_date, end_date, tz)
    user_ids = [employee_id] if employee_id else None
    events = logs_to_events(fetch_logs(db, window_start, window_end, user_ids=user_ids))
    return build_shift_report(events, tz, start_date, end_date, employee_id=employee_id, now=now)


@router.get("/adherence", response_model=AdherenceResult)
def user_adherence(
    user_id: str,
    db: Session = Depends(get_db),
    tz: str = Depends(resolve_timezone),
    now: datetime = Depends(get_now),
):
    profile = get_profile(db, user_id)
    if not profile:
        raise HTTPException(status_code=404, detail="Profile not found")
    events = _today_events(db, [profile.id], tz, now)
    metrics = compute_live_metrics(events, tz, now, user_id=profile.id)
    schedule = get_department_schedule(db, profile.department_id)
    return assess_adherence(
        profile.id,
        metrics,
        schedule,
        events,
        now,
        tz,
        manually_absent=bool(profile.is_manually_absent),
    )


@router.get("/team-adherence", response_model=AdherenceSummary)
def team_adherence(
    department_id: Optional[str] = None,
    db: Session = Depends(get_db),
    tz: str = Depends(resolve_timezone),
    now: datetime = Depends(get_now),
):
    profiles = list_profiles(db, department_id)
    if not profiles:
        return AdherenceSummary(counts=adherence_counts([]))
    schedules = {}
    members = []
    for profile in profiles:
        if profile.department_id not in schedules:
            schedules[profile.department_id] = get_department_schedule(db, profile.department_id)
        members.append(
            TeamMember(
                user_id=profile.id,
                schedule=schedules[profile.department_id],
                manually_absent=bool(profile.is_manually_absent),
            )
        )
    events = _today_events(db, [m.user_id for m in members], tz, now)
    summary = assess_team_adherence(members, events, now, tz)
    logger.info("team_adherence_assessed", department_id=department_id, **summary.counts)
    return summary
