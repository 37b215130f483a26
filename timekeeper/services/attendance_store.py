"""
Attendance storage helpers.
Thin queries that feed raw punch events to the engine.
"""
from datetime import datetime
from typing import Dict, List, Optional, Sequence

from sqlalchemy.orm import Session, joinedload

from ..models.models import AppSettings, AttendanceLog, Department, Profile
from ..schemas.attendance import EventType, ScheduleWindow
from .time_rules import ensure_utc


def _naive_utc(dt: datetime) -> datetime:
    return ensure_utc(dt).replace(tzinfo=None)


def record_punch(
    db: Session,
    user_id: str,
    event_type: EventType,
    timestamp: datetime
) -> AttendanceLog:
    """
    Append a punch event.

    Args:
        db: Database session
        user_id: Profile ID
        event_type: Punch type
        timestamp: Instant of the punch (stored as naive UTC)

    Returns:
        Created AttendanceLog
    """
    log = AttendanceLog(
        user_id=str(user_id),
        event_type=EventType(event_type).value,
        timestamp=_naive_utc(timestamp),
    )
    db.add(log)
    db.commit()
    db.refresh(log)
    return log


def fetch_logs(
    db: Session,
    start_utc: Optional[datetime] = None,
    end_utc: Optional[datetime] = None,
    user_ids: Optional[Sequence[str]] = None
) -> List[AttendanceLog]:
    """Logs with start_utc <= timestamp < end_utc, oldest first."""
    query = db.query(AttendanceLog).options(joinedload(AttendanceLog.profile))
    if start_utc is not None:
        query = query.filter(AttendanceLog.timestamp >= _naive_utc(start_utc))
    if end_utc is not None:
        query = query.filter(AttendanceLog.timestamp < _naive_utc(end_utc))
    if user_ids is not None:
        query = query.filter(AttendanceLog.user_id.in_([str(u) for u in user_ids]))
    return query.order_by(AttendanceLog.timestamp.asc(), AttendanceLog.created_at.asc()).all()


def logs_to_events(logs: Sequence[AttendanceLog]) -> List[Dict]:
    """Plain event records, with the owner's display name attached."""
    return [
        {
            "id": log.id,
            "user_id": log.user_id,
            "event_type": log.event_type,
            "timestamp": log.timestamp,
            "employee_name": log.profile.full_name if log.profile is not None else None,
        }
        for log in logs
    ]


def get_profile(db: Session, user_id: str) -> Optional[Profile]:
    return db.query(Profile).filter(Profile.id == str(user_id)).first()


def list_profiles(db: Session, department_id: Optional[str] = None) -> List[Profile]:
    query = db.query(Profile)
    if department_id:
        query = query.filter(Profile.department_id == str(department_id))
    return query.order_by(Profile.full_name.asc()).all()


def get_app_timezone(db: Session) -> Optional[str]:
    row = db.query(AppSettings).order_by(AppSettings.id.asc()).first()
    return row.timezone if row else None


def get_department_schedule(db: Session, department_id: Optional[str]) -> Optional[ScheduleWindow]:
    if not department_id:
        return None
    department = db.query(Department).filter(Department.id == str(department_id)).first()
    if not department:
        return None
    return ScheduleWindow(
        shift_start=department.shift_start_time,
        shift_end=department.shift_end_time,
        grace_period_minutes=department.grace_period_minutes,
    )
