"""
Seed the local database with a sample department, employees and a day of punches.

Usage:
  python scripts/seed_test_data.py [YYYY-MM-DD]

Profiles and the department are upserted by name. Punches for the seeded day
are deleted and re-inserted, so running it twice leaves one copy.
"""

import os
import sys
from datetime import date, datetime, time, timezone

# Add parent directory to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from dotenv import load_dotenv

# Load environment variables before the settings are read
load_dotenv()

from timekeeper.db import SessionLocal, Base, engine
from timekeeper.models.models import AppSettings, AttendanceLog, Department, Profile
from timekeeper.schemas.attendance import EventType
from timekeeper.services.attendance_store import record_punch
from timekeeper.services.time_rules import local_day_bounds


TIMEZONE = "UTC"

# name -> [(event_type, "HH:MM"), ...]
SAMPLE_PUNCHES = {
    "Hamza Qamar": [("signin", "09:00"), ("break_start", "12:00"), ("break_end", "12:30")],
    "Kainat Malik": [("signin", "09:15")],
    "Muhammad Saad": [("signin", "09:30")],
    "Musab Ghani": [("signin", "10:00"), ("break_start", "12:15"), ("break_end", "13:00")],
    "Shayan Ismail": [("signin", "10:15")],
    "Zain Ansari": [("signin", "08:45"), ("signout", "17:15")],
}


def ensure_department(session, name: str, start: time, end: time, grace: int = 30) -> Department:
    dept = session.query(Department).filter(Department.name == name).first()
    if dept:
        dept.shift_start_time = start
        dept.shift_end_time = end
        dept.grace_period_minutes = grace
        session.add(dept)
        session.flush()
        return dept
    dept = Department(name=name, shift_start_time=start, shift_end_time=end, grace_period_minutes=grace)
    session.add(dept)
    session.flush()
    return dept


def ensure_profile(session, full_name: str, department_id: str, role: str = "employee") -> Profile:
    profile = session.query(Profile).filter(Profile.full_name == full_name).first()
    if profile:
        profile.department_id = department_id
        profile.role = role
        session.add(profile)
        session.flush()
        return profile
    profile = Profile(full_name=full_name, department_id=department_id, role=role)
    session.add(profile)
    session.flush()
    return profile


def ensure_timezone(session, tz: str) -> None:
    row = session.query(AppSettings).first()
    if row is None:
        row = AppSettings(id=1)
    row.timezone = tz
    row.updated_at = datetime.now(timezone.utc)
    session.add(row)
    session.flush()


def main() -> None:
    day = date.fromisoformat(sys.argv[1]) if len(sys.argv) > 1 else date.today()

    # Ensure tables exist (safe for SQLite dev)
    Base.metadata.create_all(bind=engine)

    session = SessionLocal()
    try:
        ensure_timezone(session, TIMEZONE)
        support = ensure_department(session, "Support", time(9, 0), time(17, 0))
        ensure_profile(session, "Team Manager", support.id, role="manager")

        start, end = local_day_bounds(day, TIMEZONE)
        profiles = [ensure_profile(session, name, support.id) for name in SAMPLE_PUNCHES]
        session.query(AttendanceLog).filter(
            AttendanceLog.user_id.in_([p.id for p in profiles]),
            AttendanceLog.timestamp >= start.replace(tzinfo=None),
            AttendanceLog.timestamp < end.replace(tzinfo=None),
        ).delete(synchronize_session=False)
        session.commit()

        for profile in profiles:
            for event_type, hhmm in SAMPLE_PUNCHES[profile.full_name]:
                at = datetime.combine(day, time.fromisoformat(hhmm), tzinfo=timezone.utc)
                record_punch(session, profile.id, EventType(event_type), at)

        print(f"Seed completed: {len(profiles)} employees with punches on {day.isoformat()}.")
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


if __name__ == "__main__":
    main()
