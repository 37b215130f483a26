import uuid
from datetime import datetime, time
from typing import Optional

from sqlalchemy import (
    String,
    DateTime,
    Time,
    Boolean,
    ForeignKey,
    Integer,
    Index,
)
from sqlalchemy.orm import relationship, Mapped, mapped_column

from ..db import Base


def uuid_pk() -> Mapped[str]:
    return mapped_column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))


class Department(Base):
    __tablename__ = "departments"

    id: Mapped[str] = uuid_pk()
    name: Mapped[str] = mapped_column(String(255), nullable=False, unique=True)
    shift_start_time: Mapped[Optional[time]] = mapped_column(Time(timezone=False))  # Local time
    shift_end_time: Mapped[Optional[time]] = mapped_column(Time(timezone=False))  # Local time, earlier than start = overnight
    grace_period_minutes: Mapped[Optional[int]] = mapped_column(Integer, default=30)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=datetime.utcnow)

    members = relationship("Profile", back_populates="department")


class Profile(Base):
    """Employee profile"""
    __tablename__ = "profiles"

    id: Mapped[str] = uuid_pk()
    full_name: Mapped[Optional[str]] = mapped_column(String(255))
    role: Mapped[str] = mapped_column(String(20), default="employee")  # employee|manager|admin
    department_id: Mapped[Optional[str]] = mapped_column(String(36), ForeignKey("departments.id", ondelete="SET NULL"), index=True)
    is_manually_absent: Mapped[bool] = mapped_column(Boolean, default=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=datetime.utcnow)

    department = relationship("Department", back_populates="members")


class AttendanceLog(Base):
    """Raw punch events; timestamps are stored as naive UTC"""
    __tablename__ = "attendance_logs"

    id: Mapped[str] = uuid_pk()
    user_id: Mapped[str] = mapped_column(String(36), ForeignKey("profiles.id", ondelete="CASCADE"), nullable=False, index=True)
    event_type: Mapped[str] = mapped_column(String(20), nullable=False)  # signin|signout|break_start|break_end
    timestamp: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=False))
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), default=datetime.utcnow)

    profile = relationship("Profile")

    __table_args__ = (
        Index('idx_attendance_logs_user_time', 'user_id', 'timestamp'),
    )


class AppSettings(Base):
    __tablename__ = "app_settings"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, default=1)
    timezone: Mapped[Optional[str]] = mapped_column(String(64))
    updated_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))
