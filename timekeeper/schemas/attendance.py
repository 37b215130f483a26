from datetime import date, datetime, time
from enum import Enum
from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, computed_field, field_validator

from ..services.time_rules import parse_timestamp


# Enums
class EventType(str, Enum):
    signin = "signin"
    signout = "signout"
    break_start = "break_start"
    break_end = "break_end"


class UserStatus(str, Enum):
    signed_in = "signed_in"
    on_break = "on_break"
    signed_out = "signed_out"


class AdherenceStatus(str, Enum):
    early = "early"
    on_time = "on_time"
    late = "late"
    absent = "absent"
    pending = "pending"


# Punch events
class PunchEvent(BaseModel):
    """One timestamped attendance action. Timestamps are normalised to aware UTC."""
    model_config = ConfigDict(frozen=True)

    id: str
    user_id: str
    event_type: EventType
    timestamp: datetime
    employee_name: Optional[str] = None

    @field_validator("id", "user_id", mode="before")
    @classmethod
    def _stringify_ids(cls, v):
        if v is None:
            raise ValueError("identifier is required")
        v = str(v)
        if not v:
            raise ValueError("identifier is required")
        return v

    @field_validator("timestamp", mode="before")
    @classmethod
    def _parse_timestamp(cls, v):
        parsed = parse_timestamp(v)
        if parsed is None:
            raise ValueError(f"unparseable timestamp: {v!r}")
        return parsed


class PunchCreate(BaseModel):
    user_id: str
    event_type: EventType
    timestamp: Optional[datetime] = None  # defaults to server time


class LastActivity(BaseModel):
    type: EventType
    timestamp: datetime


class EngineDiagnostics(BaseModel):
    """Counts of skipped input and anomalies handled by policy."""
    skipped_events: int = 0
    duplicate_signins: int = 0
    orphaned_signouts: int = 0
    ignored_break_events: int = 0
    capped_intervals: int = 0

    @property
    def has_anomalies(self) -> bool:
        return any(
            (
                self.skipped_events,
                self.duplicate_signins,
                self.orphaned_signouts,
                self.ignored_break_events,
                self.capped_intervals,
            )
        )


# Reconstructed shifts
class BreakPeriod(BaseModel):
    start: datetime
    end: Optional[datetime] = None


class ShiftEntry(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    in_time: Optional[datetime] = Field(default=None, alias="in")
    out_time: Optional[datetime] = Field(default=None, alias="out")
    breaks: List[BreakPeriod] = Field(default_factory=list)
    duration_seconds: int = 0
    break_seconds: int = 0
    was_capped: bool = False
    incomplete: bool = False
    ongoing: bool = False

    @computed_field  # type: ignore[misc]
    @property
    def break_start(self) -> Optional[datetime]:
        return self.breaks[0].start if self.breaks else None

    @computed_field  # type: ignore[misc]
    @property
    def break_end(self) -> Optional[datetime]:
        return self.breaks[-1].end if self.breaks else None


class ShiftRecord(BaseModel):
    employee_id: str
    employee_name: str
    anchor_date: date
    entries: List[ShiftEntry] = Field(default_factory=list)
    total_seconds: int = 0
    break_seconds: int = 0
    was_capped: bool = False


class ShiftReconstruction(BaseModel):
    records: List[ShiftRecord] = Field(default_factory=list)
    diagnostics: EngineDiagnostics = Field(default_factory=EngineDiagnostics)


# Live metrics
class LiveMetrics(BaseModel):
    user_id: Optional[str] = None
    work_seconds: int = 0
    break_seconds: int = 0
    overtime_seconds: int = 0
    is_active: bool = False
    is_on_break: bool = False
    last_activity: Optional[LastActivity] = None
    status: UserStatus = UserStatus.signed_out
    status_label: str = "Signed Out"
    work_label: str = "0m"
    week_seconds: int = 0
    month_seconds: int = 0
    was_capped: bool = False
    diagnostics: EngineDiagnostics = Field(default_factory=EngineDiagnostics)


# Adherence
class ScheduleWindow(BaseModel):
    """Department shift schedule in local wall-clock time."""
    shift_start: Optional[time] = None
    shift_end: Optional[time] = None
    grace_period_minutes: Optional[int] = None

    @property
    def is_set(self) -> bool:
        return self.shift_start is not None and self.shift_end is not None


class AdherenceResult(BaseModel):
    user_id: str
    status: Optional[AdherenceStatus] = None
    label: str
    eligible_for_absent: bool = False
    shift_label: Optional[str] = None  # "9:00 AM - 5:00 PM"
    signed_in_label: Optional[str] = None  # first sign-in today, local time


class TeamMember(BaseModel):
    """One employee to assess, with their department's schedule."""
    user_id: str
    schedule: Optional[ScheduleWindow] = None
    manually_absent: bool = False


class AdherenceSummary(BaseModel):
    total: int = 0
    counts: Dict[str, int] = Field(default_factory=dict)
    not_applicable: int = 0
    results: List[AdherenceResult] = Field(default_factory=list)
