"""
Tunable thresholds for the attendance engine.
Defaults come from application settings; callers may override per call.
"""
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from ..config import settings


class EngineConfig(BaseModel):
    model_config = ConfigDict(frozen=True)

    standard_workday_seconds: int = Field(default=8 * 3600, ge=0)
    max_duration_seconds: int = Field(default=24 * 3600, gt=0)
    editable_shift_cap_seconds: int = Field(default=12 * 3600, gt=0)
    grace_period_minutes: int = Field(default=30, ge=0)
    early_arrival_threshold_minutes: int = Field(default=15, ge=0)
    absent_threshold_seconds: int = Field(default=4 * 3600, ge=0)
    absent_cutoff_hour: int = Field(default=12, ge=0, le=23)

    @classmethod
    def from_settings(cls, source=None) -> "EngineConfig":
        s = source or settings
        return cls(
            standard_workday_seconds=int(s.standard_workday_hours * 3600),
            max_duration_seconds=int(s.max_shift_duration_hours * 3600),
            editable_shift_cap_seconds=int(s.editable_shift_cap_hours * 3600),
            grace_period_minutes=s.grace_period_minutes_default,
            early_arrival_threshold_minutes=s.early_arrival_threshold_min,
            absent_threshold_seconds=int(s.absent_threshold_hours * 3600),
            absent_cutoff_hour=s.absent_cutoff_hour,
        )

    @property
    def max_overtime_seconds(self) -> int:
        return max(0, self.max_duration_seconds - self.standard_workday_seconds)

    def for_editable_shift(self) -> "EngineConfig":
        """Same thresholds with the stricter single-shift cap applied."""
        return self.model_copy(update={"max_duration_seconds": self.editable_shift_cap_seconds})


def resolve_config(config: Optional[EngineConfig]) -> EngineConfig:
    return config if config is not None else EngineConfig.from_settings()
