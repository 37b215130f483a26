"""
Display helpers for report and dashboard renderers.
"""
from datetime import datetime, time
from typing import Optional, Union

from ..schemas.attendance import AdherenceStatus, UserStatus
from .time_rules import utc_to_local


def format_duration(seconds: Optional[float]) -> str:
    """
    Format a duration as "2h 30m", "45m" or "2h".

    Args:
        seconds: Duration in seconds; empty or negative values format as "0m"

    Returns:
        Human readable duration
    """
    if not seconds or seconds <= 0:
        return "0m"
    hours = int(seconds // 3600)
    minutes = int((seconds % 3600) // 60)
    if hours == 0:
        return f"{minutes}m"
    if minutes == 0:
        return f"{hours}h"
    return f"{hours}h {minutes}m"


def format_timestamp(dt: Optional[datetime], timezone_str: str = "UTC", fmt: str = "%I:%M %p") -> str:
    """Local wall-clock rendering of a stored instant, without a leading zero on the hour."""
    if dt is None:
        return ""
    text = utc_to_local(dt, timezone_str).strftime(fmt)
    return text[1:] if text.startswith("0") else text


def format_shift_time(value: Union[str, time]) -> str:
    """Turn "HH:MM[:SS]" (or a time) into "h:MM AM"."""
    if isinstance(value, time):
        value = value.strftime("%H:%M")
    hours, minutes = value.split(":")[:2]
    h = int(hours)
    period = "PM" if h >= 12 else "AM"
    return f"{h % 12 or 12}:{minutes} {period}"


_ADHERENCE_LABELS = {
    AdherenceStatus.early: "Early",
    AdherenceStatus.on_time: "On Time",
    AdherenceStatus.late: "Late",
    AdherenceStatus.absent: "Absent",
    AdherenceStatus.pending: "Pending",
}

_STATUS_LABELS = {
    UserStatus.signed_in: "Signed In",
    UserStatus.signed_out: "Signed Out",
    UserStatus.on_break: "On Break",
}


def get_adherence_label(status: Optional[AdherenceStatus]) -> str:
    return _ADHERENCE_LABELS.get(status, "Not Set") if status is not None else "Not Set"


def get_status_label(status: UserStatus) -> str:
    return _STATUS_LABELS[status]
