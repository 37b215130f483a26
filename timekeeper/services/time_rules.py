"""
Time rules and timezone helpers.
Handles timestamp normalisation, IANA timezone validation and local-date bucketing.
"""
from datetime import date, datetime, time, timedelta
from typing import Optional, Tuple, Union
import pytz


class InvalidTimezoneError(ValueError):
    """Raised when a configured timezone is not a valid IANA name."""

    def __init__(self, timezone_str):
        self.timezone_str = timezone_str
        super().__init__(f"Invalid timezone: {timezone_str!r}")


def get_timezone(timezone_str: str):
    """
    Resolve an IANA timezone name.

    Args:
        timezone_str: Timezone string (e.g., "America/Vancouver")

    Returns:
        pytz timezone

    Raises:
        InvalidTimezoneError: if the name is empty or unknown
    """
    if not timezone_str or not isinstance(timezone_str, str):
        raise InvalidTimezoneError(timezone_str)
    try:
        return pytz.timezone(timezone_str)
    except pytz.UnknownTimeZoneError:
        raise InvalidTimezoneError(timezone_str) from None


def is_valid_timezone(timezone_str: str) -> bool:
    try:
        get_timezone(timezone_str)
    except InvalidTimezoneError:
        return False
    return True


def ensure_utc(dt: datetime) -> datetime:
    """Naive datetimes are UTC at rest; aware ones are converted to UTC."""
    if dt.tzinfo is None:
        return dt.replace(tzinfo=pytz.UTC)
    return dt.astimezone(pytz.UTC)


def parse_timestamp(value: Union[str, datetime, None]) -> Optional[datetime]:
    """
    Parse a stored timestamp into a timezone-aware UTC datetime.

    Args:
        value: ISO-8601 string (a trailing "Z" is accepted) or datetime

    Returns:
        UTC datetime, or None if the value is empty or unparseable
    """
    if value is None:
        return None
    if isinstance(value, datetime):
        return ensure_utc(value)
    if not isinstance(value, str) or not value.strip():
        return None
    try:
        parsed = datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
    except ValueError:
        return None
    return ensure_utc(parsed)


def utc_to_local(utc_datetime: datetime, timezone_str: str) -> datetime:
    """
    Convert UTC datetime to local timezone.

    Args:
        utc_datetime: UTC datetime (naive values are treated as UTC)
        timezone_str: Timezone string (e.g., "America/Vancouver")

    Returns:
        Local datetime (timezone-aware)
    """
    tz = get_timezone(timezone_str)
    return ensure_utc(utc_datetime).astimezone(tz)


def local_to_utc(local_datetime: datetime, timezone_str: str) -> datetime:
    """
    Convert local datetime to UTC.

    Args:
        local_datetime: Local datetime (naive wall-clock time, or aware)
        timezone_str: Timezone string

    Returns:
        UTC datetime (timezone-aware)
    """
    tz = get_timezone(timezone_str)
    if local_datetime.tzinfo is None:
        local_dt = tz.localize(local_datetime)
    else:
        local_dt = local_datetime.astimezone(tz)
    return local_dt.astimezone(pytz.UTC)


def local_date(dt: datetime, timezone_str: str) -> date:
    """Calendar date of an instant in the given timezone."""
    return utc_to_local(dt, timezone_str).date()


def combine_date_time(date_val: date, time_val: time, timezone_str: str) -> datetime:
    """
    Combine a local date and wall-clock time into a UTC datetime.

    Args:
        date_val: Date object
        time_val: Time object
        timezone_str: Timezone string

    Returns:
        UTC datetime (timezone-aware)
    """
    naive_dt = datetime.combine(date_val, time_val.replace(tzinfo=None))
    return local_to_utc(naive_dt, timezone_str)


def local_day_bounds(date_val: date, timezone_str: str) -> Tuple[datetime, datetime]:
    """UTC [start, end) of a local calendar day. DST days may be 23h or 25h long."""
    start = combine_date_time(date_val, time(0, 0), timezone_str)
    end = combine_date_time(date_val + timedelta(days=1), time(0, 0), timezone_str)
    return start, end


def start_of_week(now: datetime, timezone_str: str) -> datetime:
    """UTC instant of local midnight on the Sunday starting the week containing now."""
    today = local_date(now, timezone_str)
    days_since_sunday = (today.weekday() + 1) % 7
    return combine_date_time(today - timedelta(days=days_since_sunday), time(0, 0), timezone_str)


def start_of_month(now: datetime, timezone_str: str) -> datetime:
    """UTC instant of local midnight on the first day of the month containing now."""
    today = local_date(now, timezone_str)
    return combine_date_time(today.replace(day=1), time(0, 0), timezone_str)
