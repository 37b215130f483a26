from datetime import datetime

import pytz

NY = "America/New_York"


def at(year, month, day, hour=0, minute=0, tz="UTC"):
    """UTC instant of a local wall-clock time."""
    return pytz.timezone(tz).localize(datetime(year, month, day, hour, minute)).astimezone(pytz.UTC)


def event(event_type, timestamp, user_id="u1", name=None, event_id=None):
    record = {"user_id": user_id, "event_type": event_type, "timestamp": timestamp}
    if event_id is not None:
        record["id"] = event_id
    if name is not None:
        record["employee_name"] = name
    return record
