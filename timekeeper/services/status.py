"""
User status from attendance events.
"""
from typing import Any, Iterable, Optional

from ..schemas.attendance import EventType, LastActivity, UserStatus
from .events import normalize_events, sort_chronologically


_STATUS_BY_EVENT = {
    EventType.signin: UserStatus.signed_in,
    EventType.signout: UserStatus.signed_out,
    EventType.break_start: UserStatus.on_break,
    EventType.break_end: UserStatus.signed_in,
}


def event_type_to_status(event_type: EventType) -> UserStatus:
    return _STATUS_BY_EVENT.get(event_type, UserStatus.signed_out)


def determine_user_status(events: Iterable[Any]) -> UserStatus:
    """Status implied by the chronologically last valid event; signed out when there is none."""
    ordered = sort_chronologically(normalize_events(events))
    if not ordered:
        return UserStatus.signed_out
    return event_type_to_status(ordered[-1].event_type)


def get_last_activity(events: Iterable[Any]) -> Optional[LastActivity]:
    ordered = sort_chronologically(normalize_events(events))
    if not ordered:
        return None
    last = ordered[-1]
    return LastActivity(type=last.event_type, timestamp=last.timestamp)
