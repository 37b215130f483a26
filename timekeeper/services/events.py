"""
Punch event normalisation.
Accepts mappings, ORM rows or PunchEvent models and yields validated,
chronologically sortable events. Malformed records are skipped one at a time.
"""
from collections.abc import Mapping
from typing import Any, Dict, Iterable, List, Optional, Tuple

import structlog
from pydantic import ValidationError

from ..schemas.attendance import EngineDiagnostics, PunchEvent

logger = structlog.get_logger(__name__)


def _field(record: Any, *names: str) -> Any:
    for name in names:
        if isinstance(record, Mapping):
            if name in record:
                return record[name]
        elif hasattr(record, name):
            return getattr(record, name)
    return None


def to_punch_event(record: Any, position: int = 0) -> PunchEvent:
    """
    Build a PunchEvent from a raw record.

    Raises:
        ValidationError: if the timestamp, event type or owner is unusable
    """
    if isinstance(record, PunchEvent):
        return record
    event_type = _field(record, "event_type", "eventType", "type")
    # ORM rows may carry enum members
    event_type = getattr(event_type, "value", event_type)
    event_id = _field(record, "id")
    return PunchEvent.model_validate(
        {
            "id": event_id if event_id is not None else f"event-{position}",
            "user_id": _field(record, "user_id", "userId"),
            "event_type": event_type,
            "timestamp": _field(record, "timestamp"),
            "employee_name": _field(record, "employee_name", "employeeName"),
        }
    )


def normalize_events(
    records: Optional[Iterable[Any]],
    diagnostics: Optional[EngineDiagnostics] = None
) -> List[PunchEvent]:
    """
    Validate raw records, dropping the ones that cannot be placed on a timeline.

    Args:
        records: Raw event records in any order
        diagnostics: Optional counter updated with the number of skipped records

    Returns:
        Valid events, input order preserved
    """
    events: List[PunchEvent] = []
    for position, record in enumerate(records or []):
        try:
            events.append(to_punch_event(record, position))
        except ValidationError as e:
            if diagnostics is not None:
                diagnostics.skipped_events += 1
            logger.debug(
                "punch_event_skipped",
                position=position,
                fields=[".".join(str(p) for p in err["loc"]) for err in e.errors()],
            )
    return events


def sort_chronologically(events: Iterable[PunchEvent]) -> List[PunchEvent]:
    """Stable sort by timestamp; equal timestamps keep input order."""
    return sorted(events, key=lambda e: e.timestamp)


def sort_by_user(events: Iterable[PunchEvent]) -> List[PunchEvent]:
    """Stable sort by (user_id, timestamp)."""
    return sorted(events, key=lambda e: (e.user_id, e.timestamp))


def group_by_user(events: Iterable[PunchEvent]) -> dict:
    grouped: dict = {}
    for event in events:
        grouped.setdefault(event.user_id, []).append(event)
    return grouped


def group_records_by_user(records: Optional[Iterable[Any]]) -> Tuple[Dict[str, List[Any]], int]:
    """
    Group raw records by owner before validation.

    Returns:
        (records per user id, count of records with no usable owner)
    """
    grouped: Dict[str, List[Any]] = {}
    unowned = 0
    for record in records or []:
        owner = record.user_id if isinstance(record, PunchEvent) else _field(record, "user_id", "userId")
        if owner is None or str(owner) == "":
            unowned += 1
            continue
        grouped.setdefault(str(owner), []).append(record)
    return grouped, unowned
