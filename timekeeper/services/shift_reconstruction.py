"""
Shift reconstruction service.
Pairs sign-in/sign-out punches into shift entries attributed to the sign-in's
local calendar date (the anchor date), so overnight shifts are never split.
"""
from datetime import date, datetime
from typing import Any, Dict, Iterable, List, Optional, Tuple

import structlog

from ..schemas.attendance import (
    BreakPeriod,
    EngineDiagnostics,
    EventType,
    ShiftEntry,
    ShiftReconstruction,
    ShiftRecord,
)
from .durations import cap_duration
from .engine_config import EngineConfig, resolve_config
from .events import normalize_events, sort_by_user
from .time_rules import get_timezone, local_date

logger = structlog.get_logger(__name__)

UNKNOWN_EMPLOYEE_NAME = "Unknown User"


class _OpenShift:
    """A sign-in waiting for its sign-out."""

    def __init__(self, signed_in_at: datetime, anchor_date: date):
        self.signed_in_at = signed_in_at
        self.anchor_date = anchor_date
        self.breaks: List[List[Optional[datetime]]] = []

    @property
    def on_break(self) -> bool:
        return bool(self.breaks) and self.breaks[-1][1] is None

    def start_break(self, at: datetime) -> None:
        self.breaks.append([at, None])

    def end_break(self, at: datetime) -> None:
        self.breaks[-1][1] = at

    def finish(
        self,
        signed_out_at: Optional[datetime],
        max_seconds: int,
        ongoing: bool = False
    ) -> ShiftEntry:
        # Signing out while on break ends the break
        if signed_out_at is not None and self.on_break:
            self.end_break(signed_out_at)

        break_seconds = sum(
            cap_duration(start, end, max_seconds).seconds
            for start, end in self.breaks
            if end is not None
        )
        duration_seconds = 0
        was_capped = False
        if signed_out_at is not None:
            capped = cap_duration(self.signed_in_at, signed_out_at, max_seconds)
            duration_seconds = capped.seconds
            was_capped = capped.was_capped

        return ShiftEntry(
            in_time=self.signed_in_at,
            out_time=signed_out_at,
            breaks=[BreakPeriod(start=start, end=end) for start, end in self.breaks],
            duration_seconds=duration_seconds,
            break_seconds=break_seconds,
            was_capped=was_capped,
            incomplete=signed_out_at is None,
            ongoing=ongoing,
        )


def reconstruct_shifts_with_diagnostics(
    events: Iterable[Any],
    timezone: str,
    now: Optional[datetime] = None,
    *,
    config: Optional[EngineConfig] = None
) -> ShiftReconstruction:
    """
    Reconstruct shift records and report the anomalies met along the way.

    Args:
        events: Punch events (PunchEvent, mapping or ORM row) in any order
        timezone: IANA timezone used to pick anchor dates
        now: When given, sign-ins still open at the end are marked ongoing
        config: Engine thresholds (default from settings)

    Returns:
        ShiftReconstruction with records ordered by anchor date descending,
        then employee name ascending

    Raises:
        InvalidTimezoneError: if timezone is not a valid IANA name
    """
    get_timezone(timezone)
    cfg = resolve_config(config)
    max_seconds = cfg.max_duration_seconds
    diagnostics = EngineDiagnostics()

    ordered = sort_by_user(normalize_events(events, diagnostics))

    # (user_id, anchor_date) -> entries, in first-seen order
    entries_by_key: Dict[Tuple[str, date], List[ShiftEntry]] = {}
    open_shifts: Dict[str, _OpenShift] = {}
    names: Dict[str, str] = {}

    def entries_for(user_id: str, anchor: date) -> List[ShiftEntry]:
        return entries_by_key.setdefault((user_id, anchor), [])

    for event in ordered:
        user_id = event.user_id
        if event.employee_name and user_id not in names:
            names[user_id] = event.employee_name
        current = open_shifts.get(user_id)

        if event.event_type == EventType.signin:
            anchor = local_date(event.timestamp, timezone)
            entries_for(user_id, anchor)
            if current is not None:
                # Repeated sign-in: the earlier shift is closed as incomplete
                diagnostics.duplicate_signins += 1
                entries_for(user_id, current.anchor_date).append(current.finish(None, max_seconds))
                logger.debug(
                    "duplicate_signin",
                    user_id=user_id,
                    previous=current.signed_in_at.isoformat(),
                    current=event.timestamp.isoformat(),
                )
            open_shifts[user_id] = _OpenShift(event.timestamp, anchor)

        elif event.event_type == EventType.signout:
            if current is not None:
                entry = current.finish(event.timestamp, max_seconds)
                entries_for(user_id, current.anchor_date).append(entry)
                del open_shifts[user_id]
            else:
                diagnostics.orphaned_signouts += 1
                entries_for(user_id, local_date(event.timestamp, timezone)).append(
                    ShiftEntry(in_time=None, out_time=event.timestamp, incomplete=True)
                )
                logger.debug("orphaned_signout", user_id=user_id, timestamp=event.timestamp.isoformat())

        elif event.event_type == EventType.break_start:
            if current is None or current.on_break:
                diagnostics.ignored_break_events += 1
            else:
                current.start_break(event.timestamp)

        elif event.event_type == EventType.break_end:
            if current is None or not current.on_break:
                diagnostics.ignored_break_events += 1
            else:
                current.end_break(event.timestamp)

    for user_id, current in open_shifts.items():
        entries_for(user_id, current.anchor_date).append(
            current.finish(None, max_seconds, ongoing=now is not None)
        )

    records: List[ShiftRecord] = []
    for (user_id, anchor), entries in entries_by_key.items():
        diagnostics.capped_intervals += sum(1 for e in entries if e.was_capped)
        records.append(
            ShiftRecord(
                employee_id=user_id,
                employee_name=names.get(user_id, UNKNOWN_EMPLOYEE_NAME),
                anchor_date=anchor,
                entries=entries,
                total_seconds=sum(e.duration_seconds for e in entries),
                break_seconds=sum(e.break_seconds for e in entries),
                was_capped=any(e.was_capped for e in entries),
            )
        )

    # Stable two-pass sort: name ascending within date descending
    records.sort(key=lambda r: r.employee_name)
    records.sort(key=lambda r: r.anchor_date, reverse=True)

    if diagnostics.has_anomalies:
        logger.info("shift_reconstruction_anomalies", records=len(records), **diagnostics.model_dump())

    return ShiftReconstruction(records=records, diagnostics=diagnostics)


def reconstruct_shifts(
    events: Iterable[Any],
    timezone: str,
    now: Optional[datetime] = None,
    *,
    config: Optional[EngineConfig] = None
) -> List[ShiftRecord]:
    """Reconstructed shift records for the given events. See reconstruct_shifts_with_diagnostics."""
    return reconstruct_shifts_with_diagnostics(events, timezone, now, config=config).records
