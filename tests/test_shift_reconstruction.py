from datetime import date, timedelta

import pytest

from timekeeper.schemas.attendance import PunchEvent
from timekeeper.services.engine_config import EngineConfig
from timekeeper.services.shift_reconstruction import (
    UNKNOWN_EMPLOYEE_NAME,
    reconstruct_shifts,
    reconstruct_shifts_with_diagnostics,
)
from timekeeper.services.time_rules import InvalidTimezoneError

from .helpers import NY, at, event


def test_overnight_shift_is_attributed_to_signin_date():
    events = [
        event("signin", at(2024, 5, 9, 18, tz=NY)),
        event("signout", at(2024, 5, 10, 3, tz=NY)),
    ]

    records = reconstruct_shifts(events, NY)

    assert len(records) == 1
    record = records[0]
    assert record.anchor_date == date(2024, 5, 9)
    assert record.total_seconds == 9 * 3600
    assert len(record.entries) == 1
    assert record.entries[0].in_time == at(2024, 5, 9, 18, tz=NY)
    assert record.entries[0].out_time == at(2024, 5, 10, 3, tz=NY)
    assert not record.entries[0].incomplete


def test_ten_hour_overnight_shift_is_not_split():
    events = [
        event("signin", at(2024, 5, 9, 18)),
        event("signout", at(2024, 5, 10, 4)),
    ]

    records = reconstruct_shifts(events, "UTC")

    assert [r.anchor_date for r in records] == [date(2024, 5, 9)]
    assert records[0].total_seconds == 10 * 3600


def test_multiple_shifts_on_same_day_are_separate_entries():
    events = [
        event("signin", at(2024, 5, 9, 8)),
        event("signout", at(2024, 5, 9, 12)),
        event("signin", at(2024, 5, 9, 13)),
        event("signout", at(2024, 5, 9, 17, 30)),
    ]

    records = reconstruct_shifts(events, "UTC")

    assert len(records) == 1
    assert len(records[0].entries) == 2
    assert records[0].total_seconds == 4 * 3600 + int(4.5 * 3600)


def test_duplicate_signin_closes_earlier_entry_as_incomplete():
    events = [
        event("signin", at(2024, 5, 9, 8)),
        event("signin", at(2024, 5, 9, 9)),
        event("signout", at(2024, 5, 9, 17)),
    ]

    result = reconstruct_shifts_with_diagnostics(events, "UTC")

    assert result.diagnostics.duplicate_signins == 1
    entries = result.records[0].entries
    assert len(entries) == 2
    assert entries[0].in_time == at(2024, 5, 9, 8)
    assert entries[0].out_time is None
    assert entries[0].incomplete
    assert entries[1].in_time == at(2024, 5, 9, 9)
    assert entries[1].out_time == at(2024, 5, 9, 17)
    # only complete entries count
    assert result.records[0].total_seconds == 8 * 3600


def test_duplicate_signin_across_days_keeps_each_anchor():
    events = [
        event("signin", at(2024, 5, 8, 9)),
        event("signin", at(2024, 5, 9, 9)),
        event("signout", at(2024, 5, 9, 17)),
    ]

    records = reconstruct_shifts(events, "UTC")

    assert [r.anchor_date for r in records] == [date(2024, 5, 9), date(2024, 5, 8)]
    assert records[1].entries[0].incomplete
    assert records[1].total_seconds == 0
    assert records[0].total_seconds == 8 * 3600


def test_orphaned_signout_is_recorded_on_its_own_local_date():
    # 02:00 UTC on the 10th is 22:00 on the 9th in New York
    events = [event("signout", at(2024, 5, 10, 2))]

    result = reconstruct_shifts_with_diagnostics(events, NY)

    assert result.diagnostics.orphaned_signouts == 1
    assert len(result.records) == 1
    record = result.records[0]
    assert record.anchor_date == date(2024, 5, 9)
    assert record.entries[0].in_time is None
    assert record.entries[0].out_time == at(2024, 5, 10, 2)
    assert record.total_seconds == 0


def test_breaks_attach_to_open_shift_even_across_midnight():
    events = [
        event("signin", at(2024, 5, 9, 20)),
        event("break_start", at(2024, 5, 9, 23, 45)),
        event("break_end", at(2024, 5, 10, 0, 15)),
        event("signout", at(2024, 5, 10, 4)),
    ]

    records = reconstruct_shifts(events, "UTC")

    assert len(records) == 1
    entry = records[0].entries[0]
    assert entry.break_start == at(2024, 5, 9, 23, 45)
    assert entry.break_end == at(2024, 5, 10, 0, 15)
    assert entry.break_seconds == 30 * 60
    assert records[0].break_seconds == 30 * 60
    assert records[0].total_seconds == 8 * 3600


def test_signout_during_break_ends_the_break():
    events = [
        event("signin", at(2024, 5, 9, 9)),
        event("break_start", at(2024, 5, 9, 16)),
        event("signout", at(2024, 5, 9, 17)),
    ]

    entry = reconstruct_shifts(events, "UTC")[0].entries[0]

    assert entry.breaks[0].end == at(2024, 5, 9, 17)
    assert entry.break_seconds == 3600


def test_unmatched_break_events_are_ignored_and_counted():
    events = [
        event("break_start", at(2024, 5, 9, 8)),
        event("signin", at(2024, 5, 9, 9)),
        event("break_end", at(2024, 5, 9, 10)),
        event("break_start", at(2024, 5, 9, 12)),
        event("break_start", at(2024, 5, 9, 12, 5)),
        event("break_end", at(2024, 5, 9, 12, 30)),
        event("signout", at(2024, 5, 9, 17)),
    ]

    result = reconstruct_shifts_with_diagnostics(events, "UTC")

    assert result.diagnostics.ignored_break_events == 3
    entry = result.records[0].entries[0]
    assert len(entry.breaks) == 1
    assert entry.break_start == at(2024, 5, 9, 12)
    assert entry.break_seconds == 30 * 60


def test_open_signin_at_end_is_incomplete_or_ongoing():
    events = [event("signin", at(2024, 5, 9, 9))]

    historical = reconstruct_shifts(events, "UTC")[0].entries[0]
    live = reconstruct_shifts(events, "UTC", now=at(2024, 5, 9, 11))[0].entries[0]

    assert historical.out_time is None and historical.incomplete and not historical.ongoing
    assert live.out_time is None and live.ongoing


def test_records_sorted_by_date_desc_then_name_ordinal():
    events = [
        event("signin", at(2024, 5, 8, 9), user_id="a", name="alice"),
        event("signout", at(2024, 5, 8, 17), user_id="a", name="alice"),
        event("signin", at(2024, 5, 9, 9), user_id="a", name="alice"),
        event("signout", at(2024, 5, 9, 17), user_id="a", name="alice"),
        event("signin", at(2024, 5, 9, 9), user_id="b", name="Bob"),
        event("signout", at(2024, 5, 9, 17), user_id="b", name="Bob"),
        event("signin", at(2024, 5, 8, 9), user_id="c", name="Carol"),
        event("signout", at(2024, 5, 8, 17), user_id="c", name="Carol"),
    ]

    records = reconstruct_shifts(events, "UTC")

    assert [(r.anchor_date.day, r.employee_name) for r in records] == [
        (9, "Bob"),
        (9, "alice"),
        (8, "Carol"),
        (8, "alice"),
    ]


def test_missing_name_falls_back_to_unknown():
    records = reconstruct_shifts([event("signin", at(2024, 5, 9, 9))], "UTC")
    assert records[0].employee_name == UNKNOWN_EMPLOYEE_NAME


def test_malformed_events_are_skipped_not_fatal():
    events = [
        event("signin", at(2024, 5, 9, 9)),
        event("signin", None),
        event("signin", "not-a-timestamp"),
        event("lunch", at(2024, 5, 9, 12)),
        {"event_type": "signout", "timestamp": at(2024, 5, 9, 13)},
        event("signout", "2024-05-09T17:00:00Z"),
    ]

    result = reconstruct_shifts_with_diagnostics(events, "UTC")

    assert result.diagnostics.skipped_events == 4
    assert len(result.records) == 1
    assert result.records[0].total_seconds == 8 * 3600


def test_naive_timestamps_are_read_as_utc():
    events = [
        event("signin", at(2024, 5, 9, 9).replace(tzinfo=None)),
        event("signout", at(2024, 5, 9, 17).replace(tzinfo=None)),
    ]

    records = reconstruct_shifts(events, "UTC")

    assert records[0].entries[0].in_time == at(2024, 5, 9, 9)
    assert records[0].total_seconds == 8 * 3600


def test_input_order_does_not_matter():
    events = [
        event("signin", at(2024, 5, 9, 9)),
        event("break_start", at(2024, 5, 9, 12)),
        event("break_end", at(2024, 5, 9, 12, 30)),
        event("signout", at(2024, 5, 9, 17)),
    ]

    assert reconstruct_shifts(list(reversed(events)), "UTC") == reconstruct_shifts(events, "UTC")


def test_reconstruction_is_idempotent():
    events = [
        PunchEvent(id="1", user_id="u1", event_type="signin", timestamp=at(2024, 5, 9, 18, tz=NY)),
        PunchEvent(id="2", user_id="u1", event_type="signout", timestamp=at(2024, 5, 10, 3, tz=NY)),
        PunchEvent(id="3", user_id="u2", event_type="signout", timestamp=at(2024, 5, 10, 3, tz=NY)),
    ]

    assert reconstruct_shifts(events, NY) == reconstruct_shifts(events, NY)


def test_long_shift_is_capped():
    start = at(2024, 5, 9, 6)
    events = [event("signin", start), event("signout", start + timedelta(hours=30))]

    result = reconstruct_shifts_with_diagnostics(events, "UTC")

    record = result.records[0]
    assert record.total_seconds == 24 * 3600
    assert record.was_capped
    assert record.entries[0].was_capped
    assert result.diagnostics.capped_intervals == 1


def test_stricter_cap_for_editable_shifts():
    start = at(2024, 5, 9, 6)
    events = [event("signin", start), event("signout", start + timedelta(hours=14))]

    config = EngineConfig().for_editable_shift()
    records = reconstruct_shifts(events, "UTC", config=config)

    assert records[0].total_seconds == 12 * 3600


def test_invalid_timezone_fails_fast():
    with pytest.raises(InvalidTimezoneError):
        reconstruct_shifts([], "Mars/Olympus_Mons")
