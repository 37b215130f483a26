from types import SimpleNamespace

from timekeeper.schemas.attendance import EngineDiagnostics, EventType
from timekeeper.services.events import group_by_user, normalize_events, sort_by_user, sort_chronologically

from .helpers import at, event


def test_normalize_accepts_mappings_and_objects():
    records = [
        {"id": 7, "userId": 42, "type": "signin", "timestamp": "2024-05-09T09:00:00Z"},
        SimpleNamespace(
            id="row-1",
            user_id="u1",
            event_type=EventType.signout,
            timestamp=at(2024, 5, 9, 17),
            employee_name="Dana Diaz",
        ),
        {"user_id": "u1", "event_type": "break_start", "timestamp": at(2024, 5, 9, 12)},
    ]

    events = normalize_events(records)

    assert [e.id for e in events] == ["7", "row-1", "event-2"]
    assert events[0].user_id == "42"
    assert events[0].event_type == EventType.signin
    assert events[1].employee_name == "Dana Diaz"


def test_normalize_skips_malformed_records_and_counts_them():
    diagnostics = EngineDiagnostics()
    records = [
        event("signin", at(2024, 5, 9, 9)),
        event("teleport", at(2024, 5, 9, 10)),
        event("signout", None),
        {"event_type": "signout", "timestamp": at(2024, 5, 9, 17)},
    ]

    events = normalize_events(records, diagnostics)

    assert len(events) == 1
    assert diagnostics.skipped_events == 3
    assert diagnostics.has_anomalies
    assert normalize_events(None) == []


def test_sorting_is_stable_for_equal_timestamps():
    same = at(2024, 5, 9, 9)
    events = normalize_events(
        [
            event("signout", same, user_id="u2", event_id="a"),
            event("signin", same, user_id="u1", event_id="b"),
            event("signin", at(2024, 5, 9, 8), user_id="u2", event_id="c"),
        ]
    )

    assert [e.id for e in sort_chronologically(events)] == ["c", "a", "b"]
    assert [e.id for e in sort_by_user(events)] == ["b", "c", "a"]
    assert list(group_by_user(events)) == ["u2", "u1"]
