from datetime import date, datetime, time, timedelta, timezone

import pytest

from timekeeper.services.durations import cap_duration, time_in_period, total_capped_seconds
from timekeeper.services.time_rules import (
    InvalidTimezoneError,
    combine_date_time,
    get_timezone,
    is_valid_timezone,
    local_date,
    local_day_bounds,
    parse_timestamp,
    start_of_week,
)

from .helpers import NY, at


def test_parse_timestamp_variants():
    assert parse_timestamp("2024-05-09T09:00:00Z") == at(2024, 5, 9, 9)
    assert parse_timestamp("2024-05-09T05:00:00-04:00") == at(2024, 5, 9, 9)
    assert parse_timestamp(datetime(2024, 5, 9, 9)) == at(2024, 5, 9, 9)
    assert parse_timestamp(None) is None
    assert parse_timestamp("") is None
    assert parse_timestamp("yesterday-ish") is None


def test_get_timezone_rejects_unknown_names():
    assert get_timezone(NY).zone == NY
    with pytest.raises(InvalidTimezoneError):
        get_timezone("America/Atlantis")
    with pytest.raises(InvalidTimezoneError):
        get_timezone("")
    assert is_valid_timezone("UTC")
    assert not is_valid_timezone("UTC+99")


def test_local_date_buckets_by_timezone():
    instant = at(2024, 5, 10, 2)
    assert local_date(instant, "UTC") == date(2024, 5, 10)
    assert local_date(instant, NY) == date(2024, 5, 9)


def test_local_day_bounds_across_dst_change():
    # 2024-03-10 is 23 hours long in New York
    start, end = local_day_bounds(date(2024, 3, 10), NY)
    assert end - start == timedelta(hours=23)
    assert start == datetime(2024, 3, 10, 5, tzinfo=timezone.utc)


def test_combine_date_time_and_week_start():
    assert combine_date_time(date(2024, 5, 9), time(9, 0), NY) == at(2024, 5, 9, 13)
    assert start_of_week(at(2024, 5, 12, 8), "UTC") == at(2024, 5, 12)
    assert start_of_week(at(2024, 5, 11, 8), "UTC") == at(2024, 5, 5)


def test_cap_duration():
    start = at(2024, 5, 9, 9)
    assert cap_duration(start, start - timedelta(minutes=1)) == (0, False, 0)
    assert cap_duration(start, start) == (0, False, 0)
    assert cap_duration(start, start + timedelta(hours=8)).seconds == 8 * 3600

    capped = cap_duration(start, start + timedelta(hours=30))
    assert capped.seconds == 24 * 3600
    assert capped.was_capped
    assert capped.original_seconds == 30 * 3600

    assert cap_duration(start, start + timedelta(hours=13), max_seconds=12 * 3600).seconds == 12 * 3600


def test_period_totals():
    periods = [
        (at(2024, 5, 9, 9), at(2024, 5, 9, 12)),
        (at(2024, 5, 9, 13), at(2024, 5, 11, 13)),
    ]
    assert total_capped_seconds(periods) == (3 * 3600 + 24 * 3600, 1)
    assert time_in_period(periods, at(2024, 5, 9, 11)) == 3600 + 24 * 3600
    assert time_in_period(periods, at(2024, 5, 12)) == 0
