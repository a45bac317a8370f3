from datetime import datetime, timedelta, timezone

import pytest

from app.practice_time import (
    is_valid_timezone,
    iter_local_dates,
    local_date_to_utc_bounds,
    local_time_to_utc,
    to_naive_utc,
    utc_date_matches_local_date,
    utc_to_local_date_string,
)

NY = "America/New_York"


def test_local_day_bounds_in_winter():
    start, end = local_date_to_utc_bounds("2026-01-15", NY)
    assert start == datetime(2026, 1, 15, 5, 0)
    assert end == datetime(2026, 1, 16, 5, 0)


def test_local_day_bounds_on_spring_forward_day_are_23_hours():
    start, end = local_date_to_utc_bounds("2026-03-08", NY)
    assert start == datetime(2026, 3, 8, 5, 0)
    assert end == datetime(2026, 3, 9, 4, 0)
    assert end - start == timedelta(hours=23)


def test_evening_session_belongs_to_local_day_not_utc_day():
    # 9pm local on Jan 15 is already Jan 16 in UTC
    stored = local_time_to_utc("2026-01-15", "21:00", NY)
    assert stored == datetime(2026, 1, 16, 2, 0)
    assert utc_to_local_date_string(stored, NY) == "2026-01-15"
    assert utc_date_matches_local_date(stored, "2026-01-15", NY)
    assert not utc_date_matches_local_date(stored, "2026-01-16", NY)


def test_to_naive_utc_converts_offsets_and_passes_naive_values():
    aware = datetime(2026, 6, 1, 10, 0, tzinfo=timezone(timedelta(hours=-4)))
    assert to_naive_utc(aware) == datetime(2026, 6, 1, 14, 0)
    naive = datetime(2026, 6, 1, 10, 0)
    assert to_naive_utc(naive) is naive
    assert to_naive_utc(None) is None


def test_iter_local_dates_is_inclusive():
    assert list(iter_local_dates("2026-02-27", "2026-03-02")) == [
        "2026-02-27",
        "2026-02-28",
        "2026-03-01",
        "2026-03-02",
    ]


def test_invalid_date_string_raises():
    with pytest.raises(ValueError):
        local_date_to_utc_bounds("03/08/2026", NY)


def test_timezone_validation():
    assert is_valid_timezone("Europe/London")
    assert not is_valid_timezone("Mars/Olympus_Mons")
