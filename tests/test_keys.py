"""Tests for core/keys.py — day, week and month keys."""

from datetime import date, datetime, timedelta
from zoneinfo import ZoneInfo

import pytest
from core.keys import (
    day_key,
    is_day_key,
    is_month_key,
    is_week_key,
    month_key,
    parse_day_key,
    parse_month_key,
    shift_day,
    shift_month,
    shift_week,
    week_days,
    week_key,
)


def test_day_key_formats_zero_padded():
    assert day_key(datetime(2024, 3, 5, 23, 59)) == "2024-03-05"
    assert day_key(date(2024, 12, 31)) == "2024-12-31"


def test_month_key():
    assert month_key(datetime(2024, 1, 31, 12)) == "2024-01"
    assert month_key(date(2023, 11, 1)) == "2023-11"


def test_week_key_is_monday_on_or_before():
    assert week_key(date(2024, 1, 15)) == "2024-01-15"  # Monday
    assert week_key(date(2024, 1, 17)) == "2024-01-15"  # Wednesday
    assert week_key(date(2024, 1, 21)) == "2024-01-15"  # Sunday
    assert week_key(date(2024, 1, 22)) == "2024-01-22"


def test_week_key_crosses_year_boundary():
    assert week_key(date(2025, 1, 1)) == "2024-12-30"


def test_week_key_always_monday_and_not_after_day_key():
    start = date(2023, 12, 20)
    for i in range(60):
        d = start + timedelta(days=i)
        wk = week_key(d)
        assert parse_day_key(wk).weekday() == 0
        assert day_key(d) >= wk


def test_keys_use_the_local_calendar_of_aware_datetimes():
    late = datetime(2024, 1, 31, 23, 30, tzinfo=ZoneInfo("America/New_York"))
    assert day_key(late) == "2024-01-31"
    assert month_key(late) == "2024-01"
    assert day_key(late.astimezone(ZoneInfo("UTC"))) == "2024-02-01"


def test_parse_day_key_rejects_malformed():
    with pytest.raises(ValueError):
        parse_day_key("2024-1-3")
    with pytest.raises(ValueError):
        parse_month_key("2024-13")


def test_key_predicates():
    assert is_day_key("2024-01-03")
    assert not is_day_key("yesterday")
    assert is_week_key("2024-01-01")
    assert not is_week_key("2024-01-03")
    assert is_month_key("2024-01")
    assert not is_month_key("2024-1")


def test_shift_helpers():
    assert shift_day("2024-02-28", 2) == "2024-03-01"
    assert shift_week("2024-01-01", -1) == "2023-12-25"
    assert shift_month("2024-01", -1) == "2023-12"
    assert shift_month("2024-12", 1) == "2025-01"


def test_week_days():
    days = week_days("2024-01-01")
    assert days[0] == "2024-01-01"
    assert days[-1] == "2024-01-07"
    assert len(days) == 7
