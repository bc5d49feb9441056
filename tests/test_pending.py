"""Tests for core/pending.py — backlog and current-period aggregation."""

from datetime import datetime
from zoneinfo import ZoneInfo

import pytest
from core.errors import NotCurrentPeriodError
from core.models import DailyPending, DayRecord, MonthlyPending, TaskEntry, WeeklyPending, WeekRecord
from core.pending import compute_pending, ensure_current, mark_goal_done, mark_task_done

UTC = ZoneInfo("UTC")
NOW = datetime(2024, 1, 3, 10, 0, tzinfo=UTC)  # Wednesday, week of 2024-01-01


def test_daily_backlog_example():
    days = {"2024-01-01": {"tasks": {9: {"text": "call bank", "done": False}}, "note": ""}}
    s = compute_pending(days, {}, {}, NOW)
    assert s.daily_backlog == [DailyPending("2024-01-01", 9, "call bank")]
    assert s.daily_current == []


def test_weekly_backlog_example():
    weeks = {"2024-01-08": {"goals": [{"text": "ship report", "done": False}]}}
    now = datetime(2024, 1, 17, 9, 0, tzinfo=UTC)
    s = compute_pending({}, weeks, {}, now)
    assert s.weekly_backlog == [WeeklyPending("2024-01-08", 0, "ship report")]
    assert s.weekly_current == []


def test_malformed_task_is_pending():
    s = compute_pending({"2024-01-02": {"tasks": {5: "just text"}}}, {}, {}, NOW)
    assert s.daily_backlog == [DailyPending("2024-01-02", 5, "just text")]


def test_done_and_blank_items_excluded():
    days = {
        "2024-01-01": {"tasks": {"1": {"text": "x", "done": True}, "2": {"text": "  ", "done": False}}},
        "2024-01-03": {"tasks": {"3": {"text": "", "done": False}}},
    }
    weeks = {"2024-01-01": {"goals": [{"text": "done", "done": True}, "\t"]}}
    s = compute_pending(days, weeks, {}, NOW)
    assert s.total_count == 0


def test_daily_backlog_sorted_by_day_then_hour():
    days = {
        "2024-01-02": {"tasks": {"14": "b2", "9": "b1"}},
        "2023-12-31": {"tasks": {"20": "a"}},
    }
    s = compute_pending(days, {}, {}, NOW)
    assert [(p.day_key, p.hour) for p in s.daily_backlog] == [
        ("2023-12-31", 20),
        ("2024-01-02", 9),
        ("2024-01-02", 14),
    ]


def test_weekly_backlog_sorted_by_week_keeping_index_order():
    weeks = {
        "2023-12-25": {"goals": ["c0", "c1"]},
        "2023-12-18": {"goals": ["a0", {"text": "a1", "done": True}, "a2"]},
    }
    s = compute_pending({}, weeks, {}, NOW)
    assert [(p.week_key, p.index) for p in s.weekly_backlog] == [
        ("2023-12-18", 0),
        ("2023-12-18", 2),
        ("2023-12-25", 0),
        ("2023-12-25", 1),
    ]


def test_monthly_backlog_and_current():
    months = {
        "2023-11": {"goals": ["old"]},
        "2024-01": {"goals": ["now", {"text": "finished", "done": True}, "later"]},
        "2024-02": {"goals": ["future"]},
    }
    s = compute_pending({}, {}, months, NOW)
    assert s.monthly_backlog == [MonthlyPending("2023-11", 0, "old")]
    assert s.monthly_current == [MonthlyPending("2024-01", 0, "now"), MonthlyPending("2024-01", 2, "later")]


def test_current_daily_hour_cutoff():
    now = datetime(2024, 1, 3, 14, 30, tzinfo=UTC)
    days = {"2024-01-03": {"tasks": {"15": "later", "14": "now", "8": "morning"}}}
    s = compute_pending(days, {}, {}, now)
    assert [p.hour for p in s.daily_current] == [8, 14]
    assert s.daily_backlog == []


def test_future_periods_never_in_backlog():
    days = {"2024-01-04": {"tasks": {"9": "tomorrow"}}}
    weeks = {"2024-01-08": {"goals": ["next week"]}}
    s = compute_pending(days, weeks, {}, NOW)
    assert s.total_count == 0


def test_current_week_preserves_stored_order():
    weeks = {"2024-01-01": {"goals": ["b", "a", "c"]}}
    s = compute_pending({}, weeks, {}, NOW)
    assert [p.text for p in s.weekly_current] == ["b", "a", "c"]
    assert [p.index for p in s.weekly_current] == [0, 1, 2]


def test_partial_snapshots_tolerated():
    s = compute_pending(None, None, {"2023-12": {"goals": ["x"]}}, NOW)
    assert s.total_count == 1


def test_accepts_model_instances_and_is_pure():
    days = {"2024-01-02": DayRecord(tasks={9: TaskEntry("a")})}
    weeks = {"2024-01-01": WeekRecord(goals=[TaskEntry("g")])}
    first = compute_pending(days, weeks, {}, NOW)
    second = compute_pending(days, weeks, {}, NOW)
    assert first == second
    assert days["2024-01-02"].tasks[9] == TaskEntry("a")


def test_total_count_sums_all_lists():
    days = {"2024-01-02": {"tasks": {"9": "a"}}, "2024-01-03": {"tasks": {"9": "b"}}}
    weeks = {"2023-12-25": {"goals": ["c"]}, "2024-01-01": {"goals": ["d"]}}
    months = {"2023-12": {"goals": ["e"]}, "2024-01": {"goals": ["f"]}}
    assert compute_pending(days, weeks, months, NOW).total_count == 6


def test_ensure_current():
    ensure_current("daily", "2024-01-03", NOW)
    ensure_current("weekly", "2024-01-01", NOW)
    ensure_current("monthly", "2024-01", NOW)
    with pytest.raises(NotCurrentPeriodError):
        ensure_current("daily", "2024-01-02", NOW)
    with pytest.raises(ValueError):
        ensure_current("monthly", "2023-12", NOW)


def test_mark_helpers_keep_text():
    day = DayRecord(tasks={9: TaskEntry("call bank")})
    assert mark_task_done(day, 9)
    assert day.tasks[9] == TaskEntry("call bank", True)
    assert not mark_task_done(day, 10)

    week = WeekRecord(goals=[TaskEntry("ship")])
    assert mark_goal_done(week, 0)
    assert week.goals[0] == TaskEntry("ship", True)
    assert not mark_goal_done(week, 1)
    assert not mark_goal_done(week, -1)
