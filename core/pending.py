"""Pending-items aggregation for DayGrid.

Backlog: unfinished tasks and goals from periods strictly before the
current day/week/month. Current: unfinished items of the current period,
where today's tasks only count once their hour has started.

The aggregator is pure: it reads snapshots and an explicit `now`, never
the clock, and never mutates its inputs.
"""

from __future__ import annotations

from collections.abc import Mapping
from datetime import datetime
from typing import Any

from core.errors import NotCurrentPeriodError
from core.keys import day_key, month_key, week_key
from core.models import (
    DailyPending,
    DayRecord,
    GoalRecord,
    MonthlyPending,
    MonthRecord,
    PendingSummary,
    TaskEntry,
    WeeklyPending,
    WeekRecord,
)


def _daily_backlog(days: Mapping[str, Any], today: str) -> list[DailyPending]:
    items = []
    for dkey, raw in days.items():
        if dkey >= today:
            continue
        record = DayRecord.from_dict(raw)
        for hour, entry in record.tasks.items():
            if entry.pending:
                items.append(DailyPending(day_key=dkey, hour=hour, text=entry.text))
    items.sort(key=lambda p: (p.day_key, p.hour))
    return items


def _goal_backlog(records: Mapping[str, Any], current: str, record_cls, item_cls) -> list:
    items = []
    # Iterate in key order so index order survives the stable sort below.
    for key in sorted(records):
        if key >= current:
            continue
        record = record_cls.from_dict(records[key])
        for index, goal in enumerate(record.goals):
            if goal.pending:
                items.append(item_cls(key, index, goal.text))
    items.sort(key=_period)
    return items


def _period(item: WeeklyPending | MonthlyPending) -> str:
    return item.week_key if isinstance(item, WeeklyPending) else item.month_key


def _current_goals(records: Mapping[str, Any], current: str, record_cls, item_cls) -> list:
    record = record_cls.from_dict(records.get(current))
    return [item_cls(current, i, g.text) for i, g in enumerate(record.goals) if g.pending]


def compute_pending(
    days: Mapping[str, Any] | None,
    weeks: Mapping[str, Any] | None,
    months: Mapping[str, Any] | None,
    now: datetime,
) -> PendingSummary:
    """Aggregate backlog and current-period pending items.

    Any of the three collections may be None or partial (not loaded yet);
    the result covers whatever is present.
    """
    days = days or {}
    weeks = weeks or {}
    months = months or {}

    today = day_key(now)
    this_week = week_key(now)
    this_month = month_key(now)

    today_record = DayRecord.from_dict(days.get(today))
    daily_current = [
        DailyPending(day_key=today, hour=hour, text=entry.text)
        for hour, entry in sorted(today_record.tasks.items())
        if hour <= now.hour and entry.pending
    ]

    return PendingSummary(
        daily_backlog=_daily_backlog(days, today),
        weekly_backlog=_goal_backlog(weeks, this_week, WeekRecord, WeeklyPending),
        monthly_backlog=_goal_backlog(months, this_month, MonthRecord, MonthlyPending),
        daily_current=daily_current,
        weekly_current=_current_goals(weeks, this_week, WeekRecord, WeeklyPending),
        monthly_current=_current_goals(months, this_month, MonthRecord, MonthlyPending),
    )


# ── Mark done ─────────────────────────────────────────────────


def ensure_current(kind: str, key: str, now: datetime) -> None:
    """Raise NotCurrentPeriodError unless *key* names the current period."""
    current = {"daily": day_key, "weekly": week_key, "monthly": month_key}[kind](now)
    if key != current:
        raise NotCurrentPeriodError(
            f"Cannot complete {kind} item for {key}: only {current} is editable here"
        )


def mark_task_done(record: DayRecord, hour: int) -> bool:
    """Set done on the task at *hour*. Returns False if there is no such task."""
    entry = record.tasks.get(hour)
    if entry is None:
        return False
    record.tasks[hour] = TaskEntry(text=entry.text, done=True)
    return True


def mark_goal_done(record: GoalRecord, index: int) -> bool:
    """Set done on the goal at *index*. Returns False if out of range."""
    if index < 0 or index >= len(record.goals):
        return False
    goal = record.goals[index]
    record.goals[index] = TaskEntry(text=goal.text, done=True)
    return True
