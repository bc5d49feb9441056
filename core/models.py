"""Typed dataclasses for the DayGrid data model.

All stored models use from_dict/to_dict for JSON serialization.
camelCase in JSON is mapped to snake_case in Python.
Malformed payloads normalize to the nearest empty value instead of raising.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

HOURS = range(24)


# ── Entries ───────────────────────────────────────────────────


@dataclass
class TaskEntry:
    """A single hourly task or goal."""

    text: str = ""
    done: bool = False

    @classmethod
    def from_raw(cls, v: Any) -> TaskEntry:
        """Normalize a stored payload: bare text, mapping, or anything else."""
        if isinstance(v, TaskEntry):
            return cls(text=v.text, done=v.done)
        if isinstance(v, str):
            return cls(text=v, done=False)
        if isinstance(v, dict):
            text = v.get("text") or ""
            return cls(text=str(text), done=bool(v.get("done", False)))
        return cls()

    @property
    def pending(self) -> bool:
        return not self.done and self.text.strip() != ""

    def to_dict(self) -> dict[str, Any]:
        return {"text": self.text, "done": self.done}


def _parse_hour(k: Any) -> int | None:
    try:
        hour = int(k)
    except (TypeError, ValueError):
        return None
    return hour if hour in HOURS else None


# ── Records ───────────────────────────────────────────────────


@dataclass
class DayRecord:
    note: str = ""
    tasks: dict[int, TaskEntry] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, d: Any) -> DayRecord:
        if isinstance(d, DayRecord):
            return cls(note=d.note, tasks={h: TaskEntry.from_raw(t) for h, t in d.tasks.items()})
        if not d or not isinstance(d, dict):
            return cls()
        raw = d.get("tasks") or {}
        # The document store may hand back a dense hour map as a list.
        if isinstance(raw, list):
            raw = {i: v for i, v in enumerate(raw) if v is not None}
        tasks: dict[int, TaskEntry] = {}
        if isinstance(raw, dict):
            for k, v in raw.items():
                hour = _parse_hour(k)
                if hour is not None:
                    tasks[hour] = TaskEntry.from_raw(v)
        note = d.get("note") or ""
        return cls(note=note if isinstance(note, str) else str(note), tasks=tasks)

    def is_empty(self) -> bool:
        return not self.note and not self.tasks

    def to_dict(self) -> dict[str, Any]:
        return {
            "note": self.note,
            "tasks": {str(h): self.tasks[h].to_dict() for h in sorted(self.tasks)},
        }


@dataclass
class GoalRecord:
    """Ordered goal list shared by weeks and months. Index is identity."""

    goals: list[TaskEntry] = field(default_factory=list)

    @classmethod
    def from_dict(cls, d: Any):
        if isinstance(d, GoalRecord):
            return cls(goals=[TaskEntry.from_raw(g) for g in d.goals])
        if not d or not isinstance(d, dict):
            return cls()
        raw = d.get("goals")
        if isinstance(raw, dict):
            indexed = sorted(
                (int(k), v) for k, v in raw.items() if isinstance(k, (str, int)) and str(k).isdigit()
            )
            raw = [v for _i, v in indexed]
        if not isinstance(raw, list):
            return cls()
        return cls(goals=[TaskEntry.from_raw(g) for g in raw])

    def to_dict(self) -> dict[str, Any]:
        return {"goals": [g.to_dict() for g in self.goals]}


class WeekRecord(GoalRecord):
    pass


class MonthRecord(GoalRecord):
    pass


# ── Pending (derived) ─────────────────────────────────────────


@dataclass(frozen=True)
class DailyPending:
    day_key: str
    hour: int
    text: str

    def to_dict(self) -> dict[str, Any]:
        return {"dayKey": self.day_key, "hour": self.hour, "text": self.text}


@dataclass(frozen=True)
class WeeklyPending:
    week_key: str
    index: int
    text: str

    def to_dict(self) -> dict[str, Any]:
        return {"weekKey": self.week_key, "index": self.index, "text": self.text}


@dataclass(frozen=True)
class MonthlyPending:
    month_key: str
    index: int
    text: str

    def to_dict(self) -> dict[str, Any]:
        return {"monthKey": self.month_key, "index": self.index, "text": self.text}


@dataclass
class PendingSummary:
    daily_backlog: list[DailyPending] = field(default_factory=list)
    weekly_backlog: list[WeeklyPending] = field(default_factory=list)
    monthly_backlog: list[MonthlyPending] = field(default_factory=list)
    daily_current: list[DailyPending] = field(default_factory=list)
    weekly_current: list[WeeklyPending] = field(default_factory=list)
    monthly_current: list[MonthlyPending] = field(default_factory=list)

    @property
    def total_count(self) -> int:
        return (
            len(self.daily_backlog)
            + len(self.weekly_backlog)
            + len(self.monthly_backlog)
            + len(self.daily_current)
            + len(self.weekly_current)
            + len(self.monthly_current)
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "dailyBacklog": [p.to_dict() for p in self.daily_backlog],
            "weeklyBacklog": [p.to_dict() for p in self.weekly_backlog],
            "monthlyBacklog": [p.to_dict() for p in self.monthly_backlog],
            "dailyCurrent": [p.to_dict() for p in self.daily_current],
            "weeklyCurrent": [p.to_dict() for p in self.weekly_current],
            "monthlyCurrent": [p.to_dict() for p in self.monthly_current],
            "totalCount": self.total_count,
        }


# ── Identity ──────────────────────────────────────────────────


@dataclass(frozen=True)
class User:
    id: str
    email: str

    def to_dict(self) -> dict[str, Any]:
        return {"id": self.id, "email": self.email}


@dataclass
class AccessInfo:
    """Access-key record stored per email."""

    key: str = ""
    email: str = ""
    uid: str | None = None
    created_at: int = 0
    validated: bool = False
    once_logged: bool = False
    validated_at: int | None = None

    @classmethod
    def from_dict(cls, d: Any) -> AccessInfo | None:
        if not d or not isinstance(d, dict):
            return None
        return cls(
            key=str(d.get("key") or ""),
            email=str(d.get("email") or ""),
            uid=d.get("uid"),
            created_at=int(d.get("createdAt", 0) or 0),
            validated=bool(d.get("validated", False)),
            once_logged=bool(d.get("onceLogged", False)),
            validated_at=d.get("validatedAt"),
        )

    @property
    def is_validated(self) -> bool:
        return self.validated or self.once_logged

    def to_dict(self) -> dict[str, Any]:
        d: dict[str, Any] = {
            "key": self.key,
            "email": self.email,
            "uid": self.uid,
            "createdAt": self.created_at,
            "validated": self.validated,
            "onceLogged": self.once_logged,
        }
        if self.validated_at is not None:
            d["validatedAt"] = self.validated_at
        return d


@dataclass
class AccessGrant:
    """Result of a sign-up: the one-time key to hand to the new user."""

    email: str
    key: str
    user: User
