"""Tracker session: selected date, local edits and remote sync.

The tracker keeps two views of a user's records:

- the local cache, namespaced per identity, which receives every edit
  immediately and is overwritten by live pushes for the selected
  day/week/month;
- remote snapshots of the full day/week/month collections, refreshed by
  live subscriptions and used for the backlog.

Reads overlay the local cache on top of the remote snapshots (local wins
per key). Remote writes are best effort: failures are logged and the
local value stays authoritative.
"""

from __future__ import annotations

import calendar
import logging
from collections.abc import Callable, Iterable
from datetime import date, datetime, timedelta, tzinfo
from typing import Any
from zoneinfo import ZoneInfo

from core.auth import AuthService
from core.cache import LocalCache, namespace_for
from core.errors import StoreError
from core.keys import day_key, month_key, week_key
from core.models import DayRecord, MonthRecord, PendingSummary, TaskEntry, User, WeekRecord
from core.pending import compute_pending, ensure_current, mark_goal_done, mark_task_done
from core.store import RemoteStore, Subscription

logger = logging.getLogger(__name__)

_RECORDS = {"days": DayRecord, "weeks": WeekRecord, "months": MonthRecord}
_WRITERS = {"days": "write_day", "weeks": "write_week", "months": "write_month"}


class Tracker:
    def __init__(
        self,
        store: RemoteStore,
        auth: AuthService,
        cache: LocalCache,
        tz: tzinfo | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self.store = store
        self.auth = auth
        self.cache = cache
        self.tz = tz or ZoneInfo("UTC")
        self._clock = clock
        self.selected: date = self.now().date()
        self._remote: dict[str, dict[str, Any]] = {"days": {}, "weeks": {}, "months": {}}
        self._key_subs: list[Subscription] = []
        self._collection_subs: list[Subscription] = []
        self._prev_uid: str | None = None
        # Records being pushed, so their own echo does not clobber newer local edits.
        self._pushing: dict[tuple[str, str], dict[str, Any]] = {}
        self._unsub_auth = auth.on_auth_change(self._on_auth_change)

    # ── Clock & identity ──────────────────────────────────────

    def now(self) -> datetime:
        if self._clock is not None:
            return self._clock()
        return datetime.now(self.tz)

    @property
    def user(self) -> User | None:
        return self.auth.current_user()

    def _on_auth_change(self, user: User | None) -> None:
        self._cancel(self._key_subs)
        self._cancel(self._collection_subs)
        next_uid = user.id if user else None
        if self._prev_uid and self._prev_uid != next_uid:
            self.cache.evict(f"uid:{self._prev_uid}")
        self._prev_uid = next_uid
        self.cache.switch(namespace_for(user))
        self._remote = {"days": {}, "weeks": {}, "months": {}}
        if user is None:
            return
        self._collection_subs = [
            self.store.subscribe_all_days(user.id, self._collection_listener("days")),
            self.store.subscribe_all_weeks(user.id, self._collection_listener("weeks")),
            self.store.subscribe_all_months(user.id, self._collection_listener("months")),
        ]
        self._subscribe_selected()

    def _collection_listener(self, collection: str) -> Callable[[dict[str, Any]], None]:
        def _update(snapshot: dict[str, Any]) -> None:
            self._remote[collection] = snapshot or {}
        return _update

    def _key_listener(self, collection: str, key: str) -> Callable[[Any], None]:
        def _update(record: Any) -> None:
            if self._pushing.get((collection, key)) == record.to_dict():
                return
            self.cache.put(collection, key, record)
        return _update

    def _subscribe_selected(self) -> None:
        self._cancel(self._key_subs)
        user = self.user
        if user is None:
            return
        self._key_subs = [
            self.store.subscribe_day(user.id, self.day_key, self._key_listener("days", self.day_key)),
            self.store.subscribe_week(user.id, self.week_key, self._key_listener("weeks", self.week_key)),
            self.store.subscribe_month(user.id, self.month_key, self._key_listener("months", self.month_key)),
        ]

    @staticmethod
    def _cancel(subs: list[Subscription]) -> None:
        for sub in subs:
            sub.cancel()
        subs.clear()

    def close(self) -> None:
        self._cancel(self._key_subs)
        self._cancel(self._collection_subs)
        self._unsub_auth()

    # ── Selection ─────────────────────────────────────────────

    @property
    def day_key(self) -> str:
        return day_key(self.selected)

    @property
    def week_key(self) -> str:
        return week_key(self.selected)

    @property
    def month_key(self) -> str:
        return month_key(self.selected)

    def select_date(self, d: date) -> None:
        self.selected = d
        self._subscribe_selected()

    def shift_day(self, n: int) -> None:
        self.select_date(self.selected + timedelta(days=n))

    def shift_week(self, n: int) -> None:
        self.select_date(self.selected + timedelta(weeks=n))

    def shift_month(self, n: int) -> None:
        index = self.selected.year * 12 + (self.selected.month - 1) + n
        year, month = divmod(index, 12)
        month += 1
        day = min(self.selected.day, calendar.monthrange(year, month)[1])
        self.select_date(date(year, month, day))

    def today(self) -> None:
        self.select_date(self.now().date())

    # ── Reads ─────────────────────────────────────────────────

    def _merged(self, collection: str) -> dict[str, Any]:
        merged = dict(self._remote[collection])
        merged.update(self.cache.load(collection))
        return merged

    def _record(self, collection: str, key: str):
        return _RECORDS[collection].from_dict(self._merged(collection).get(key))

    def day(self, key: str | None = None) -> DayRecord:
        return self._record("days", key or self.day_key)

    def week(self, key: str | None = None) -> WeekRecord:
        return self._record("weeks", key or self.week_key)

    def month(self, key: str | None = None) -> MonthRecord:
        return self._record("months", key or self.month_key)

    def notes(self) -> list[tuple[str, str]]:
        """Non-empty daily notes, newest first."""
        days = self._merged("days")
        notes = []
        for key, raw in days.items():
            note = DayRecord.from_dict(raw).note
            if note.strip():
                notes.append((key, note))
        notes.sort(key=lambda kv: kv[0], reverse=True)
        return notes

    def pending(self, now: datetime | None = None) -> PendingSummary:
        return compute_pending(
            self._merged("days"),
            self._merged("weeks"),
            self._merged("months"),
            now or self.now(),
        )

    # ── Local edits ───────────────────────────────────────────

    def set_task(self, hour: int, text: str | None = None, done: bool | None = None) -> TaskEntry:
        if hour not in range(24):
            raise ValueError(f"Hour out of range: {hour}")
        record = self.day()
        entry = record.tasks.get(hour, TaskEntry())
        entry = TaskEntry(
            text=entry.text if text is None else text,
            done=entry.done if done is None else done,
        )
        record.tasks[hour] = entry
        self.cache.put_day(self.day_key, record)
        return entry

    def set_note(self, text: str) -> None:
        record = self.day()
        record.note = text
        self.cache.put_day(self.day_key, record)

    def clear_current(self) -> None:
        """Empty the selected day's note and tasks (local only until saved)."""
        self.cache.put_day(self.day_key, DayRecord())

    def _goals_key(self, collection: str) -> str:
        return self.week_key if collection == "weeks" else self.month_key

    def _set_goals(self, collection: str, goals: Iterable[Any]):
        record = _RECORDS[collection](goals=[TaskEntry.from_raw(g) for g in goals])
        self.cache.put(collection, self._goals_key(collection), record)
        return record

    def _edit_goal(self, collection: str, index: int, text: str | None, done: bool | None):
        record = self._record(collection, self._goals_key(collection))
        if index < 0 or index > len(record.goals):
            raise IndexError(f"Goal index out of range: {index}")
        if index == len(record.goals):
            record.goals.append(TaskEntry())
        goal = record.goals[index]
        record.goals[index] = TaskEntry(
            text=goal.text if text is None else text,
            done=goal.done if done is None else done,
        )
        return self._set_goals(collection, record.goals)

    def _add_goal(self, collection: str, text: str = ""):
        record = self._record(collection, self._goals_key(collection))
        return self._set_goals(collection, record.goals + [TaskEntry(text=text)])

    def _remove_goal(self, collection: str):
        record = self._record(collection, self._goals_key(collection))
        return self._set_goals(collection, record.goals[:-1])

    def set_week_goals(self, goals: Iterable[Any]) -> WeekRecord:
        return self._set_goals("weeks", goals)

    def set_week_goal(self, index: int, text: str | None = None, done: bool | None = None) -> WeekRecord:
        return self._edit_goal("weeks", index, text, done)

    def add_week_goal(self, text: str = "") -> WeekRecord:
        return self._add_goal("weeks", text)

    def remove_week_goal(self) -> WeekRecord:
        return self._remove_goal("weeks")

    def set_month_goals(self, goals: Iterable[Any]) -> MonthRecord:
        return self._set_goals("months", goals)

    def set_month_goal(self, index: int, text: str | None = None, done: bool | None = None) -> MonthRecord:
        return self._edit_goal("months", index, text, done)

    def add_month_goal(self, text: str = "") -> MonthRecord:
        return self._add_goal("months", text)

    def remove_month_goal(self) -> MonthRecord:
        return self._remove_goal("months")

    # ── Remote sync ───────────────────────────────────────────

    def _push(self, collection: str, key: str, record) -> bool:
        """Best-effort remote write. Returns False on failure or when signed out."""
        user = self.user
        if user is None:
            return False
        self._pushing[(collection, key)] = record.to_dict()
        try:
            getattr(self.store, _WRITERS[collection])(user.id, key, record)
        except StoreError as e:
            logger.warning("Remote write of %s/%s failed, keeping local copy: %s", collection, key, e)
            return False
        finally:
            self._pushing.pop((collection, key), None)
        return True

    def save(self) -> bool:
        """Push the selected day, week and month. True if every write landed."""
        if self.user is None:
            return False
        results = [
            self._push("days", self.day_key, self.day()),
            self._push("weeks", self.week_key, self.week()),
            self._push("months", self.month_key, self.month()),
        ]
        logger.info("Saved %s / %s / %s", self.day_key, self.week_key, self.month_key)
        return all(results)

    # ── Mark done (current period only) ───────────────────────

    def mark_daily_done(self, key: str, hour: int, now: datetime | None = None) -> bool:
        ensure_current("daily", key, now or self.now())
        record = self._record("days", key)
        if not mark_task_done(record, hour):
            return False
        self.cache.put_day(key, record)
        self._push("days", key, record)
        return True

    def mark_weekly_done(self, key: str, index: int, now: datetime | None = None) -> bool:
        ensure_current("weekly", key, now or self.now())
        record = self._record("weeks", key)
        if not mark_goal_done(record, index):
            return False
        self.cache.put_week(key, record)
        self._push("weeks", key, record)
        return True

    def mark_monthly_done(self, key: str, index: int, now: datetime | None = None) -> bool:
        ensure_current("monthly", key, now or self.now())
        record = self._record("months", key)
        if not mark_goal_done(record, index):
            return False
        self.cache.put_month(key, record)
        self._push("months", key, record)
        return True
