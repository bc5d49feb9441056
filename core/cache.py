"""Local per-identity cache of day/week/month records.

Each identity gets its own namespace directory under ``cache/``:
``uid:<id>`` when signed in, ``guest`` otherwise. Collections are stored
as one JSON file each, keyed by canonical day/week/month key.
"""

from __future__ import annotations

import logging
import re
import shutil
import threading
from pathlib import Path

from core.fileio import read_json, write_json_atomic
from core.models import DayRecord, MonthRecord, User, WeekRecord
from core.workspace import GUEST_NAMESPACE

logger = logging.getLogger(__name__)

_RECORDS = {"days": DayRecord, "weeks": WeekRecord, "months": MonthRecord}


def namespace_for(user: User | None) -> str:
    return f"uid:{user.id}" if user else GUEST_NAMESPACE


def _dirname(namespace: str) -> str:
    return re.sub(r"[^A-Za-z0-9_.-]", "_", namespace)


class LocalCache:
    def __init__(self, root: Path, namespace: str = GUEST_NAMESPACE) -> None:
        self.root = root
        self.namespace = namespace
        # Remote pushes land on the writer's thread; serialize read-modify-write.
        self._lock = threading.RLock()

    def _file(self, collection: str, namespace: str | None = None) -> Path:
        return self.root / _dirname(namespace or self.namespace) / f"{collection}.json"

    def switch(self, namespace: str) -> None:
        self.namespace = namespace

    def load(self, collection: str) -> dict:
        record_cls = _RECORDS[collection]
        raw = read_json(self._file(collection))
        return {k: record_cls.from_dict(v) for k, v in raw.items()}

    def get(self, collection: str, key: str):
        """Cached record for *key*; an empty record if absent."""
        raw = read_json(self._file(collection)).get(key)
        return _RECORDS[collection].from_dict(raw)

    def put(self, collection: str, key: str, record) -> None:
        with self._lock:
            path = self._file(collection)
            data = read_json(path)
            data[key] = record.to_dict()
            write_json_atomic(path, data)

    def evict(self, namespace: str | None = None) -> None:
        """Discard every cached collection of *namespace* (default: current)."""
        target = self.root / _dirname(namespace or self.namespace)
        with self._lock:
            if not target.exists():
                return
            shutil.rmtree(target)
        logger.info("Evicted local cache namespace %s", namespace or self.namespace)

    # Convenience accessors

    def days(self) -> dict[str, DayRecord]:
        return self.load("days")

    def weeks(self) -> dict[str, WeekRecord]:
        return self.load("weeks")

    def months(self) -> dict[str, MonthRecord]:
        return self.load("months")

    def get_day(self, key: str) -> DayRecord:
        return self.get("days", key)

    def put_day(self, key: str, record: DayRecord) -> None:
        self.put("days", key, record)

    def get_week(self, key: str) -> WeekRecord:
        return self.get("weeks", key)

    def put_week(self, key: str, record: WeekRecord) -> None:
        self.put("weeks", key, record)

    def get_month(self, key: str) -> MonthRecord:
        return self.get("months", key)

    def put_month(self, key: str, record: MonthRecord) -> None:
        self.put("months", key, record)
