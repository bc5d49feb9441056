"""Hosted per-user document store for DayGrid.

`DocumentStore` is a path-addressed JSON tree (``users/<uid>/days/<key>``)
with live subscriptions. Every subscriber receives the full snapshot of its
path, first on subscribe and then after each write at, above or below that
path. `RemoteStore` layers the typed day/week/month and access-key API on
top of it.
"""

from __future__ import annotations

import copy
import logging
import queue
import threading
from collections.abc import Callable, Iterator
from pathlib import Path
from typing import Any

from core.errors import StoreError
from core.fileio import load_json, write_json_atomic
from core.models import DayRecord, MonthRecord, WeekRecord

logger = logging.getLogger(__name__)

Listener = Callable[[Any], None]

STREAM_QUEUE_SIZE = 8


def _split(path: str) -> tuple[str, ...]:
    return tuple(p for p in path.strip("/").split("/") if p)


def _related(a: tuple[str, ...], b: tuple[str, ...]) -> bool:
    """True if one path is a prefix of the other."""
    n = min(len(a), len(b))
    return a[:n] == b[:n]


# ── Subscriptions ─────────────────────────────────────────────


class Subscription:
    """Handle for a live listener. Cancelling is idempotent."""

    def __init__(self, store: DocumentStore, parts: tuple[str, ...], callback: Listener) -> None:
        self._store = store
        self.parts = parts
        self.callback = callback
        self._active = True

    @property
    def active(self) -> bool:
        return self._active

    def cancel(self) -> None:
        if not self._active:
            return
        self._active = False
        self._store._detach(self)

    def __call__(self) -> None:
        self.cancel()

    def __enter__(self) -> Subscription:
        return self

    def __exit__(self, *exc: object) -> None:
        self.cancel()


class SnapshotStream:
    """Lazy iterator of full snapshots fed by a subscription.

    Iteration blocks until the next snapshot arrives and stops once
    `close()` has been called. Open a new stream to restart.
    """

    _CLOSED = object()

    def __init__(self, subscribe: Callable[[Listener], Subscription], maxsize: int = STREAM_QUEUE_SIZE) -> None:
        self._queue: queue.Queue[Any] = queue.Queue(maxsize=maxsize)
        self._closed = False
        self._subscription = subscribe(self._offer)

    def _offer(self, item: Any) -> None:
        """Enqueue *item*, dropping the oldest snapshots while the queue is full."""
        while True:
            try:
                self._queue.put_nowait(item)
                return
            except queue.Full:
                try:
                    self._queue.get_nowait()
                except queue.Empty:
                    pass
                logger.debug("Snapshot stream full, dropped a stale snapshot")

    @property
    def closed(self) -> bool:
        return self._closed

    def __iter__(self) -> Iterator[Any]:
        return self

    def __next__(self) -> Any:
        item = self.next()
        if item is None:
            raise StopIteration
        return item

    def next(self, timeout: float | None = None) -> Any:
        """Next snapshot, or None on timeout or once closed."""
        if self._closed:
            return None
        try:
            item = self._queue.get(timeout=timeout)
        except queue.Empty:
            return None
        if item is self._CLOSED or self._closed:
            return None
        return item

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self._subscription.cancel()
        self._offer(self._CLOSED)

    def __enter__(self) -> SnapshotStream:
        return self

    def __exit__(self, *exc: object) -> None:
        self.close()


# ── Document tree ─────────────────────────────────────────────


class DocumentStore:
    """JSON document tree persisted to a single file (or kept in memory)."""

    def __init__(self, path: Path | None = None) -> None:
        self.path = path
        self._memory: dict[str, Any] = {}
        self._lock = threading.RLock()
        self._subscriptions: list[Subscription] = []

    def _load(self) -> dict[str, Any]:
        if self.path is None:
            return self._memory
        try:
            return load_json(self.path)
        except (OSError, ValueError) as e:
            # A corrupt file is never rewritten from an empty tree.
            raise StoreError(f"Cannot read {self.path}: {e}") from e

    def _save(self, tree: dict[str, Any]) -> None:
        if self.path is None:
            self._memory = tree
            return
        try:
            write_json_atomic(self.path, tree)
        except OSError as e:
            raise StoreError(f"Cannot write {self.path}: {e}") from e

    def get(self, path: str) -> Any:
        """Value at *path* (deep copy), or None if absent."""
        node: Any = self._load()
        for part in _split(path):
            if not isinstance(node, dict) or part not in node:
                return None
            node = node[part]
        return copy.deepcopy(node)

    def set(self, path: str, value: Any) -> None:
        """Replace the value at *path*. Setting None deletes it."""
        parts = _split(path)
        if not parts:
            raise ValueError("Refusing to overwrite the document root")
        with self._lock:
            tree = copy.deepcopy(self._load())
            node = tree
            for part in parts[:-1]:
                child = node.get(part)
                if not isinstance(child, dict):
                    if value is None:
                        return
                    child = node[part] = {}
                node = child
            if value is None:
                node.pop(parts[-1], None)
            else:
                node[parts[-1]] = copy.deepcopy(value)
            self._save(tree)
            targets = [s for s in self._subscriptions if _related(s.parts, parts)]
        for sub in targets:
            self._deliver(sub)

    def subscribe(self, path: str, callback: Listener) -> Subscription:
        sub = Subscription(self, _split(path), callback)
        with self._lock:
            self._subscriptions.append(sub)
        self._deliver(sub)
        return sub

    def _deliver(self, sub: Subscription) -> None:
        if not sub.active:
            return
        try:
            snapshot = self.get("/".join(sub.parts))
        except StoreError:
            logger.warning("Snapshot read failed for %s", "/".join(sub.parts), exc_info=True)
            return
        try:
            sub.callback(snapshot)
        except Exception:
            logger.exception("Subscriber for %s raised", "/".join(sub.parts))

    def _detach(self, sub: Subscription) -> None:
        with self._lock:
            if sub in self._subscriptions:
                self._subscriptions.remove(sub)

    @property
    def subscriber_count(self) -> int:
        return len(self._subscriptions)


# ── Typed per-user API ────────────────────────────────────────


def email_key(email: str) -> str:
    """Path-safe key for an email address."""
    key = str(email or "").strip().lower()
    for ch in ".#$[]/":
        key = key.replace(ch, "_")
    return key


_RECORDS = {"days": DayRecord, "weeks": WeekRecord, "months": MonthRecord}


class RemoteStore:
    """Per-user day/week/month records plus access-key and account documents."""

    def __init__(self, documents: DocumentStore) -> None:
        self.documents = documents

    @staticmethod
    def _path(user_id: str, collection: str, key: str | None = None) -> str:
        base = f"users/{user_id}/{collection}"
        return f"{base}/{key}" if key else base

    def _read(self, user_id: str, collection: str, key: str):
        raw = self.documents.get(self._path(user_id, collection, key))
        if raw is None:
            return None
        return _RECORDS[collection].from_dict(raw)

    def _write(self, user_id: str, collection: str, key: str, record) -> None:
        self.documents.set(self._path(user_id, collection, key), record.to_dict())

    def _read_all(self, user_id: str, collection: str) -> dict[str, Any]:
        raw = self.documents.get(self._path(user_id, collection))
        if not isinstance(raw, dict):
            return {}
        record_cls = _RECORDS[collection]
        return {k: record_cls.from_dict(v) for k, v in raw.items()}

    def _subscribe(self, user_id: str, collection: str, key: str, on_update: Listener) -> Subscription:
        record_cls = _RECORDS[collection]
        return self.documents.subscribe(
            self._path(user_id, collection, key),
            lambda raw: on_update(record_cls.from_dict(raw)),
        )

    def _subscribe_all(self, user_id: str, collection: str, on_update: Listener) -> Subscription:
        record_cls = _RECORDS[collection]

        def _normalize(raw: Any) -> None:
            raw = raw if isinstance(raw, dict) else {}
            on_update({k: record_cls.from_dict(v) for k, v in raw.items()})

        return self.documents.subscribe(self._path(user_id, collection), _normalize)

    # Days
    def read_day(self, user_id: str, key: str) -> DayRecord | None:
        return self._read(user_id, "days", key)

    def write_day(self, user_id: str, key: str, record: DayRecord) -> None:
        self._write(user_id, "days", key, record)

    def read_all_days(self, user_id: str) -> dict[str, DayRecord]:
        return self._read_all(user_id, "days")

    def subscribe_day(self, user_id: str, key: str, on_update: Listener) -> Subscription:
        return self._subscribe(user_id, "days", key, on_update)

    def subscribe_all_days(self, user_id: str, on_update: Listener) -> Subscription:
        return self._subscribe_all(user_id, "days", on_update)

    def stream_all_days(self, user_id: str) -> SnapshotStream:
        return SnapshotStream(lambda cb: self.subscribe_all_days(user_id, cb))

    # Weeks
    def read_week(self, user_id: str, key: str) -> WeekRecord | None:
        return self._read(user_id, "weeks", key)

    def write_week(self, user_id: str, key: str, record: WeekRecord) -> None:
        self._write(user_id, "weeks", key, record)

    def read_all_weeks(self, user_id: str) -> dict[str, WeekRecord]:
        return self._read_all(user_id, "weeks")

    def subscribe_week(self, user_id: str, key: str, on_update: Listener) -> Subscription:
        return self._subscribe(user_id, "weeks", key, on_update)

    def subscribe_all_weeks(self, user_id: str, on_update: Listener) -> Subscription:
        return self._subscribe_all(user_id, "weeks", on_update)

    def stream_all_weeks(self, user_id: str) -> SnapshotStream:
        return SnapshotStream(lambda cb: self.subscribe_all_weeks(user_id, cb))

    # Months
    def read_month(self, user_id: str, key: str) -> MonthRecord | None:
        return self._read(user_id, "months", key)

    def write_month(self, user_id: str, key: str, record: MonthRecord) -> None:
        self._write(user_id, "months", key, record)

    def read_all_months(self, user_id: str) -> dict[str, MonthRecord]:
        return self._read_all(user_id, "months")

    def subscribe_month(self, user_id: str, key: str, on_update: Listener) -> Subscription:
        return self._subscribe(user_id, "months", key, on_update)

    def subscribe_all_months(self, user_id: str, on_update: Listener) -> Subscription:
        return self._subscribe_all(user_id, "months", on_update)

    def stream_all_months(self, user_id: str) -> SnapshotStream:
        return SnapshotStream(lambda cb: self.subscribe_all_months(user_id, cb))

    # Access keys & accounts
    def get_access_info(self, email: str) -> dict[str, Any] | None:
        raw = self.documents.get(f"accessKeys/{email_key(email)}")
        return raw if isinstance(raw, dict) else None

    def set_access_info(self, email: str, info: dict[str, Any]) -> None:
        self.documents.set(f"accessKeys/{email_key(email)}", info)

    def get_account(self, email: str) -> dict[str, Any] | None:
        raw = self.documents.get(f"accounts/{email_key(email)}")
        return raw if isinstance(raw, dict) else None

    def set_account(self, email: str, account: dict[str, Any]) -> None:
        self.documents.set(f"accounts/{email_key(email)}", account)
