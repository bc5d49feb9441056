"""Shared test fixtures for DayGrid tests."""

from __future__ import annotations

import json
import os
from datetime import datetime
from pathlib import Path
from zoneinfo import ZoneInfo

import pytest
import yaml

from core.auth import AuthService
from core.cache import LocalCache
from core.store import DocumentStore, RemoteStore
from core.tracker import Tracker

UTC = ZoneInfo("UTC")


@pytest.fixture
def workspace(tmp_path: Path) -> Path:
    """Create a temporary workspace with config and a seeded document store."""
    root = tmp_path / "workspace"
    (root / "store").mkdir(parents=True)
    (root / "cache").mkdir(parents=True)

    config = {
        "timezone": "UTC",
        "min_password_length": 6,
        "log_level": "DEBUG",
    }
    (root / "config.yaml").write_text(
        yaml.dump(config, default_flow_style=False), encoding="utf-8"
    )

    documents = {
        "users": {
            "seed-user": {
                "days": {
                    "2024-01-01": {"note": "new year", "tasks": {"9": {"text": "call bank", "done": False}}},
                    "2024-01-03": {"note": "", "tasks": {"8": "stretch", "15": {"text": "review", "done": False}}},
                },
                "weeks": {
                    "2024-01-01": {"goals": [{"text": "ship report", "done": False}]},
                },
                "months": {
                    "2023-12": {"goals": ["plan year", {"text": "taxes", "done": True}]},
                },
            }
        }
    }
    (root / "store" / "documents.json").write_text(
        json.dumps(documents, indent=2), encoding="utf-8"
    )

    os.environ["DAYGRID_ROOT"] = str(root)
    yield root
    if "DAYGRID_ROOT" in os.environ:
        del os.environ["DAYGRID_ROOT"]


@pytest.fixture
def remote() -> RemoteStore:
    """In-memory document store."""
    return RemoteStore(DocumentStore())


@pytest.fixture
def auth(remote: RemoteStore) -> AuthService:
    return AuthService(remote)


class FrozenClock:
    def __init__(self, now: datetime) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now


@pytest.fixture
def clock() -> FrozenClock:
    return FrozenClock(datetime(2024, 1, 3, 10, 0, tzinfo=UTC))


@pytest.fixture
def tracker(tmp_path: Path, remote: RemoteStore, auth: AuthService, clock: FrozenClock) -> Tracker:
    t = Tracker(remote, auth, LocalCache(tmp_path / "cache"), tz=UTC, clock=clock)
    yield t
    t.close()


@pytest.fixture
def signed_in(auth: AuthService):
    """Sign up and validate an account; returns the signed-in user."""
    grant = auth.sign_up("ada@example.com", "hunter22")
    return auth.sign_in("ada@example.com", "hunter22", grant.key)
