"""Workspace root, configuration, timezone and path helpers for DayGrid."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from core.fileio import read_yaml

logger = logging.getLogger(__name__)

GUEST_NAMESPACE = "guest"


def workspace_root() -> Path:
    """Get the workspace root directory (contains config.yaml, store/ and cache/)."""
    return Path(
        os.environ.get("DAYGRID_ROOT", str(Path.home() / "daygrid"))
    ).expanduser().resolve()


@dataclass
class Config:
    timezone: str = "UTC"
    min_password_length: int = 6
    log_level: str = "INFO"

    @classmethod
    def from_dict(cls, d: dict) -> Config:
        if not d or not isinstance(d, dict):
            return cls()
        return cls(
            timezone=str(d.get("timezone", "UTC")),
            min_password_length=int(d.get("min_password_length", 6)),
            log_level=str(d.get("log_level", "INFO")).upper(),
        )


def load_config(root: Path | None = None) -> Config:
    """Load config.yaml, falling back to defaults when missing or invalid."""
    if root is None:
        root = workspace_root()
    try:
        return Config.from_dict(read_yaml(config_path(root)))
    except (OSError, ValueError) as e:
        logger.warning("Invalid config at %s: %s", config_path(root), e)
        return Config()


def get_user_timezone(root: Path | None = None) -> ZoneInfo:
    """Get the configured timezone, defaulting to UTC."""
    name = load_config(root).timezone
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError):
        logger.warning("Unknown timezone %r, using UTC", name)
        return ZoneInfo("UTC")


def now_local(root: Path | None = None) -> datetime:
    """Current datetime in the configured timezone."""
    return datetime.now(get_user_timezone(root))


def configure_logging(root: Path | None = None, filename: Path | None = None) -> None:
    """basicConfig at the configured level; *filename* keeps logs off a TUI's screen."""
    level = getattr(logging, load_config(root).log_level, logging.INFO)
    logging.basicConfig(
        level=level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        filename=str(filename) if filename else None,
    )


# ── Path helpers ──────────────────────────────────────────────

def config_path(root: Path | None = None) -> Path:
    if root is None:
        root = workspace_root()
    return root / "config.yaml"


def store_path(root: Path | None = None) -> Path:
    if root is None:
        root = workspace_root()
    return root / "store" / "documents.json"


def cache_root(root: Path | None = None) -> Path:
    if root is None:
        root = workspace_root()
    return root / "cache"
