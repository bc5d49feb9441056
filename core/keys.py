"""Canonical day, week and month keys.

Keys are zero-padded so plain string comparison orders them
chronologically:

    day_key   -> "2024-01-03"
    week_key  -> "2024-01-01"  (Monday of that week)
    month_key -> "2024-01"
"""

from __future__ import annotations

from datetime import date, datetime, timedelta


def _local_date(t: datetime | date) -> date:
    # datetime is a subclass of date, check it first
    if isinstance(t, datetime):
        return t.date()
    return t


def day_key(t: datetime | date) -> str:
    """Local calendar date of *t* as YYYY-MM-DD."""
    return _local_date(t).isoformat()


def month_key(t: datetime | date) -> str:
    d = _local_date(t)
    return f"{d.year:04d}-{d.month:02d}"


def week_start(t: datetime | date) -> date:
    """Monday on or before the local date of *t*."""
    d = _local_date(t)
    sunday_indexed = (d.weekday() + 1) % 7  # Sunday=0 .. Saturday=6
    return d - timedelta(days=(sunday_indexed + 6) % 7)


def week_key(t: datetime | date) -> str:
    return week_start(t).isoformat()


# ── Parsing & navigation ──────────────────────────────────────


def parse_day_key(key: str) -> date:
    """Parse a YYYY-MM-DD key. Raises ValueError if malformed."""
    if len(key) != 10:
        raise ValueError(f"Invalid day key: {key!r}")
    return date.fromisoformat(key)


def parse_month_key(key: str) -> date:
    """Return the first day of the month named by a YYYY-MM key."""
    parts = key.split("-")
    if len(parts) != 2 or len(parts[0]) != 4 or len(parts[1]) != 2:
        raise ValueError(f"Invalid month key: {key!r}")
    return date(int(parts[0]), int(parts[1]), 1)


def is_day_key(key: str) -> bool:
    try:
        parse_day_key(key)
    except ValueError:
        return False
    return True


def is_week_key(key: str) -> bool:
    try:
        return parse_day_key(key).weekday() == 0
    except ValueError:
        return False


def is_month_key(key: str) -> bool:
    try:
        parse_month_key(key)
    except ValueError:
        return False
    return True


def shift_day(key: str, n: int) -> str:
    return (parse_day_key(key) + timedelta(days=n)).isoformat()


def shift_week(key: str, n: int) -> str:
    """Move a week key by *n* weeks (negative goes back)."""
    return (week_start(parse_day_key(key)) + timedelta(weeks=n)).isoformat()


def shift_month(key: str, n: int) -> str:
    first = parse_month_key(key)
    index = first.year * 12 + (first.month - 1) + n
    return f"{index // 12:04d}-{index % 12 + 1:02d}"


def week_days(key: str) -> list[str]:
    """The seven day keys Monday..Sunday of the week *key*."""
    start = week_start(parse_day_key(key))
    return [(start + timedelta(days=i)).isoformat() for i in range(7)]
