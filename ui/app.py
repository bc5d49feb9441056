from __future__ import annotations

import json
import logging
from datetime import datetime
from functools import lru_cache
from pathlib import Path
from typing import Any

from fastapi import Body, Depends, FastAPI, Header, HTTPException, status
from fastapi.responses import HTMLResponse, JSONResponse, StreamingResponse
from fastapi.security import HTTPBasic, HTTPBasicCredentials

from core import (
    AccessNotProvisionedError,
    AuthError,
    AuthService,
    DayRecord,
    DocumentStore,
    EmailAlreadyInUseError,
    InvalidAccessKeyError,
    MonthRecord,
    NotCurrentPeriodError,
    RemoteStore,
    SnapshotStream,
    StoreError,
    User,
    WeekRecord,
    compute_pending,
    configure_logging,
    ensure_current,
    get_user_timezone,
    load_config,
    mark_goal_done,
    mark_task_done,
    now_local,
    store_path,
)
from core.keys import is_day_key, is_month_key, is_week_key

configure_logging()
logger = logging.getLogger(__name__)

KEEPALIVE_SECONDS = 15.0


# ── HTML helpers ──────────────────────────────────────────────

def _escape(s: str) -> str:
    return (
        s.replace("&", "&amp;")
        .replace("<", "&lt;")
        .replace(">", "&gt;")
        .replace('"', "&quot;")
    )


def _render_list(title: str, rows: list[str]) -> str:
    if not rows:
        body = '<div class="muted">(none)</div>'
    else:
        body = "<ul>" + "".join(f"<li>{r}</li>" for r in rows) + "</ul>"
    return f'<section><h2>{_escape(title)} ({len(rows)})</h2>{body}</section>'


# ── Services ──────────────────────────────────────────────────

app = FastAPI(title="DayGrid", version="0.1.0")

security = HTTPBasic(auto_error=False)


@app.exception_handler(StoreError)
def _store_unavailable(request, exc: StoreError) -> JSONResponse:
    logger.warning("Store unavailable: %s", exc)
    return JSONResponse(status_code=503, content={"detail": "Storage temporarily unavailable"})


@lru_cache
def _documents(path: Path) -> DocumentStore:
    # One instance per file so live subscribers see writes from every request.
    return DocumentStore(path)


def _remote() -> RemoteStore:
    return RemoteStore(_documents(store_path()))


def _auth() -> AuthService:
    return AuthService(_remote(), min_password_length=load_config().min_password_length)


def _auth_http_error(e: AuthError) -> HTTPException:
    if isinstance(e, (AccessNotProvisionedError, InvalidAccessKeyError)):
        code = status.HTTP_403_FORBIDDEN
    elif isinstance(e, EmailAlreadyInUseError):
        code = status.HTTP_409_CONFLICT
    else:
        code = status.HTTP_401_UNAUTHORIZED
    return HTTPException(
        status_code=code,
        detail={"code": e.code, "message": str(e)},
        headers={"WWW-Authenticate": "Basic"} if code == status.HTTP_401_UNAUTHORIZED else None,
    )


def get_current_user(
    credentials: HTTPBasicCredentials | None = Depends(security),
    x_access_key: str | None = Header(default=None),
) -> User:
    if credentials is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
            headers={"WWW-Authenticate": "Basic"},
        )
    try:
        return _auth().authenticate(credentials.username, credentials.password, x_access_key)
    except AuthError as e:
        raise _auth_http_error(e) from e


def get_now() -> datetime:
    """Server clock for period checks. Overridden in tests."""
    return now_local()


def _parse_now(now: str | None) -> datetime:
    if not now:
        return now_local()
    try:
        parsed = datetime.fromisoformat(now)
    except ValueError:
        raise HTTPException(status_code=400, detail=f"Invalid timestamp: {now}")
    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=get_user_timezone())
    return parsed.astimezone(get_user_timezone())


def _check_key(kind: str, key: str) -> None:
    valid = {"day": is_day_key, "week": is_week_key, "month": is_month_key}[kind](key)
    if not valid:
        raise HTTPException(status_code=400, detail=f"Invalid {kind} key: {key}")


def _write(fn, *args: Any) -> None:
    try:
        fn(*args)
    except StoreError as e:
        logger.warning("Store write failed: %s", e)
        raise HTTPException(status_code=503, detail="Storage temporarily unavailable")


# ── Endpoints ─────────────────────────────────────────────────

@app.get("/healthz")
def healthz() -> dict[str, str]:
    return {"ok": "true"}


@app.post("/api/signup", status_code=status.HTTP_201_CREATED)
def api_signup(payload: dict[str, Any] = Body(...)) -> dict[str, Any]:
    """Create an account; the returned access key is needed for the first login."""
    try:
        grant = _auth().sign_up(str(payload.get("email", "")), str(payload.get("password", "")))
    except EmailAlreadyInUseError as e:
        raise _auth_http_error(e) from e
    except AuthError as e:
        raise HTTPException(status_code=400, detail={"code": e.code, "message": str(e)}) from e
    return {"email": grant.email, "accessKey": grant.key}


@app.get("/api/access/{email}")
def api_access(email: str) -> dict[str, Any]:
    return {"requiresAccessKey": _auth().requires_access_key(email)}


@app.get("/api/me")
def api_me(user: User = Depends(get_current_user)) -> dict[str, Any]:
    return user.to_dict()


@app.get("/api/days/{key}")
def api_get_day(key: str, user: User = Depends(get_current_user)) -> dict[str, Any]:
    _check_key("day", key)
    record = _remote().read_day(user.id, key) or DayRecord()
    return record.to_dict()


@app.put("/api/days/{key}")
def api_put_day(key: str, payload: dict[str, Any] = Body(...), user: User = Depends(get_current_user)) -> dict[str, Any]:
    _check_key("day", key)
    record = DayRecord.from_dict(payload)
    _write(_remote().write_day, user.id, key, record)
    return {"ok": True, "day": record.to_dict()}


@app.get("/api/weeks/{key}")
def api_get_week(key: str, user: User = Depends(get_current_user)) -> dict[str, Any]:
    _check_key("week", key)
    record = _remote().read_week(user.id, key) or WeekRecord()
    return record.to_dict()


@app.put("/api/weeks/{key}")
def api_put_week(key: str, payload: dict[str, Any] = Body(...), user: User = Depends(get_current_user)) -> dict[str, Any]:
    _check_key("week", key)
    record = WeekRecord.from_dict(payload)
    _write(_remote().write_week, user.id, key, record)
    return {"ok": True, "week": record.to_dict()}


@app.get("/api/months/{key}")
def api_get_month(key: str, user: User = Depends(get_current_user)) -> dict[str, Any]:
    _check_key("month", key)
    record = _remote().read_month(user.id, key) or MonthRecord()
    return record.to_dict()


@app.put("/api/months/{key}")
def api_put_month(key: str, payload: dict[str, Any] = Body(...), user: User = Depends(get_current_user)) -> dict[str, Any]:
    _check_key("month", key)
    record = MonthRecord.from_dict(payload)
    _write(_remote().write_month, user.id, key, record)
    return {"ok": True, "month": record.to_dict()}


@app.get("/api/notes")
def api_notes(user: User = Depends(get_current_user)) -> dict[str, Any]:
    """Non-empty daily notes, newest first."""
    days = _remote().read_all_days(user.id)
    notes = [
        {"dayKey": k, "note": days[k].note}
        for k in sorted(days, reverse=True)
        if days[k].note.strip()
    ]
    return {"notes": notes}


@app.get("/api/pending")
def api_pending(now: str | None = None, user: User = Depends(get_current_user)) -> dict[str, Any]:
    remote = _remote()
    summary = compute_pending(
        remote.read_all_days(user.id),
        remote.read_all_weeks(user.id),
        remote.read_all_months(user.id),
        _parse_now(now),
    )
    return summary.to_dict()


def _mark(kind: str, key: str, now: datetime, apply) -> dict[str, Any]:
    try:
        ensure_current(kind, key, now)
    except NotCurrentPeriodError as e:
        raise HTTPException(status_code=409, detail=str(e))
    if not apply():
        raise HTTPException(status_code=404, detail=f"No {kind} entry to complete")
    return {"ok": True}


@app.post("/api/pending/daily/{key}/{hour}/done")
def api_daily_done(key: str, hour: int, now: datetime = Depends(get_now), user: User = Depends(get_current_user)) -> dict[str, Any]:
    remote = _remote()

    def apply() -> bool:
        record = remote.read_day(user.id, key) or DayRecord()
        if not mark_task_done(record, hour):
            return False
        _write(remote.write_day, user.id, key, record)
        return True

    return _mark("daily", key, now, apply)


@app.post("/api/pending/weekly/{key}/{index}/done")
def api_weekly_done(key: str, index: int, now: datetime = Depends(get_now), user: User = Depends(get_current_user)) -> dict[str, Any]:
    remote = _remote()

    def apply() -> bool:
        record = remote.read_week(user.id, key) or WeekRecord()
        if not mark_goal_done(record, index):
            return False
        _write(remote.write_week, user.id, key, record)
        return True

    return _mark("weekly", key, now, apply)


@app.post("/api/pending/monthly/{key}/{index}/done")
def api_monthly_done(key: str, index: int, now: datetime = Depends(get_now), user: User = Depends(get_current_user)) -> dict[str, Any]:
    remote = _remote()

    def apply() -> bool:
        record = remote.read_month(user.id, key) or MonthRecord()
        if not mark_goal_done(record, index):
            return False
        _write(remote.write_month, user.id, key, record)
        return True

    return _mark("monthly", key, now, apply)


def _sse(stream: SnapshotStream):
    try:
        while not stream.closed:
            snapshot = stream.next(timeout=KEEPALIVE_SECONDS)
            if snapshot is None:
                yield ": keepalive\n\n"
                continue
            data = {k: v.to_dict() for k, v in snapshot.items()}
            yield f"data: {json.dumps(data, ensure_ascii=False)}\n\n"
    finally:
        stream.close()


@app.get("/api/stream/{collection}")
def api_stream(collection: str, user: User = Depends(get_current_user)) -> StreamingResponse:
    """Server-sent events: one full collection snapshot per change."""
    remote = _remote()
    openers = {
        "days": remote.stream_all_days,
        "weeks": remote.stream_all_weeks,
        "months": remote.stream_all_months,
    }
    if collection not in openers:
        raise HTTPException(status_code=404, detail=f"Unknown collection: {collection}")
    return StreamingResponse(_sse(openers[collection](user.id)), media_type="text/event-stream")


@app.get("/", response_class=HTMLResponse)
def index(user: User = Depends(get_current_user)) -> HTMLResponse:
    remote = _remote()
    now = now_local()
    summary = compute_pending(
        remote.read_all_days(user.id),
        remote.read_all_weeks(user.id),
        remote.read_all_months(user.id),
        now,
    )
    sections = [
        _render_list("Today", [f"{p.hour:02d}:00 {_escape(p.text)}" for p in summary.daily_current]),
        _render_list("This week", [_escape(p.text) for p in summary.weekly_current]),
        _render_list("This month", [_escape(p.text) for p in summary.monthly_current]),
        _render_list("Earlier days", [f"{p.day_key} {p.hour:02d}:00 {_escape(p.text)}" for p in summary.daily_backlog]),
        _render_list("Earlier weeks", [f"{p.week_key} {_escape(p.text)}" for p in summary.weekly_backlog]),
        _render_list("Earlier months", [f"{p.month_key} {_escape(p.text)}" for p in summary.monthly_backlog]),
    ]
    html = f"""<!doctype html>
<html>
<head><meta charset="utf-8"><title>DayGrid — Pending ({summary.total_count})</title></head>
<body>
<h1>Pending ({summary.total_count})</h1>
<div class="muted">{_escape(user.email)} · {now.strftime('%Y-%m-%d %H:%M')}</div>
{''.join(sections)}
</body>
</html>"""
    return HTMLResponse(html)
