"""Tests for the FastAPI app in ui/app.py."""

from datetime import datetime
from zoneinfo import ZoneInfo

import pytest
from fastapi.testclient import TestClient

from ui.app import app, get_now

AUTH = ("ada@example.com", "hunter22")
NOW = "2024-01-03T10:00:00"


@pytest.fixture
def client(workspace):
    app.dependency_overrides[get_now] = lambda: datetime(2024, 1, 3, 10, 0, tzinfo=ZoneInfo("UTC"))
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def access_key(client) -> str:
    resp = client.post("/api/signup", json={"email": AUTH[0], "password": AUTH[1]})
    assert resp.status_code == 201
    return resp.json()["accessKey"]


@pytest.fixture
def validated(client, access_key) -> dict:
    resp = client.get("/api/me", auth=AUTH, headers={"X-Access-Key": access_key})
    assert resp.status_code == 200
    return resp.json()


def test_healthz(client):
    assert client.get("/healthz").json() == {"ok": "true"}


def test_requires_credentials(client):
    assert client.get("/api/me").status_code == 401


def test_signup_errors(client, access_key):
    resp = client.post("/api/signup", json={"email": AUTH[0], "password": "another1"})
    assert resp.status_code == 409
    assert resp.json()["detail"]["code"] == "auth/email-already-in-use"

    resp = client.post("/api/signup", json={"email": "bob@example.com", "password": "abc"})
    assert resp.status_code == 400
    assert resp.json()["detail"]["code"] == "auth/weak-password"


def test_first_login_needs_access_key(client, access_key):
    assert client.get(f"/api/access/{AUTH[0]}").json() == {"requiresAccessKey": True}

    resp = client.get("/api/me", auth=AUTH)
    assert resp.status_code == 403
    assert resp.json()["detail"]["code"] == "auth/invalid-access-key"

    resp = client.get("/api/me", auth=AUTH, headers={"X-Access-Key": access_key})
    assert resp.status_code == 200
    assert resp.json()["email"] == AUTH[0]

    assert client.get(f"/api/access/{AUTH[0]}").json() == {"requiresAccessKey": False}
    assert client.get("/api/me", auth=AUTH).status_code == 200


def test_unknown_account(client):
    resp = client.get("/api/me", auth=("nobody@example.com", "hunter22"))
    assert resp.status_code == 403
    assert resp.json()["detail"]["code"] == "auth/access-key-missing"


def test_wrong_password(client, validated):
    resp = client.get("/api/me", auth=(AUTH[0], "wrong-password"))
    assert resp.status_code == 401
    assert resp.json()["detail"]["code"] == "auth/invalid-credential"


def test_put_and_get_day(client, validated):
    body = {"note": "hello", "tasks": {"9": "call bank"}}
    resp = client.put("/api/days/2024-01-01", json=body, auth=AUTH)
    assert resp.status_code == 200

    day = client.get("/api/days/2024-01-01", auth=AUTH).json()
    assert day == {"note": "hello", "tasks": {"9": {"text": "call bank", "done": False}}}
    assert client.get("/api/days/2024-01-02", auth=AUTH).json() == {"note": "", "tasks": {}}


def test_invalid_keys_rejected(client, validated):
    assert client.get("/api/days/2024-13-01", auth=AUTH).status_code == 400
    assert client.get("/api/weeks/2024-01-03", auth=AUTH).status_code == 400
    assert client.get("/api/months/2024-1", auth=AUTH).status_code == 400


def test_users_only_see_their_own_records(client, validated):
    # The seeded documents belong to another user id.
    assert client.get("/api/notes", auth=AUTH).json() == {"notes": []}
    assert client.get("/api/pending", params={"now": NOW}, auth=AUTH).json()["totalCount"] == 0


def test_notes_newest_first(client, validated):
    client.put("/api/days/2024-01-01", json={"note": "first"}, auth=AUTH)
    client.put("/api/days/2024-01-02", json={"note": "  "}, auth=AUTH)
    client.put("/api/days/2024-01-03", json={"note": "third"}, auth=AUTH)
    notes = client.get("/api/notes", auth=AUTH).json()["notes"]
    assert notes == [
        {"dayKey": "2024-01-03", "note": "third"},
        {"dayKey": "2024-01-01", "note": "first"},
    ]


def test_pending(client, validated):
    client.put("/api/days/2024-01-01", json={"tasks": {"9": "call bank"}}, auth=AUTH)
    client.put("/api/days/2024-01-03", json={"tasks": {"8": "stretch", "15": "review"}}, auth=AUTH)
    client.put("/api/weeks/2024-01-01", json={"goals": ["ship report"]}, auth=AUTH)
    client.put("/api/months/2023-12", json={"goals": ["plan year", {"text": "taxes", "done": True}]}, auth=AUTH)

    summary = client.get("/api/pending", params={"now": NOW}, auth=AUTH).json()
    assert summary["dailyBacklog"] == [{"dayKey": "2024-01-01", "hour": 9, "text": "call bank"}]
    assert summary["dailyCurrent"] == [{"dayKey": "2024-01-03", "hour": 8, "text": "stretch"}]
    assert summary["weeklyCurrent"] == [{"weekKey": "2024-01-01", "index": 0, "text": "ship report"}]
    assert summary["monthlyBacklog"] == [{"monthKey": "2023-12", "index": 0, "text": "plan year"}]
    assert summary["totalCount"] == 4


def test_pending_rejects_bad_timestamp(client, validated):
    assert client.get("/api/pending", params={"now": "yesterday"}, auth=AUTH).status_code == 400


def test_mark_done(client, validated):
    client.put("/api/days/2024-01-01", json={"tasks": {"9": "call bank"}}, auth=AUTH)
    client.put("/api/days/2024-01-03", json={"tasks": {"8": "stretch"}}, auth=AUTH)
    client.put("/api/weeks/2024-01-01", json={"goals": ["ship report"]}, auth=AUTH)

    resp = client.post("/api/pending/daily/2024-01-01/9/done", params={"now": NOW}, auth=AUTH)
    assert resp.status_code == 409

    # A client-supplied timestamp cannot move the current period.
    resp = client.post("/api/pending/daily/2024-01-01/9/done", params={"now": "2024-01-01T10:00:00"}, auth=AUTH)
    assert resp.status_code == 409

    resp = client.post("/api/pending/daily/2024-01-03/8/done", params={"now": NOW}, auth=AUTH)
    assert resp.status_code == 200
    resp = client.post("/api/pending/daily/2024-01-03/20/done", params={"now": NOW}, auth=AUTH)
    assert resp.status_code == 404

    resp = client.post("/api/pending/weekly/2024-01-01/0/done", params={"now": NOW}, auth=AUTH)
    assert resp.status_code == 200
    resp = client.post("/api/pending/monthly/2024-01/0/done", params={"now": NOW}, auth=AUTH)
    assert resp.status_code == 404

    summary = client.get("/api/pending", params={"now": NOW}, auth=AUTH).json()
    assert summary["dailyCurrent"] == []
    assert summary["weeklyCurrent"] == []
    assert summary["dailyBacklog"] == [{"dayKey": "2024-01-01", "hour": 9, "text": "call bank"}]


def test_stream_unknown_collection(client, validated):
    assert client.get("/api/stream/years", auth=AUTH).status_code == 404


def test_dashboard(client, validated):
    client.put("/api/days/2024-01-01", json={"tasks": {"9": "call <bank>"}}, auth=AUTH)
    resp = client.get("/", auth=AUTH)
    assert resp.status_code == 200
    assert "call &lt;bank&gt;" in resp.text


def test_corrupt_store_is_unavailable_not_wiped(client, validated, workspace):
    store = workspace / "store" / "documents.json"
    original = store.read_text(encoding="utf-8")
    store.write_text(original + "}", encoding="utf-8")

    resp = client.put("/api/days/2024-01-03", json={"note": "x"}, auth=AUTH)
    assert resp.status_code == 503
    assert store.read_text(encoding="utf-8") == original + "}"
