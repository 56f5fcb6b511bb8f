"""HTTP routes and error mapping."""

from __future__ import annotations

import datetime as dt

import pytest
from fastapi.testclient import TestClient

from conftest import T0, tick
from versionic.clock import ManualClock
from versionic.config import Settings
from versionic.runtime import create_app


@pytest.fixture
def settings(tmp_path) -> Settings:
    return Settings(database_url=f"sqlite:///{tmp_path / 'api.db'}")


@pytest.fixture
def client(settings, clock):
    with TestClient(create_app(settings, clock=clock)) as c:
        yield c


def _at(value: str) -> dt.datetime:
    return dt.datetime.fromisoformat(value.replace("Z", "+00:00"))


def test_health(client):
    assert client.get("/health").json() == {"status": "running"}


def test_post_strips_validity_and_uses_wire_names(client):
    resp = client.post(
        "/Books",
        json={"ID": 1, "title": "X", "stock": 5, "validFrom": "2020-01-01", "validTo": "2020-01-02"},
    )

    assert resp.status_code == 201
    body = resp.json()
    assert body["ID"] == 1
    assert body["title"] == "X"
    assert _at(body["validFrom"]) == T0
    assert body["validTo"] is None
    assert body["version"] == 1


def test_duplicate_post_is_a_conflict(client):
    client.post("/Books", json={"ID": 1, "title": "X"})

    resp = client.post("/Books", json={"ID": 1, "title": "X"})

    assert resp.status_code == 409
    error = resp.json()["error"]
    assert error["code"] == "DUPLICATE_KEY"
    assert error["retryable"] is False


def test_missing_book_is_404(client):
    resp = client.get("/Books/99")

    assert resp.status_code == 404
    assert resp.json()["error"]["code"] == "NOT_FOUND"
    assert client.patch("/Books/99", json={"stock": 1}).status_code == 404
    assert client.delete("/Books/99").status_code == 404


def test_invalid_payload_is_422(client):
    resp = client.post("/Books", json={"ID": 1, "stock": "lots"})

    assert resp.status_code == 422
    assert resp.json()["error"]["code"] == "INVALID_PAYLOAD"


def test_update_history_and_listing(client):
    client.post("/Books", json={"ID": 1, "title": "X", "stock": 5})
    client.post("/Books", json={"ID": 2, "title": "Y", "stock": 1})

    resp = client.patch("/Books/1", json={"stock": 4})
    assert resp.status_code == 200
    assert resp.json()["version"] == 2

    history = client.get("/Books/1/history").json()
    assert [(h["stock"], _at(h["validTo"])) for h in history] == [(5, tick(2))]
    assert len(client.get("/history/Books").json()) == 1

    assert [b["ID"] for b in client.get("/Books").json()] == [1, 2]
    assert [b["ID"] for b in client.get("/Books", params={"title": "Y"}).json()] == [2]


def test_delete_then_as_of(client):
    client.post("/Books", json={"ID": 1, "title": "X", "stock": 5})

    resp = client.delete("/Books/1")

    assert resp.status_code == 204
    assert client.get("/Books").json() == []
    before = client.get("/Books/1/asOf", params={"at": tick(0).isoformat()})
    assert before.status_code == 200
    assert before.json()["stock"] == 5
    after = client.get("/Books/1/asOf", params={"at": tick(5).isoformat()})
    assert after.status_code == 404


def test_patch_cannot_close_the_interval(client):
    client.post("/Books", json={"ID": 1, "title": "X", "stock": 5})

    resp = client.patch("/Books/1", json={"validTo": "2020-01-01", "stock": 6})

    assert resp.status_code == 200
    assert resp.json()["validTo"] is None


def test_reject_policy_is_400(tmp_path, clock):
    settings = Settings(database_url=f"sqlite:///{tmp_path / 'strict.db'}", field_policy="reject")
    with TestClient(create_app(settings, clock=clock)) as strict:
        resp = strict.post("/Books", json={"ID": 1, "validFrom": "2020-01-01"})

    assert resp.status_code == 400
    assert resp.json()["error"]["code"] == "PROTECTED_FIELD"


def test_clock_skew_is_503(settings):
    with TestClient(create_app(settings, clock=ManualClock(start=T0))) as c:
        c.post("/Books", json={"ID": 1, "title": "X"})
        resp = c.patch("/Books/1", json={"title": "Y"})

    assert resp.status_code == 503
    error = resp.json()["error"]
    assert error["code"] == "CLOCK_SKEW"
    assert error["retryable"] is True


def test_locked_identity_is_a_retryable_409(tmp_path, clock):
    settings = Settings(database_url=f"sqlite:///{tmp_path / 'busy.db'}", lock_timeout=0.05)
    app = create_app(settings, clock=clock)
    with TestClient(app) as c:
        c.post("/Books", json={"ID": 1, "title": "X", "stock": 1})
        with app.state.service.store.locks.hold(1):
            resp = c.patch("/Books/1", json={"stock": 2})
        after = c.get("/Books/1").json()

    assert resp.status_code == 409
    error = resp.json()["error"]
    assert error["code"] == "CONCURRENT_MODIFICATION"
    assert error["retryable"] is True
    assert after["stock"] == 1
    assert after["version"] == 1


def test_schema_marks_system_fields_read_only(client):
    schema = client.get("/openapi.json").json()["components"]["schemas"]["Book"]

    for name in ("validFrom", "validTo", "version"):
        assert schema["properties"][name]["readOnly"] is True
    assert "readOnly" not in schema["properties"]["title"]
