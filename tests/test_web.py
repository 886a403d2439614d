"""Tests for the JSON control surface."""

import pytest
from fastapi.testclient import TestClient

from bangumoe.app import AppContext
from bangumoe.config import Settings
from bangumoe.web import create_app

from conftest import RecordingClient


@pytest.fixture
def backend():
    return RecordingClient()


@pytest.fixture
def api(backend):
    app = create_app(AppContext(backend))
    with TestClient(app) as client:
        yield client


def test_initial_state(api):
    response = api.get("/api/state")

    assert response.status_code == 200
    state = response.json()
    assert state["section"] == "home"
    assert state["collections"]["entries"] == []
    assert state["bangumi"]["status"] == "unknown"
    assert state["collection_modal"]["state"] == "closed"


def test_navigate_and_filter(api):
    state = api.post("/api/navigate/collections").json()
    assert [e["id"] for e in state["collections"]["entries"]] == [101, 102, 103]

    state = api.post("/api/collections/filter", json={"rating": 8}).json()
    assert [e["id"] for e in state["collections"]["entries"]] == [102]


def test_unknown_section_is_rejected(api):
    assert api.post("/api/navigate/settings").status_code == 422


def test_bad_filter_rating(api):
    response = api.post("/api/collections/filter", json={"rating": 11})

    assert response.status_code == 422
    assert response.json()["detail"]["field"] == "rating"


def test_edit_and_submit(api):
    api.post("/api/navigate/collections")
    api.post("/api/modal/collection/edit/102")
    state = api.patch("/api/modal/collection/draft", json={"fields": {"rating": 10}}).json()
    assert state["collection_modal"]["draft"]["rating"] == 10

    state = api.post("/api/modal/collection/submit").json()

    assert state["collection_modal"]["state"] == "closed"
    entry = next(e for e in state["collections"]["entries"] if e["id"] == 102)
    assert entry["rating"] == 10
    assert [n["message"] for n in state["notifications"]] == ["Collection updated"]


def test_invalid_submit_returns_field_error(api, backend):
    api.post("/api/modal/collection/create", json={"anime_id": 5})
    api.patch("/api/modal/collection/draft", json={"fields": {"rating": 11}})

    response = api.post("/api/modal/collection/submit")

    assert response.status_code == 422
    assert response.json()["detail"] == {"field": "rating", "message": "Rating must be between 1 and 10"}
    assert backend.count("upsert_collection") == 0
    assert api.get("/api/state").json()["collection_modal"]["state"] == "open"


def test_unknown_draft_field(api):
    api.post("/api/modal/collection/create", json={})

    assert api.patch("/api/modal/collection/draft", json={"fields": {"score": 1}}).status_code == 400


def test_edit_unknown_entry_conflicts(api):
    assert api.post("/api/modal/collection/edit/999").status_code == 409


def test_delete(api):
    api.post("/api/navigate/collections")

    state = api.delete("/api/collections/101").json()
    assert len(state["collections"]["entries"]) == 3

    state = api.delete("/api/collections/101", params={"confirmed": True}).json()
    assert [e["id"] for e in state["collections"]["entries"]] == [102, 103]

    assert api.delete("/api/collections/101", params={"confirmed": True}).status_code == 502


def test_auth_register(api):
    api.post("/api/modal/auth/open", params={"mode": "register"})
    api.patch("/api/modal/auth/draft", json={"fields": {
        "username": "alice", "email": "alice@example.com", "password": "pw", "confirm_password": "pw",
    }})

    state = api.post("/api/modal/auth/submit").json()

    assert state["user"]["username"] == "alice"
    assert state["auth_modal"]["state"] == "closed"


def test_auth_draft_hides_passwords(api):
    api.post("/api/modal/auth/open", params={"mode": "register"})

    response = api.patch("/api/modal/auth/draft", json={"fields": {
        "username": "alice", "password": "hunter2", "confirm_password": "hunter2",
    }})

    draft = response.json()["auth_modal"]["draft"]
    assert draft["username"] == "alice"
    assert "password" not in draft
    assert "confirm_password" not in draft
    assert "hunter2" not in response.text
    assert "hunter2" not in api.get("/api/state").text


def test_refresh_route(api, backend):
    api.post("/api/collections/filter", json={"type": "completed"})

    state = api.post("/api/collections/refresh").json()

    assert [e["id"] for e in state["collections"]["entries"]] == [102]
    assert backend.count("list_collections") == 2


def test_logout_route_clears_session(api):
    api.post("/api/modal/auth/open")
    api.patch("/api/modal/auth/draft", json={"fields": {"username": "alice", "password": "pw"}})
    api.post("/api/modal/auth/submit")
    api.post("/api/navigate/collections")
    api.post("/api/navigate/bangumi")

    state = api.post("/api/logout").json()

    assert state["user"] is None
    assert state["collections"]["entries"] == []
    assert state["bangumi"]["status"] == "unknown"


def test_bangumi_flow(api):
    state = api.post("/api/navigate/bangumi").json()
    assert state["bangumi"]["status"] == "bound"

    assert api.post("/api/bangumi/bind").status_code == 409

    state = api.post("/api/bangumi/sync").json()
    assert state["notifications"][-1]["message"].startswith("Data sync complete")

    state = api.post("/api/bangumi/unbind", params={"confirmed": True}).json()
    assert state["bangumi"]["status"] == "unbound"
    assert state["bangumi"]["binding"] is None


def test_startup_login_with_configured_credentials(tmp_path, backend):
    path = tmp_path / "config.yaml"
    path.write_text("auth:\n  username: alice\n  password: secret\n")
    app = create_app(AppContext(backend), settings=Settings(path))

    with TestClient(app) as client:
        state = client.get("/api/state").json()

    assert state["user"]["username"] == "alice"
    assert backend.count("authenticate") == 1
