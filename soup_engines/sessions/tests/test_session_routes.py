from __future__ import annotations

import pytest
from fastapi.testclient import TestClient

from soup_engines.puzzles.catalog import InMemoryPuzzleCatalog, get_puzzle_catalog
from soup_engines.puzzles.models import Puzzle
from soup_engines.server import create_app
from soup_engines.sessions.kv import InMemoryKeyValueStore
from soup_engines.sessions.models import Session
from soup_engines.sessions.service import SessionStore, get_session_store

PUZZLE = Puzzle(id="p1", title="Soup", opening="A man orders soup.", difficulty=3, tags=["classic"], truth="secret truth")


@pytest.fixture
def store():
    return SessionStore(kv=InMemoryKeyValueStore())


@pytest.fixture
def client(store):
    app = create_app()
    catalog = InMemoryPuzzleCatalog([PUZZLE])
    app.dependency_overrides[get_session_store] = lambda: store
    app.dependency_overrides[get_puzzle_catalog] = lambda: catalog
    return TestClient(app)


def test_create_session_returns_greeting_and_summary(client):
    resp = client.post("/sessions", json={"soupId": "p1"})
    assert resp.status_code == 201
    body = resp.json()
    assert body["sessionId"]
    assert body["soup"] == {"id": "p1", "title": "Soup", "opening": "A man orders soup.", "difficulty": 3, "tags": ["classic"]}
    assert len(body["history"]) == 1
    assert body["history"][0]["role"] == "assistant"
    assert "truth" not in resp.text


def test_create_session_unknown_or_missing_soup_falls_back(client):
    for kwargs in ({"json": {"soupId": "nope"}}, {"json": {}}, {"content": b"not json"}, {}):
        resp = client.post("/sessions", **kwargs)
        assert resp.status_code == 201
        assert resp.json()["soup"]["id"] == "p1"


def test_get_session_and_not_found(client):
    created = client.post("/sessions", json={"soupId": "p1"}).json()
    resp = client.get(f"/sessions/{created['sessionId']}")
    assert resp.status_code == 200
    assert resp.json()["history"] == created["history"]

    missing = client.get("/sessions/does-not-exist")
    assert missing.status_code == 404
    assert missing.json() == {"error": "NOT_FOUND", "message": "Session does-not-exist not found"}


def test_get_session_etag_round_trip(client, store):
    session_id = client.post("/sessions", json={"soupId": "p1"}).json()["sessionId"]
    first = client.get(f"/sessions/{session_id}")
    etag = first.headers.get("etag")
    assert etag

    cached = client.get(f"/sessions/{session_id}", headers={"If-None-Match": etag})
    assert cached.status_code == 304
    assert cached.headers.get("etag") == etag

    from soup_engines.sessions.models import Turn, TurnRole

    store.append(store.load(session_id), [Turn(role=TurnRole.user, content="q"), Turn(role=TurnRole.assistant, content="a")])
    changed = client.get(f"/sessions/{session_id}", headers={"If-None-Match": etag})
    assert changed.status_code == 200
    assert changed.headers.get("etag") != etag
    assert len(changed.json()["history"]) == 3


def test_blank_id_is_missing_id(client):
    resp = client.get("/sessions/%20")
    assert resp.status_code == 400
    assert resp.json()["error"] == "MISSING_ID"


def test_wrong_method_is_method_not_allowed(client):
    resp = client.delete("/sessions")
    assert resp.status_code == 405
    assert resp.json() == {"error": "METHOD_NOT_ALLOWED"}


def test_session_with_unknown_puzzle_is_integrity_error(client, store):
    orphan = Session(puzzle_id="gone")
    store._kv.put("session:" + orphan.id, orphan.to_bytes())
    resp = client.get(f"/sessions/{orphan.id}")
    assert resp.status_code == 500
    assert resp.json()["error"] == "SOUP_NOT_FOUND"


def test_unconfigured_storage_is_reported(client):
    client.app.dependency_overrides[get_session_store] = lambda: SessionStore(kv=None)
    resp = client.post("/sessions", json={"soupId": "p1"})
    assert resp.status_code == 500
    assert resp.json()["error"] == "STORAGE_UNAVAILABLE"


def test_create_session_runs_store_write_off_the_event_loop(client, store, monkeypatch):
    from soup_engines.sessions import routes as session_routes

    offloaded = []
    original = session_routes.run_in_threadpool

    async def _spy(func, *args, **kwargs):
        offloaded.append(func)
        return await original(func, *args, **kwargs)

    monkeypatch.setattr(session_routes, "run_in_threadpool", _spy)
    resp = client.post("/sessions", json={"soupId": "p1"})
    assert resp.status_code == 201
    assert offloaded == [store.create]
