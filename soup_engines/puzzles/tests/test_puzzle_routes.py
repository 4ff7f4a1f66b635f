from __future__ import annotations

import random

from fastapi import FastAPI
from fastapi.testclient import TestClient

from soup_engines.common.error_envelope import register_error_handlers
from soup_engines.host.service import TurnOrchestrator, get_turn_orchestrator
from soup_engines.puzzles.catalog import BUILTIN_PUZZLES, InMemoryPuzzleCatalog, get_puzzle_catalog
from soup_engines.puzzles.routes import router
from soup_engines.sessions.kv import InMemoryKeyValueStore
from soup_engines.sessions.service import SessionStore

app = FastAPI()
register_error_handlers(app)
app.include_router(router)
app.dependency_overrides[get_puzzle_catalog] = lambda: InMemoryPuzzleCatalog()
client = TestClient(app)


def test_list_omits_truth():
    resp = client.get("/turtle-soups")
    assert resp.status_code == 200
    items = resp.json()
    assert [item["id"] for item in items] == [p.id for p in BUILTIN_PUZZLES]
    assert all("truth" not in item for item in items)


def test_detail_truth_only_on_request():
    plain = client.get("/turtle-soups/p1").json()
    assert "truth" not in plain
    revealed = client.get("/turtle-soups/p1", params={"include_truth": "true"}).json()
    assert revealed["truth"] == BUILTIN_PUZZLES[0].truth


def test_unknown_puzzle_is_not_found():
    resp = client.get("/turtle-soups/zzz")
    assert resp.status_code == 404
    assert resp.json()["error"] == "NOT_FOUND"


def test_random_pick_is_from_catalog():
    catalog = InMemoryPuzzleCatalog(rng=random.Random(7))
    ids = {p.id for p in BUILTIN_PUZZLES}
    assert all(catalog.random().id in ids for _ in range(10))
    assert InMemoryPuzzleCatalog([]).random() is None


def _ask_client(answers, seen):
    kv = InMemoryKeyValueStore()

    def _complete(messages, temperature):
        seen.append(messages)
        return answers.pop(0)

    catalog = InMemoryPuzzleCatalog()
    orchestrator = TurnOrchestrator(store=SessionStore(kv=kv), catalog=catalog, completion_fn=_complete)
    ask_app = FastAPI()
    register_error_handlers(ask_app)
    ask_app.include_router(router)
    ask_app.dependency_overrides[get_puzzle_catalog] = lambda: catalog
    ask_app.dependency_overrides[get_turn_orchestrator] = lambda: orchestrator
    return TestClient(ask_app), kv


def test_sessionless_ask_uses_caller_history_and_stores_nothing():
    seen = []
    ask_client, kv = _ask_client(["No."], seen)
    history = [
        {"role": "user", "content": "Is it about food?"},
        {"role": "assistant", "content": "Yes."},
    ]
    resp = ask_client.post("/turtle-soups/p1/ask", json={"question": "Was he alone?", "history": history})
    assert resp.status_code == 200
    assert resp.json() == {"answer": "No."}
    messages = seen[0]
    assert messages[0]["role"] == "system"
    assert BUILTIN_PUZZLES[0].truth in messages[1]["content"]
    assert messages[2:4] == history
    assert "Was he alone?" in messages[-1]["content"]
    assert kv.keys() == []


def test_sessionless_ask_without_history():
    seen = []
    ask_client, _ = _ask_client(["Irrelevant."], seen)
    resp = ask_client.post("/turtle-soups/p2/ask", json={"question": "Is it raining?"})
    assert resp.json()["answer"] == "Irrelevant."
    assert len(seen[0]) == 3


def test_sessionless_ask_rejects_bad_input():
    ask_client, _ = _ask_client([], [])
    assert ask_client.post("/turtle-soups/zzz/ask", json={"question": "hi"}).json()["error"] == "NOT_FOUND"
    resp = ask_client.post("/turtle-soups/p1/ask", content=b"{nope", headers={"Content-Type": "application/json"})
    assert (resp.status_code, resp.json()["error"]) == (400, "INVALID_JSON")
    for body in ({}, {"question": ""}, {"question": 5}):
        resp = ask_client.post("/turtle-soups/p1/ask", json=body)
        assert (resp.status_code, resp.json()["error"]) == (400, "INVALID_QUESTION")
    resp = ask_client.post("/turtle-soups/p1/ask", json={"question": "   "})
    assert resp.json()["error"] == "EMPTY_QUESTION"
    resp = ask_client.post("/turtle-soups/p1/ask", json={"question": "ok?", "history": [{"role": "narrator"}]})
    assert (resp.status_code, resp.json()["error"]) == (400, "INVALID_REQUEST")


def test_sessionless_ask_surfaces_completion_failure():
    ask_client, _ = _ask_client([], [])
    resp = ask_client.post("/turtle-soups/p1/ask", json={"question": "Anything?"})
    assert resp.status_code == 500
    assert resp.json()["error"] == "COMPLETION_ERROR"
