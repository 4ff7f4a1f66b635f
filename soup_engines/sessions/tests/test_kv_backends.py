from __future__ import annotations

import pytest

from soup_engines.sessions import kv as kv_module
from soup_engines.sessions.kv import FileSystemKeyValueStore, InMemoryKeyValueStore


@pytest.fixture(params=["memory", "filesystem"])
def store(request, tmp_path):
    if request.param == "memory":
        return InMemoryKeyValueStore()
    return FileSystemKeyValueStore(tmp_path / "sessions")


def test_get_put_roundtrip(store):
    assert store.get("session:a") is None
    store.put("session:a", b"one")
    assert store.get("session:a") == b"one"


def test_put_if_compares_previous_value(store):
    assert store.put_if("session:a", b"v1", None) is True
    assert store.put_if("session:a", b"v2", None) is False
    assert store.put_if("session:a", b"v2", b"stale") is False
    assert store.put_if("session:a", b"v2", b"v1") is True
    assert store.get("session:a") == b"v2"


def test_filesystem_survives_new_instance(tmp_path):
    FileSystemKeyValueStore(tmp_path).put("session:x", b"payload")
    assert FileSystemKeyValueStore(tmp_path).get("session:x") == b"payload"
    assert (tmp_path / "session_x.json").exists()


def test_default_backend_selection(monkeypatch, tmp_path):
    monkeypatch.setenv("SESSIONS_BACKEND", "memory")
    assert isinstance(kv_module.default_kv_store(), InMemoryKeyValueStore)

    monkeypatch.setenv("SESSIONS_BACKEND", "filesystem")
    monkeypatch.setenv("SESSIONS_FS_DIR", str(tmp_path))
    assert isinstance(kv_module.default_kv_store(), FileSystemKeyValueStore)

    monkeypatch.setenv("SESSIONS_BACKEND", "none")
    assert kv_module.default_kv_store() is None


def test_firestore_without_library_is_unconfigured(monkeypatch):
    class _Broken:
        def __init__(self, *args, **kwargs):
            raise RuntimeError("google-cloud-firestore not installed")

    monkeypatch.setenv("SESSIONS_BACKEND", "firestore")
    monkeypatch.setattr(kv_module, "FirestoreKeyValueStore", _Broken)
    assert kv_module.default_kv_store() is None
