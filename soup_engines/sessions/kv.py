"""Key-value capability the session store is built on.

A backend only has to offer ``get``/``put`` on opaque bytes. ``put_if`` adds a
compare-and-swap on the previously stored value so appends from concurrent
requests cannot silently overwrite each other.
"""
from __future__ import annotations

import logging
import os
import threading
from pathlib import Path
from typing import Dict, Optional, Protocol

logger = logging.getLogger(__name__)


class KeyValueStore(Protocol):
    def get(self, key: str) -> Optional[bytes]: ...
    def put(self, key: str, value: bytes) -> None: ...
    def put_if(self, key: str, value: bytes, expected: Optional[bytes]) -> bool: ...


class InMemoryKeyValueStore:
    def __init__(self) -> None:
        self._items: Dict[str, bytes] = {}
        self._lock = threading.Lock()

    def get(self, key: str) -> Optional[bytes]:
        with self._lock:
            return self._items.get(key)

    def put(self, key: str, value: bytes) -> None:
        with self._lock:
            self._items[key] = value

    def put_if(self, key: str, value: bytes, expected: Optional[bytes]) -> bool:
        with self._lock:
            if self._items.get(key) != expected:
                return False
            self._items[key] = value
            return True

    def keys(self) -> list[str]:
        with self._lock:
            return list(self._items.keys())


class FileSystemKeyValueStore:
    """One file per key under ``base_dir``; writes go through a rename."""

    def __init__(self, base_dir: Optional[str | Path] = None) -> None:
        self._base_dir = Path(base_dir or Path.cwd() / "var" / "sessions")
        self._base_dir.mkdir(parents=True, exist_ok=True)
        self._lock = threading.Lock()

    def _path(self, key: str) -> Path:
        safe_key = key.replace("/", "_").replace(":", "_").replace("..", "_")
        return self._base_dir / f"{safe_key}.json"

    def _read(self, key: str) -> Optional[bytes]:
        path = self._path(key)
        if not path.exists():
            return None
        return path.read_bytes()

    def _write(self, key: str, value: bytes) -> None:
        path = self._path(key)
        tmp = path.with_suffix(".tmp")
        tmp.write_bytes(value)
        os.replace(tmp, path)

    def get(self, key: str) -> Optional[bytes]:
        with self._lock:
            return self._read(key)

    def put(self, key: str, value: bytes) -> None:
        with self._lock:
            self._write(key, value)

    def put_if(self, key: str, value: bytes, expected: Optional[bytes]) -> bool:
        with self._lock:
            if self._read(key) != expected:
                return False
            self._write(key, value)
            return True


class FirestoreKeyValueStore:
    """Firestore implementation; compare-and-swap runs in a transaction."""

    def __init__(self, client: Optional[object] = None, collection: str = "room_sessions") -> None:  # pragma: no cover - optional dep
        try:
            from google.cloud import firestore  # type: ignore
        except Exception as exc:
            raise RuntimeError("google-cloud-firestore not installed") from exc
        from soup_engines.config import runtime_config

        project = runtime_config.get_firestore_project()
        if client is None and not project:
            raise RuntimeError("GCP project is required for Firestore session store")
        self._firestore = firestore
        self._client = client or firestore.Client(project=project)  # type: ignore[arg-type]
        self._collection = collection

    def _doc(self, key: str):  # pragma: no cover - optional dep
        return self._client.collection(self._collection).document(key.replace("/", "_"))

    def get(self, key: str) -> Optional[bytes]:  # pragma: no cover - optional dep
        snap = self._doc(key).get()
        if snap and snap.exists:
            return (snap.to_dict() or {}).get("value")
        return None

    def put(self, key: str, value: bytes) -> None:  # pragma: no cover - optional dep
        self._doc(key).set({"value": value})

    def put_if(self, key: str, value: bytes, expected: Optional[bytes]) -> bool:  # pragma: no cover - optional dep
        doc = self._doc(key)

        @self._firestore.transactional
        def _swap(transaction) -> bool:
            snap = doc.get(transaction=transaction)
            current = (snap.to_dict() or {}).get("value") if snap.exists else None
            if current != expected:
                return False
            transaction.set(doc, {"value": value})
            return True

        return _swap(self._client.transaction())


def default_kv_store() -> Optional[KeyValueStore]:
    """Build the backend named by SESSIONS_BACKEND; ``None`` means unconfigured."""
    from soup_engines.config import runtime_config

    backend = runtime_config.get_sessions_backend()
    if backend in {"none", "disabled"}:
        return None
    if backend == "filesystem":
        return FileSystemKeyValueStore(runtime_config.get_sessions_fs_dir())
    if backend == "firestore":
        try:
            return FirestoreKeyValueStore()
        except RuntimeError as exc:
            logger.error("Firestore session store unavailable: %s", exc)
            return None
    return InMemoryKeyValueStore()
