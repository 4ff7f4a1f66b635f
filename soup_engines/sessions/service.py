from __future__ import annotations

import logging
from typing import Callable, Iterable, Optional

from soup_engines.common.errors import NotFound, SessionConflict, StorageUnavailable
from soup_engines.config import runtime_config
from soup_engines.sessions.kv import KeyValueStore, default_kv_store
from soup_engines.sessions.models import Session, Turn, TurnRole

logger = logging.getLogger(__name__)

GREETING = (
    "Welcome to the soup kitchen. The truth behind this riddle has been chosen. "
    "Ask anything you like and I will answer with yes, no, irrelevant or indeterminate, "
    "with the occasional small hint."
)


class SessionStore:
    """Durable mapping from session id to session record.

    Records live under ``<prefix><id>`` in the injected key-value store. Appends
    are load-modify-save: callers pass the record they loaded and the store
    only commits if nobody else wrote in between.
    """

    def __init__(
        self,
        kv: Optional[KeyValueStore] = None,
        key_prefix: Optional[str] = None,
        greeting: str = GREETING,
        id_factory: Optional[Callable[[], str]] = None,
    ) -> None:
        self._kv = kv
        self._prefix = key_prefix if key_prefix is not None else runtime_config.get_session_key_prefix()
        self._greeting = greeting
        self._id_factory = id_factory

    def _key(self, session_id: str) -> str:
        return self._prefix + session_id

    def _require_kv(self) -> KeyValueStore:
        if self._kv is None:
            raise StorageUnavailable("Session storage binding is not configured")
        return self._kv

    def create(self, puzzle_id: str) -> Session:
        kv = self._require_kv()
        session = Session(puzzle_id=puzzle_id)
        if self._id_factory:
            session.id = self._id_factory()
        session.turns.append(Turn(role=TurnRole.assistant, content=self._greeting))
        raw = session.to_bytes()
        if not kv.put_if(self._key(session.id), raw, None):
            raise SessionConflict(f"Session id collision for {session.id}")
        session._raw = raw
        logger.info("Created session %s for puzzle %s", session.id, puzzle_id)
        return session

    def load(self, session_id: str) -> Session:
        kv = self._require_kv()
        raw = kv.get(self._key(session_id))
        if raw is None:
            raise NotFound(f"Session {session_id} not found")
        return Session.from_bytes(raw)

    def append(self, session: Session, turns: Iterable[Turn]) -> Session:
        """Commit ``turns`` on top of ``session`` as loaded.

        Raises SessionConflict when the stored record changed since the load.
        Backends without ``put_if`` are written unconditionally (last writer wins).
        """
        kv = self._require_kv()
        updated = session.model_copy(deep=True)
        updated.turns.extend(turns)
        updated.version = session.version + 1
        raw = updated.to_bytes()
        put_if = getattr(kv, "put_if", None)
        if put_if is None:
            kv.put(self._key(session.id), raw)
        elif not put_if(self._key(session.id), raw, session._raw):
            raise SessionConflict(f"Session {session.id} was modified concurrently")
        updated._raw = raw
        return updated


_default_store: Optional[SessionStore] = None


def get_session_store() -> SessionStore:
    global _default_store
    if _default_store is None:
        _default_store = SessionStore(kv=default_kv_store())
    return _default_store


def set_session_store(store: Optional[SessionStore]) -> None:
    global _default_store
    _default_store = store
