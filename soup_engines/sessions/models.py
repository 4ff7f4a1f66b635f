from __future__ import annotations

import json
import time
from enum import Enum
from typing import Any, Dict, List, Optional
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field, PrivateAttr


def _now_ms() -> int:
    return int(time.time() * 1000)


class TurnRole(str, Enum):
    user = "user"
    assistant = "assistant"


class Turn(BaseModel):
    role: TurnRole
    content: str


class Session(BaseModel):
    """One room: a puzzle reference plus its append-only transcript.

    Stored as a single JSON blob per session. ``version`` grows by one on
    every committed append and is what conditional writes are checked against.
    """

    model_config = ConfigDict(populate_by_name=True)

    id: str = Field(default_factory=lambda: uuid4().hex)
    puzzle_id: str = Field(alias="soupId")
    created_at: int = Field(default_factory=_now_ms, alias="createdAt")
    version: int = 0
    turns: List[Turn] = Field(default_factory=list, alias="history")

    # Raw bytes this record was read from (or last written as).
    _raw: Optional[bytes] = PrivateAttr(default=None)

    @property
    def turn_count(self) -> int:
        return len(self.turns)

    def to_bytes(self) -> bytes:
        data = self.model_dump(mode="json", by_alias=True)
        return json.dumps(data, ensure_ascii=False, separators=(",", ":")).encode("utf-8")

    @classmethod
    def from_bytes(cls, raw: bytes) -> "Session":
        session = cls.model_validate(json.loads(raw.decode("utf-8")))
        session._raw = raw
        return session


class SessionView(BaseModel):
    """Client-facing session payload returned by the HTTP surface."""

    sessionId: str
    soup: Dict[str, Any]
    history: List[Turn]

    @classmethod
    def build(cls, session: Session, soup: Dict[str, Any]) -> "SessionView":
        return cls(sessionId=session.id, soup=soup, history=list(session.turns))


class AskResult(BaseModel):
    answer: str
    history: List[Turn]
