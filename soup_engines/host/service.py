from __future__ import annotations

import logging
from typing import List, Optional, Sequence

from soup_engines.common.errors import (
    CompletionFailed,
    DataIntegrityError,
    InvalidInput,
    NotFound,
    SessionConflict,
)
from soup_engines.config import runtime_config
from soup_engines.host.llm_client import ChatCompletionClient, ChatMessage, CompletionFn
from soup_engines.host.prompts import (
    HOST_SYSTEM_PROMPT,
    build_context_message,
    build_progress_directive,
    build_question_directive,
)
from soup_engines.puzzles.catalog import PuzzleCatalog, get_puzzle_catalog
from soup_engines.puzzles.models import Puzzle
from soup_engines.sessions.models import AskResult, Session, Turn, TurnRole
from soup_engines.sessions.service import SessionStore, get_session_store
from soup_engines.sync.progress import is_progress_query

logger = logging.getLogger(__name__)


class TurnOrchestrator:
    """Turns one raw question into a model call and one persisted question/answer pair."""

    def __init__(
        self,
        store: Optional[SessionStore] = None,
        catalog: Optional[PuzzleCatalog] = None,
        completion_fn: Optional[CompletionFn] = None,
        temperature: Optional[float] = None,
        max_append_attempts: Optional[int] = None,
    ) -> None:
        self._store = store or get_session_store()
        self._catalog = catalog or get_puzzle_catalog()
        self._completion_fn = completion_fn or ChatCompletionClient()
        self._temperature = temperature if temperature is not None else runtime_config.get_host_temperature()
        self._max_attempts = max_append_attempts or runtime_config.get_append_max_attempts()

    def ask(self, session_id: str, raw_question: str) -> AskResult:
        session = self._store.load(session_id)
        question = (raw_question or "").strip()
        if not question:
            raise InvalidInput("Question must not be empty", code="EMPTY_QUESTION")
        puzzle = self._catalog.get(session.puzzle_id)
        if not puzzle:
            raise DataIntegrityError(f"Puzzle {session.puzzle_id} missing for session {session.id}")

        messages = self.build_messages(session, puzzle, question)
        answer = self._complete(session.id, messages)

        pair = [
            Turn(role=TurnRole.user, content=question),
            Turn(role=TurnRole.assistant, content=answer),
        ]
        updated = self._commit(session, pair)
        logger.info("Session %s answered; %d turns", updated.id, updated.turn_count)
        return AskResult(answer=answer, history=updated.turns)

    def ask_puzzle(self, puzzle_id: str, raw_question: str, history: Sequence[Turn] = ()) -> str:
        """Answer against a caller-supplied transcript. Nothing is persisted."""
        puzzle = self._catalog.get(puzzle_id)
        if not puzzle:
            raise NotFound(f"Unknown puzzle {puzzle_id}")
        question = (raw_question or "").strip()
        if not question:
            raise InvalidInput("Question must not be empty", code="EMPTY_QUESTION")
        messages = self._messages(puzzle, history, question)
        return self._complete(f"puzzle:{puzzle_id}", messages)

    def build_messages(self, session: Session, puzzle: Puzzle, question: str) -> List[ChatMessage]:
        return self._messages(puzzle, session.turns, question)

    # --- Internal helpers ---
    def _messages(self, puzzle: Puzzle, turns: Sequence[Turn], question: str) -> List[ChatMessage]:
        if is_progress_query(question):
            directive = build_progress_directive()
        else:
            directive = build_question_directive(question)
        messages: List[ChatMessage] = [
            {"role": "system", "content": HOST_SYSTEM_PROMPT},
            {"role": "user", "content": build_context_message(puzzle.truth, puzzle.opening)},
        ]
        messages.extend({"role": turn.role.value, "content": turn.content} for turn in turns)
        messages.append({"role": "user", "content": directive})
        return messages

    def _complete(self, label: str, messages: List[ChatMessage]) -> str:
        try:
            answer = self._completion_fn(messages, self._temperature)
        except CompletionFailed as exc:
            logger.warning("Completion failed for %s: status=%s", label, exc.status)
            raise
        except Exception as exc:
            logger.warning("Completion failed for %s: %s", label, exc)
            raise CompletionFailed(str(exc)) from exc
        answer = (answer or "").strip()
        if not answer:
            raise CompletionFailed("Completion provider returned an empty answer")
        return answer

    def _commit(self, session: Session, pair: List[Turn]) -> Session:
        current = session
        for attempt in range(1, self._max_attempts + 1):
            try:
                return self._store.append(current, pair)
            except SessionConflict:
                logger.warning("Append conflict on session %s (attempt %d/%d)", session.id, attempt, self._max_attempts)
                if attempt >= self._max_attempts:
                    raise
                current = self._store.load(session.id)
        raise SessionConflict(f"Session {session.id} was modified concurrently")


_default_orchestrator: Optional[TurnOrchestrator] = None


def get_turn_orchestrator() -> TurnOrchestrator:
    global _default_orchestrator
    if _default_orchestrator is None:
        _default_orchestrator = TurnOrchestrator()
    return _default_orchestrator


def set_turn_orchestrator(orchestrator: Optional[TurnOrchestrator]) -> None:
    global _default_orchestrator
    _default_orchestrator = orchestrator
