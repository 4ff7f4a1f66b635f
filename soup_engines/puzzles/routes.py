from __future__ import annotations

import json
from typing import List

from fastapi import APIRouter, Depends, Query, Request
from pydantic import BaseModel, Field, StrictStr, ValidationError
from starlette.concurrency import run_in_threadpool

from soup_engines.common.errors import InvalidInput, NotFound
from soup_engines.host.service import TurnOrchestrator, get_turn_orchestrator
from soup_engines.puzzles.catalog import PuzzleCatalog, get_puzzle_catalog
from soup_engines.puzzles.models import PuzzleSummary
from soup_engines.sessions.models import Turn

router = APIRouter(prefix="/turtle-soups", tags=["puzzles"])


class PuzzleAskPayload(BaseModel):
    question: StrictStr
    history: List[Turn] = Field(default_factory=list)


class PuzzleAnswer(BaseModel):
    answer: str


@router.get("", response_model=List[PuzzleSummary], response_model_exclude_none=True)
def list_puzzles(catalog: PuzzleCatalog = Depends(get_puzzle_catalog)):
    return [p.summary() for p in catalog.list()]


@router.get("/{puzzle_id}", response_model=PuzzleSummary, response_model_exclude_none=True)
def get_puzzle(
    puzzle_id: str,
    include_truth: bool = Query(False),
    catalog: PuzzleCatalog = Depends(get_puzzle_catalog),
):
    puzzle = catalog.get(puzzle_id)
    if not puzzle:
        raise NotFound(f"Unknown puzzle {puzzle_id}")
    return puzzle.summary(include_truth=include_truth)


@router.post("/{puzzle_id}/ask", response_model=PuzzleAnswer)
async def ask_puzzle(
    puzzle_id: str,
    request: Request,
    catalog: PuzzleCatalog = Depends(get_puzzle_catalog),
    orchestrator: TurnOrchestrator = Depends(get_turn_orchestrator),
):
    """Single-player ask: the caller carries the transcript, nothing is stored."""
    if not catalog.get(puzzle_id):
        raise NotFound(f"Unknown puzzle {puzzle_id}")
    try:
        data = json.loads(await request.body())
    except ValueError:
        raise InvalidInput("Request body is not valid JSON", code="INVALID_JSON")
    if not isinstance(data, dict) or not isinstance(data.get("question"), str) or not data["question"]:
        raise InvalidInput("Field 'question' must be a string", code="INVALID_QUESTION")
    try:
        payload = PuzzleAskPayload.model_validate(data)
    except ValidationError:
        raise InvalidInput("Field 'history' must be a list of turns", code="INVALID_REQUEST")
    answer = await run_in_threadpool(orchestrator.ask_puzzle, puzzle_id, payload.question, payload.history)
    return PuzzleAnswer(answer=answer)
