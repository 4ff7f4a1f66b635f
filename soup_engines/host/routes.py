from __future__ import annotations

import json

from fastapi import APIRouter, Depends, Request
from pydantic import BaseModel, StrictStr, ValidationError
from starlette.concurrency import run_in_threadpool

from soup_engines.common.errors import InvalidInput
from soup_engines.host.service import TurnOrchestrator, get_turn_orchestrator
from soup_engines.sessions.models import AskResult
from soup_engines.sessions.routes import require_session_id

router = APIRouter(prefix="/sessions", tags=["host"])


class AskPayload(BaseModel):
    question: StrictStr


@router.post("/{session_id}/ask", response_model=AskResult)
async def ask(
    session_id: str,
    request: Request,
    orchestrator: TurnOrchestrator = Depends(get_turn_orchestrator),
):
    session_id = require_session_id(session_id)
    try:
        data = json.loads(await request.body())
    except ValueError:
        raise InvalidInput("Request body is not valid JSON", code="INVALID_JSON")
    try:
        payload = AskPayload.model_validate(data)
    except ValidationError:
        raise InvalidInput("Field 'question' must be a string", code="INVALID_QUESTION")
    if not payload.question:
        raise InvalidInput("Field 'question' must be a string", code="INVALID_QUESTION")
    return await run_in_threadpool(orchestrator.ask, session_id, payload.question)
