from __future__ import annotations

import hashlib
import json
import logging
from typing import Any, Dict

from fastapi import APIRouter, Depends, Request, Response
from fastapi.responses import JSONResponse
from starlette.concurrency import run_in_threadpool

from soup_engines.common.error_envelope import error_response
from soup_engines.common.errors import DataIntegrityError
from soup_engines.puzzles.catalog import PuzzleCatalog, get_puzzle_catalog
from soup_engines.sessions.models import Session, SessionView
from soup_engines.sessions.service import SessionStore, get_session_store

router = APIRouter(prefix="/sessions", tags=["sessions"])
logger = logging.getLogger(__name__)


def require_session_id(session_id: str) -> str:
    session_id = session_id.strip()
    if not session_id:
        error_response("MISSING_ID", status_code=400)
    return session_id


def build_view(session: Session, catalog: PuzzleCatalog) -> SessionView:
    puzzle = catalog.get(session.puzzle_id)
    if not puzzle:
        raise DataIntegrityError(f"Puzzle {session.puzzle_id} missing for session {session.id}")
    soup = puzzle.summary().model_dump(exclude_none=True)
    return SessionView.build(session, soup)


def _compute_etag(payload: Dict[str, Any]) -> str:
    serialized = json.dumps(payload, sort_keys=True, separators=(",", ":"), ensure_ascii=False)
    digest = hashlib.sha256(serialized.encode("utf-8")).hexdigest()
    return f"\"{digest}\""


def _respond_with_etag(view: SessionView, request: Request) -> Response:
    content = view.model_dump(mode="json")
    etag = _compute_etag(content)
    if_none_match = request.headers.get("if-none-match")
    if if_none_match:
        for token in if_none_match.split(","):
            if token.strip() == etag:
                response = Response(status_code=304)
                response.headers["ETag"] = etag
                return response
    response = JSONResponse(content=content, status_code=200)
    response.headers["ETag"] = etag
    return response


async def _optional_json(request: Request) -> Dict[str, Any]:
    body = await request.body()
    if not body.strip():
        return {}
    try:
        data = json.loads(body)
    except ValueError:
        return {}
    return data if isinstance(data, dict) else {}


@router.post("", status_code=201)
async def create_session(
    request: Request,
    store: SessionStore = Depends(get_session_store),
    catalog: PuzzleCatalog = Depends(get_puzzle_catalog),
):
    body = await _optional_json(request)
    soup_id = body.get("soupId")
    puzzle = catalog.get(soup_id) if isinstance(soup_id, str) and soup_id else None
    if puzzle is None:
        puzzle = catalog.random()
    if puzzle is None:
        raise DataIntegrityError("No puzzle available", code="NO_SOUP_AVAILABLE")
    session = await run_in_threadpool(store.create, puzzle.id)
    view = build_view(session, catalog)
    return JSONResponse(content=view.model_dump(mode="json"), status_code=201)


@router.get("/{session_id}")
def get_session(
    session_id: str,
    request: Request,
    store: SessionStore = Depends(get_session_store),
    catalog: PuzzleCatalog = Depends(get_puzzle_catalog),
):
    session = store.load(require_session_id(session_id))
    return _respond_with_etag(build_view(session, catalog), request)
