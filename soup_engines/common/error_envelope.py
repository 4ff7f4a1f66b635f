"""Error envelope for all room responses.

Structure:
{
  "error": "NOT_FOUND",
  "message": "optional human readable text"
}
"""
from __future__ import annotations

import logging
from typing import Optional

from fastapi import FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import BaseModel
from starlette.exceptions import HTTPException as StarletteHTTPException

from soup_engines.common.errors import SessionEngineError

logger = logging.getLogger(__name__)

_STATUS_CODES = {
    400: "INVALID_REQUEST",
    404: "NOT_FOUND",
    405: "METHOD_NOT_ALLOWED",
    409: "SESSION_CONFLICT",
}


class ErrorEnvelope(BaseModel):
    error: str
    message: Optional[str] = None


def build_error_envelope(code: str, message: Optional[str] = None) -> ErrorEnvelope:
    """Construct an ErrorEnvelope (without raising)."""
    return ErrorEnvelope(error=code, message=message or None)


def error_response(code: str, message: Optional[str] = None, status_code: int = 400) -> HTTPException:
    """Raise an HTTPException whose detail is the canonical envelope."""
    envelope = build_error_envelope(code, message)
    raise HTTPException(status_code=status_code, detail=envelope.model_dump(exclude_none=True))


def _json(envelope: ErrorEnvelope, status_code: int, headers: Optional[dict] = None) -> JSONResponse:
    return JSONResponse(content=envelope.model_dump(exclude_none=True), status_code=status_code, headers=headers)


async def _engine_error_handler(request: Request, exc: SessionEngineError):
    if exc.http_status >= 500:
        logger.warning("%s %s failed: %s (%s)", request.method, request.url.path, exc.code, exc.message)
    return JSONResponse(content=exc.to_payload(), status_code=exc.http_status)


async def _http_exception_handler(request: Request, exc: StarletteHTTPException):
    detail = exc.detail
    if isinstance(detail, dict) and "error" in detail:
        return JSONResponse(content=detail, status_code=exc.status_code, headers=getattr(exc, "headers", None))
    code = _STATUS_CODES.get(exc.status_code, "HTTP_ERROR")
    message = None if detail in (None, "Not Found", "Method Not Allowed") else str(detail)
    return _json(build_error_envelope(code, message), exc.status_code, getattr(exc, "headers", None))


async def _validation_exception_handler(request: Request, exc: RequestValidationError):
    errors = exc.errors()
    if any(err.get("type") == "json_invalid" for err in errors):
        return _json(build_error_envelope("INVALID_JSON"), 400)
    return _json(build_error_envelope("INVALID_REQUEST", "Validation failed"), 400)


async def _generic_exception_handler(request: Request, exc: Exception):
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return _json(build_error_envelope("INTERNAL_ERROR", "Internal server error"), 500)


def register_error_handlers(target_app: FastAPI) -> None:
    target_app.add_exception_handler(SessionEngineError, _engine_error_handler)
    target_app.add_exception_handler(StarletteHTTPException, _http_exception_handler)
    target_app.add_exception_handler(RequestValidationError, _validation_exception_handler)
    target_app.add_exception_handler(Exception, _generic_exception_handler)
