"""Error taxonomy shared by the room engines.

Every server-side failure is a ``SessionEngineError`` carrying the wire code
and HTTP status it maps to. ``RateLimited`` and ``TransportError`` are only
raised on the client side (see ``soup_engines.sync``).
"""
from __future__ import annotations

from typing import Any, Dict, Optional


class SessionEngineError(Exception):
    code = "INTERNAL_ERROR"
    http_status = 500

    def __init__(self, message: Optional[str] = None, code: Optional[str] = None) -> None:
        if code:
            self.code = code
        self.message = message
        super().__init__(message or self.code)

    def to_payload(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {"error": self.code}
        if self.message:
            payload["message"] = self.message
        return payload


class NotFound(SessionEngineError):
    code = "NOT_FOUND"
    http_status = 404


class InvalidInput(SessionEngineError):
    code = "INVALID_QUESTION"
    http_status = 400


class DataIntegrityError(SessionEngineError):
    code = "SOUP_NOT_FOUND"
    http_status = 500


class StorageUnavailable(SessionEngineError):
    code = "STORAGE_UNAVAILABLE"
    http_status = 500


class SessionConflict(SessionEngineError):
    """A conditional append lost against a concurrent writer."""

    code = "SESSION_CONFLICT"
    http_status = 409


class CompletionFailed(SessionEngineError):
    code = "COMPLETION_ERROR"
    http_status = 500

    def __init__(self, message: Optional[str] = None, status: Optional[int] = None) -> None:
        self.status = status
        super().__init__(message)


class RateLimited(Exception):
    """Client-observed rate-limit signal. Drives the polling cooldown."""

    def __init__(self, message: str = "Rate limited. Please wait before retrying.", retry_after: Optional[float] = None) -> None:
        self.retry_after = retry_after
        super().__init__(message)
