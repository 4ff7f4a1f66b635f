"""Async HTTP client for the room API.

``RequestCache`` is owned by one ``SessionApiClient``: it collapses concurrent
identical reads into one request (the entry is dropped as soon as that request
settles) and remembers ETags so polling an unchanged room costs a 304.
"""
from __future__ import annotations

import asyncio
import logging
import re
from typing import Any, Awaitable, Callable, Dict, List, Optional

import httpx

from soup_engines.config import runtime_config
from soup_engines.puzzles.models import PuzzleSummary
from soup_engines.sessions.models import AskResult, SessionView

logger = logging.getLogger(__name__)

_RATE_LIMIT_WORD = re.compile(r"\brate\b", re.IGNORECASE)


def mentions_rate_limit(message: str) -> bool:
    return bool(_RATE_LIMIT_WORD.search(message))


class TransportError(Exception):
    """Failed API call. ``status`` is None for network-level failures."""

    def __init__(
        self,
        message: str,
        status: Optional[int] = None,
        code: Optional[str] = None,
        retry_after: Optional[float] = None,
    ) -> None:
        self.status = status
        self.code = code
        self.retry_after = retry_after
        super().__init__(message)

    @property
    def is_rate_limited(self) -> bool:
        return self.status == 429 or mentions_rate_limit(str(self))


class RequestCache:
    def __init__(self) -> None:
        self._in_flight: Dict[str, asyncio.Future] = {}
        self._etags: Dict[str, str] = {}
        self._bodies: Dict[str, Any] = {}

    @staticmethod
    def key(method: str, url: str) -> str:
        return f"{method.upper()}:{url}"

    def in_flight_count(self) -> int:
        return len(self._in_flight)

    async def dedupe(self, key: str, factory: Callable[[], Awaitable[Any]]) -> Any:
        existing = self._in_flight.get(key)
        if existing is not None:
            return await asyncio.shield(existing)
        task = asyncio.ensure_future(factory())
        self._in_flight[key] = task

        def _evict(done: asyncio.Future) -> None:
            if self._in_flight.get(key) is done:
                del self._in_flight[key]

        task.add_done_callback(_evict)
        return await asyncio.shield(task)

    def etag(self, key: str) -> Optional[str]:
        return self._etags.get(key)

    def cached_body(self, key: str) -> Any:
        return self._bodies.get(key)

    def remember(self, key: str, etag: Optional[str], body: Any) -> None:
        if etag:
            self._etags[key] = etag
            self._bodies[key] = body

    def forget(self, key: str) -> None:
        self._etags.pop(key, None)
        self._bodies.pop(key, None)


class SessionApiClient:
    def __init__(
        self,
        base_url: str = "http://localhost:8000",
        client: Optional[httpx.AsyncClient] = None,
        cache: Optional[RequestCache] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(
            base_url=base_url,
            timeout=timeout if timeout is not None else runtime_config.get_sync_http_timeout(),
            transport=transport,
        )
        self.cache = cache or RequestCache()

    async def __aenter__(self) -> "SessionApiClient":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def list_puzzles(self) -> List[PuzzleSummary]:
        data = await self._request("GET", "/turtle-soups")
        return [PuzzleSummary.model_validate(item) for item in data]

    async def get_puzzle(self, puzzle_id: str, include_truth: bool = False) -> PuzzleSummary:
        path = f"/turtle-soups/{puzzle_id}"
        if include_truth:
            path += "?include_truth=true"
        return PuzzleSummary.model_validate(await self._request("GET", path))

    async def create_session(self, puzzle_id: Optional[str] = None) -> SessionView:
        body = {"soupId": puzzle_id} if puzzle_id else {}
        return SessionView.model_validate(await self._request("POST", "/sessions", body))

    async def fetch_session(self, session_id: str) -> SessionView:
        return SessionView.model_validate(await self._request("GET", f"/sessions/{session_id}"))

    async def ask(self, session_id: str, question: str) -> AskResult:
        data = await self._request("POST", f"/sessions/{session_id}/ask", {"question": question})
        return AskResult.model_validate(data)

    async def _request(self, method: str, path: str, body: Optional[dict] = None) -> Any:
        key = RequestCache.key(method, path)
        if method.upper() == "POST":
            return await self._send(method, path, key, body)
        return await self.cache.dedupe(key, lambda: self._send(method, path, key, body))

    async def _send(self, method: str, path: str, key: str, body: Optional[dict]) -> Any:
        headers = {"Content-Type": "application/json"}
        etag = self.cache.etag(key)
        if etag and body is None:
            headers["If-None-Match"] = etag
        try:
            resp = await self._client.request(method, path, json=body, headers=headers)
        except httpx.HTTPError as exc:
            raise TransportError(f"Network error: {exc}") from exc

        if resp.status_code == 304:
            cached = self.cache.cached_body(key)
            if cached is None:
                raise TransportError("Not modified but nothing cached", status=304)
            return cached

        if resp.status_code == 404:
            self.cache.forget(key)
        if resp.status_code >= 400:
            raise _error_from_response(resp)

        data = resp.json()
        if body is None:
            self.cache.remember(key, resp.headers.get("etag"), data)
        return data


def _error_from_response(resp: httpx.Response) -> TransportError:
    code = None
    message = f"HTTP {resp.status_code}"
    try:
        data = resp.json()
    except ValueError:
        data = None
    if isinstance(data, dict):
        code = data.get("error") if isinstance(data.get("error"), str) else None
        if data.get("message"):
            message = str(data["message"])
    retry_after = None
    raw_retry = resp.headers.get("retry-after")
    if raw_retry:
        try:
            retry_after = float(raw_retry)
        except ValueError:
            retry_after = None
    logger.debug("API error %s %s: %s", resp.status_code, code, message)
    return TransportError(message, status=resp.status_code, code=code, retry_after=retry_after)
