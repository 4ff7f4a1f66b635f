"""Chat-completion client for OpenAI-compatible endpoints (DashScope compatible mode by default).

The orchestrator only sees ``CompletionFn``: messages in, answer string out.
Tests inject a plain callable instead of this client.
"""
from __future__ import annotations

import logging
from typing import Callable, Dict, List, Optional

import httpx

from soup_engines.common.errors import CompletionFailed
from soup_engines.config import runtime_config

logger = logging.getLogger(__name__)

ChatMessage = Dict[str, str]
CompletionFn = Callable[[List[ChatMessage], float], str]


class ChatCompletionClient:
    def __init__(
        self,
        base_url: Optional[str] = None,
        api_key: Optional[str] = None,
        model: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.BaseTransport] = None,
    ) -> None:
        self._base_url = (base_url or runtime_config.get_llm_base_url()).rstrip("/")
        self._api_key = api_key if api_key is not None else runtime_config.get_llm_api_key()
        self._model = model or runtime_config.get_llm_model()
        self._timeout = timeout if timeout is not None else runtime_config.get_llm_timeout()
        self._transport = transport

    def __call__(self, messages: List[ChatMessage], temperature: float) -> str:
        return self.complete(messages, temperature)

    def complete(self, messages: List[ChatMessage], temperature: float) -> str:
        headers = {"Content-Type": "application/json"}
        if self._api_key:
            headers["Authorization"] = f"Bearer {self._api_key}"
        body = {"model": self._model, "messages": messages, "temperature": temperature}
        url = f"{self._base_url}/chat/completions"
        try:
            with httpx.Client(timeout=self._timeout, transport=self._transport) as client:
                resp = client.post(url, json=body, headers=headers)
        except httpx.HTTPError as exc:
            logger.error("Completion transport error: %s", exc)
            raise CompletionFailed(f"Completion request failed: {exc}") from exc

        if resp.status_code >= 400:
            logger.error("Completion provider error: status=%s body=%s", resp.status_code, resp.text[:500])
            raise CompletionFailed(
                f"Completion request failed: {resp.status_code} {_provider_message(resp)}".strip(),
                status=resp.status_code,
            )

        try:
            data = resp.json()
        except ValueError as exc:
            raise CompletionFailed("Invalid response from completion provider", status=resp.status_code) from exc
        content = _extract_content(data)
        if not content:
            logger.error("Unexpected completion response shape: %s", str(data)[:500])
            raise CompletionFailed("Invalid response from completion provider", status=resp.status_code)
        return content


def _provider_message(resp: httpx.Response) -> str:
    try:
        data = resp.json()
    except ValueError:
        return ""
    if isinstance(data, dict):
        err = data.get("error")
        if isinstance(err, dict):
            return str(err.get("message") or "")
        if isinstance(data.get("message"), str):
            return data["message"]
    return ""


def _extract_content(data: object) -> Optional[str]:
    if not isinstance(data, dict):
        return None
    choices = data.get("choices") or []
    if not choices or not isinstance(choices[0], dict):
        return None
    message = choices[0].get("message") or {}
    content = message.get("content")
    if isinstance(content, str) and content:
        return content
    nested = message.get("messages") or []
    if nested and isinstance(nested[0], dict) and isinstance(nested[0].get("content"), str):
        return nested[0]["content"]
    return None
