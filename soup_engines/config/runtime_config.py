"""Runtime configuration helpers for the room engines."""
from __future__ import annotations

import os
from typing import Optional

DEFAULT_LLM_BASE_URL = "https://dashscope.aliyuncs.com/compatible-mode/v1"
DEFAULT_LLM_MODEL = "qwen-plus"


def _get_env(name: str, default: Optional[str] = None) -> Optional[str]:
    return os.getenv(name, default)


def _get_float(name: str, default: float) -> float:
    raw = _get_env(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return float(raw)
    except ValueError:
        return default


def _get_int(name: str, default: int) -> int:
    raw = _get_env(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError:
        return default


def get_env() -> Optional[str]:
    return _get_env("ENV") or _get_env("APP_ENV")


def get_log_level() -> str:
    return (_get_env("LOG_LEVEL") or "INFO").upper()


def get_sessions_backend() -> str:
    return (_get_env("SESSIONS_BACKEND") or "memory").lower()


def get_sessions_fs_dir() -> str:
    return _get_env("SESSIONS_FS_DIR") or os.path.join(os.getcwd(), "var", "sessions")


def get_session_key_prefix() -> str:
    return _get_env("SESSION_KEY_PREFIX") or "session:"


def get_append_max_attempts() -> int:
    return max(1, _get_int("SESSION_APPEND_MAX_ATTEMPTS", 3))


def get_firestore_project() -> Optional[str]:
    return _get_env("GCP_PROJECT_ID") or _get_env("GCP_PROJECT")


def get_llm_base_url() -> str:
    return (_get_env("LLM_BASE_URL") or DEFAULT_LLM_BASE_URL).rstrip("/")


def get_llm_api_key() -> Optional[str]:
    return _get_env("LLM_API_KEY")


def get_llm_model() -> str:
    return _get_env("LLM_MODEL") or DEFAULT_LLM_MODEL


def get_llm_timeout() -> float:
    return _get_float("LLM_TIMEOUT", 60.0)


def get_host_temperature() -> float:
    return _get_float("HOST_TEMPERATURE", 0.6)


def get_progress_keyword() -> str:
    return (_get_env("PROGRESS_KEYWORD") or "progress").strip()


def get_sync_http_timeout() -> float:
    return _get_float("SYNC_HTTP_TIMEOUT", 10.0)


def config_snapshot() -> dict:
    """Return a snapshot of env-driven config. Secrets are redacted."""
    return {
        "env": get_env(),
        "log_level": get_log_level(),
        "sessions_backend": get_sessions_backend(),
        "sessions_fs_dir": get_sessions_fs_dir(),
        "session_key_prefix": get_session_key_prefix(),
        "append_max_attempts": get_append_max_attempts(),
        "gcp_project": get_firestore_project(),
        "llm_base_url": get_llm_base_url(),
        "llm_api_key": "***" if get_llm_api_key() else None,
        "llm_model": get_llm_model(),
        "llm_timeout": get_llm_timeout(),
        "host_temperature": get_host_temperature(),
        "progress_keyword": get_progress_keyword(),
        "sync_http_timeout": get_sync_http_timeout(),
    }
