"""Progress query detection and parsing of the host's ``Progress: N%`` line."""
from __future__ import annotations

import re
from typing import Optional

from soup_engines.config import runtime_config

_PROGRESS_PATTERN = re.compile(r"(?:progress|进度)\s*[:：]\s*(\d+)\s*%", re.IGNORECASE)


def is_progress_query(question: str, keyword: Optional[str] = None) -> bool:
    keyword = keyword if keyword is not None else runtime_config.get_progress_keyword()
    return bool(keyword) and (question or "").strip().casefold() == keyword.casefold()


def extract_progress(answer: str, was_progress_query: bool = True, previous: Optional[int] = None) -> Optional[int]:
    """Return the clamped percentage from ``answer``, or ``previous`` on a miss."""
    if not was_progress_query or not answer:
        return previous
    match = _PROGRESS_PATTERN.search(answer)
    if not match:
        return previous
    return max(0, min(100, int(match.group(1))))
