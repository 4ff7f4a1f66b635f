from __future__ import annotations

from typing import List, Optional

from pydantic import BaseModel, Field


class PuzzleSummary(BaseModel):
    """Client-facing view of a puzzle. Never carries the truth unless asked."""

    id: str
    title: str
    opening: str
    difficulty: int = Field(ge=1, le=5)
    tags: List[str] = Field(default_factory=list)
    truth: Optional[str] = None


class Puzzle(BaseModel):
    id: str
    title: str
    opening: str
    difficulty: int = Field(ge=1, le=5)
    tags: List[str] = Field(default_factory=list)
    truth: str

    def summary(self, include_truth: bool = False) -> PuzzleSummary:
        return PuzzleSummary(
            id=self.id,
            title=self.title,
            opening=self.opening,
            difficulty=self.difficulty,
            tags=list(self.tags),
            truth=self.truth if include_truth else None,
        )
