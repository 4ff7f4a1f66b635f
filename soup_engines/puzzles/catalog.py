from __future__ import annotations

import random
from typing import Dict, Iterable, List, Optional, Protocol

from soup_engines.puzzles.models import Puzzle

BUILTIN_PUZZLES: List[Puzzle] = [
    Puzzle(
        id="p1",
        title="The Albatross Soup",
        opening=(
            "A man orders albatross soup at a seaside restaurant. "
            "He takes one sip, walks outside and takes his own life. Why?"
        ),
        difficulty=3,
        tags=["classic", "sea"],
        truth=(
            "Years ago the man was shipwrecked with his wife. She died, and the other survivors "
            "fed him soup they called albatross so he would survive. Tasting real albatross soup "
            "he realised what he had actually eaten back then."
        ),
    ),
    Puzzle(
        id="p2",
        title="The Elevator",
        opening=(
            "A woman lives on the tenth floor. Every morning she takes the elevator down. "
            "In the evening she rides it to the seventh floor and walks the rest, unless it rained."
        ),
        difficulty=2,
        tags=["classic", "everyday"],
        truth=(
            "She is too short to reach the button for the tenth floor. On rainy days she carries "
            "an umbrella and uses it to press the button."
        ),
    ),
    Puzzle(
        id="p3",
        title="The Broken Match",
        opening="A man is found dead in the middle of a field, holding half a match.",
        difficulty=4,
        tags=["classic", "travel"],
        truth=(
            "He was one of several passengers in a hot-air balloon that was losing altitude. "
            "They drew matches to decide who would jump; he drew the short one."
        ),
    ),
    Puzzle(
        id="p4",
        title="Music Stopped",
        opening="The music stopped and the woman died.",
        difficulty=5,
        tags=["circus"],
        truth=(
            "She was a blindfolded tightrope walker who relied on the music to know when she "
            "reached the end of the rope. The music stopped early and she stepped off too soon."
        ),
    ),
]


class PuzzleCatalog(Protocol):
    def get(self, puzzle_id: str) -> Optional[Puzzle]: ...
    def list(self) -> List[Puzzle]: ...
    def random(self) -> Optional[Puzzle]: ...


class InMemoryPuzzleCatalog:
    """Static puzzle lookup keyed by id, preserving insertion order."""

    def __init__(self, puzzles: Optional[Iterable[Puzzle]] = None, rng: Optional[random.Random] = None) -> None:
        source = BUILTIN_PUZZLES if puzzles is None else puzzles
        self._items: Dict[str, Puzzle] = {p.id: p for p in source}
        self._rng = rng or random.Random()

    def get(self, puzzle_id: str) -> Optional[Puzzle]:
        return self._items.get(puzzle_id)

    def list(self) -> List[Puzzle]:
        return list(self._items.values())

    def random(self) -> Optional[Puzzle]:
        if not self._items:
            return None
        return self._rng.choice(list(self._items.values()))


_default_catalog: Optional[PuzzleCatalog] = None


def get_puzzle_catalog() -> PuzzleCatalog:
    global _default_catalog
    if _default_catalog is None:
        _default_catalog = InMemoryPuzzleCatalog()
    return _default_catalog


def set_puzzle_catalog(catalog: PuzzleCatalog) -> None:
    global _default_catalog
    _default_catalog = catalog
