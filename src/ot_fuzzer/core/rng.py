from __future__ import annotations

import math
import random
import re
import time
from functools import lru_cache
from pathlib import Path
from typing import List, Optional, Sequence


DEFAULT_WORDS_PATH = Path(__file__).resolve().parent / "jabberwocky.txt"


def default_seed(now: Optional[float] = None, window_hours: int = 6) -> int:
    """Seed for the current clock window.

    Runs inside the same window replay identically; the seed rotates once the
    window rolls over so rare seed-dependent bugs eventually surface.
    """
    if now is None:
        now = time.time()
    return math.floor(now / (window_hours * 60 * 60))


@lru_cache
def load_words(path: Optional[str] = None) -> tuple[str, ...]:
    text = Path(path or DEFAULT_WORDS_PATH).read_text(encoding="utf-8")
    words = tuple(w for w in re.split(r"\W+", text) if w)
    if not words:
        raise ValueError(f"word corpus {path or DEFAULT_WORDS_PATH} is empty")
    return words


class RngContext:
    """Seeded random source threaded through a fuzzing run.

    Backed by ``random.Random`` (Mersenne Twister), so two contexts built from
    the same seed yield the same stream.
    """

    def __init__(self, seed: int, words: Optional[Sequence[str]] = None) -> None:
        self.seed = seed
        self._random = random.Random(seed)
        self._words: Optional[List[str]] = list(words) if words is not None else None

    def random_real(self) -> float:
        return self._random.random()

    def random_int(self, n: int) -> int:
        # Random int 0 <= k < n
        return math.floor(self.random_real() * n)

    def random_word(self) -> str:
        if self._words is None:
            self._words = list(load_words())
        return self._words[self.random_int(len(self._words))]

    def __repr__(self) -> str:
        return f"RngContext(seed={self.seed})"


def with_seed(seed: int, words_path: Optional[str] = None) -> RngContext:
    """Fresh context for ``seed``; use it to replay a failing run."""
    words = load_words(words_path) if words_path else None
    return RngContext(seed, words)
