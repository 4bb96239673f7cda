"""Hit/miss/join counters for the image loader."""

from __future__ import annotations

from collections import Counter
from dataclasses import dataclass


@dataclass(frozen=True)
class CacheStats:
    """Immutable snapshot of the loader's counters."""

    hits: int = 0
    misses: int = 0
    joins: int = 0
    fetches: int = 0

    @property
    def total(self) -> int:
        return self.hits + self.misses

    @property
    def hit_rate(self) -> float:
        """Hit rate as a float in [0.0, 1.0]; 0.0 when no requests."""
        if self.total == 0:
            return 0.0
        return self.hits / self.total


class CacheStatsCollector:
    """Count how each request was satisfied.

    A *hit* is served from memory, a *miss* is everything else.  Misses
    are further split into *joins* (coalesced into an in-flight fetch)
    and *fetches* (a new network request was issued).
    """

    def __init__(self) -> None:
        self._counts: Counter[str] = Counter()

    def record_hit(self) -> None:
        self._counts["hits"] += 1

    def record_join(self) -> None:
        self._counts["misses"] += 1
        self._counts["joins"] += 1

    def record_fetch(self) -> None:
        self._counts["misses"] += 1
        self._counts["fetches"] += 1

    def snapshot(self) -> CacheStats:
        return CacheStats(
            hits=self._counts["hits"],
            misses=self._counts["misses"],
            joins=self._counts["joins"],
            fetches=self._counts["fetches"],
        )

    def reset(self) -> None:
        self._counts.clear()
