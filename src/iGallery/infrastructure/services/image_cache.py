"""Bounded in-memory cache for decoded images."""

from __future__ import annotations

from typing import Iterator, Optional

from cachetools import LRUCache
from PySide6.QtGui import QImage

from ...config import IMAGE_CACHE_COST_LIMIT_BYTES, IMAGE_CACHE_COUNT_LIMIT


def image_cost(image: QImage) -> int:
    """Estimated memory cost of *image* in bytes (never less than one)."""

    return max(1, int(image.sizeInBytes()))


class MemoryImageCache:
    """LRU cache bounded by entry count and by total estimated byte cost.

    ``cachetools.LRUCache`` enforces the byte budget through ``getsizeof``;
    the count limit is enforced here by popping the least recently used
    entry.  An image larger than the whole byte budget is not stored.

    The cache is owned by :class:`~iGallery.gui.ui.tasks.image_loader.ImageLoader`
    and only touched from the loader's thread, so it carries no lock.
    """

    def __init__(
        self,
        count_limit: int = IMAGE_CACHE_COUNT_LIMIT,
        cost_limit: int = IMAGE_CACHE_COST_LIMIT_BYTES,
    ) -> None:
        if count_limit <= 0 or cost_limit <= 0:
            raise ValueError("cache limits must be positive")
        self._count_limit = count_limit
        self._cache: LRUCache = LRUCache(maxsize=cost_limit, getsizeof=image_cost)

    def get(self, key: object) -> Optional[QImage]:
        return self._cache.get(key)

    def put(self, key: object, image: QImage) -> bool:
        """Store *image*; return ``False`` when it exceeds the byte budget."""

        try:
            self._cache[key] = image
        except ValueError:
            # ``cachetools`` refuses values larger than ``maxsize``.
            self._cache.pop(key, None)
            return False
        while len(self._cache) > self._count_limit:
            self._cache.popitem()
        return True

    def invalidate(self, key: object) -> None:
        self._cache.pop(key, None)

    def trim_to(self, cost: int) -> int:
        """Evict least recently used entries until the total cost is <= *cost*.

        Returns the number of evicted entries.
        """

        evicted = 0
        while self._cache and self._cache.currsize > cost:
            self._cache.popitem()
            evicted += 1
        return evicted

    def set_limits(self, count_limit: int, cost_limit: int) -> None:
        """Apply new bounds, keeping the most recently used entries that fit."""

        if count_limit <= 0 or cost_limit <= 0:
            raise ValueError("cache limits must be positive")
        entries = []
        while self._cache:
            entries.append(self._cache.popitem())
        self._count_limit = count_limit
        self._cache = LRUCache(maxsize=cost_limit, getsizeof=image_cost)
        # ``popitem`` yields least recently used first, so the newest go in last.
        for key, image in entries:
            self.put(key, image)

    def clear(self) -> None:
        self._cache.clear()

    def __contains__(self, key: object) -> bool:
        return key in self._cache

    def __len__(self) -> int:
        return len(self._cache)

    def keys(self) -> Iterator[object]:
        return iter(list(self._cache.keys()))

    @property
    def count_limit(self) -> int:
        return self._count_limit

    @property
    def cost_limit(self) -> int:
        return int(self._cache.maxsize)

    @property
    def total_cost(self) -> int:
        return int(self._cache.currsize)
