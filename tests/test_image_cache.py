"""Tests for MemoryImageCache (count- and cost-bounded LRU)."""

from __future__ import annotations

import pytest

pytest.importorskip("PySide6", reason="PySide6 is required for image cache tests", exc_type=ImportError)

from PySide6.QtGui import QImage

from iGallery.infrastructure.services.image_cache import MemoryImageCache, image_cost


def _image(width: int = 10, height: int = 10) -> QImage:
    image = QImage(width, height, QImage.Format.Format_ARGB32)
    image.fill(0)
    return image


class TestMemoryImageCache:
    def test_put_and_get(self, qapp):
        cache = MemoryImageCache(count_limit=10, cost_limit=10_000_000)
        img = _image()
        assert cache.put("k1", img)
        assert cache.get("k1") is img
        assert "k1" in cache

    def test_get_miss(self, qapp):
        cache = MemoryImageCache()
        assert cache.get("missing") is None

    def test_count_limit_evicts_least_recently_used(self, qapp):
        cache = MemoryImageCache(count_limit=2, cost_limit=10_000_000)
        cache.put("k1", _image())
        cache.put("k2", _image())
        cache.get("k1")
        cache.put("k3", _image())
        assert cache.get("k2") is None
        assert cache.get("k1") is not None
        assert cache.get("k3") is not None
        assert len(cache) == 2

    def test_cost_limit_evicts(self, qapp):
        one = image_cost(_image(10, 10))  # 400 bytes
        cache = MemoryImageCache(count_limit=100, cost_limit=one * 2)
        cache.put("a", _image())
        cache.put("b", _image())
        cache.put("c", _image())
        assert len(cache) == 2
        assert cache.get("a") is None
        assert cache.total_cost <= cache.cost_limit

    def test_oversized_image_not_stored(self, qapp):
        cache = MemoryImageCache(count_limit=10, cost_limit=100)
        assert cache.put("big", _image(100, 100)) is False
        assert cache.get("big") is None
        assert len(cache) == 0

    def test_oversized_replacement_drops_old_value(self, qapp):
        cache = MemoryImageCache(count_limit=10, cost_limit=1000)
        cache.put("k", _image(5, 5))
        assert cache.put("k", _image(100, 100)) is False
        assert "k" not in cache

    def test_trim_to(self, qapp):
        cache = MemoryImageCache(count_limit=10, cost_limit=10_000_000)
        for key in ("a", "b", "c", "d"):
            cache.put(key, _image())
        evicted = cache.trim_to(cache.total_cost // 2)
        assert evicted == 2
        assert list(cache.keys()) == ["c", "d"]

    def test_tuple_keys(self, qapp):
        cache = MemoryImageCache()
        cache.put(("https://x/a.png", 240), _image())
        assert cache.get(("https://x/a.png", 240)) is not None
        assert cache.get(("https://x/a.png", None)) is None

    def test_invalidate_and_clear(self, qapp):
        cache = MemoryImageCache()
        cache.put("a", _image())
        cache.put("b", _image())
        cache.invalidate("a")
        cache.invalidate("nope")
        assert cache.get("a") is None
        cache.clear()
        assert len(cache) == 0
        assert cache.total_cost == 0

    def test_rejects_non_positive_limits(self):
        with pytest.raises(ValueError):
            MemoryImageCache(count_limit=0)
        with pytest.raises(ValueError):
            MemoryImageCache(cost_limit=0)

    def test_set_limits_keeps_most_recent(self, qapp):
        cache = MemoryImageCache(count_limit=10, cost_limit=10_000_000)
        for key in ("a", "b", "c", "d"):
            cache.put(key, _image())
        cache.get("a")
        cache.set_limits(count_limit=2, cost_limit=10_000_000)
        assert cache.count_limit == 2
        assert sorted(cache.keys()) == ["a", "d"]

    def test_set_limits_applies_cost_bound(self, qapp):
        one = image_cost(_image())
        cache = MemoryImageCache(count_limit=10, cost_limit=one * 4)
        for key in ("a", "b", "c", "d"):
            cache.put(key, _image())
        cache.set_limits(count_limit=10, cost_limit=one)
        assert list(cache.keys()) == ["d"]
        assert cache.cost_limit == one
        with pytest.raises(ValueError):
            cache.set_limits(count_limit=0, cost_limit=one)
