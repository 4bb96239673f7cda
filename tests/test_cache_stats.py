"""Tests for CacheStatsCollector: hit/join/fetch tracking."""

from __future__ import annotations

import pytest

from iGallery.infrastructure.services.cache_stats import CacheStats, CacheStatsCollector


class TestCacheStats:
    def test_empty(self):
        s = CacheStats()
        assert s.total == 0
        assert s.hit_rate == 0.0

    def test_mixed(self):
        s = CacheStats(hits=7, misses=3)
        assert s.hit_rate == pytest.approx(0.7)
        assert s.total == 10


class TestCacheStatsCollector:
    def test_joins_and_fetches_count_as_misses(self):
        stats = CacheStatsCollector()
        stats.record_hit()
        stats.record_join()
        stats.record_fetch()
        stats.record_fetch()
        snap = stats.snapshot()
        assert snap.hits == 1
        assert snap.misses == 3
        assert snap.joins == 1
        assert snap.fetches == 2
        assert snap.hit_rate == pytest.approx(0.25)

    def test_snapshot_is_immutable_copy(self):
        stats = CacheStatsCollector()
        snap = stats.snapshot()
        stats.record_hit()
        assert snap.hits == 0
        assert stats.snapshot().hits == 1

    def test_reset(self):
        stats = CacheStatsCollector()
        stats.record_fetch()
        stats.reset()
        assert stats.snapshot() == CacheStats()
