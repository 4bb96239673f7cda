"""Tests for MemoryPressureMonitor."""

from __future__ import annotations

import logging

from iGallery.infrastructure.services.memory_monitor import (
    MemoryPressureMonitor,
    MemorySnapshot,
    read_virtual_memory,
)


def _readings(*percents: float):
    readings = iter(percents)
    return lambda: MemorySnapshot(percent=next(readings))


def test_read_virtual_memory_returns_snapshot():
    snap = read_virtual_memory()
    assert 0.0 <= snap.percent <= 100.0
    assert snap.available_bytes >= 0


def test_below_threshold():
    mon = MemoryPressureMonitor(threshold_percent=80.0, sampler=_readings(50.0))
    assert mon.under_pressure() is False


def test_above_threshold_warns_once(caplog):
    mon = MemoryPressureMonitor(threshold_percent=80.0, sampler=_readings(90.0, 95.0, 10.0, 85.0))
    with caplog.at_level(logging.WARNING):
        assert mon.under_pressure() is True
        assert mon.under_pressure() is True
        assert mon.under_pressure() is False
        assert mon.under_pressure() is True
    warnings = [r for r in caplog.records if "Memory pressure" in r.getMessage()]
    assert len(warnings) == 2


def test_entered_pressure_fires_once_per_crossing():
    mon = MemoryPressureMonitor(threshold_percent=80.0, sampler=_readings(50.0, 90.0, 95.0, 60.0, 85.0, 85.0))
    assert [mon.entered_pressure() for _ in range(6)] == [False, True, False, False, True, False]
