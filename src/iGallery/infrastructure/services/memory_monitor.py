"""System memory pressure monitor backed by :mod:`psutil`."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, Optional

import psutil

from ...config import MEMORY_PRESSURE_PERCENT

LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True)
class MemorySnapshot:
    """Point-in-time reading of system memory."""

    percent: float = 0.0
    available_bytes: int = 0


def read_virtual_memory() -> MemorySnapshot:
    mem = psutil.virtual_memory()
    return MemorySnapshot(percent=float(mem.percent), available_bytes=int(mem.available))


class MemoryPressureMonitor:
    """Report whether the system is above a memory usage threshold.

    The check is edge-triggered for logging: crossing the threshold logs a
    single warning until usage drops back below it.
    """

    def __init__(
        self,
        threshold_percent: float = MEMORY_PRESSURE_PERCENT,
        sampler: Optional[Callable[[], MemorySnapshot]] = None,
    ) -> None:
        self._threshold = threshold_percent
        self._sampler = sampler or read_virtual_memory
        self._warned = False

    @property
    def threshold_percent(self) -> float:
        return self._threshold

    def entered_pressure(self) -> bool:
        """Return ``True`` only on the reading that first crosses the threshold."""

        already_under = self._warned
        return self.under_pressure() and not already_under

    def under_pressure(self) -> bool:
        snap = self._sampler()
        if snap.percent < self._threshold:
            self._warned = False
            return False
        if not self._warned:
            self._warned = True
            LOGGER.warning(
                "Memory pressure: %.1f%% used (threshold %.1f%%)",
                snap.percent,
                self._threshold,
            )
        return True
