"""On-disk HTTP response cache shared by every loader in the process.

Downloads go through :class:`hishel.CacheTransport`, which stores each
response under ``cache_dir`` and serves it again without contacting the
server.  ``hishel`` bounds entries by age only, so the directory size is
kept in check by :meth:`HttpDiskCache.prune`.
"""

from __future__ import annotations

import logging
import os
import sys
from pathlib import Path
from typing import Optional

import hishel
import httpx

from ...config import HTTP_DISK_CACHE_DIRNAME, HTTP_DISK_CACHE_LIMIT_BYTES

LOGGER = logging.getLogger(__name__)


def default_http_cache_dir() -> Path:
    """Return the per-user cache directory for HTTP responses."""

    if os.name == "nt":
        base = os.environ.get("LOCALAPPDATA")
        root = Path(base) if base else Path.home() / "AppData" / "Local"
    elif sys.platform == "darwin":
        root = Path.home() / "Library" / "Caches"
    else:
        base = os.environ.get("XDG_CACHE_HOME")
        root = Path(base) if base else Path.home() / ".cache"
    return root / "iGallery" / HTTP_DISK_CACHE_DIRNAME


class HttpDiskCache:
    """Size-bounded directory of cached HTTP responses."""

    def __init__(self, cache_dir: Path, max_bytes: int = HTTP_DISK_CACHE_LIMIT_BYTES):
        if max_bytes <= 0:
            raise ValueError("disk cache limit must be positive")
        self._cache_dir = cache_dir
        self._max_bytes = max_bytes
        self._cache_dir.mkdir(parents=True, exist_ok=True)

    @property
    def cache_dir(self) -> Path:
        return self._cache_dir

    @property
    def max_bytes(self) -> int:
        return self._max_bytes

    def transport(self, inner: Optional[httpx.BaseTransport] = None) -> httpx.BaseTransport:
        """Wrap *inner* (a plain HTTP transport by default) with the cache."""

        return hishel.CacheTransport(
            transport=inner or httpx.HTTPTransport(),
            storage=hishel.FileStorage(base_path=self._cache_dir),
            # Image renditions never change under the same URL, so stored
            # responses are reused regardless of their cache headers.
            controller=hishel.Controller(force_cache=True),
        )

    def total_bytes(self) -> int:
        return sum(path.stat().st_size for path in self._entries())

    def prune(self) -> int:
        """Delete the oldest entries until the directory fits ``max_bytes``.

        Returns the number of removed files.
        """

        entries = sorted(self._entries(), key=lambda path: path.stat().st_mtime)
        total = sum(path.stat().st_size for path in entries)
        removed = 0
        for path in entries:
            if total <= self._max_bytes:
                break
            total -= path.stat().st_size
            path.unlink(missing_ok=True)
            removed += 1
        if removed:
            LOGGER.info("Pruned %d cached HTTP responses from %s", removed, self._cache_dir)
        return removed

    def clear(self) -> None:
        for path in self._entries():
            path.unlink(missing_ok=True)

    def _entries(self) -> list[Path]:
        return [path for path in self._cache_dir.rglob("*") if path.is_file()]


__all__ = ["HttpDiskCache", "default_http_cache_dir"]
