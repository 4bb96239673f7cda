"""Deduplicating, caching loader for remote images."""

from __future__ import annotations

import itertools
import logging
import threading
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Dict, List, Optional, Tuple

import httpx
from PySide6.QtCore import QCoreApplication, QObject, QThreadPool, Qt, Signal
from PySide6.QtGui import QImage

from ....config import (
    ALLOWED_SCHEMES,
    DEFAULT_THUMBNAIL_WIDTH,
    FETCH_MAX_WORKERS,
    HTTP_TIMEOUT_SEC,
    HTTP_USER_AGENT,
    LOG_URL_PREVIEW_CHARS,
)
from ....core.url_strategy import resolve_full_size, resolve_thumbnail
from ....errors import ImageFetchError, MalformedReferenceError, UndecodablePayloadError
from ....errors.handler import ErrorHandler, ErrorSeverity
from ....events import EventBus, ImageCachedEvent
from ....infrastructure.services.cache_stats import CacheStats, CacheStatsCollector
from ....infrastructure.services.image_cache import MemoryImageCache, image_cost
from ....infrastructure.services.memory_monitor import MemoryPressureMonitor
from ....infrastructure.services.thumbnail_generator import ThumbnailGenerator
from .image_fetch_job import ImageFetchJob

LOGGER = logging.getLogger(__name__)

# ``(resource_key, client_resize_width)``; the width is ``None`` for
# references the server already sizes.
CacheKey = Tuple[str, Optional[int]]


def _preview(url: str) -> str:
    if len(url) <= LOG_URL_PREVIEW_CHARS:
        return url
    return url[:LOG_URL_PREVIEW_CHARS] + "..."


@dataclass(frozen=True)
class FetchResult:
    """Terminal outcome delivered to a :class:`FetchHandle` callback."""

    key: str
    image: Optional[QImage] = None
    error: Optional[ImageFetchError] = None
    from_cache: bool = False

    @property
    def ok(self) -> bool:
        return self.error is None and self.image is not None


FetchCallback = Callable[[FetchResult], None]


class HandleState(Enum):
    PENDING = "pending"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"


class FetchHandle:
    """Caller's view of one request.

    A handle receives exactly one :class:`FetchResult`, or nothing at all
    once it has been cancelled.
    """

    def __init__(self, loader: "ImageLoader", cache_key: CacheKey, callback: FetchCallback) -> None:
        self._loader = loader
        self._cache_key = cache_key
        self._callback = callback
        self._state = HandleState.PENDING
        self._fetch: Optional[_InFlightFetch] = None

    @property
    def key(self) -> str:
        return self._cache_key[0]

    @property
    def cache_key(self) -> CacheKey:
        return self._cache_key

    @property
    def state(self) -> HandleState:
        return self._state

    @property
    def pending(self) -> bool:
        return self._state is HandleState.PENDING

    @property
    def cancelled(self) -> bool:
        return self._state is HandleState.CANCELLED

    def cancel(self) -> None:
        self._loader.cancel(self)

    def __repr__(self) -> str:
        return f"FetchHandle({_preview(self.key)!r}, {self._state.value})"


@dataclass
class _InFlightFetch:
    fetch_id: int
    cache_key: CacheKey
    cancel_event: threading.Event = field(default_factory=threading.Event)
    joiners: List[FetchHandle] = field(default_factory=list)

    @property
    def draining(self) -> bool:
        """Cancelled, but the worker has not reported back yet."""

        return self.cancel_event.is_set()


class ImageLoader(QObject):
    """Fetch remote images with one network request per key and an LRU cache.

    Every public method must be called from the thread the loader lives in
    (the GUI thread in the application).  Cache and registry mutation and
    all callback invocations happen on that thread; downloads and decoding
    run on a private :class:`QThreadPool` and report back through the
    queued ``_delivered`` signal.
    """

    ready = Signal(str, QImage)
    failed = Signal(str, object)
    _delivered = Signal(object, int, object, object, bool)
    _immediate = Signal(object, object)

    def __init__(
        self,
        parent: Optional[QObject] = None,
        *,
        cache: Optional[MemoryImageCache] = None,
        client: Optional[httpx.Client] = None,
        transport: Optional[httpx.BaseTransport] = None,
        generator: Optional[ThumbnailGenerator] = None,
        pool: Optional[QThreadPool] = None,
        stats: Optional[CacheStatsCollector] = None,
        memory_monitor: Optional[MemoryPressureMonitor] = None,
        error_handler: Optional[ErrorHandler] = None,
        event_bus: Optional[EventBus] = None,
        max_workers: int = FETCH_MAX_WORKERS,
        timeout: float = HTTP_TIMEOUT_SEC,
        user_agent: str = HTTP_USER_AGENT,
    ) -> None:
        if parent is None:
            parent = QCoreApplication.instance()
        super().__init__(parent)
        self._cache = cache or MemoryImageCache()
        self._owns_client = client is None
        self._client = client or httpx.Client(
            transport=transport,
            timeout=timeout,
            follow_redirects=True,
            headers={"User-Agent": user_agent},
        )
        self._generator = generator or ThumbnailGenerator()
        if pool is None:
            pool = QThreadPool(self)
            pool.setMaxThreadCount(max(1, max_workers))
        self._pool = pool
        self._stats = stats or CacheStatsCollector()
        self._memory_monitor = memory_monitor
        self._error_handler = error_handler
        self._event_bus = event_bus

        self._in_flight: Dict[CacheKey, _InFlightFetch] = {}
        self._fetch_ids = itertools.count(1)

        # Queued even when emitted from this thread so completion is never
        # delivered re-entrantly from inside ``fetch``.
        self._delivered.connect(self._handle_result, Qt.ConnectionType.QueuedConnection)
        self._immediate.connect(self._deliver_immediate, Qt.ConnectionType.QueuedConnection)

    # ------------------------------------------------------------------
    # Consumer API
    # ------------------------------------------------------------------
    def request_thumbnail(
        self,
        reference: str,
        callback: FetchCallback,
        target_width: int = DEFAULT_THUMBNAIL_WIDTH,
    ) -> FetchHandle:
        """Fetch a thumbnail at least *target_width* pixels wide when possible."""

        plan = resolve_thumbnail(reference, target_width)
        resize = target_width if plan.needs_client_resize else None
        return self.fetch(plan.resource_key, callback, client_resize_width=resize)

    def request_full_size(self, reference: str, callback: FetchCallback) -> FetchHandle:
        """Fetch the largest rendition *reference* offers."""

        return self.fetch(resolve_full_size(reference), callback)

    def fetch(
        self,
        key: str,
        callback: FetchCallback,
        *,
        client_resize_width: Optional[int] = None,
    ) -> FetchHandle:
        """Return a handle that will receive the image stored under *key*.

        Served from the cache, joined to an in-flight fetch, or started as a
        new download, in that order.  Never blocks and never invokes
        *callback* before returning.
        """

        cache_key: CacheKey = (key, client_resize_width)
        handle = FetchHandle(self, cache_key, callback)

        cached = self._cache.get(cache_key)
        if cached is not None:
            self._stats.record_hit()
            LOGGER.debug("Using cached image for %s", _preview(key))
            self._immediate.emit(handle, FetchResult(key, image=cached, from_cache=True))
            return handle

        existing = self._in_flight.get(cache_key)
        if existing is not None:
            self._stats.record_join()
            if existing.draining:
                # The worker may still finish; if it already gave up it
                # reports back aborted and the download restarts then.
                existing.cancel_event.clear()
                LOGGER.debug("Resuming cancelled download of %s", _preview(key))
            else:
                LOGGER.debug("Joining in-flight download of %s", _preview(key))
            existing.joiners.append(handle)
            handle._fetch = existing
            return handle

        error = self._validate(key)
        if error is not None:
            self._report_failure(error)
            self._immediate.emit(handle, FetchResult(key, error=error))
            return handle

        self._stats.record_fetch()
        fetch = _InFlightFetch(fetch_id=next(self._fetch_ids), cache_key=cache_key)
        fetch.joiners.append(handle)
        handle._fetch = fetch
        # Registered before the job starts so a second caller always joins.
        self._in_flight[cache_key] = fetch
        LOGGER.info("Starting download: %s", _preview(key))
        self._start(fetch)
        return handle

    def cancel(self, handle: FetchHandle) -> None:
        """Detach *handle*; the download stops only when no joiner is left."""

        if not handle.pending:
            return
        handle._state = HandleState.CANCELLED
        fetch = handle._fetch
        handle._fetch = None
        if fetch is None:
            return
        if handle in fetch.joiners:
            fetch.joiners.remove(handle)
        if not fetch.joiners:
            self._cancel_fetch(fetch)

    def cancel_key(self, key: str) -> None:
        """Cancel every in-flight fetch of *key* together with its joiners."""

        for fetch in [f for k, f in self._in_flight.items() if k[0] == key]:
            self._cancel_fetch(fetch, detach_joiners=True)

    def cancel_all(self) -> None:
        """Cancel every in-flight fetch."""

        for fetch in list(self._in_flight.values()):
            self._cancel_fetch(fetch, detach_joiners=True)

    def clear_cache(self) -> None:
        """Empty the image cache; in-flight fetches are left running."""

        self._cache.clear()
        LOGGER.info("Image cache cleared")

    def clear_all(self) -> None:
        self.cancel_all()
        self.clear_cache()

    def shutdown(self) -> None:
        """Cancel all work, wait for the workers and close the HTTP client."""

        self.cancel_all()
        self._pool.waitForDone()
        # Every worker has finished; their queued reports are moot now.
        self._in_flight.clear()
        if self._owns_client:
            self._client.close()

    # ------------------------------------------------------------------
    # Introspection
    # ------------------------------------------------------------------
    @property
    def cache(self) -> MemoryImageCache:
        return self._cache

    @property
    def stats(self) -> CacheStats:
        return self._stats.snapshot()

    def is_in_flight(self, key: str, client_resize_width: Optional[int] = None) -> bool:
        fetch = self._in_flight.get((key, client_resize_width))
        return fetch is not None and not fetch.draining

    def is_draining(self, key: str, client_resize_width: Optional[int] = None) -> bool:
        fetch = self._in_flight.get((key, client_resize_width))
        return fetch is not None and fetch.draining

    def in_flight_count(self) -> int:
        return sum(1 for fetch in self._in_flight.values() if not fetch.draining)

    def cached_image(self, key: str, client_resize_width: Optional[int] = None) -> Optional[QImage]:
        return self._cache.get((key, client_resize_width))

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------
    @staticmethod
    def _validate(key: str) -> Optional[MalformedReferenceError]:
        try:
            url = httpx.URL(key)
        except (httpx.InvalidURL, TypeError, ValueError) as exc:
            return MalformedReferenceError(f"invalid URL {key!r}: {exc}", key=key)
        if url.scheme not in ALLOWED_SCHEMES or not url.host:
            return MalformedReferenceError(f"not an http(s) URL: {key!r}", key=key)
        return None

    def _start(self, fetch: _InFlightFetch) -> None:
        job = ImageFetchJob(
            self,
            fetch.cache_key,
            fetch.fetch_id,
            self._client,
            self._generator,
            fetch.cancel_event,
        )
        self._pool.start(job)

    def _cancel_fetch(self, fetch: _InFlightFetch, *, detach_joiners: bool = False) -> None:
        # The entry stays registered until the worker reports back so a new
        # request for the key resumes it instead of opening a second download.
        fetch.cancel_event.set()
        if detach_joiners:
            for handle in fetch.joiners:
                handle._state = HandleState.CANCELLED
                handle._fetch = None
            fetch.joiners.clear()
        LOGGER.debug("Cancelled download of %s", _preview(fetch.cache_key[0]))

    def _handle_result(
        self,
        cache_key: CacheKey,
        fetch_id: int,
        image: Optional[QImage],
        error: Optional[ImageFetchError],
        aborted: bool,
    ) -> None:
        fetch = self._in_flight.get(cache_key)
        if fetch is None or fetch.fetch_id != fetch_id:
            LOGGER.debug("Discarding result of retired fetch %d", fetch_id)
            return
        if not fetch.joiners:
            del self._in_flight[cache_key]
            LOGGER.debug("Discarding result of cancelled fetch %d", fetch_id)
            return
        if aborted:
            # Cancelled and abandoned by the worker, then requested again.
            fetch.fetch_id = next(self._fetch_ids)
            fetch.cancel_event = threading.Event()
            LOGGER.info("Restarting download: %s", _preview(cache_key[0]))
            self._start(fetch)
            return
        # Settle the registry before anyone hears about the outcome.
        del self._in_flight[cache_key]
        joiners = list(fetch.joiners)
        fetch.joiners.clear()
        key = cache_key[0]

        if error is None and (image is None or image.isNull()):
            error = UndecodablePayloadError("worker returned no image", key=key)

        if error is None:
            self._store(cache_key, image)
            LOGGER.info("Image downloaded and cached: %s", _preview(key))
            result = FetchResult(key, image=image)
            self.ready.emit(key, image)
        else:
            self._report_failure(error, joiners=len(joiners))
            result = FetchResult(key, error=error)
            self.failed.emit(key, error)

        for handle in joiners:
            handle._fetch = None
            self._invoke(handle, result)

    def _deliver_immediate(self, handle: FetchHandle, result: FetchResult) -> None:
        self._invoke(handle, result)

    def _invoke(self, handle: FetchHandle, result: FetchResult) -> None:
        if not handle.pending:
            return
        handle._state = HandleState.DELIVERED
        try:
            handle._callback(result)
        except Exception:
            LOGGER.exception("Image callback failed for %s", _preview(result.key))

    def _store(self, cache_key: CacheKey, image: QImage) -> None:
        if not self._cache.put(cache_key, image):
            LOGGER.warning(
                "Image %s (%d bytes) exceeds the cache budget; not cached",
                _preview(cache_key[0]),
                image_cost(image),
            )
            return
        if self._memory_monitor is not None and self._memory_monitor.entered_pressure():
            # Trim once per crossing and never below the image just stored.
            floor = max(self._cache.total_cost // 2, image_cost(image))
            evicted = self._cache.trim_to(floor)
            LOGGER.info("Evicted %d cached images under memory pressure", evicted)
        if self._event_bus is not None:
            self._event_bus.publish(ImageCachedEvent(
                key=cache_key[0],
                width=image.width(),
                height=image.height(),
                cost_bytes=image_cost(image),
            ))

    def _report_failure(self, error: ImageFetchError, *, joiners: int = 1) -> None:
        context = {"key": error.key, "joiners": joiners}
        if self._error_handler is not None:
            self._error_handler.handle(error, ErrorSeverity.WARNING, context=context)
        else:
            LOGGER.warning("Image fetch failed (%d waiting): %s", joiners, error)


__all__ = [
    "CacheKey",
    "FetchCallback",
    "FetchHandle",
    "FetchResult",
    "HandleState",
    "ImageLoader",
]
