"""Application-wide context: builds the shared image loader from settings."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Optional, TYPE_CHECKING

import httpx

from .errors.handler import ErrorHandler
from .events import EventBus
from .infrastructure.services.http_cache import HttpDiskCache, default_http_cache_dir
from .infrastructure.services.image_cache import MemoryImageCache
from .infrastructure.services.memory_monitor import MemoryPressureMonitor

if TYPE_CHECKING:  # pragma: no cover - only for type checking
    from .gui.ui.tasks.image_loader import ImageLoader
    from .settings.manager import SettingsManager

LOGGER = logging.getLogger(__name__)

_CACHE_LIMIT_KEYS = frozenset({
    "image_loader.cache_count_limit",
    "image_loader.cache_cost_limit_bytes",
})


def _create_settings_manager() -> "SettingsManager":
    from .settings.manager import SettingsManager

    manager = SettingsManager()
    manager.load()
    return manager


def create_http_disk_cache(settings: "SettingsManager") -> Optional[HttpDiskCache]:
    """Return the on-disk response cache configured in *settings*, if enabled."""

    if not settings.get("image_loader.disk_cache_enabled", True):
        return None
    configured = settings.get("image_loader.disk_cache_dir")
    disk_cache = HttpDiskCache(
        Path(configured) if configured else default_http_cache_dir(),
        int(settings.get("image_loader.disk_cache_max_bytes")),
    )
    disk_cache.prune()
    return disk_cache


def create_image_loader(
    settings: "SettingsManager",
    *,
    event_bus: Optional[EventBus] = None,
    client: Optional[httpx.Client] = None,
    transport: Optional[httpx.BaseTransport] = None,
) -> "ImageLoader":
    """Build the process-wide :class:`ImageLoader` described by *settings*.

    Must be called on the thread that will own the loader, after the Qt
    application object exists.  Without an explicit *client* the loader's
    own client goes through the on-disk HTTP cache; *transport* replaces
    the network underneath that cache.
    """

    from .gui.ui.tasks.image_loader import ImageLoader

    bus = event_bus or EventBus()
    cache = MemoryImageCache(
        count_limit=int(settings.get("image_loader.cache_count_limit")),
        cost_limit=int(settings.get("image_loader.cache_cost_limit_bytes")),
    )
    monitor = MemoryPressureMonitor(
        threshold_percent=float(settings.get("image_loader.memory_pressure_percent")),
    )
    if client is None:
        disk_cache = create_http_disk_cache(settings)
        if disk_cache is not None:
            transport = disk_cache.transport(transport)
    return ImageLoader(
        cache=cache,
        client=client,
        transport=transport,
        memory_monitor=monitor,
        error_handler=ErrorHandler(logging.getLogger("iGallery.images"), bus),
        event_bus=bus,
        max_workers=int(settings.get("image_loader.max_workers")),
        timeout=float(settings.get("image_loader.request_timeout_sec")),
        user_agent=str(settings.get("image_loader.user_agent")),
    )


@dataclass(eq=False)
class AppContext:
    """Container object shared across GUI components.

    The loader is created lazily on first access so that the context can be
    built before the Qt application object.  Later changes to the cache
    limits in the settings are applied to the live loader.
    """

    settings: "SettingsManager" = field(default_factory=_create_settings_manager)
    events: EventBus = field(default_factory=EventBus)
    _loader: Optional["ImageLoader"] = field(default=None, init=False, repr=False)

    @property
    def image_loader(self) -> "ImageLoader":
        if self._loader is None:
            self._loader = create_image_loader(self.settings, event_bus=self.events)
            self.settings.settingsChanged.connect(self._on_settings_changed)
        return self._loader

    @property
    def thumbnail_width(self) -> int:
        return int(self.settings.get("image_loader.thumbnail_width"))

    def shutdown(self) -> None:
        if self._loader is not None:
            self.settings.settingsChanged.disconnect(self._on_settings_changed)
            self._loader.shutdown()
            self._loader = None

    def _on_settings_changed(self, key: str, value: Any) -> None:
        if self._loader is None or key not in _CACHE_LIMIT_KEYS:
            return
        count_limit = int(self.settings.get("image_loader.cache_count_limit"))
        cost_limit = int(self.settings.get("image_loader.cache_cost_limit_bytes"))
        self._loader.cache.set_limits(count_limit, cost_limit)
        LOGGER.info("Image cache limits now %d images / %d bytes", count_limit, cost_limit)
