"""Background task that downloads and decodes one remote image."""

from __future__ import annotations

import logging
import threading
from typing import TYPE_CHECKING, Optional

import httpx
from PySide6.QtCore import QRunnable
from PySide6.QtGui import QImage

from ....config import HTTP_CHUNK_SIZE, HTTP_SUCCESS_RANGE
from ....errors import (
    BadResponseStatusError,
    ImageFetchError,
    NetworkFailureError,
)
from ....infrastructure.services.thumbnail_generator import ThumbnailGenerator

if TYPE_CHECKING:  # pragma: no cover - only for type checking
    from .image_loader import CacheKey, ImageLoader

LOGGER = logging.getLogger(__name__)


class _Cancelled(Exception):
    """Internal signal that the job was cancelled mid-download."""


class ImageFetchJob(QRunnable):
    """Download ``url``, validate it and hand the decoded image back.

    The job never touches the loader's cache or registry.  Its only way
    back is the loader's ``_delivered`` signal, which Qt queues onto the
    loader's thread.
    """

    def __init__(
        self,
        loader: "ImageLoader",
        cache_key: "CacheKey",
        fetch_id: int,
        client: httpx.Client,
        generator: ThumbnailGenerator,
        cancel_event: threading.Event,
        *,
        chunk_size: int = HTTP_CHUNK_SIZE,
    ) -> None:
        super().__init__()
        self._loader = loader
        self._cache_key = cache_key
        self._fetch_id = fetch_id
        self._client = client
        self._generator = generator
        self._chunk_size = chunk_size
        self._cancelled = cancel_event

    @property
    def url(self) -> str:
        return self._cache_key[0]

    @property
    def resize_width(self) -> Optional[int]:
        return self._cache_key[1]

    @property
    def cancelled(self) -> bool:
        return self._cancelled.is_set()

    def run(self) -> None:
        image: Optional[QImage] = None
        error: Optional[ImageFetchError] = None
        aborted = self.cancelled
        if not aborted:
            try:
                image = self._fetch()
            except _Cancelled:
                LOGGER.debug("Fetch %d cancelled mid-download", self._fetch_id)
                aborted = True
            except ImageFetchError as exc:
                error = exc
            except Exception as exc:  # pragma: no cover - unexpected decoder failures
                LOGGER.exception("Unexpected failure while fetching %s", self.url)
                error = NetworkFailureError(str(exc), key=self.url)

        # Aborted runs report back too; the loader retires or restarts the entry.
        loader = getattr(self, "_loader", None)
        if loader is None:
            return
        try:
            loader._delivered.emit(self._cache_key, self._fetch_id, image, error, aborted)
        except RuntimeError:  # pragma: no cover - race with QObject deletion
            pass

    def _fetch(self) -> QImage:
        data = self._download()
        if self.cancelled:
            raise _Cancelled()
        if self.resize_width is not None:
            return self._generator.downsample(data, self.resize_width, key=self.url)
        return self._generator.decode(data, key=self.url)

    def _download(self) -> bytes:
        try:
            with self._client.stream("GET", self.url) as response:
                if response.status_code not in HTTP_SUCCESS_RANGE:
                    raise BadResponseStatusError(
                        f"HTTP {response.status_code} for {self.url}",
                        status_code=response.status_code,
                        key=self.url,
                    )
                chunks: list[bytes] = []
                for chunk in response.iter_bytes(self._chunk_size):
                    if self.cancelled:
                        raise _Cancelled()
                    chunks.append(chunk)
        except httpx.HTTPError as exc:
            raise NetworkFailureError(f"{exc.__class__.__name__}: {exc}", key=self.url) from exc
        return b"".join(chunks)
