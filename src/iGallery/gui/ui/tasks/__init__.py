"""Background tasks and workers."""

from __future__ import annotations

from .image_fetch_job import ImageFetchJob
from .image_loader import FetchHandle, FetchResult, HandleState, ImageLoader
from .slot_binding import SlotBinding, SlotToken

__all__ = [
    "FetchHandle",
    "FetchResult",
    "HandleState",
    "ImageFetchJob",
    "ImageLoader",
    "SlotBinding",
    "SlotToken",
]
