"""Helpers for decoding downloaded bytes into Qt images with Pillow fallbacks."""

from __future__ import annotations

from io import BytesIO
from typing import Optional
import logging

from PIL import Image, ImageOps, UnidentifiedImageError
from PIL.ImageQt import ImageQt
from PySide6.QtCore import QBuffer, QByteArray, QIODevice, QSize, Qt
from PySide6.QtGui import QImage, QImageReader

LOGGER = logging.getLogger(__name__)


def _open_reader(data: bytes) -> tuple[QImageReader, QBuffer]:
    # The buffer must outlive the reader, so both are handed back together.
    buffer = QBuffer()
    buffer.setData(QByteArray(data))
    buffer.open(QIODevice.OpenModeFlag.ReadOnly)
    reader = QImageReader(buffer)
    # Qt keeps a process-wide decode cache; each downloaded payload is decoded
    # exactly once and stored in our own cache, so Qt's copy is pure overhead.
    disable_cache = getattr(reader, "setCacheEnabled", None)
    if callable(disable_cache):
        disable_cache(False)
    reader.setAutoTransform(True)
    return reader, buffer


def can_decode(data: bytes) -> bool:
    """Return ``True`` when *data* looks like an image Qt or Pillow can read.

    Only the header is inspected; no pixels are decoded.
    """

    if not data:
        return False
    reader, _buffer = _open_reader(data)
    if reader.canRead():
        return True
    try:
        with Image.open(BytesIO(data)) as img:
            img.verify()
    except (UnidentifiedImageError, OSError, ValueError, SyntaxError):
        return False
    return True


def qimage_from_bytes(data: bytes) -> Optional[QImage]:
    """Return a full-resolution :class:`QImage` decoded from *data*."""

    if not data:
        return None
    reader, _buffer = _open_reader(data)
    image = reader.read()
    if not image.isNull():
        return image
    return _load_with_pillow(data, None)


def scaled_qimage_from_bytes(data: bytes, max_dimension: int) -> Optional[QImage]:
    """Decode *data* so its longer side is at most *max_dimension* pixels.

    ``QImageReader.setScaledSize`` lets decoders with a scaled-decode fast
    path (JPEG in particular) skip materialising the full-resolution image.
    Images already within bounds are decoded as-is; nothing is upscaled.
    """

    if not data or max_dimension <= 0:
        return None
    reader, _buffer = _open_reader(data)
    original_size = reader.size()
    if original_size.isValid() and not original_size.isEmpty():
        bounds = QSize(max_dimension, max_dimension)
        # ``setScaledSize`` takes the size literally, so pre-compute an
        # aspect-preserving target.
        scaled_target = original_size.scaled(bounds, Qt.AspectRatioMode.KeepAspectRatio)
        scaled_target = QSize(max(1, scaled_target.width()), max(1, scaled_target.height()))
        if (
            scaled_target.width() < original_size.width()
            or scaled_target.height() < original_size.height()
        ):
            reader.setScaledSize(scaled_target)
        image = reader.read()
        if not image.isNull():
            return _fit_within(image, max_dimension)
    return _load_with_pillow(data, max_dimension)


def _fit_within(image: QImage, max_dimension: int) -> QImage:
    # Some plugins ignore ``setScaledSize``; enforce the bound afterwards.
    if image.width() <= max_dimension and image.height() <= max_dimension:
        return image
    return image.scaled(
        max_dimension,
        max_dimension,
        Qt.AspectRatioMode.KeepAspectRatio,
        Qt.TransformationMode.SmoothTransformation,
    )


def _load_with_pillow(data: bytes, max_dimension: Optional[int]) -> Optional[QImage]:
    try:
        with Image.open(BytesIO(data)) as img:
            if max_dimension is not None:
                # ``draft`` lets JPEG decode at a reduced scale directly.
                img.draft("RGB", (max_dimension, max_dimension))
            img = ImageOps.exif_transpose(img)
            if max_dimension is not None:
                img.thumbnail((max_dimension, max_dimension), Image.Resampling.LANCZOS)
            qt_image = ImageQt(img.convert("RGBA"))
    except (UnidentifiedImageError, OSError, ValueError, SyntaxError):
        LOGGER.debug("Pillow could not decode %d bytes", len(data))
        return None
    # ``ImageQt`` borrows Pillow's buffer; detach before it is released.
    return QImage(qt_image).copy()
