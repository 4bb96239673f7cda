import logging

from PySide6.QtGui import QImage

from ...errors import DownsampleError, UndecodablePayloadError
from ...utils.image_loader import can_decode, qimage_from_bytes, scaled_qimage_from_bytes

LOGGER = logging.getLogger(__name__)


class ThumbnailGenerator:
    """
    Decodes downloaded image bytes, optionally downsampling them on the way.

    Runs on fetch worker threads; it only produces ``QImage`` objects, which
    are safe to create off the GUI thread.
    """

    def decode(self, data: bytes, key: str | None = None) -> QImage:
        image = qimage_from_bytes(data)
        if image is None or image.isNull():
            raise UndecodablePayloadError(
                f"payload of {len(data)} bytes is not a decodable image", key=key
            )
        return image

    def downsample(self, data: bytes, max_dimension: int, key: str | None = None) -> QImage:
        """
        Return an image whose longer side is at most ``max_dimension`` pixels.
        Aspect ratio is preserved and small images are never upscaled.
        """
        if max_dimension <= 0:
            raise DownsampleError(f"invalid target dimension {max_dimension}", key=key)
        if not can_decode(data):
            raise UndecodablePayloadError(
                f"payload of {len(data)} bytes is not a decodable image", key=key
            )
        image = scaled_qimage_from_bytes(data, max_dimension)
        if image is None or image.isNull():
            raise DownsampleError(f"could not downsample image to {max_dimension}px", key=key)
        LOGGER.debug("Downsampled to %dx%d (max %d)", image.width(), image.height(), max_dimension)
        return image
