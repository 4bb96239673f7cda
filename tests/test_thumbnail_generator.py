"""Tests for client-side thumbnail generation."""

from __future__ import annotations

import pytest

pytest.importorskip("PySide6", reason="PySide6 is required for thumbnail tests", exc_type=ImportError)

from iGallery.errors import DownsampleError, UndecodablePayloadError
from iGallery.infrastructure.services.thumbnail_generator import ThumbnailGenerator
from iGallery.utils.image_loader import can_decode, qimage_from_bytes, scaled_qimage_from_bytes


@pytest.fixture
def generator() -> ThumbnailGenerator:
    return ThumbnailGenerator()


def test_downsample_landscape_keeps_aspect(qapp, generator, image_bytes):
    image = generator.downsample(image_bytes(800, 400), 240)
    assert image.width() == 240
    assert image.height() == 120


def test_downsample_portrait_bounds_longer_side(qapp, generator, image_bytes):
    image = generator.downsample(image_bytes(300, 900, fmt="JPEG"), 240)
    assert max(image.width(), image.height()) <= 240
    assert image.height() == 240
    assert abs(image.width() - 80) <= 1


def test_downsample_never_upscales(qapp, generator, image_bytes):
    image = generator.downsample(image_bytes(50, 20), 240)
    assert (image.width(), image.height()) == (50, 20)


@pytest.mark.parametrize("dimension", [0, -10])
def test_downsample_rejects_non_positive_target(qapp, generator, image_bytes, dimension):
    with pytest.raises(DownsampleError):
        generator.downsample(image_bytes(), dimension)


def test_downsample_rejects_garbage(qapp, generator):
    with pytest.raises(UndecodablePayloadError):
        generator.downsample(b"definitely not an image", 240)


def test_decode_full_resolution(qapp, generator, image_bytes):
    image = generator.decode(image_bytes(123, 45))
    assert (image.width(), image.height()) == (123, 45)


def test_decode_rejects_garbage_with_key(qapp, generator):
    with pytest.raises(UndecodablePayloadError) as info:
        generator.decode(b"<html>oops</html>", key="https://x/a.png")
    assert info.value.key == "https://x/a.png"


def test_image_loader_helpers(qapp, image_bytes):
    data = image_bytes(40, 40)
    assert can_decode(data)
    assert not can_decode(b"")
    assert not can_decode(b"\x00\x01\x02")
    assert qimage_from_bytes(b"") is None
    assert scaled_qimage_from_bytes(data, 0) is None
    scaled = scaled_qimage_from_bytes(data, 10)
    assert scaled is not None
    assert (scaled.width(), scaled.height()) == (10, 10)
