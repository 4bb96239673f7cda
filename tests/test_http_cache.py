"""Tests for the on-disk HTTP response cache."""

from __future__ import annotations

import os

import pytest

pytest.importorskip("PySide6", reason="PySide6 is required for loader tests", exc_type=ImportError)
httpx = pytest.importorskip("httpx")
pytest.importorskip("hishel")

from iGallery.gui.ui.tasks.image_loader import FetchResult, ImageLoader
from iGallery.infrastructure.services.http_cache import HttpDiskCache, default_http_cache_dir

URL = "https://cdn.example.com/cached.png"


@pytest.fixture
def counting_transport(image_bytes):
    payload = image_bytes(32, 16)
    requests: list[httpx.Request] = []

    def _respond(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        return httpx.Response(200, content=payload, headers={"Content-Type": "image/png"})

    transport = httpx.MockTransport(_respond)
    transport.requests = requests
    return transport


def _fetch_once(loader: ImageLoader, wait_until) -> FetchResult:
    results: list[FetchResult] = []
    loader.fetch(URL, results.append)
    assert wait_until(lambda: results)
    return results[0]


def test_second_loader_is_served_from_disk(qapp, tmp_path, counting_transport, wait_until):
    disk_cache = HttpDiskCache(tmp_path / "http")

    first = ImageLoader(transport=disk_cache.transport(counting_transport))
    try:
        assert _fetch_once(first, wait_until).ok
    finally:
        first.shutdown()
    assert len(counting_transport.requests) == 1
    assert disk_cache.total_bytes() > 0

    # A fresh loader has an empty memory cache; the response comes from disk.
    second = ImageLoader(transport=disk_cache.transport(counting_transport))
    try:
        result = _fetch_once(second, wait_until)
    finally:
        second.shutdown()
    assert result.ok
    assert result.from_cache is False
    assert (result.image.width(), result.image.height()) == (32, 16)
    assert len(counting_transport.requests) == 1


def test_prune_removes_oldest_entries(tmp_path):
    disk_cache = HttpDiskCache(tmp_path / "http", max_bytes=250)
    for index in range(4):
        path = disk_cache.cache_dir / f"entry{index}"
        path.write_bytes(b"x" * 100)
        os.utime(path, (1_000 + index, 1_000 + index))
    assert disk_cache.prune() == 2
    remaining = sorted(path.name for path in disk_cache.cache_dir.iterdir())
    assert remaining == ["entry2", "entry3"]
    assert disk_cache.prune() == 0


def test_clear_and_limits(tmp_path):
    disk_cache = HttpDiskCache(tmp_path / "http")
    (disk_cache.cache_dir / "entry").write_bytes(b"data")
    disk_cache.clear()
    assert disk_cache.total_bytes() == 0
    with pytest.raises(ValueError):
        HttpDiskCache(tmp_path / "other", max_bytes=0)


def test_default_dir_follows_xdg(monkeypatch, tmp_path):
    if os.name == "nt":
        pytest.skip("XDG layout only applies off Windows")
    monkeypatch.setattr("sys.platform", "linux")
    monkeypatch.setenv("XDG_CACHE_HOME", str(tmp_path))
    assert default_http_cache_dir() == tmp_path / "iGallery" / "http-cache"
