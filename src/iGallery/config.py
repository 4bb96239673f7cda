"""Default configuration values for iGallery."""

from __future__ import annotations

from typing import Final

# ---------------------------------------------------------------------------
# Size catalog references
# ---------------------------------------------------------------------------

# Pre-sized CDN references carry their available renditions in the ``as``
# query parameter (``"32x21,48x32,240x160"``) and the rendition actually served
# in the sibling ``cs`` parameter.  Only references on the catalog host are
# treated as pre-sized; everything else is resized on the client.
CATALOG_HOST_MARKER: Final[str] = "vkuserphoto.ru"
CATALOG_PARAM: Final[str] = "as"
VARIANT_PARAM: Final[str] = "cs"
CATALOG_SEPARATOR: Final[str] = ","
DIMENSION_SEPARATOR: Final[str] = "x"

DEFAULT_THUMBNAIL_WIDTH: Final[int] = 240

# ---------------------------------------------------------------------------
# In-memory image cache
# ---------------------------------------------------------------------------

IMAGE_CACHE_COUNT_LIMIT: Final[int] = 100
IMAGE_CACHE_COST_LIMIT_BYTES: Final[int] = 50 * 1024 * 1024

# When system memory usage crosses this percentage the loader drops half of
# the cached image cost, once per crossing.
MEMORY_PRESSURE_PERCENT: Final[float] = 80.0

# ---------------------------------------------------------------------------
# Network
# ---------------------------------------------------------------------------

HTTP_TIMEOUT_SEC: Final[float] = 15.0
HTTP_SUCCESS_RANGE: Final[range] = range(200, 300)
HTTP_CHUNK_SIZE: Final[int] = 64 * 1024
HTTP_USER_AGENT: Final[str] = "iGallery/0.1"
ALLOWED_SCHEMES: Final[frozenset[str]] = frozenset({"http", "https"})

FETCH_MAX_WORKERS: Final[int] = 4

# ---------------------------------------------------------------------------
# On-disk HTTP cache
# ---------------------------------------------------------------------------

# Responses are kept on disk and reused without revalidation, so a restarted
# app does not download the same rendition twice.
HTTP_DISK_CACHE_ENABLED: Final[bool] = True
HTTP_DISK_CACHE_LIMIT_BYTES: Final[int] = 100 * 1024 * 1024
HTTP_DISK_CACHE_DIRNAME: Final[str] = "http-cache"

# Truncation used when logging long CDN URLs.
LOG_URL_PREVIEW_CHARS: Final[int] = 60
