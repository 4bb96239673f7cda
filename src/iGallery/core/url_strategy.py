"""Resolve image references into concrete, appropriately sized URLs.

Pre-sized CDN references advertise every rendition they can serve in a
size catalog parameter and select the served rendition with a sibling
variant parameter::

    https://sun9-1.vkuserphoto.ru/s/v1/ig2/abc.jpg?size=1280x853&quality=95
        &as=32x21,48x32,72x48,108x72,160x107,240x160,360x240,480x320
        &cs=480x320&type=album

For those references the resolver rewrites ``cs`` to the best catalog entry
so the server does the resizing.  Any other reference is returned untouched
and flagged for client-side downsampling.

All helpers here are pure functions; they never touch the network.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Optional, Sequence, Tuple
from urllib.parse import unquote, urlsplit, urlunsplit

from ..config import (
    CATALOG_HOST_MARKER,
    CATALOG_PARAM,
    CATALOG_SEPARATOR,
    DEFAULT_THUMBNAIL_WIDTH,
    DIMENSION_SEPARATOR,
    VARIANT_PARAM,
)

LOGGER = logging.getLogger(__name__)

_DIMENSION_RE = re.compile(
    rf"^\s*(\d+){re.escape(DIMENSION_SEPARATOR)}(\d+)\s*$",
    re.ASCII,
)


@dataclass(frozen=True)
class Dimensions:
    """A single ``WIDTHxHEIGHT`` rendition advertised by a size catalog."""

    width: int
    height: int

    @property
    def token(self) -> str:
        return f"{self.width}{DIMENSION_SEPARATOR}{self.height}"


SizeCatalog = Tuple[Dimensions, ...]


@dataclass(frozen=True)
class ThumbnailPlan:
    """Outcome of :func:`resolve_thumbnail`.

    ``resource_key`` is the URL to download.  ``needs_client_resize`` tells
    the caller the server cannot pre-size the image, so the bytes must be
    downsampled after download.
    """

    resource_key: str
    needs_client_resize: bool


def parse_size_catalog(value: str) -> SizeCatalog:
    """Parse ``"32x21,48x32,..."`` into a catalog, dropping malformed tokens."""

    entries: list[Dimensions] = []
    for token in unquote(value).split(CATALOG_SEPARATOR):
        match = _DIMENSION_RE.match(token)
        if match is None:
            continue
        width, height = int(match.group(1)), int(match.group(2))
        if width <= 0 or height <= 0:
            continue
        entries.append(Dimensions(width, height))
    return tuple(entries)


def select_size(catalog: Sequence[Dimensions], target_width: int) -> Optional[Dimensions]:
    """Return the narrowest entry at least *target_width* wide.

    Falls back to the widest entry when nothing is wide enough, and to
    ``None`` for an empty catalog.
    """

    if not catalog:
        return None
    ordered = sorted(catalog, key=lambda entry: entry.width)
    for entry in ordered:
        if entry.width >= target_width:
            return entry
    return ordered[-1]


def has_size_catalog(reference: str) -> bool:
    """Return ``True`` when *reference* is a catalog-bearing CDN address."""

    try:
        parts = urlsplit(reference)
    except ValueError:
        return False
    host = parts.hostname or ""
    if CATALOG_HOST_MARKER not in host:
        return False
    return _query_value(parts.query, CATALOG_PARAM) is not None


def resolve_thumbnail(
    reference: str,
    target_width: int = DEFAULT_THUMBNAIL_WIDTH,
) -> ThumbnailPlan:
    """Choose the URL to download for a thumbnail *target_width* pixels wide."""

    if not has_size_catalog(reference):
        return ThumbnailPlan(resource_key=reference, needs_client_resize=True)

    catalog = _catalog_for(reference)
    selected = select_size(catalog, target_width)
    if selected is None:
        LOGGER.debug("No usable catalog entry in %s; using reference as-is", reference)
        return ThumbnailPlan(resource_key=reference, needs_client_resize=False)

    LOGGER.debug(
        "Thumbnail rendition %s chosen from %d catalog entries",
        selected.token,
        len(catalog),
    )
    return ThumbnailPlan(
        resource_key=rewrite_variant(reference, selected.token),
        needs_client_resize=False,
    )


def resolve_full_size(reference: str) -> str:
    """Return the URL of the largest rendition *reference* can serve."""

    if not has_size_catalog(reference):
        return reference
    catalog = _catalog_for(reference)
    if not catalog:
        return reference
    return rewrite_variant(reference, catalog[-1].token)


def rewrite_variant(reference: str, token: str) -> str:
    """Replace the value of the variant parameter with *token*.

    Only the ``cs`` pair is touched; every other parameter keeps its
    original position and encoding.  References without a variant
    parameter are returned unchanged.
    """

    parts = urlsplit(reference)
    if not parts.query:
        return reference
    pairs = parts.query.split("&")
    changed = False
    for index, pair in enumerate(pairs):
        name, _sep, _value = pair.partition("=")
        if unquote(name) == VARIANT_PARAM:
            pairs[index] = f"{name}={token}"
            changed = True
    if not changed:
        return reference
    return urlunsplit(parts._replace(query="&".join(pairs)))


def _catalog_for(reference: str) -> SizeCatalog:
    value = _query_value(urlsplit(reference).query, CATALOG_PARAM)
    if value is None:
        return ()
    return parse_size_catalog(value)


def _query_value(query: str, name: str) -> Optional[str]:
    # Raw pairs keep the catalog value byte-for-byte; ``parse_qs`` drops blanks.
    for pair in query.split("&"):
        key, sep, value = pair.partition("=")
        if sep and unquote(key) == name:
            return value
    return None


__all__ = [
    "Dimensions",
    "SizeCatalog",
    "ThumbnailPlan",
    "has_size_catalog",
    "parse_size_catalog",
    "resolve_full_size",
    "resolve_thumbnail",
    "rewrite_variant",
    "select_size",
]
