"""Gallery entries shown in the image list."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Any, Mapping, Optional

from dateutil import parser as date_parser

from ..errors import GalleryManifestError
from ..utils.jsonio import read_json


@dataclass(frozen=True)
class GalleryItem:
    """A single remote image with its caption."""

    image_url: str
    title: str
    description: str = ""
    date: Optional[datetime] = None

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> "GalleryItem":
        try:
            image_url = str(payload["image_url"])
            title = str(payload["title"])
        except KeyError as exc:
            raise GalleryManifestError(f"gallery item is missing {exc.args[0]!r}") from exc
        date_value = payload.get("date")
        date: Optional[datetime] = None
        if date_value:
            try:
                date = date_parser.isoparse(str(date_value))
            except (ValueError, OverflowError) as exc:
                raise GalleryManifestError(f"invalid date {date_value!r} for {title!r}") from exc
        return cls(
            image_url=image_url,
            title=title,
            description=str(payload.get("description") or ""),
            date=date,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "image_url": self.image_url,
            "title": self.title,
            "description": self.description,
            "date": self.date.isoformat() if self.date else None,
        }


def load_gallery_manifest(path: Path) -> list[GalleryItem]:
    """Read a JSON list (or ``{"items": [...]}``) of gallery items."""

    try:
        payload = read_json(path)
    except (OSError, ValueError) as exc:
        raise GalleryManifestError(f"cannot read gallery manifest {path}: {exc}") from exc
    if isinstance(payload, dict):
        payload = payload.get("items", [])
    if not isinstance(payload, list):
        raise GalleryManifestError(f"gallery manifest {path} must contain a list of items")
    items: list[GalleryItem] = []
    for entry in payload:
        if not isinstance(entry, Mapping):
            raise GalleryManifestError(f"gallery item must be an object, got {type(entry).__name__}")
        items.append(GalleryItem.from_dict(entry))
    return items
