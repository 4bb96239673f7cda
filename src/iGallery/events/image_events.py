from dataclasses import dataclass

from .bus import Event


@dataclass(kw_only=True)
class ImageCachedEvent(Event):
    key: str
    width: int
    height: int
    cost_bytes: int
