from .bus import Event, EventBus, Subscription
from .image_events import ImageCachedEvent

__all__ = [
    "Event",
    "EventBus",
    "ImageCachedEvent",
    "Subscription",
]
