from dataclasses import dataclass

from iGallery.events import EventBus, ImageCachedEvent
from iGallery.events.bus import Event


@dataclass(kw_only=True)
class SimpleEvent(Event):
    payload: str = ""


def test_sync_subscribe_publish():
    bus = EventBus()
    received = []

    bus.subscribe(SimpleEvent, lambda event: received.append(event.payload))
    bus.publish(SimpleEvent(payload="hello"))

    assert received == ["hello"]


def test_multiple_handlers():
    bus = EventBus()
    count = 0

    def handler1(event):
        nonlocal count
        count += 1

    def handler2(event):
        nonlocal count
        count += 2

    bus.subscribe(SimpleEvent, handler1)
    bus.subscribe(SimpleEvent, handler2)

    bus.publish(SimpleEvent())

    assert count == 3


def test_unsubscribe_and_cancel():
    bus = EventBus()
    received = []
    first = bus.subscribe(SimpleEvent, lambda e: received.append("first"))
    second = bus.subscribe(SimpleEvent, lambda e: received.append("second"))

    bus.unsubscribe(first)
    second.cancel()
    bus.publish(SimpleEvent())

    assert received == []


def test_failing_handler_does_not_stop_others(caplog):
    bus = EventBus()
    received = []

    def broken(event):
        raise RuntimeError("boom")

    bus.subscribe(ImageCachedEvent, broken)
    bus.subscribe(ImageCachedEvent, received.append)
    bus.publish(ImageCachedEvent(key="https://x/a.png", width=10, height=5, cost_bytes=200))

    assert len(received) == 1
    assert received[0].width == 10
    assert "Handler failed for ImageCachedEvent" in caplog.text


def test_events_only_reach_matching_type():
    bus = EventBus()
    received = []
    bus.subscribe(ImageCachedEvent, received.append)
    bus.publish(SimpleEvent(payload="x"))
    assert received == []
