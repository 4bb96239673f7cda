import logging
from unittest.mock import Mock

from iGallery.errors import NetworkFailureError
from iGallery.errors.handler import ErrorHandler, ErrorOccurredEvent, ErrorSeverity
from iGallery.events.bus import EventBus


def test_handle_error_logs_and_publishes():
    logger = Mock(spec=logging.Logger)
    event_bus = Mock(spec=EventBus)
    handler = ErrorHandler(logger, event_bus)

    error = ValueError("test error")
    handler.handle(error, ErrorSeverity.ERROR)

    logger.error.assert_called()

    event_bus.publish.assert_called()
    event = event_bus.publish.call_args[0][0]
    assert isinstance(event, ErrorOccurredEvent)
    assert event.error == error
    assert event.severity == ErrorSeverity.ERROR


def test_warning_uses_warning_level_with_context():
    logger = Mock(spec=logging.Logger)
    handler = ErrorHandler(logger, Mock(spec=EventBus))

    error = NetworkFailureError("refused", key="https://x/a.png")
    handler.handle(error, ErrorSeverity.WARNING, context={"key": error.key, "joiners": 3})

    logger.warning.assert_called_once()
    args, kwargs = logger.warning.call_args
    assert args[1] == "NetworkFailureError"
    assert kwargs["extra"] == {"error_context": {"key": "https://x/a.png", "joiners": 3}}


def test_ui_callback():
    handler = ErrorHandler(Mock(spec=logging.Logger), Mock(spec=EventBus))
    callback = Mock()
    handler.register_ui_callback(callback)

    handler.handle(RuntimeError("ui error"), ErrorSeverity.CRITICAL)

    callback.assert_called_with("ui error", ErrorSeverity.CRITICAL)


def test_fetch_warnings_do_not_reach_ui():
    handler = ErrorHandler(Mock(spec=logging.Logger), Mock(spec=EventBus))
    callback = Mock()
    handler.register_ui_callback(callback)

    handler.handle(NetworkFailureError("timeout"), ErrorSeverity.WARNING)
    handler.handle(Exception("info"), ErrorSeverity.INFO)

    callback.assert_not_called()


def test_published_event_reaches_real_bus():
    bus = EventBus()
    received = []
    bus.subscribe(ErrorOccurredEvent, received.append)
    handler = ErrorHandler(logging.getLogger("test.errors"), bus)

    handler.handle(ValueError("boom"), ErrorSeverity.WARNING)

    assert len(received) == 1
    assert received[0].context == {}
