from __future__ import annotations

import logging
import sys

_CONSOLE_FORMAT = "%(levelname)-7s %(name)s: %(message)s"


def ensure_console_logger(
    logger: logging.Logger,
    handler_name: str,
    *,
    level: int = logging.INFO,
) -> logging.Handler:
    """Attach a named stderr handler to *logger* once and return it.

    Calling again with the same *handler_name* only updates the level.
    """

    for handler in logger.handlers:
        if getattr(handler, "name", None) == handler_name:
            handler.setLevel(level)
            logger.setLevel(level)
            return handler
    handler = logging.StreamHandler(sys.stderr)
    handler.setLevel(level)
    handler.name = handler_name
    handler.setFormatter(logging.Formatter(_CONSOLE_FORMAT))
    logger.addHandler(handler)
    logger.setLevel(level)
    return handler
