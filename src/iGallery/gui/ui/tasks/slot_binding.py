"""Bind asynchronous image results to reusable display slots."""

from __future__ import annotations

import itertools
import logging
from dataclasses import dataclass
from typing import Callable, Optional

from PySide6.QtGui import QImage

from ....config import DEFAULT_THUMBNAIL_WIDTH
from .image_loader import FetchHandle, FetchResult, ImageLoader

LOGGER = logging.getLogger(__name__)

_TOKEN_SERIALS = itertools.count(1)


@dataclass(frozen=True)
class SlotToken:
    """Identifies one request made on behalf of a slot.

    Tokens compare by serial number, so two requests for the same
    reference still get distinct tokens.
    """

    serial: int
    reference: str


ApplyImage = Callable[[Optional[QImage]], None]


class SlotBinding:
    """Guard a reusable display slot against stale fetch results.

    Each request mints a fresh :class:`SlotToken` and cancels whatever the
    slot was waiting for before.  A result is applied only if the token it
    was requested with is still the slot's current token; anything else is
    dropped without touching the slot.  Failures apply the placeholder.
    """

    def __init__(
        self,
        loader: ImageLoader,
        apply: ApplyImage,
        placeholder: Optional[QImage] = None,
    ) -> None:
        self._loader = loader
        self._apply = apply
        self._placeholder = placeholder
        self._token: Optional[SlotToken] = None
        self._handle: Optional[FetchHandle] = None

    @property
    def token(self) -> Optional[SlotToken]:
        return self._token

    @property
    def handle(self) -> Optional[FetchHandle]:
        return self._handle

    def is_current(self, token: SlotToken) -> bool:
        return self._token is not None and token == self._token

    def request_thumbnail(
        self,
        reference: str,
        target_width: int = DEFAULT_THUMBNAIL_WIDTH,
    ) -> SlotToken:
        token = self._rebind(reference)
        self._handle = self._loader.request_thumbnail(
            reference,
            self._callback_for(token),
            target_width,
        )
        return token

    def request_full_size(self, reference: str) -> SlotToken:
        token = self._rebind(reference)
        self._handle = self._loader.request_full_size(reference, self._callback_for(token))
        return token

    def release(self) -> None:
        """Forget the current request, e.g. when the slot is reused or torn down."""

        if self._handle is not None:
            self._handle.cancel()
        self._handle = None
        self._token = None

    def _rebind(self, reference: str) -> SlotToken:
        self.release()
        token = SlotToken(serial=next(_TOKEN_SERIALS), reference=reference)
        self._token = token
        # Show the placeholder while the new image is on its way.
        self._apply(self._placeholder)
        return token

    def _callback_for(self, token: SlotToken) -> Callable[[FetchResult], None]:
        def _on_result(result: FetchResult) -> None:
            self.deliver(token, result)

        return _on_result

    def deliver(self, token: SlotToken, result: FetchResult) -> bool:
        """Apply *result* if *token* is still current; return whether it was."""

        if not self.is_current(token):
            LOGGER.debug("Dropping stale result for %s", token.reference)
            return False
        self._handle = None
        if result.ok:
            self._apply(result.image)
        else:
            self._apply(self._placeholder)
        return True
