"""Custom exception hierarchy for iGallery."""

from __future__ import annotations


class IGalleryError(Exception):
    """Base class for all custom errors raised by iGallery."""


# --- 3-layer hierarchy ---

class DomainError(IGalleryError):
    """Base class for domain-level errors."""


class InfrastructureError(IGalleryError):
    """Base class for infrastructure-level errors."""


class ApplicationError(IGalleryError):
    """Base class for application-level errors."""


# --- Image acquisition errors ---

class ImageFetchError(InfrastructureError):
    """Base class for every terminal failure of an image fetch.

    ``key`` names the resource the failure belongs to so consumers that
    share a callback across several requests can tell them apart.
    """

    def __init__(self, message: str, *, key: str | None = None) -> None:
        super().__init__(message)
        self.key = key


class MalformedReferenceError(ImageFetchError):
    """Raised when a reference is not a usable http(s) address."""


class NetworkFailureError(ImageFetchError):
    """Raised when the transport fails before a response is received."""


class BadResponseStatusError(ImageFetchError):
    """Raised when the server answers outside the 2xx range."""

    def __init__(self, message: str, *, status_code: int, key: str | None = None) -> None:
        super().__init__(message, key=key)
        self.status_code = status_code


class UndecodablePayloadError(ImageFetchError):
    """Raised when the response body is not a decodable image."""


class DownsampleError(ImageFetchError):
    """Raised when client-side downsampling fails on otherwise valid bytes."""


# --- Gallery content errors ---

class GalleryManifestError(DomainError):
    """Raised when a gallery manifest cannot be parsed."""


# --- Settings errors ---

class SettingsError(IGalleryError):
    """Base class for settings related failures."""


class SettingsLoadError(SettingsError):
    """Raised when the settings file cannot be parsed or loaded."""


class SettingsValidationError(SettingsError):
    """Raised when settings data fails schema validation."""
