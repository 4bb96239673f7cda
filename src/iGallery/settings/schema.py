"""Schema helpers for the application settings file."""

from __future__ import annotations

from copy import deepcopy
from typing import Any

from jsonschema import Draft202012Validator

from ..config import (
    DEFAULT_THUMBNAIL_WIDTH,
    FETCH_MAX_WORKERS,
    HTTP_DISK_CACHE_ENABLED,
    HTTP_DISK_CACHE_LIMIT_BYTES,
    HTTP_TIMEOUT_SEC,
    HTTP_USER_AGENT,
    IMAGE_CACHE_COST_LIMIT_BYTES,
    IMAGE_CACHE_COUNT_LIMIT,
    MEMORY_PRESSURE_PERCENT,
)

SETTINGS_SCHEMA: dict[str, Any] = {
    "$id": "iGallery/settings.schema.json",
    "type": "object",
    "required": ["schema", "image_loader"],
    "properties": {
        "schema": {"const": "iGallery/settings@1"},
        "image_loader": {
            "type": "object",
            "properties": {
                "cache_count_limit": {"type": "integer", "minimum": 1},
                "cache_cost_limit_bytes": {"type": "integer", "minimum": 1},
                "thumbnail_width": {"type": "integer", "minimum": 1},
                "request_timeout_sec": {"type": "number", "exclusiveMinimum": 0},
                "max_workers": {"type": "integer", "minimum": 1, "maximum": 64},
                "memory_pressure_percent": {
                    "type": "number",
                    "minimum": 1,
                    "maximum": 100,
                },
                "user_agent": {"type": "string", "minLength": 1},
                "disk_cache_enabled": {"type": "boolean"},
                "disk_cache_dir": {"type": ["string", "null"]},
                "disk_cache_max_bytes": {"type": "integer", "minimum": 1},
            },
            "additionalProperties": True,
        },
    },
    "additionalProperties": True,
}

DEFAULT_SETTINGS: dict[str, Any] = {
    "schema": "iGallery/settings@1",
    "image_loader": {
        "cache_count_limit": IMAGE_CACHE_COUNT_LIMIT,
        "cache_cost_limit_bytes": IMAGE_CACHE_COST_LIMIT_BYTES,
        "thumbnail_width": DEFAULT_THUMBNAIL_WIDTH,
        "request_timeout_sec": HTTP_TIMEOUT_SEC,
        "max_workers": FETCH_MAX_WORKERS,
        "memory_pressure_percent": MEMORY_PRESSURE_PERCENT,
        "user_agent": HTTP_USER_AGENT,
        "disk_cache_enabled": HTTP_DISK_CACHE_ENABLED,
        "disk_cache_dir": None,
        "disk_cache_max_bytes": HTTP_DISK_CACHE_LIMIT_BYTES,
    },
}

_validator = Draft202012Validator(SETTINGS_SCHEMA)


def merge_with_defaults(data: dict[str, Any] | None) -> dict[str, Any]:
    """Merge *data* with :data:`DEFAULT_SETTINGS` and validate the result."""

    merged = deepcopy(DEFAULT_SETTINGS)
    if data:
        for key, value in data.items():
            if key == "image_loader" and isinstance(value, dict):
                merged["image_loader"].update(value)
                continue
            merged[key] = value
    _validator.validate(merged)
    return merged


def validate_settings(data: dict[str, Any]) -> None:
    """Validate *data* against the settings schema."""

    _validator.validate(data)


__all__ = ["DEFAULT_SETTINGS", "SETTINGS_SCHEMA", "merge_with_defaults", "validate_settings"]
