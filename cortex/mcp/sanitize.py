"""Shared sanitization utilities for the MCP layer."""

from typing import Any, Optional

from cortex.core.validation import (  # noqa: F401 re-exported
    sanitize_enum,
    sanitize_list,
    sanitize_number,
    sanitize_string,
)


def sanitize_optional_string(value: Any, field_name: str, max_length: int = 1000) -> Optional[str]:
    """Like sanitize_string, but empty input becomes None."""
    cleaned = sanitize_string(value, field_name, max_length, required=False)
    return cleaned or None


def sanitize_limit(value: Any, default: Optional[int] = None, max_val: int = 100) -> Optional[int]:
    limit = sanitize_number(value, "limit", 1, max_val, default)
    return int(limit) if limit is not None else None


def sanitize_object_list(value: Any, field_name: str, max_items: int = 50) -> list:
    """Check that value is a list of JSON objects; items are sanitized by the caller."""
    if value is None:
        return []
    if not isinstance(value, list):
        raise ValueError(f"{field_name} must be an array, got {type(value).__name__}")
    if len(value) > max_items:
        raise ValueError(f"{field_name} too many items (max {max_items}, got {len(value)})")
    for i, item in enumerate(value):
        if not isinstance(item, dict):
            raise ValueError(f"{field_name}[{i}] must be an object")
    return value
