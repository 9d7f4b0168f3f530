"""Input validation helpers for cortex.

Two families live here:

- ``check_*`` helpers append a message to an error list instead of raising,
  so the services can report every violated field in one ValidationError.
- ``sanitize_*`` helpers raise ValueError on the first problem and return a
  cleaned value. The CLI and MCP layers use these for argument sanitization.
"""

import logging
import math
import re
from enum import Enum
from typing import Any, List, Optional, Type, TypeVar

logger = logging.getLogger(__name__)

E = TypeVar("E", bound=Enum)

_CONTROL_CHARS = re.compile(r"[\x00-\x08\x0b\x0c\x0e-\x1f\x7f]")


# =============================================================================
# Collecting checks
# =============================================================================


def is_non_empty_string(value: Any) -> bool:
    return isinstance(value, str) and bool(value.strip())


def check_string(value: Any, field_name: str, errors: List[str]) -> None:
    """Require a non-empty (non-whitespace) string."""
    if not is_non_empty_string(value):
        errors.append(f"{field_name} must be a non-empty string")


def check_optional_string(value: Any, field_name: str, errors: List[str]) -> None:
    if value is not None and not isinstance(value, str):
        errors.append(f"{field_name} must be a string if provided")


def check_number(
    value: Any,
    field_name: str,
    errors: List[str],
    min_val: Optional[float] = None,
    max_val: Optional[float] = None,
) -> None:
    """Require a finite number within the inclusive bounds. Booleans are rejected."""
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        errors.append(f"{field_name} must be a number")
        return
    if isinstance(value, float) and (math.isnan(value) or math.isinf(value)):
        errors.append(f"{field_name} must be a finite number")
        return
    if min_val is not None and max_val is not None:
        if not min_val <= value <= max_val:
            errors.append(f"{field_name} must be a number between {min_val:g} and {max_val:g}")
    elif min_val is not None and value < min_val:
        errors.append(f"{field_name} must be a number >= {min_val:g}")
    elif max_val is not None and value > max_val:
        errors.append(f"{field_name} must be a number <= {max_val:g}")


def check_enum(
    value: Any, field_name: str, enum_cls: Type[E], errors: List[str]
) -> Optional[E]:
    """Coerce ``value`` to ``enum_cls``; record an error and return None if it can't be."""
    try:
        return enum_cls(value)
    except ValueError:
        choices = ", ".join(m.value for m in enum_cls)
        errors.append(f"{field_name} must be one of: {choices}")
        return None


def check_string_list(value: Any, field_name: str, errors: List[str]) -> None:
    """Optional list of strings."""
    if value is None:
        return
    if not isinstance(value, (list, tuple)):
        errors.append(f"{field_name} must be an array of strings")
        return
    for i, item in enumerate(value):
        if not isinstance(item, str):
            errors.append(f"{field_name}[{i}] must be a string")


# =============================================================================
# Raising sanitizers (CLI / MCP)
# =============================================================================


def sanitize_string(
    value: Any, field_name: str, max_length: int = 1000, required: bool = True
) -> str:
    """Sanitize and validate string inputs.

    Args:
        value: The value to sanitize.
        field_name: Name of the field for error messages.
        max_length: Maximum allowed string length.
        required: If True, empty strings are rejected.

    Returns:
        Sanitized string with control characters (except newline/tab) removed.

    Raises:
        ValueError: If validation fails.
    """
    if value is None and not required:
        return ""

    if not isinstance(value, str):
        raise ValueError(f"{field_name} must be a string, got {type(value).__name__}")

    if required and not value.strip():
        raise ValueError(f"{field_name} cannot be empty")

    if len(value) > max_length:
        raise ValueError(f"{field_name} too long (max {max_length} characters, got {len(value)})")

    return _CONTROL_CHARS.sub("", value)


def sanitize_number(
    value: Any,
    field_name: str,
    min_val: Optional[float] = None,
    max_val: Optional[float] = None,
    default: Optional[float] = None,
) -> Optional[float]:
    """Validate numeric inputs, rejecting NaN and Infinity.

    Returns ``default`` (which may be None) when ``value`` is None.

    Raises:
        ValueError: If validation fails.
    """
    if value is None:
        return default

    if isinstance(value, bool):
        raise ValueError(f"{field_name} must be a number, got bool")

    if not isinstance(value, (int, float)):
        raise ValueError(f"{field_name} must be a number, got {type(value).__name__}")

    if isinstance(value, float) and (math.isnan(value) or math.isinf(value)):
        raise ValueError(f"{field_name} must be a finite number, got {value}")

    if min_val is not None and value < min_val:
        raise ValueError(f"{field_name} must be >= {min_val}, got {value}")

    if max_val is not None and value > max_val:
        raise ValueError(f"{field_name} must be <= {max_val}, got {value}")

    return float(value)


def sanitize_list(
    value: Any,
    field_name: str,
    item_max_length: int = 200,
    max_items: int = 50,
) -> List[str]:
    """Validate and sanitize list inputs.

    Returns:
        List of sanitized strings (empty items removed).

    Raises:
        ValueError: If validation fails.
    """
    if value is None:
        return []

    if not isinstance(value, list):
        raise ValueError(f"{field_name} must be an array, got {type(value).__name__}")

    if len(value) > max_items:
        raise ValueError(f"{field_name} too many items (max {max_items}, got {len(value)})")

    if any(item is None for item in value):
        raise ValueError(f"{field_name} must not contain null items")

    sanitized = []
    for i, item in enumerate(value):
        cleaned = sanitize_string(item, f"{field_name}[{i}]", item_max_length, required=False)
        if cleaned:
            sanitized.append(cleaned)
    return sanitized


def sanitize_enum(
    value: Any,
    field_name: str,
    enum_cls: Type[E],
    default: Optional[E] = None,
) -> E:
    """Coerce a string to an enum member.

    Raises:
        ValueError: If the value is missing without a default, or not a member.
    """
    if value is None:
        if default is not None:
            return default
        raise ValueError(f"{field_name} is required")

    try:
        return enum_cls(value)
    except ValueError:
        valid = [m.value for m in enum_cls]
        raise ValueError(f"{field_name} must be one of {valid}, got '{value}'")
