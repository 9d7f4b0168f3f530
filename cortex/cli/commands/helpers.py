"""Shared helper functions for CLI commands."""

import argparse
from typing import Iterable

from cortex.core.serializers import dumps
from cortex.core.validation import sanitize_string
from cortex.types import Invariant, StyleConstraint, Value


def validate_input(value: str, field_name: str, max_length: int = 1000) -> str:
    """Validate and sanitize CLI inputs."""
    return sanitize_string(value, field_name, max_length)


def print_json(data) -> None:
    """Print records or plain data as formatted JSON."""
    print(dumps(data))


def resolve_id(partial_id: str, candidates: Iterable[str], kind: str) -> str:
    """Resolve a possibly abbreviated id.

    Tries exact match first, then a unique prefix match.

    Raises:
        ValueError: If nothing matches or the prefix is ambiguous.
    """
    ids = list(candidates)
    if partial_id in ids:
        return partial_id
    matches = [i for i in ids if i.startswith(partial_id)]
    if not matches:
        raise ValueError(f"{kind} not found: {partial_id}")
    if len(matches) > 1:
        raise ValueError(f"Ambiguous {kind.lower()} id '{partial_id}' matches {len(matches)} records")
    return matches[0]


# =============================================================================
# argparse value types
# =============================================================================


def parse_value(text: str) -> Value:
    """NAME:PRIORITY:DESCRIPTION"""
    parts = text.split(":", 2)
    if len(parts) != 3:
        raise argparse.ArgumentTypeError(f"Value must be NAME:PRIORITY:DESCRIPTION, got '{text}'")
    name, priority, description = parts
    try:
        priority_value = float(priority)
    except ValueError:
        raise argparse.ArgumentTypeError(f"Value priority must be a number, got '{priority}'")
    if priority_value.is_integer():
        priority_value = int(priority_value)
    return Value(name=name.strip(), description=description.strip(), priority=priority_value)


def parse_invariant(text: str) -> Invariant:
    """RULE::RATIONALE[::DESCRIPTION]; description defaults to the rule."""
    parts = text.split("::")
    if len(parts) not in (2, 3):
        raise argparse.ArgumentTypeError(
            f"Invariant must be RULE::RATIONALE[::DESCRIPTION], got '{text}'"
        )
    rule = parts[0].strip()
    rationale = parts[1].strip()
    description = parts[2].strip() if len(parts) == 3 else rule
    return Invariant(description=description, rule=rule, rationale=rationale)


def parse_style(text: str) -> StyleConstraint:
    """ASPECT:CONSTRAINT"""
    aspect, sep, constraint = text.partition(":")
    if not sep:
        raise argparse.ArgumentTypeError(f"Style must be ASPECT:CONSTRAINT, got '{text}'")
    return StyleConstraint(aspect=aspect.strip(), constraint=constraint.strip())


def unit_float(value: str) -> float:
    """argparse type for a number in [0, 1]."""
    try:
        f = float(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"Expected a number, got '{value}'")
    if not 0.0 <= f <= 1.0:
        raise argparse.ArgumentTypeError(f"Must be between 0 and 1, got {f}")
    return f
