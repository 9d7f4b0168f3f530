"""Plain-dict serialization for cortex records.

Used wherever records cross a text boundary: SQLite JSON columns, CLI
``--json`` output, MCP tool results and sandbox snapshot files.
"""

import dataclasses
import json
import logging
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional

from cortex.types import (
    DistilledMemory,
    FailurePattern,
    FailureSeverity,
    Identity,
    IdentityVersion,
    Invariant,
    MemoryType,
    RiskPosture,
    StyleConstraint,
    Value,
    parse_datetime,
)

logger = logging.getLogger(__name__)


def to_jsonable(obj: Any) -> Any:
    """Recursively convert dataclasses, enums, datetimes and tuples to JSON types."""
    if dataclasses.is_dataclass(obj) and not isinstance(obj, type):
        return {f.name: to_jsonable(getattr(obj, f.name)) for f in dataclasses.fields(obj)}
    if isinstance(obj, Enum):
        return obj.value
    if isinstance(obj, datetime):
        return obj.isoformat()
    if isinstance(obj, (list, tuple)):
        return [to_jsonable(item) for item in obj]
    if isinstance(obj, dict):
        return {str(k): to_jsonable(v) for k, v in obj.items()}
    return obj


def dumps(obj: Any, indent: int = 2) -> str:
    return json.dumps(to_jsonable(obj), indent=indent, default=str)


# === Identity ===


def identity_from_dict(data: Dict[str, Any]) -> Identity:
    return Identity(
        id=data["id"],
        name=data["name"],
        version=int(data["version"]),
        created_at=parse_datetime(data["created_at"]),
        updated_at=parse_datetime(data["updated_at"]),
        values=tuple(Value(**v) for v in data.get("values") or []),
        invariants=tuple(Invariant(**i) for i in data.get("invariants") or []),
        style_constraints=tuple(
            StyleConstraint(**s) for s in data.get("style_constraints") or []
        ),
        risk_posture=RiskPosture(data["risk_posture"]),
        description=data.get("description"),
    )


def identity_version_from_dict(data: Dict[str, Any]) -> IdentityVersion:
    return IdentityVersion(
        identity_id=data["identity_id"],
        version=int(data["version"]),
        snapshot=identity_from_dict(data["snapshot"]),
        created_at=parse_datetime(data["created_at"]),
        change_reason=data["change_reason"],
    )


# === Memories ===


def memory_from_dict(data: Dict[str, Any]) -> DistilledMemory:
    return DistilledMemory(
        id=data["id"],
        memory_type=MemoryType(data["memory_type"]),
        content=data["content"],
        confidence=float(data["confidence"]),
        created_at=parse_datetime(data["created_at"]),
        last_reinforced_at=parse_datetime(data["last_reinforced_at"]),
        last_decay_at=parse_datetime(data["last_decay_at"]),
        reinforcement_count=int(data.get("reinforcement_count", 0)),
        decay_factor=float(data.get("decay_factor", 1.0)),
        tags=list(data.get("tags") or []),
        source_context=data.get("source_context"),
    )


def failure_from_dict(data: Dict[str, Any]) -> FailurePattern:
    return FailurePattern(
        id=data["id"],
        pattern=data["pattern"],
        context=data["context"],
        severity=FailureSeverity(data["severity"]),
        reason=data["reason"],
        created_at=parse_datetime(data["created_at"]),
        last_occurred_at=parse_datetime(data["last_occurred_at"]),
        occurrence_count=int(data.get("occurrence_count", 1)),
        tags=list(data.get("tags") or []),
        active=bool(data.get("active", True)),
    )


# === JSON columns ===


def to_json(data: Any) -> str:
    return json.dumps(to_jsonable(data))


def from_json(s: Optional[str], default: Any = None) -> Any:
    """Parse a JSON column, returning ``default`` for empty or corrupt values."""
    if not s:
        return default
    try:
        return json.loads(s)
    except json.JSONDecodeError:
        logger.warning("Discarding malformed JSON column value: %r", s[:80])
        return default
