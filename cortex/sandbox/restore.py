"""Rebuild a Cortex from a state snapshot for deterministic replay.

Records are written straight to the stores, bypassing the services, so ids,
timestamps and counters come back exactly as captured.
"""

import logging
from datetime import datetime
from typing import Any, Callable, Dict, Sequence

from cortex.core.cortex_class import Cortex
from cortex.core.serializers import failure_from_dict, identity_from_dict, memory_from_dict
from cortex.identity import validate_identity
from cortex.sandbox.snapshot import StateSnapshot
from cortex.storage.memory import (
    InMemoryFailureStorage,
    InMemoryIdentityStorage,
    InMemoryMemoryStorage,
)
from cortex.types import IdentityVersion, parse_datetime, utc_now

logger = logging.getLogger(__name__)

_MEMORY_FIELDS = (
    "id",
    "memory_type",
    "content",
    "created_at",
    "last_reinforced_at",
    "last_decay_at",
)
_FAILURE_FIELDS = (
    "id",
    "pattern",
    "context",
    "severity",
    "reason",
    "created_at",
    "last_occurred_at",
)


class RestorationError(ValueError):
    """A snapshot is missing data needed for exact restoration."""

    pass


def _require_fields(record: Dict[str, Any], fields: Sequence[str], label: str) -> None:
    if not isinstance(record, dict):
        raise RestorationError(f"{label} must be an object")
    for name in fields:
        if not record.get(name):
            raise RestorationError(f"{label} missing {name}")
    if not isinstance(record.get("tags", []), list):
        raise RestorationError(f"{label} missing tags array")


def _snapshot_clock(snapshot: StateSnapshot) -> Callable[[], datetime]:
    """Clock frozen at capture time, so a replay never sees elapsed time."""
    if not snapshot.timestamp:
        return utc_now
    captured = parse_datetime(snapshot.timestamp)
    return lambda: captured


def restore_state_snapshot(snapshot: StateSnapshot) -> Cortex:
    """Return a fresh in-memory Cortex holding exactly the snapshot's records.

    Raises:
        RestorationError: If any record is incomplete or malformed.
    """
    identity_store = InMemoryIdentityStorage()
    memory_store = InMemoryMemoryStorage()
    failure_store = InMemoryFailureStorage()

    if snapshot.identity is not None:
        _require_fields(snapshot.identity, ("id", "name", "risk_posture"), "Identity")
        try:
            identity = identity_from_dict(snapshot.identity)
        except (KeyError, TypeError, ValueError) as e:
            raise RestorationError(f"Identity snapshot malformed: {e}") from e
        errors = validate_identity(identity)
        if errors:
            raise RestorationError("Identity snapshot invalid: " + "; ".join(errors))
        identity_store.save(identity)
        identity_store.save_version(
            IdentityVersion(
                identity_id=identity.id,
                version=identity.version,
                snapshot=identity,
                created_at=identity.updated_at,
                change_reason="restored",
            )
        )

    for i, data in enumerate(snapshot.memories):
        _require_fields(data, _MEMORY_FIELDS, f"Memory[{i}]")
        try:
            memory_store.save(memory_from_dict(data))
        except (KeyError, TypeError, ValueError) as e:
            raise RestorationError(f"Memory[{i}] malformed: {e}") from e

    for i, data in enumerate(snapshot.failures):
        _require_fields(data, _FAILURE_FIELDS, f"Failure[{i}]")
        try:
            failure_store.save(failure_from_dict(data))
        except (KeyError, TypeError, ValueError) as e:
            raise RestorationError(f"Failure[{i}] malformed: {e}") from e

    logger.debug(
        "Restored snapshot: identity=%s memories=%d failures=%d",
        snapshot.identity is not None,
        len(snapshot.memories),
        len(snapshot.failures),
    )
    return Cortex.from_stores(
        identity_store, memory_store, failure_store, now_fn=_snapshot_clock(snapshot)
    )
