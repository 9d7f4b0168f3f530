"""Identity CRUD operations for SQLiteStorage.

All functions receive the connection factory explicitly so they can be
tested against any connection source.
"""

import json
import logging
import sqlite3
from typing import Callable, List, Optional

from cortex.core.serializers import from_json, identity_from_dict, to_json
from cortex.protocols import StorageError
from cortex.types import (
    Identity,
    IdentityVersion,
    Invariant,
    RiskPosture,
    StyleConstraint,
    Value,
    parse_datetime,
)

logger = logging.getLogger(__name__)


def _row_to_identity(row: sqlite3.Row) -> Identity:
    return Identity(
        id=row["id"],
        name=row["name"],
        version=row["version"],
        created_at=parse_datetime(row["created_at"]),
        updated_at=parse_datetime(row["updated_at"]),
        values=tuple(Value(**v) for v in from_json(row["identity_values"], [])),
        invariants=tuple(Invariant(**i) for i in from_json(row["invariants"], [])),
        style_constraints=tuple(
            StyleConstraint(**s) for s in from_json(row["style_constraints"], [])
        ),
        risk_posture=RiskPosture(row["risk_posture"]),
        description=row["description"],
    )


def _row_to_version(row: sqlite3.Row) -> IdentityVersion:
    return IdentityVersion(
        identity_id=row["identity_id"],
        version=row["version"],
        snapshot=identity_from_dict(json.loads(row["snapshot"])),
        created_at=parse_datetime(row["created_at"]),
        change_reason=row["change_reason"],
    )


def save_identity(connect_fn: Callable, identity: Identity) -> None:
    """Upsert the live identity record."""
    with connect_fn() as conn:
        conn.execute(
            """
            INSERT INTO identities
            (id, name, version, created_at, updated_at, identity_values, invariants,
             style_constraints, risk_posture, description)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            ON CONFLICT(id) DO UPDATE SET
                name = excluded.name,
                version = excluded.version,
                created_at = excluded.created_at,
                updated_at = excluded.updated_at,
                identity_values = excluded.identity_values,
                invariants = excluded.invariants,
                style_constraints = excluded.style_constraints,
                risk_posture = excluded.risk_posture,
                description = excluded.description
            """,
            (
                identity.id,
                identity.name,
                identity.version,
                identity.created_at.isoformat(),
                identity.updated_at.isoformat(),
                to_json(identity.values),
                to_json(identity.invariants),
                to_json(identity.style_constraints),
                identity.risk_posture.value,
                identity.description,
            ),
        )


def load_identity(connect_fn: Callable, identity_id: str) -> Optional[Identity]:
    with connect_fn() as conn:
        row = conn.execute("SELECT * FROM identities WHERE id = ?", (identity_id,)).fetchone()
    return _row_to_identity(row) if row else None


def list_identity_ids(connect_fn: Callable) -> List[str]:
    with connect_fn() as conn:
        rows = conn.execute("SELECT id FROM identities ORDER BY rowid").fetchall()
    return [row["id"] for row in rows]


def delete_identity(connect_fn: Callable, identity_id: str) -> None:
    """Remove the live record and its whole version history in one transaction."""
    with connect_fn() as conn:
        conn.execute("DELETE FROM identity_versions WHERE identity_id = ?", (identity_id,))
        conn.execute("DELETE FROM identities WHERE id = ?", (identity_id,))


def save_identity_version(connect_fn: Callable, version: IdentityVersion) -> None:
    """Append a version snapshot.

    Raises:
        StorageError: If the identity already has this version.
    """
    try:
        with connect_fn() as conn:
            conn.execute(
                """
                INSERT INTO identity_versions
                (identity_id, version, snapshot, created_at, change_reason)
                VALUES (?, ?, ?, ?, ?)
                """,
                (
                    version.identity_id,
                    version.version,
                    to_json(version.snapshot),
                    version.created_at.isoformat(),
                    version.change_reason,
                ),
            )
    except sqlite3.IntegrityError as e:
        raise StorageError(
            f"Identity {version.identity_id} already has version {version.version}"
        ) from e


def get_identity_versions(connect_fn: Callable, identity_id: str) -> List[IdentityVersion]:
    with connect_fn() as conn:
        rows = conn.execute(
            "SELECT * FROM identity_versions WHERE identity_id = ? ORDER BY version",
            (identity_id,),
        ).fetchall()
    return [_row_to_version(row) for row in rows]


def get_identity_version(
    connect_fn: Callable, identity_id: str, version: int
) -> Optional[IdentityVersion]:
    with connect_fn() as conn:
        row = conn.execute(
            "SELECT * FROM identity_versions WHERE identity_id = ? AND version = ?",
            (identity_id, version),
        ).fetchone()
    return _row_to_version(row) if row else None
