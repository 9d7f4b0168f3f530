"""Failure pattern CRUD operations for SQLiteStorage."""

import logging
import sqlite3
from typing import Callable, List, Optional

from cortex.core.serializers import from_json, to_json
from cortex.types import FailurePattern, FailureSeverity, parse_datetime

logger = logging.getLogger(__name__)


def _row_to_pattern(row: sqlite3.Row) -> FailurePattern:
    return FailurePattern(
        id=row["id"],
        pattern=row["pattern"],
        context=row["context"],
        severity=FailureSeverity(row["severity"]),
        reason=row["reason"],
        created_at=parse_datetime(row["created_at"]),
        last_occurred_at=parse_datetime(row["last_occurred_at"]),
        occurrence_count=row["occurrence_count"],
        tags=from_json(row["tags"], []),
        active=bool(row["active"]),
    )


def save_pattern(connect_fn: Callable, pattern: FailurePattern) -> None:
    with connect_fn() as conn:
        conn.execute(
            """
            INSERT INTO failure_patterns
            (id, pattern, context, severity, occurrence_count, created_at,
             last_occurred_at, reason, tags, active)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            ON CONFLICT(id) DO UPDATE SET
                pattern = excluded.pattern,
                context = excluded.context,
                severity = excluded.severity,
                occurrence_count = excluded.occurrence_count,
                created_at = excluded.created_at,
                last_occurred_at = excluded.last_occurred_at,
                reason = excluded.reason,
                tags = excluded.tags,
                active = excluded.active
            """,
            (
                pattern.id,
                pattern.pattern,
                pattern.context,
                pattern.severity.value,
                pattern.occurrence_count,
                pattern.created_at.isoformat(),
                pattern.last_occurred_at.isoformat(),
                pattern.reason,
                to_json(pattern.tags),
                1 if pattern.active else 0,
            ),
        )


def load_pattern(connect_fn: Callable, pattern_id: str) -> Optional[FailurePattern]:
    with connect_fn() as conn:
        row = conn.execute(
            "SELECT * FROM failure_patterns WHERE id = ?", (pattern_id,)
        ).fetchone()
    return _row_to_pattern(row) if row else None


def list_patterns(connect_fn: Callable) -> List[FailurePattern]:
    with connect_fn() as conn:
        rows = conn.execute("SELECT * FROM failure_patterns ORDER BY rowid").fetchall()
    return [_row_to_pattern(row) for row in rows]


def find_patterns_by_severity(
    connect_fn: Callable, severity: FailureSeverity
) -> List[FailurePattern]:
    """Patterns of one severity, active and inactive alike."""
    with connect_fn() as conn:
        rows = conn.execute(
            "SELECT * FROM failure_patterns WHERE severity = ? ORDER BY rowid",
            (FailureSeverity(severity).value,),
        ).fetchall()
    return [_row_to_pattern(row) for row in rows]


def delete_pattern(connect_fn: Callable, pattern_id: str) -> None:
    with connect_fn() as conn:
        conn.execute("DELETE FROM failure_patterns WHERE id = ?", (pattern_id,))
