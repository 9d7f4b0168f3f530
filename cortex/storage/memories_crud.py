"""Distilled memory CRUD operations for SQLiteStorage."""

import logging
import sqlite3
from typing import Callable, List, Optional

from cortex.core.serializers import from_json, to_json
from cortex.types import DistilledMemory, MemoryType, parse_datetime

logger = logging.getLogger(__name__)


def _row_to_memory(row: sqlite3.Row) -> DistilledMemory:
    return DistilledMemory(
        id=row["id"],
        memory_type=MemoryType(row["type"]),
        content=row["content"],
        confidence=row["confidence"],
        created_at=parse_datetime(row["created_at"]),
        last_reinforced_at=parse_datetime(row["last_reinforced_at"]),
        last_decay_at=parse_datetime(row["last_decay_at"]),
        reinforcement_count=row["reinforcement_count"],
        decay_factor=row["decay_factor"],
        tags=from_json(row["tags"], []),
        source_context=row["source_context"],
    )


def save_memory(connect_fn: Callable, memory: DistilledMemory) -> None:
    """Upsert a memory. Existing rows keep their rowid, so listing order is stable."""
    with connect_fn() as conn:
        conn.execute(
            """
            INSERT INTO distilled_memories
            (id, type, content, confidence, reinforcement_count, created_at,
             last_reinforced_at, last_decay_at, decay_factor, tags, source_context)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            ON CONFLICT(id) DO UPDATE SET
                type = excluded.type,
                content = excluded.content,
                confidence = excluded.confidence,
                reinforcement_count = excluded.reinforcement_count,
                created_at = excluded.created_at,
                last_reinforced_at = excluded.last_reinforced_at,
                last_decay_at = excluded.last_decay_at,
                decay_factor = excluded.decay_factor,
                tags = excluded.tags,
                source_context = excluded.source_context
            """,
            (
                memory.id,
                memory.memory_type.value,
                memory.content,
                memory.confidence,
                memory.reinforcement_count,
                memory.created_at.isoformat(),
                memory.last_reinforced_at.isoformat(),
                memory.last_decay_at.isoformat(),
                memory.decay_factor,
                to_json(memory.tags),
                memory.source_context,
            ),
        )


def load_memory(connect_fn: Callable, memory_id: str) -> Optional[DistilledMemory]:
    with connect_fn() as conn:
        row = conn.execute(
            "SELECT * FROM distilled_memories WHERE id = ?", (memory_id,)
        ).fetchone()
    return _row_to_memory(row) if row else None


def list_memories(connect_fn: Callable) -> List[DistilledMemory]:
    with connect_fn() as conn:
        rows = conn.execute("SELECT * FROM distilled_memories ORDER BY rowid").fetchall()
    return [_row_to_memory(row) for row in rows]


def find_memories_by_type(connect_fn: Callable, memory_type: MemoryType) -> List[DistilledMemory]:
    with connect_fn() as conn:
        rows = conn.execute(
            "SELECT * FROM distilled_memories WHERE type = ? ORDER BY rowid",
            (MemoryType(memory_type).value,),
        ).fetchall()
    return [_row_to_memory(row) for row in rows]


def delete_memory(connect_fn: Callable, memory_id: str) -> None:
    with connect_fn() as conn:
        conn.execute("DELETE FROM distilled_memories WHERE id = ?", (memory_id,))
