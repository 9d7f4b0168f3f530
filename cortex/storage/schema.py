"""Database schema for cortex SQLite storage.

Contains:
- Schema DDL (SCHEMA)
- Schema version tracking (SCHEMA_VERSION)
- Table allowlist (ALLOWED_TABLES, validate_table_name)
- Database initialization (init_db)
"""

import logging
import os
import sqlite3
from pathlib import Path

from cortex.protocols import StorageError

logger = logging.getLogger(__name__)

SCHEMA_VERSION = 1

# Allowed table names for SQL queries (prevents SQL injection via table names)
ALLOWED_TABLES = frozenset(
    {
        "identities",
        "identity_versions",
        "distilled_memories",
        "failure_patterns",
        "schema_version",
    }
)


def validate_table_name(table: str) -> str:
    """Validate table name against allowlist.

    Raises:
        StorageError: If table name is not in allowlist
    """
    if table not in ALLOWED_TABLES:
        raise StorageError(f"Invalid table name: {table}")
    return table


SCHEMA = """
-- Schema version tracking
CREATE TABLE IF NOT EXISTS schema_version (
    version INTEGER PRIMARY KEY
);

-- Live identity records
CREATE TABLE IF NOT EXISTS identities (
    id TEXT PRIMARY KEY,
    name TEXT NOT NULL,
    version INTEGER NOT NULL,
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL,
    identity_values TEXT NOT NULL DEFAULT '[]',  -- JSON array
    invariants TEXT NOT NULL DEFAULT '[]',       -- JSON array
    style_constraints TEXT NOT NULL DEFAULT '[]',  -- JSON array
    risk_posture TEXT NOT NULL,
    description TEXT
);

-- Append-only identity history
CREATE TABLE IF NOT EXISTS identity_versions (
    identity_id TEXT NOT NULL,
    version INTEGER NOT NULL,
    snapshot TEXT NOT NULL,  -- JSON object
    created_at TEXT NOT NULL,
    change_reason TEXT NOT NULL,
    PRIMARY KEY (identity_id, version)
);

-- Lessons, preferences and warnings
CREATE TABLE IF NOT EXISTS distilled_memories (
    id TEXT PRIMARY KEY,
    type TEXT NOT NULL,
    content TEXT NOT NULL,
    confidence REAL NOT NULL,
    reinforcement_count INTEGER NOT NULL DEFAULT 0,
    created_at TEXT NOT NULL,
    last_reinforced_at TEXT NOT NULL,
    last_decay_at TEXT NOT NULL,
    decay_factor REAL NOT NULL DEFAULT 1.0,
    tags TEXT NOT NULL DEFAULT '[]',  -- JSON array
    source_context TEXT
);
CREATE INDEX IF NOT EXISTS idx_distilled_memories_type ON distilled_memories(type);

-- Failure patterns
CREATE TABLE IF NOT EXISTS failure_patterns (
    id TEXT PRIMARY KEY,
    pattern TEXT NOT NULL,
    context TEXT NOT NULL,
    severity TEXT NOT NULL,
    occurrence_count INTEGER NOT NULL DEFAULT 1,
    created_at TEXT NOT NULL,
    last_occurred_at TEXT NOT NULL,
    reason TEXT NOT NULL,
    tags TEXT NOT NULL DEFAULT '[]',  -- JSON array
    active INTEGER NOT NULL DEFAULT 1
);
CREATE INDEX IF NOT EXISTS idx_failure_patterns_severity ON failure_patterns(severity);
CREATE INDEX IF NOT EXISTS idx_failure_patterns_active ON failure_patterns(active);
"""


def init_db(conn: sqlite3.Connection, db_path: Path) -> None:
    """Create tables if missing and record the schema version."""
    conn.executescript(SCHEMA)

    row = conn.execute("SELECT version FROM schema_version LIMIT 1").fetchone()
    if row is None:
        conn.execute("INSERT INTO schema_version (version) VALUES (?)", (SCHEMA_VERSION,))
    elif row[0] != SCHEMA_VERSION:
        logger.info("Updating schema version %s -> %s", row[0], SCHEMA_VERSION)
        conn.execute("UPDATE schema_version SET version = ?", (SCHEMA_VERSION,))

    conn.commit()

    # Owner read/write only
    try:
        os.chmod(db_path, 0o600)
    except OSError as e:
        logger.warning("Could not set secure permissions: %s", e)
