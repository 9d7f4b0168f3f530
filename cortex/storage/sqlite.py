"""SQLite storage backend for cortex.

One database file holds all three entity kinds. SQLiteStorage owns the
connection factory; the per-entity adapters bind the CRUD functions to it and
satisfy the storage protocols.

Connections are opened per operation and closed afterwards, so adapters are
safe to share across threads.
"""

import contextlib
import logging
import sqlite3
from pathlib import Path
from typing import List, Optional, Union

from cortex.config import DEFAULT_DB_FILENAME, get_cortex_home
from cortex.storage import failures_crud, identity_crud, memories_crud
from cortex.storage.schema import init_db, validate_table_name
from cortex.types import (
    DistilledMemory,
    FailurePattern,
    FailureSeverity,
    Identity,
    IdentityVersion,
    MemoryType,
)

logger = logging.getLogger(__name__)


class SQLiteStorage:
    """Connection management and schema setup for a cortex database file."""

    def __init__(self, db_path: Optional[Union[str, Path]] = None):
        if db_path is None:
            db_path = get_cortex_home() / DEFAULT_DB_FILENAME
        self.db_path = Path(db_path).expanduser()
        if str(self.db_path) == ":memory:":
            # A fresh connection per operation would see a fresh empty database
            raise ValueError("SQLiteStorage requires a file path, not ':memory:'")

        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self._init_db()

        self.identities = SQLiteIdentityStorage(self)
        self.memories = SQLiteMemoryStorage(self)
        self.failures = SQLiteFailureStorage(self)

    def _get_conn(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self.db_path)
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA journal_mode=WAL")
        conn.execute("PRAGMA busy_timeout=5000")
        return conn

    @contextlib.contextmanager
    def _connect(self):
        """Context manager that handles transactions AND closes connection.

        - Transaction commit on success
        - Transaction rollback on exception
        - Connection close in all cases
        """
        conn = self._get_conn()
        try:
            yield conn
            conn.commit()
        except Exception as e:
            logger.debug("Transaction failed, rolling back: %s", e)
            conn.rollback()
            raise
        finally:
            conn.close()

    def _init_db(self) -> None:
        with self._connect() as conn:
            init_db(conn, self.db_path)

    def count(self, table: str) -> int:
        """Row count of an allowlisted table."""
        table = validate_table_name(table)
        with self._connect() as conn:
            return conn.execute(f"SELECT COUNT(*) FROM {table}").fetchone()[0]

    def close(self) -> None:
        """No persistent connections are held; kept for API symmetry."""
        pass


class SQLiteIdentityStorage:
    def __init__(self, db: SQLiteStorage):
        self._connect = db._connect

    def save(self, identity: Identity) -> None:
        identity_crud.save_identity(self._connect, identity)

    def load(self, identity_id: str) -> Optional[Identity]:
        return identity_crud.load_identity(self._connect, identity_id)

    def save_version(self, version: IdentityVersion) -> None:
        identity_crud.save_identity_version(self._connect, version)

    def get_versions(self, identity_id: str) -> List[IdentityVersion]:
        return identity_crud.get_identity_versions(self._connect, identity_id)

    def get_version(self, identity_id: str, version: int) -> Optional[IdentityVersion]:
        return identity_crud.get_identity_version(self._connect, identity_id, version)

    def list_ids(self) -> List[str]:
        return identity_crud.list_identity_ids(self._connect)

    def delete(self, identity_id: str) -> None:
        identity_crud.delete_identity(self._connect, identity_id)


class SQLiteMemoryStorage:
    def __init__(self, db: SQLiteStorage):
        self._connect = db._connect

    def save(self, memory: DistilledMemory) -> None:
        memories_crud.save_memory(self._connect, memory)

    def load(self, memory_id: str) -> Optional[DistilledMemory]:
        return memories_crud.load_memory(self._connect, memory_id)

    def list_all(self) -> List[DistilledMemory]:
        return memories_crud.list_memories(self._connect)

    def find_by_type(self, memory_type: MemoryType) -> List[DistilledMemory]:
        return memories_crud.find_memories_by_type(self._connect, memory_type)

    def delete(self, memory_id: str) -> None:
        memories_crud.delete_memory(self._connect, memory_id)


class SQLiteFailureStorage:
    def __init__(self, db: SQLiteStorage):
        self._connect = db._connect

    def save(self, pattern: FailurePattern) -> None:
        failures_crud.save_pattern(self._connect, pattern)

    def load(self, pattern_id: str) -> Optional[FailurePattern]:
        return failures_crud.load_pattern(self._connect, pattern_id)

    def list_all(self) -> List[FailurePattern]:
        return failures_crud.list_patterns(self._connect)

    def find_by_severity(self, severity: FailureSeverity) -> List[FailurePattern]:
        return failures_crud.find_patterns_by_severity(self._connect, severity)

    def delete(self, pattern_id: str) -> None:
        failures_crud.delete_pattern(self._connect, pattern_id)
