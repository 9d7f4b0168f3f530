"""Storage adapters for cortex.

- In-memory stores (default, per process)
- SQLite stores (one database file holding all entity kinds)
"""

from cortex.storage.memory import (
    InMemoryFailureStorage,
    InMemoryIdentityStorage,
    InMemoryMemoryStorage,
)
from cortex.storage.sqlite import (
    SQLiteFailureStorage,
    SQLiteIdentityStorage,
    SQLiteMemoryStorage,
    SQLiteStorage,
)

__all__ = [
    "InMemoryFailureStorage",
    "InMemoryIdentityStorage",
    "InMemoryMemoryStorage",
    "SQLiteFailureStorage",
    "SQLiteIdentityStorage",
    "SQLiteMemoryStorage",
    "SQLiteStorage",
]
