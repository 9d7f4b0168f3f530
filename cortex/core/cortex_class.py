"""The Cortex facade: services and engine wired together."""

import logging
from datetime import datetime
from pathlib import Path
from typing import Callable, Optional, Union

from cortex.config import CortexConfig, EngineConfig
from cortex.engine import CortexEngine, PrepareContextInput, PrepareContextResult
from cortex.identity import IdentityService
from cortex.memory.distilled import DistilledMemoryService
from cortex.memory.failure import FailureMemoryService
from cortex.protocols import (
    DistilledMemoryStorage,
    FailurePatternStorage,
    IdentityStorage,
    SimilarityProvider,
)
from cortex.similarity import WordOverlapSimilarity
from cortex.storage.memory import (
    InMemoryFailureStorage,
    InMemoryIdentityStorage,
    InMemoryMemoryStorage,
)
from cortex.storage.sqlite import SQLiteStorage
from cortex.types import utc_now

logger = logging.getLogger(__name__)


class Cortex:
    """Main interface: identity, memory and failure services plus the pipeline.

    Usage:
        cortex = Cortex.create()
        identity = cortex.identity.create(IdentityInput(...))
        cortex.memory.record(MemoryInput(MemoryType.LESSON, "Always validate input"))
        result = cortex.prepare_context(PrepareContextInput(identity.id, "validate input"))
        if result.success:
            ...
    """

    def __init__(
        self,
        identity: IdentityService,
        memory: DistilledMemoryService,
        failure: FailureMemoryService,
        engine: CortexEngine,
        storage: Optional[SQLiteStorage] = None,
    ):
        self.identity = identity
        self.memory = memory
        self.failure = failure
        self.engine = engine
        self.storage = storage

    @classmethod
    def create(
        cls,
        config: Optional[CortexConfig] = None,
        similarity: Optional[SimilarityProvider] = None,
        now_fn: Callable[[], datetime] = utc_now,
    ) -> "Cortex":
        """Build a Cortex backed by in-memory stores."""
        return cls.from_stores(
            InMemoryIdentityStorage(),
            InMemoryMemoryStorage(),
            InMemoryFailureStorage(),
            config,
            similarity,
            now_fn,
        )

    @classmethod
    def create_with_sqlite(
        cls,
        db_path: Optional[Union[str, Path]] = None,
        config: Optional[CortexConfig] = None,
        similarity: Optional[SimilarityProvider] = None,
        now_fn: Callable[[], datetime] = utc_now,
    ) -> "Cortex":
        """Build a Cortex persisted to one SQLite file.

        Falls back to config.db_path, then $CORTEX_HOME/cortex.db.
        """
        if db_path is None and config is not None:
            db_path = config.db_path
        storage = SQLiteStorage(db_path)
        logger.debug("Using SQLite storage at %s", storage.db_path)
        cortex = cls.from_stores(
            storage.identities, storage.memories, storage.failures, config, similarity, now_fn
        )
        cortex.storage = storage
        return cortex

    @classmethod
    def from_services(
        cls,
        identity: IdentityService,
        memory: DistilledMemoryService,
        failure: FailureMemoryService,
        engine_config: Optional[EngineConfig] = None,
    ) -> "Cortex":
        """Wrap services the caller built (custom storage, clocks, providers)."""
        engine = CortexEngine(identity, memory, failure, engine_config)
        return cls(identity, memory, failure, engine)

    @classmethod
    def from_stores(
        cls,
        identity_store: IdentityStorage,
        memory_store: DistilledMemoryStorage,
        failure_store: FailurePatternStorage,
        config: Optional[CortexConfig] = None,
        similarity: Optional[SimilarityProvider] = None,
        now_fn: Callable[[], datetime] = utc_now,
    ) -> "Cortex":
        """Wire services and engine over caller-provided stores."""
        config = config or CortexConfig()
        similarity = similarity or WordOverlapSimilarity()
        identity = IdentityService(identity_store, now_fn=now_fn)
        memory = DistilledMemoryService(memory_store, similarity, config.memory, now_fn=now_fn)
        failure = FailureMemoryService(failure_store, similarity, config.failure, now_fn=now_fn)
        engine = CortexEngine(identity, memory, failure, config.engine, now_fn=now_fn)
        return cls(identity, memory, failure, engine)

    def prepare_context(self, data: PrepareContextInput) -> PrepareContextResult:
        return self.engine.prepare_context(data)
