"""
cortex Protocol Definitions
===========================

The interface contracts between the cortex core and its collaborators.

Consumed capabilities (implemented outside the services):
- Similarity:  scores two strings in [0, 1] and ranks candidates for a query.
- Storage:     one persistence contract per entity kind (identity, distilled
               memory, failure pattern).

The services only rely on save/load/list_all/delete. Indexed lookups
(find_by_type, find_by_tags, find_by_severity) are optional; a service checks
for them and falls back to a full scan.

Error handling philosophy:
- Malformed input raises ValidationError listing every violation
- Unknown ids raise NotFoundError, surfaced verbatim
- A hard block is not an error: the engine returns a tagged result. Only
  PrepareBlocked.unwrap() raises BlockedError
- Storage I/O failures propagate unmodified; nothing here retries
"""

from dataclasses import dataclass
from typing import List, Optional, Protocol, Sequence, runtime_checkable

from cortex.types import (
    DistilledMemory,
    FailurePattern,
    Identity,
    IdentityVersion,
)

# =============================================================================
# ERRORS
# =============================================================================


class CortexError(Exception):
    """Base for all cortex errors."""

    pass


class ValidationError(CortexError, ValueError):
    """Raised when input to a create/record/update operation is malformed.

    Carries every violation, not just the first one found.
    """

    def __init__(self, errors: Sequence[str], subject: str = "input"):
        self.errors = list(errors)
        self.subject = subject
        super().__init__(f"Invalid {subject}: {'; '.join(self.errors)}")


class NotFoundError(CortexError):
    """Raised when an operation references an unknown id."""

    def __init__(self, kind: str, record_id: str):
        self.kind = kind
        self.record_id = record_id
        super().__init__(f"{kind} not found: {record_id}")


class StorageError(CortexError):
    """Raised by storage adapters on schema or table misuse, or a duplicate identity version."""

    pass


class BlockedError(CortexError):
    """Policy refusal: the request matched a hard-block failure pattern."""

    def __init__(self, reason: str, matched_patterns: Optional[List[FailurePattern]] = None):
        self.reason = reason
        self.matched_patterns = list(matched_patterns or [])
        super().__init__(reason)


# =============================================================================
# SIMILARITY CAPABILITY
# =============================================================================


@dataclass(frozen=True)
class SimilarityMatch:
    """A candidate that ranked at or above the threshold."""

    index: int  # position in the candidate list
    score: float
    text: str


@runtime_checkable
class SimilarityProvider(Protocol):
    """Pairwise text scoring and top-k ranking.

    Implementations may be lexical, embedding-backed or anything else; the
    services never look past this contract.
    """

    def score(self, text_a: str, text_b: str) -> float:
        """Similarity in [0, 1]; 1 means identical."""
        ...

    def rank(
        self, query: str, candidates: Sequence[str], threshold: float
    ) -> List[SimilarityMatch]:
        """Candidates scoring >= threshold, highest score first.

        Ties keep candidate order.
        """
        ...


# =============================================================================
# PERSISTENCE CONTRACTS
# =============================================================================


@runtime_checkable
class IdentityStorage(Protocol):
    """Live identity records plus their append-only version history."""

    def save(self, identity: Identity) -> None:
        """Insert or replace the live record (upsert by id)."""
        ...

    def load(self, identity_id: str) -> Optional[Identity]: ...

    def save_version(self, version: IdentityVersion) -> None:
        """Append a version snapshot."""
        ...

    def get_versions(self, identity_id: str) -> List[IdentityVersion]:
        """All snapshots of an identity, ascending by version."""
        ...

    def get_version(self, identity_id: str, version: int) -> Optional[IdentityVersion]: ...

    def list_ids(self) -> List[str]: ...

    def delete(self, identity_id: str) -> None:
        """Remove the live record and its entire version history."""
        ...


@runtime_checkable
class DistilledMemoryStorage(Protocol):
    """Persistence for distilled memories.

    Optional accelerators a backend may also provide:
        find_by_type(memory_type) -> List[DistilledMemory]
        find_by_tags(tags) -> List[DistilledMemory]   # all-of match
    """

    def save(self, memory: DistilledMemory) -> None: ...

    def load(self, memory_id: str) -> Optional[DistilledMemory]: ...

    def list_all(self) -> List[DistilledMemory]:
        """Every memory, in storage (insertion) order."""
        ...

    def delete(self, memory_id: str) -> None: ...


@runtime_checkable
class FailurePatternStorage(Protocol):
    """Persistence for failure patterns.

    Optional accelerators:
        find_by_severity(severity) -> List[FailurePattern]
        find_by_tags(tags) -> List[FailurePattern]
    """

    def save(self, pattern: FailurePattern) -> None: ...

    def load(self, pattern_id: str) -> Optional[FailurePattern]: ...

    def list_all(self) -> List[FailurePattern]: ...

    def delete(self, pattern_id: str) -> None: ...
