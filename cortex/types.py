"""
Shared record types for cortex.

All record dataclasses live here. They are the shared vocabulary between the
services, the storage adapters, the engine and the outer surfaces (CLI, MCP,
sandbox). A service builds a DistilledMemory; the storage adapter persists it.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import List, Optional, Tuple

# === Shared Utility Functions ===


def utc_now() -> datetime:
    """Get the current time as a timezone-aware UTC datetime."""
    return datetime.now(timezone.utc)


def parse_datetime(s: Optional[str]) -> Optional[datetime]:
    """Parse an ISO datetime string, assuming UTC when no offset is given."""
    if not s:
        return None
    dt = datetime.fromisoformat(s.replace("Z", "+00:00"))
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt


def normalize_tags(tags: Optional[List[str]]) -> List[str]:
    """Return tags stripped, de-duplicated and sorted."""
    if not tags:
        return []
    return sorted({t.strip() for t in tags if t and t.strip()})


# === Enums ===


class RiskPosture(str, Enum):
    """Risk tolerance of an identity."""

    CONSERVATIVE = "conservative"
    MODERATE = "moderate"
    AGGRESSIVE = "aggressive"


VALID_RISK_POSTURE_VALUES = tuple(r.value for r in RiskPosture)


class MemoryType(str, Enum):
    """Categories of distilled memory."""

    LESSON = "lesson"
    PREFERENCE = "preference"
    WARNING = "warning"


VALID_MEMORY_TYPE_VALUES = tuple(m.value for m in MemoryType)


class FailureSeverity(str, Enum):
    """Severity of a failure pattern.

    HARD blocks the pipeline outright; SOFT is surfaced to bias against the
    pattern but never halts anything.
    """

    HARD = "hard"
    SOFT = "soft"


VALID_SEVERITY_VALUES = tuple(s.value for s in FailureSeverity)


class RecordAction(str, Enum):
    """What a find-or-create write did."""

    CREATED = "created"
    REINFORCED = "reinforced"


# === Identity ===


@dataclass(frozen=True)
class Value:
    """A core value guiding decisions. Higher priority weighs more."""

    name: str
    description: str
    priority: float
    id: str = ""


@dataclass(frozen=True)
class Invariant:
    """A hard rule that must never be violated."""

    description: str
    rule: str
    rationale: str
    id: str = ""


@dataclass(frozen=True)
class StyleConstraint:
    """A behavioral constraint on one aspect (tone, verbosity, ...)."""

    aspect: str
    constraint: str
    id: str = ""


@dataclass(frozen=True)
class Identity:
    """The versioned identity record.

    Frozen: every change goes through IdentityService.update(), which builds
    a new object with the next version number.
    """

    id: str
    name: str
    version: int
    created_at: datetime
    updated_at: datetime
    values: Tuple[Value, ...] = ()
    invariants: Tuple[Invariant, ...] = ()
    style_constraints: Tuple[StyleConstraint, ...] = ()
    risk_posture: RiskPosture = RiskPosture.MODERATE
    description: Optional[str] = None


@dataclass(frozen=True)
class IdentityVersion:
    """Immutable snapshot of an identity at one version (audit trail)."""

    identity_id: str
    version: int
    snapshot: Identity
    created_at: datetime
    change_reason: str


@dataclass
class IdentityInput:
    """Input for creating an identity. Nested ids are ignored."""

    name: str
    risk_posture: RiskPosture
    values: List[Value] = field(default_factory=list)
    invariants: List[Invariant] = field(default_factory=list)
    style_constraints: List[StyleConstraint] = field(default_factory=list)
    description: Optional[str] = None


@dataclass
class IdentityUpdate:
    """Input for updating an identity.

    None means "keep the current value". A provided collection replaces the
    current one wholesale.
    """

    change_reason: str
    values: Optional[List[Value]] = None
    invariants: Optional[List[Invariant]] = None
    style_constraints: Optional[List[StyleConstraint]] = None
    risk_posture: Optional[RiskPosture] = None
    description: Optional[str] = None


# === Distilled Memory ===


@dataclass
class DistilledMemory:
    """One distilled statement of learned knowledge.

    confidence is accumulated belief strength; decay_factor is staleness.
    The two are independent and only meet in effective_strength.
    """

    id: str
    memory_type: MemoryType
    content: str
    confidence: float
    created_at: datetime
    last_reinforced_at: datetime
    last_decay_at: datetime
    reinforcement_count: int = 0
    decay_factor: float = 1.0
    tags: List[str] = field(default_factory=list)
    source_context: Optional[str] = None

    @property
    def effective_strength(self) -> float:
        return self.confidence * self.decay_factor


@dataclass
class MemoryInput:
    """Input for recording a memory."""

    memory_type: MemoryType
    content: str
    confidence: Optional[float] = None
    tags: Optional[List[str]] = None
    source_context: Optional[str] = None


@dataclass
class MemoryQuery:
    """Retrieval filters for distilled memories. All filters are optional."""

    memory_type: Optional[MemoryType] = None
    tags: Optional[List[str]] = None  # memory must carry ALL of these
    min_confidence: Optional[float] = None
    limit: Optional[int] = None
    semantic_query: Optional[str] = None
    similarity_threshold: Optional[float] = None


@dataclass
class MemoryQueryResult:
    memories: List[DistilledMemory]
    total_count: int  # matches before the limit was applied


@dataclass
class ReinforcementResult:
    memory: DistilledMemory
    previous_confidence: float
    new_confidence: float
    previous_reinforcement_count: int


@dataclass
class MergeResult:
    merged: DistilledMemory
    removed: DistilledMemory
    similarity_score: float  # reported only, never gates the merge


# === Failure Memory ===


@dataclass
class FailurePattern:
    """A recorded failure. Hard patterns block, soft patterns bias."""

    id: str
    pattern: str
    context: str
    severity: FailureSeverity
    reason: str
    created_at: datetime
    last_occurred_at: datetime
    occurrence_count: int = 1
    tags: List[str] = field(default_factory=list)
    active: bool = True


@dataclass
class FailureInput:
    """Input for recording a failure occurrence."""

    pattern: str
    context: str
    severity: FailureSeverity
    reason: str
    tags: Optional[List[str]] = None


@dataclass
class FailureQuery:
    """Retrieval filters for failure patterns. All filters are optional."""

    severity: Optional[FailureSeverity] = None
    tags: Optional[List[str]] = None
    active: Optional[bool] = None
    min_occurrences: Optional[int] = None
    limit: Optional[int] = None
    semantic_query: Optional[str] = None
    similarity_threshold: Optional[float] = None


@dataclass
class FailureQueryResult:
    patterns: List[FailurePattern]
    total_count: int


@dataclass
class BlockCheckResult:
    """Outcome of a blocking check.

    matched_patterns is ordered by occurrence_count, most frequent first.
    """

    blocked: bool
    matched_patterns: List[FailurePattern] = field(default_factory=list)
    severity: Optional[FailureSeverity] = None


# === Find-or-create ===


@dataclass
class RecordOutcome:
    """Tagged result of a find-or-create write."""

    action: RecordAction
    record: object
    similarity: Optional[float] = None  # score of the matched record, if any

    @property
    def created(self) -> bool:
        return self.action == RecordAction.CREATED
