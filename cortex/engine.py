"""Cortex engine: the context preparation pipeline.

prepare_context() coordinates the three services:

1. Load the identity (missing -> PrepareError)
2. Check failure patterns (hard block -> PrepareBlocked, nothing retrieved)
3. Retrieve lessons, preferences and warnings concurrently
4. Assemble structured views (PrepareSuccess)

The pipeline returns data structures, never prompts, and never writes to any
store. A block is a result, not an exception.
"""

import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, List, Optional, Union

from cortex.config import EngineConfig
from cortex.core.validation import check_number, check_string
from cortex.identity import IdentityService
from cortex.memory.distilled import DistilledMemoryService
from cortex.memory.failure import FailureMemoryService
from cortex.protocols import BlockedError, CortexError
from cortex.types import (
    BlockCheckResult,
    DistilledMemory,
    FailurePattern,
    FailureSeverity,
    Identity,
    MemoryQuery,
    MemoryType,
    utc_now,
)

logger = logging.getLogger(__name__)

DEFAULT_BLOCK_REASON = "Matched hard-block failure pattern"


# =============================================================================
# Input
# =============================================================================


@dataclass
class MemoryOptions:
    """Per-request overrides for memory retrieval."""

    limit_per_type: Optional[int] = None
    min_confidence: Optional[float] = None
    similarity_threshold: Optional[float] = None


@dataclass
class FailureOptions:
    """Per-request overrides for the blocking check.

    skip_check keeps the check from short-circuiting the pipeline; the check
    still runs so the failure view can report what matched.
    """

    skip_check: bool = False
    similarity_threshold: Optional[float] = None


@dataclass
class PrepareContextInput:
    identity_id: str
    query: str
    context: Optional[str] = None
    memory_options: Optional[MemoryOptions] = None
    failure_options: Optional[FailureOptions] = None


# =============================================================================
# Context views
# =============================================================================


@dataclass
class ValueView:
    name: str
    description: str
    priority: float


@dataclass
class InvariantView:
    rule: str
    rationale: str


@dataclass
class StyleView:
    aspect: str
    constraint: str


@dataclass
class IdentityContext:
    name: str
    values: List[ValueView]  # highest priority first
    invariants: List[InvariantView]
    style_constraints: List[StyleView]
    risk_posture: str
    description: Optional[str] = None


@dataclass
class MemoryItem:
    content: str
    confidence: float


@dataclass
class MemoryContext:
    lessons: List[MemoryItem] = field(default_factory=list)
    preferences: List[MemoryItem] = field(default_factory=list)
    warnings: List[MemoryItem] = field(default_factory=list)


@dataclass
class BlockItem:
    pattern: str
    reason: str
    occurrence_count: int


@dataclass
class FailureContext:
    blocked: bool
    hard_blocks: List[BlockItem] = field(default_factory=list)
    soft_blocks: List[BlockItem] = field(default_factory=list)
    block_reason: Optional[str] = None  # set only when blocked


@dataclass
class CortexContext:
    """Everything one pipeline call prepared. Owned by the caller."""

    identity: Identity
    identity_context: IdentityContext
    memory_context: MemoryContext
    failure_context: FailureContext
    raw_memories: List[DistilledMemory]
    raw_blocking_result: BlockCheckResult
    prepared_at: datetime


# =============================================================================
# Results
# =============================================================================


@dataclass
class PrepareSuccess:
    context: CortexContext
    success: bool = field(default=True, init=False)
    blocked: bool = field(default=False, init=False)

    def unwrap(self) -> CortexContext:
        return self.context


@dataclass
class PrepareBlocked:
    reason: str
    matched_patterns: List[FailurePattern]
    success: bool = field(default=False, init=False)
    blocked: bool = field(default=True, init=False)

    def unwrap(self) -> CortexContext:
        raise BlockedError(self.reason, self.matched_patterns)


@dataclass
class PrepareError:
    error: str
    success: bool = field(default=False, init=False)
    blocked: bool = field(default=False, init=False)

    def unwrap(self) -> CortexContext:
        raise CortexError(self.error)


PrepareContextResult = Union[PrepareSuccess, PrepareBlocked, PrepareError]


def validate_prepare_input(data: PrepareContextInput) -> List[str]:
    errors: List[str] = []
    check_string(data.identity_id, "identity_id", errors)
    check_string(data.query, "query", errors)
    if data.context is not None and not isinstance(data.context, str):
        errors.append("context must be a string if provided")

    mo = data.memory_options
    if mo is not None:
        if mo.limit_per_type is not None:
            if isinstance(mo.limit_per_type, bool) or not isinstance(mo.limit_per_type, int):
                errors.append("memory_options.limit_per_type must be an integer")
            elif mo.limit_per_type < 1:
                errors.append("memory_options.limit_per_type must be >= 1")
        if mo.min_confidence is not None:
            check_number(mo.min_confidence, "memory_options.min_confidence", errors, 0.0, 1.0)
        if mo.similarity_threshold is not None:
            check_number(
                mo.similarity_threshold, "memory_options.similarity_threshold", errors, 0.0, 1.0
            )

    fo = data.failure_options
    if fo is not None and fo.similarity_threshold is not None:
        check_number(
            fo.similarity_threshold, "failure_options.similarity_threshold", errors, 0.0, 1.0
        )
    return errors


# =============================================================================
# Engine
# =============================================================================


class CortexEngine:
    """Orchestrates identity, memory and failure services into one decision."""

    def __init__(
        self,
        identity: IdentityService,
        memory: DistilledMemoryService,
        failure: FailureMemoryService,
        config: Optional[EngineConfig] = None,
        now_fn: Callable[[], datetime] = utc_now,
    ):
        self.identity = identity
        self.memory = memory
        self.failure = failure
        self.config = config or EngineConfig()
        self._now = now_fn

    def prepare_context(self, data: PrepareContextInput) -> PrepareContextResult:
        prepared_at = self._now()

        errors = validate_prepare_input(data)
        if errors:
            logger.debug("Rejected prepare_context input: %s", errors)
            return PrepareError(error="Invalid input: " + "; ".join(errors))

        identity = self.identity.load(data.identity_id)
        if identity is None:
            return PrepareError(error=f"Identity not found: {data.identity_id}")

        fo = data.failure_options or FailureOptions()
        blocking = self.failure.check_blocking(
            data.query, data.context, threshold=fo.similarity_threshold
        )
        if blocking.blocked and not fo.skip_check:
            reason = self._block_reason(blocking.matched_patterns)
            logger.info("prepare_context blocked for identity %s: %s", identity.id, reason)
            return PrepareBlocked(reason=reason, matched_patterns=blocking.matched_patterns)

        lessons, preferences, warnings = self._retrieve_memories(data)

        context = CortexContext(
            identity=identity,
            identity_context=build_identity_context(identity),
            memory_context=MemoryContext(
                lessons=[MemoryItem(m.content, m.confidence) for m in lessons],
                preferences=[MemoryItem(m.content, m.confidence) for m in preferences],
                warnings=[MemoryItem(m.content, m.confidence) for m in warnings],
            ),
            failure_context=build_failure_context(blocking),
            raw_memories=lessons + preferences + warnings,
            raw_blocking_result=blocking,
            prepared_at=prepared_at,
        )
        logger.debug(
            "Prepared context for %s: %d memories, %d failure matches",
            identity.id,
            len(context.raw_memories),
            len(blocking.matched_patterns),
        )
        return PrepareSuccess(context=context)

    def _retrieve_memories(self, data: PrepareContextInput):
        """Run one retrieval per memory type concurrently; returns (lessons, preferences, warnings)."""
        mo = data.memory_options or MemoryOptions()
        limit = mo.limit_per_type if mo.limit_per_type is not None else self.config.default_memory_limit
        min_confidence = (
            mo.min_confidence
            if mo.min_confidence is not None
            else self.config.default_min_confidence
        )
        threshold = (
            mo.similarity_threshold
            if mo.similarity_threshold is not None
            else self.config.default_similarity_threshold
        )

        def retrieve(memory_type: MemoryType) -> List[DistilledMemory]:
            query = MemoryQuery(
                memory_type=memory_type,
                min_confidence=min_confidence,
                limit=limit,
                semantic_query=data.query,
                similarity_threshold=threshold,
            )
            return self.memory.retrieve(query).memories

        types = (MemoryType.LESSON, MemoryType.PREFERENCE, MemoryType.WARNING)
        with ThreadPoolExecutor(max_workers=len(types)) as executor:
            futures = [executor.submit(retrieve, t) for t in types]
            return tuple(f.result() for f in futures)

    @staticmethod
    def _block_reason(matched: List[FailurePattern]) -> str:
        for pattern in matched:
            if pattern.severity == FailureSeverity.HARD and pattern.reason:
                return pattern.reason
        return DEFAULT_BLOCK_REASON


def build_identity_context(identity: Identity) -> IdentityContext:
    # sorted() copies, so the identity's own tuple order is untouched
    values = sorted(identity.values, key=lambda v: v.priority, reverse=True)
    return IdentityContext(
        name=identity.name,
        values=[ValueView(v.name, v.description, v.priority) for v in values],
        invariants=[InvariantView(i.rule, i.rationale) for i in identity.invariants],
        style_constraints=[StyleView(s.aspect, s.constraint) for s in identity.style_constraints],
        risk_posture=identity.risk_posture.value,
        description=identity.description,
    )


def build_failure_context(result: BlockCheckResult) -> FailureContext:
    hard = [p for p in result.matched_patterns if p.severity == FailureSeverity.HARD]
    soft = [p for p in result.matched_patterns if p.severity == FailureSeverity.SOFT]
    return FailureContext(
        blocked=result.blocked,
        hard_blocks=[BlockItem(p.pattern, p.reason, p.occurrence_count) for p in hard],
        soft_blocks=[BlockItem(p.pattern, p.reason, p.occurrence_count) for p in soft],
        block_reason=hard[0].reason if result.blocked and hard else None,
    )
