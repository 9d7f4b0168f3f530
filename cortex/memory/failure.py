"""Failure memory service.

Records past mistakes as patterns. Hard patterns block a request outright;
soft patterns are surfaced so the caller can steer away from them. Only
active patterns take part in blocking checks, but deactivated ones keep their
occurrence history and are reactivated when the failure recurs.
"""

import dataclasses
import logging
import uuid
from datetime import datetime
from typing import Callable, List, Optional

from cortex.config import FailureConfig
from cortex.core.validation import (
    check_enum,
    check_number,
    check_optional_string,
    check_string,
    check_string_list,
)
from cortex.memory.matching import find_or_create
from cortex.protocols import (
    FailurePatternStorage,
    NotFoundError,
    SimilarityProvider,
    ValidationError,
)
from cortex.types import (
    BlockCheckResult,
    FailureInput,
    FailurePattern,
    FailureQuery,
    FailureQueryResult,
    FailureSeverity,
    RecordOutcome,
    normalize_tags,
    utc_now,
)

logger = logging.getLogger(__name__)


def validate_failure_input(data: FailureInput) -> List[str]:
    errors: List[str] = []
    check_string(data.pattern, "pattern", errors)
    check_string(data.context, "context", errors)
    check_enum(data.severity, "severity", FailureSeverity, errors)
    check_string(data.reason, "reason", errors)
    check_string_list(data.tags, "tags", errors)
    return errors


def validate_failure_query(query: FailureQuery) -> List[str]:
    errors: List[str] = []
    if query.severity is not None:
        check_enum(query.severity, "severity", FailureSeverity, errors)
    check_string_list(query.tags, "tags", errors)
    if query.active is not None and not isinstance(query.active, bool):
        errors.append("active must be a boolean")
    if query.min_occurrences is not None:
        check_number(query.min_occurrences, "min_occurrences", errors, 0)
    if query.similarity_threshold is not None:
        check_number(query.similarity_threshold, "similarity_threshold", errors, 0.0, 1.0)
    if query.limit is not None:
        if isinstance(query.limit, bool) or not isinstance(query.limit, int):
            errors.append("limit must be an integer")
    check_optional_string(query.semantic_query, "semantic_query", errors)
    return errors


class FailureMemoryService:
    """Record, check and retrieve failure patterns."""

    def __init__(
        self,
        storage: FailurePatternStorage,
        similarity: SimilarityProvider,
        config: Optional[FailureConfig] = None,
        now_fn: Callable[[], datetime] = utc_now,
    ):
        self._storage = storage
        self._similarity = similarity
        self.config = config or FailureConfig()
        self._now = now_fn

    def record(self, data: FailureInput) -> FailurePattern:
        """Record a failure, incrementing a matching pattern if one exists."""
        return self.record_outcome(data).record

    def record_outcome(self, data: FailureInput) -> RecordOutcome:
        """Like record(), but reports whether the pattern was created or reinforced.

        Every stored pattern is a candidate, active or not. A matched pattern
        is reactivated, and upgraded to hard when the new occurrence is hard.
        Severity is never downgraded.

        Raises:
            ValidationError: Listing every malformed field.
        """
        errors = validate_failure_input(data)
        if errors:
            raise ValidationError(errors, "failure input")
        severity = FailureSeverity(data.severity)

        def increment(existing: FailurePattern) -> FailurePattern:
            upgraded = severity == FailureSeverity.HARD and existing.severity != severity
            updated = dataclasses.replace(
                existing,
                occurrence_count=existing.occurrence_count + 1,
                last_occurred_at=self._now(),
                active=True,
                severity=FailureSeverity.HARD if upgraded else existing.severity,
            )
            self._storage.save(updated)
            if upgraded:
                logger.info("Failure pattern %s upgraded to hard", existing.id)
            logger.debug(
                "Failure pattern %s occurred %d times", existing.id, updated.occurrence_count
            )
            return updated

        def create() -> FailurePattern:
            now = self._now()
            pattern = FailurePattern(
                id=str(uuid.uuid4()),
                pattern=data.pattern.strip(),
                context=data.context.strip(),
                severity=severity,
                reason=data.reason.strip(),
                created_at=now,
                last_occurred_at=now,
                occurrence_count=1,
                tags=normalize_tags(data.tags),
                active=True,
            )
            self._storage.save(pattern)
            logger.info("Recorded %s failure pattern %s", severity.value, pattern.id)
            return pattern

        return find_or_create(
            data.pattern,
            self._storage.list_all(),
            lambda p: p.pattern,
            self._similarity,
            self.config.duplicate_threshold,
            on_match=increment,
            on_create=create,
        )

    def check_blocking(
        self, text: str, context: Optional[str] = None, threshold: Optional[float] = None
    ) -> BlockCheckResult:
        """Match text (and optional context) against active patterns.

        A pattern matches when max(pattern_score, mean(pattern_score,
        context_score)) reaches the threshold. The request is blocked when any
        match is hard.
        """
        if threshold is None:
            threshold = self.config.blocking_threshold

        matches = []
        for pattern in self._storage.list_all():
            if not pattern.active:
                continue
            score = self._similarity.score(text, pattern.pattern)
            if context:
                context_score = self._similarity.score(context, pattern.context)
                score = max(score, (score + context_score) / 2)
            if score >= threshold:
                matches.append(pattern)

        if not matches:
            return BlockCheckResult(blocked=False, matched_patterns=[], severity=None)

        matches.sort(key=lambda p: p.occurrence_count, reverse=True)
        blocked = any(p.severity == FailureSeverity.HARD for p in matches)
        if blocked:
            logger.info("Blocked by %d matching failure pattern(s)", len(matches))
        return BlockCheckResult(
            blocked=blocked,
            matched_patterns=matches,
            severity=FailureSeverity.HARD if blocked else FailureSeverity.SOFT,
        )

    def get_matching_patterns(self, text: str) -> List[FailurePattern]:
        """Active patterns ranked by similarity to text. Inspection only."""
        active = [p for p in self._storage.list_all() if p.active]
        ranked = self._similarity.rank(
            text, [p.pattern for p in active], self.config.blocking_threshold
        )
        return [active[m.index] for m in ranked]

    def activate(self, pattern_id: str) -> FailurePattern:
        return self._set_active(pattern_id, True)

    def deactivate(self, pattern_id: str) -> FailurePattern:
        return self._set_active(pattern_id, False)

    def _set_active(self, pattern_id: str, active: bool) -> FailurePattern:
        pattern = self._require(pattern_id)
        updated = dataclasses.replace(pattern, active=active)
        self._storage.save(updated)
        logger.info("Failure pattern %s %s", pattern_id, "activated" if active else "deactivated")
        return updated

    def retrieve(self, query: FailureQuery) -> FailureQueryResult:
        """Filter patterns by severity, tags, active flag, occurrences and similarity."""
        errors = validate_failure_query(query)
        if errors:
            raise ValidationError(errors, "failure query")

        if query.severity is not None and hasattr(self._storage, "find_by_severity"):
            candidates = self._storage.find_by_severity(FailureSeverity(query.severity))
        elif query.tags and hasattr(self._storage, "find_by_tags"):
            candidates = self._storage.find_by_tags(list(query.tags))
        else:
            candidates = self._storage.list_all()

        if query.severity is not None:
            candidates = [p for p in candidates if p.severity == query.severity]
        if query.tags:
            candidates = [p for p in candidates if set(query.tags).issubset(p.tags)]
        if query.active is not None:
            candidates = [p for p in candidates if p.active == query.active]
        if query.min_occurrences is not None:
            candidates = [p for p in candidates if p.occurrence_count >= query.min_occurrences]

        if query.semantic_query:
            threshold = (
                query.similarity_threshold
                if query.similarity_threshold is not None
                else self.config.blocking_threshold
            )
            ranked = self._similarity.rank(
                query.semantic_query, [p.pattern for p in candidates], threshold
            )
            candidates = [candidates[m.index] for m in ranked]

        total = len(candidates)
        if query.limit is not None and query.limit > 0:
            candidates = candidates[: query.limit]
        return FailureQueryResult(patterns=candidates, total_count=total)

    def load(self, pattern_id: str) -> Optional[FailurePattern]:
        return self._storage.load(pattern_id)

    def list_all(self) -> List[FailurePattern]:
        return self._storage.list_all()

    def delete(self, pattern_id: str) -> None:
        self._require(pattern_id)
        self._storage.delete(pattern_id)
        logger.info("Deleted failure pattern %s", pattern_id)

    def _require(self, pattern_id: str) -> FailurePattern:
        pattern = self._storage.load(pattern_id)
        if pattern is None:
            raise NotFoundError("Failure pattern", pattern_id)
        return pattern
