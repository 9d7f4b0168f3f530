"""Distilled memory service.

Lessons, preferences and warnings carry two independent axes:

- confidence: how strongly the statement is believed. Raised by
  reinforcement and merging, capped at max_confidence.
- decay_factor: how fresh it is. Lowered by apply_decay() once per elapsed
  decay interval, reset to 1.0 by reinforcement.

Their product (effective_strength) decides whether cleanup() removes a
memory. Neither decay nor cleanup ever runs implicitly.
"""

import dataclasses
import logging
import uuid
from datetime import datetime
from typing import Callable, List, Optional

from cortex.config import MemoryConfig
from cortex.core.validation import (
    check_enum,
    check_number,
    check_optional_string,
    check_string,
    check_string_list,
)
from cortex.memory.matching import find_or_create
from cortex.protocols import (
    DistilledMemoryStorage,
    NotFoundError,
    SimilarityProvider,
    ValidationError,
)
from cortex.types import (
    DistilledMemory,
    MemoryInput,
    MemoryQuery,
    MemoryQueryResult,
    MemoryType,
    MergeResult,
    RecordOutcome,
    ReinforcementResult,
    normalize_tags,
    utc_now,
)

logger = logging.getLogger(__name__)


def validate_memory_input(data: MemoryInput) -> List[str]:
    errors: List[str] = []
    check_enum(data.memory_type, "memory_type", MemoryType, errors)
    check_string(data.content, "content", errors)
    if data.confidence is not None:
        check_number(data.confidence, "confidence", errors, min_val=0.0, max_val=1.0)
    check_string_list(data.tags, "tags", errors)
    check_optional_string(data.source_context, "source_context", errors)
    return errors


def validate_memory_query(query: MemoryQuery) -> List[str]:
    errors: List[str] = []
    if query.memory_type is not None:
        check_enum(query.memory_type, "memory_type", MemoryType, errors)
    check_string_list(query.tags, "tags", errors)
    if query.min_confidence is not None:
        check_number(query.min_confidence, "min_confidence", errors, 0.0, 1.0)
    if query.similarity_threshold is not None:
        check_number(query.similarity_threshold, "similarity_threshold", errors, 0.0, 1.0)
    if query.limit is not None:
        if isinstance(query.limit, bool) or not isinstance(query.limit, int):
            errors.append("limit must be an integer")
    check_optional_string(query.semantic_query, "semantic_query", errors)
    return errors


def _has_all_tags(record_tags: List[str], wanted: List[str]) -> bool:
    have = set(record_tags)
    return all(t in have for t in wanted)


class DistilledMemoryService:
    """Record, reinforce, merge, decay and retrieve distilled memories."""

    def __init__(
        self,
        storage: DistilledMemoryStorage,
        similarity: SimilarityProvider,
        config: Optional[MemoryConfig] = None,
        now_fn: Callable[[], datetime] = utc_now,
    ):
        self._storage = storage
        self._similarity = similarity
        self.config = config or MemoryConfig()
        self._now = now_fn

    # === Writes ===

    def record(self, data: MemoryInput) -> DistilledMemory:
        """Record an observation, reinforcing a near-duplicate if one exists."""
        return self.record_outcome(data).record

    def record_outcome(self, data: MemoryInput) -> RecordOutcome:
        """Like record(), but also reports whether the memory was created or reinforced.

        Raises:
            ValidationError: Listing every malformed field.
        """
        errors = validate_memory_input(data)
        if errors:
            raise ValidationError(errors, "memory input")

        def create() -> DistilledMemory:
            now = self._now()
            memory = DistilledMemory(
                id=str(uuid.uuid4()),
                memory_type=MemoryType(data.memory_type),
                content=data.content.strip(),
                confidence=(
                    data.confidence
                    if data.confidence is not None
                    else self.config.default_confidence
                ),
                created_at=now,
                last_reinforced_at=now,
                last_decay_at=now,
                reinforcement_count=0,
                decay_factor=1.0,
                tags=normalize_tags(data.tags),
                source_context=data.source_context,
            )
            self._storage.save(memory)
            logger.info("Recorded %s memory %s", memory.memory_type.value, memory.id)
            return memory

        return find_or_create(
            data.content,
            self._storage.list_all(),
            lambda m: m.content,
            self._similarity,
            self.config.duplicate_threshold,
            on_match=lambda m: self.reinforce(m.id).memory,
            on_create=create,
        )

    def reinforce(self, memory_id: str) -> ReinforcementResult:
        """Strengthen a memory and reset its staleness.

        Raises:
            NotFoundError: If the memory does not exist.
        """
        memory = self._require(memory_id)
        now = self._now()
        new_confidence = min(
            self.config.max_confidence, memory.confidence + self.config.reinforcement_boost
        )
        updated = dataclasses.replace(
            memory,
            confidence=new_confidence,
            reinforcement_count=memory.reinforcement_count + 1,
            decay_factor=1.0,
            last_reinforced_at=now,
            last_decay_at=now,
        )
        self._storage.save(updated)
        logger.debug(
            "Reinforced memory %s: %.2f -> %.2f", memory_id, memory.confidence, new_confidence
        )
        return ReinforcementResult(
            memory=updated,
            previous_confidence=memory.confidence,
            new_confidence=new_confidence,
            previous_reinforcement_count=memory.reinforcement_count,
        )

    def merge(self, keep_id: str, remove_id: str) -> MergeResult:
        """Fold ``remove_id`` into ``keep_id`` and delete it.

        The kept memory keeps its id and content. The similarity score is
        reported only; it never prevents the merge.

        Raises:
            ValidationError: If both ids are the same.
            NotFoundError: If either memory does not exist.
        """
        if keep_id == remove_id:
            raise ValidationError(["cannot merge a memory with itself"], "merge")

        keep = self._require(keep_id)
        remove = self._require(remove_id)
        score = self._similarity.score(keep.content, remove.content)

        merged = dataclasses.replace(
            keep,
            confidence=min(
                self.config.max_confidence,
                max(keep.confidence, remove.confidence) + self.config.reinforcement_boost,
            ),
            reinforcement_count=keep.reinforcement_count + remove.reinforcement_count + 1,
            created_at=min(keep.created_at, remove.created_at),
            tags=normalize_tags(list(keep.tags) + list(remove.tags)),
            last_reinforced_at=self._now(),
        )
        self._storage.save(merged)
        self._storage.delete(remove_id)
        logger.info("Merged memory %s into %s (similarity=%.3f)", remove_id, keep_id, score)
        return MergeResult(merged=merged, removed=remove, similarity_score=score)

    def apply_decay(self) -> int:
        """Age every memory by the number of whole intervals since its last decay.

        Returns:
            Number of memories whose decay factor was updated.
        """
        decay = self.config.decay
        now = self._now()
        touched = 0
        for memory in self._storage.list_all():
            elapsed = now - memory.last_decay_at
            if elapsed < decay.decay_interval:
                continue
            intervals = elapsed // decay.decay_interval
            self._storage.save(
                dataclasses.replace(
                    memory,
                    decay_factor=max(0.0, memory.decay_factor - decay.decay_rate * intervals),
                    last_decay_at=now,
                )
            )
            touched += 1
        if touched:
            logger.info("Applied decay to %d memories", touched)
        return touched

    def cleanup(self) -> List[str]:
        """Delete weak or stale memories. Returns the deleted ids."""
        decay = self.config.decay
        deleted = []
        for memory in self._storage.list_all():
            if (
                memory.confidence < decay.deletion_threshold
                or memory.decay_factor < decay.decay_factor_threshold
                or memory.effective_strength < decay.deletion_threshold
            ):
                self._storage.delete(memory.id)
                deleted.append(memory.id)
        if deleted:
            logger.info("Cleaned up %d memories", len(deleted))
        return deleted

    def delete(self, memory_id: str) -> None:
        self._require(memory_id)
        self._storage.delete(memory_id)
        logger.info("Deleted memory %s", memory_id)

    # === Reads ===

    def load(self, memory_id: str) -> Optional[DistilledMemory]:
        return self._storage.load(memory_id)

    def list_all(self) -> List[DistilledMemory]:
        return self._storage.list_all()

    def retrieve(self, query: MemoryQuery) -> MemoryQueryResult:
        """Filter memories by type, tags, confidence and semantic closeness.

        With a semantic query the result follows the similarity ranking;
        otherwise storage order. total_count is taken before the limit.
        """
        errors = validate_memory_query(query)
        if errors:
            raise ValidationError(errors, "memory query")

        if query.memory_type is not None and hasattr(self._storage, "find_by_type"):
            candidates = self._storage.find_by_type(MemoryType(query.memory_type))
        elif query.tags and hasattr(self._storage, "find_by_tags"):
            candidates = self._storage.find_by_tags(list(query.tags))
        else:
            candidates = self._storage.list_all()

        if query.memory_type is not None:
            candidates = [m for m in candidates if m.memory_type == query.memory_type]
        if query.tags:
            candidates = [m for m in candidates if _has_all_tags(m.tags, query.tags)]
        if query.min_confidence is not None:
            candidates = [m for m in candidates if m.confidence >= query.min_confidence]

        if query.semantic_query:
            threshold = (
                query.similarity_threshold
                if query.similarity_threshold is not None
                else self.config.default_similarity_threshold
            )
            ranked = self._similarity.rank(
                query.semantic_query, [m.content for m in candidates], threshold
            )
            candidates = [candidates[match.index] for match in ranked]

        total = len(candidates)
        if query.limit is not None and query.limit > 0:
            candidates = candidates[: query.limit]
        return MemoryQueryResult(memories=candidates, total_count=total)

    def _require(self, memory_id: str) -> DistilledMemory:
        memory = self._storage.load(memory_id)
        if memory is None:
            raise NotFoundError("Memory", memory_id)
        return memory
