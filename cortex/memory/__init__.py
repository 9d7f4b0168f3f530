"""Distilled memory and failure memory services."""

from cortex.memory.distilled import DistilledMemoryService
from cortex.memory.failure import FailureMemoryService
from cortex.memory.matching import find_most_similar, find_or_create

__all__ = [
    "DistilledMemoryService",
    "FailureMemoryService",
    "find_most_similar",
    "find_or_create",
]
