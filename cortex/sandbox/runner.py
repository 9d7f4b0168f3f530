"""Sandbox runner.

Executes one prepare_context call against an isolated Cortex and captures
the state before and after, plus a summary of the decision.
"""

import logging
import time
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from cortex.core.cortex_class import Cortex
from cortex.engine import FailureOptions, MemoryOptions, PrepareContextInput
from cortex.protocols import CortexError
from cortex.sandbox.snapshot import StateSnapshot, capture_state_snapshot

logger = logging.getLogger(__name__)

_MEMORY_OPTION_KEYS = ("limit_per_type", "min_confidence", "similarity_threshold")
_FAILURE_OPTION_KEYS = ("skip_check", "similarity_threshold")


@dataclass
class SandboxInput:
    identity_id: str
    query: str
    context: Optional[str] = None
    memory_options: Optional[Dict[str, Any]] = None
    failure_options: Optional[Dict[str, Any]] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "SandboxInput":
        return cls(
            identity_id=data["identity_id"],
            query=data["query"],
            context=data.get("context"),
            memory_options=data.get("memory_options"),
            failure_options=data.get("failure_options"),
        )

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {"identity_id": self.identity_id, "query": self.query}
        if self.context is not None:
            out["context"] = self.context
        if self.memory_options is not None:
            out["memory_options"] = dict(self.memory_options)
        if self.failure_options is not None:
            out["failure_options"] = dict(self.failure_options)
        return out

    def to_prepare_input(self) -> PrepareContextInput:
        mo = self.memory_options
        fo = self.failure_options
        return PrepareContextInput(
            identity_id=self.identity_id,
            query=self.query,
            context=self.context,
            memory_options=(
                MemoryOptions(**{k: mo[k] for k in _MEMORY_OPTION_KEYS if k in mo})
                if mo is not None
                else None
            ),
            failure_options=(
                FailureOptions(**{k: fo[k] for k in _FAILURE_OPTION_KEYS if k in fo})
                if fo is not None
                else None
            ),
        )


@dataclass
class DecisionDetails:
    blocked: bool
    matched_pattern_count: int
    retrieved_memory_count: int
    block_reason: Optional[str] = None


@dataclass
class SandboxOutput:
    """Outcome of one run.

    success means the pipeline ran to a decision; a block is a successful run.
    """

    success: bool
    input: SandboxInput
    state_before: StateSnapshot
    state_after: StateSnapshot
    decision: DecisionDetails
    duration_ms: float
    error: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "success": self.success,
            "input": self.input.to_dict(),
            "state_before": self.state_before.to_dict(),
            "state_after": self.state_after.to_dict(),
            "decision": {
                "blocked": self.decision.blocked,
                "block_reason": self.decision.block_reason,
                "matched_pattern_count": self.decision.matched_pattern_count,
                "retrieved_memory_count": self.decision.retrieved_memory_count,
            },
            "duration_ms": self.duration_ms,
            "error": self.error,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "SandboxOutput":
        decision = data.get("decision") or {}
        return cls(
            success=bool(data["success"]),
            input=SandboxInput.from_dict(data["input"]),
            state_before=StateSnapshot.from_dict(data["state_before"]),
            state_after=StateSnapshot.from_dict(data["state_after"]),
            decision=DecisionDetails(
                blocked=bool(decision.get("blocked", False)),
                matched_pattern_count=int(decision.get("matched_pattern_count", 0)),
                retrieved_memory_count=int(decision.get("retrieved_memory_count", 0)),
                block_reason=decision.get("block_reason"),
            ),
            duration_ms=float(data.get("duration_ms", 0.0)),
            error=data.get("error"),
        )


def validate_input_spec(data: Any) -> List[str]:
    """Structural check of a JSON input spec. Returns every problem found."""
    if not isinstance(data, dict):
        return ["Input must be an object"]

    errors = []
    identity_id = data.get("identity_id")
    if not isinstance(identity_id, str) or not identity_id.strip():
        errors.append("identity_id must be a non-empty string")
    query = data.get("query")
    if not isinstance(query, str) or not query.strip():
        errors.append("query must be a non-empty string")
    if data.get("context") is not None and not isinstance(data["context"], str):
        errors.append("context must be a string if provided")

    for key, allowed in (
        ("memory_options", _MEMORY_OPTION_KEYS),
        ("failure_options", _FAILURE_OPTION_KEYS),
    ):
        if key not in data or data[key] is None:
            continue
        if not isinstance(data[key], dict):
            errors.append(f"{key} must be an object if provided")
            continue
        unknown = sorted(set(data[key]) - set(allowed))
        if unknown:
            errors.append(f"{key} has unknown keys: {', '.join(unknown)}")
    return errors


class SandboxRunner:
    """Runs inputs against one Cortex, fresh and in-memory unless one is given."""

    def __init__(self, cortex: Optional[Cortex] = None):
        self.cortex = cortex or Cortex.create()

    def reset(self) -> None:
        """Discard all state by swapping in a fresh in-memory Cortex."""
        self.cortex = Cortex.create()

    def run(self, spec: SandboxInput) -> SandboxOutput:
        start = time.perf_counter()
        state_before = capture_state_snapshot(self.cortex, spec.identity_id)

        try:
            result = self.cortex.prepare_context(spec.to_prepare_input())
            if result.success:
                memory_context = result.context.memory_context
                decision = DecisionDetails(
                    blocked=False,
                    matched_pattern_count=len(result.context.raw_blocking_result.matched_patterns),
                    retrieved_memory_count=(
                        len(memory_context.lessons)
                        + len(memory_context.preferences)
                        + len(memory_context.warnings)
                    ),
                )
            elif result.blocked:
                decision = DecisionDetails(
                    blocked=True,
                    block_reason=result.reason,
                    matched_pattern_count=len(result.matched_patterns),
                    retrieved_memory_count=0,
                )
            else:
                raise CortexError(result.error)
        except CortexError as e:
            logger.debug("Sandbox run failed: %s", e)
            return SandboxOutput(
                success=False,
                input=spec,
                state_before=state_before,
                state_after=capture_state_snapshot(self.cortex, spec.identity_id),
                decision=DecisionDetails(
                    blocked=False, matched_pattern_count=0, retrieved_memory_count=0
                ),
                duration_ms=(time.perf_counter() - start) * 1000,
                error=str(e),
            )

        return SandboxOutput(
            success=True,
            input=spec,
            state_before=state_before,
            state_after=capture_state_snapshot(self.cortex, spec.identity_id),
            decision=decision,
            duration_ms=(time.perf_counter() - start) * 1000,
        )
