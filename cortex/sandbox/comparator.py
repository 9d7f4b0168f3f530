"""Strict comparison of sandbox outputs for determinism checks.

Runtime-only fields are ignored: snapshot timestamps and run duration.
Record ids and record timestamps are compared, since a replay restores them
exactly.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List

from cortex.sandbox.runner import SandboxOutput
from cortex.sandbox.snapshot import StateSnapshot

logger = logging.getLogger(__name__)


@dataclass
class Difference:
    path: str
    expected: Any
    actual: Any


@dataclass
class ComparisonResult:
    differences: List[Difference] = field(default_factory=list)

    @property
    def identical(self) -> bool:
        return not self.differences


def _compare(path: str, expected: Any, actual: Any, out: List[Difference]) -> None:
    if expected == actual and type(expected) is type(actual):
        return

    if isinstance(expected, list) and isinstance(actual, list):
        if len(expected) != len(actual):
            out.append(Difference(f"{path}.length", len(expected), len(actual)))
        for i, (e, a) in enumerate(zip(expected, actual)):
            _compare(f"{path}[{i}]", e, a, out)
        return

    if isinstance(expected, dict) and isinstance(actual, dict):
        for key in list(expected) + [k for k in actual if k not in expected]:
            _compare(f"{path}.{key}", expected.get(key), actual.get(key), out)
        return

    # int and float are interchangeable after a JSON round-trip
    if (
        isinstance(expected, (int, float))
        and isinstance(actual, (int, float))
        and not isinstance(expected, bool)
        and not isinstance(actual, bool)
        and expected == actual
    ):
        return

    out.append(Difference(path, expected, actual))


def _by_id(records: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    # Order-independent: storage order is not part of the contract
    return sorted(records, key=lambda r: r.get("id", ""))


def _compare_state(base: str, expected: StateSnapshot, actual: StateSnapshot, out) -> None:
    if (expected.identity is None) != (actual.identity is None):
        out.append(
            Difference(
                f"{base}.identity",
                "absent" if expected.identity is None else "present",
                "absent" if actual.identity is None else "present",
            )
        )
    elif expected.identity is not None:
        _compare(f"{base}.identity", expected.identity, actual.identity, out)
    _compare(f"{base}.memories", _by_id(expected.memories), _by_id(actual.memories), out)
    _compare(f"{base}.failures", _by_id(expected.failures), _by_id(actual.failures), out)


def compare_outputs(expected: SandboxOutput, actual: SandboxOutput) -> ComparisonResult:
    """Compare two runs field by field, ignoring timestamps of the snapshots and duration."""
    out: List[Difference] = []
    _compare("success", expected.success, actual.success, out)
    _compare("input", expected.input.to_dict(), actual.input.to_dict(), out)
    _compare_state("state_before", expected.state_before, actual.state_before, out)
    _compare_state("state_after", expected.state_after, actual.state_after, out)

    exp_d = expected.to_dict()["decision"]
    act_d = actual.to_dict()["decision"]
    _compare("decision", exp_d, act_d, out)
    _compare("error", expected.error, actual.error, out)

    if out:
        logger.debug("Outputs differ in %d place(s)", len(out))
    return ComparisonResult(differences=out)
