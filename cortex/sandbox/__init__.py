"""Sandbox harness: isolated runs, state snapshots, recording and replay."""

from cortex.sandbox.comparator import ComparisonResult, Difference, compare_outputs
from cortex.sandbox.recorder import RecordedRun, create_recorded_run, load_run, save_run
from cortex.sandbox.restore import RestorationError, restore_state_snapshot
from cortex.sandbox.runner import (
    DecisionDetails,
    SandboxInput,
    SandboxOutput,
    SandboxRunner,
    validate_input_spec,
)
from cortex.sandbox.snapshot import StateSnapshot, capture_state_snapshot

__all__ = [
    "ComparisonResult",
    "DecisionDetails",
    "Difference",
    "RecordedRun",
    "RestorationError",
    "SandboxInput",
    "SandboxOutput",
    "SandboxRunner",
    "StateSnapshot",
    "capture_state_snapshot",
    "compare_outputs",
    "create_recorded_run",
    "load_run",
    "restore_state_snapshot",
    "save_run",
    "validate_input_spec",
]
