"""Tests for the sandbox harness: runs, snapshots, recording and replay."""

import json

import pytest

from cortex.sandbox import (
    RestorationError,
    SandboxInput,
    SandboxRunner,
    StateSnapshot,
    capture_state_snapshot,
    compare_outputs,
    create_recorded_run,
    load_run,
    restore_state_snapshot,
    save_run,
    validate_input_spec,
)
from cortex.types import FailureInput, FailureSeverity, MemoryInput, MemoryType


@pytest.fixture
def seeded(cortex, identity):
    cortex.memory.record(
        MemoryInput(memory_type=MemoryType.LESSON, content="Always validate input", confidence=0.8)
    )
    cortex.memory.record(
        MemoryInput(memory_type=MemoryType.WARNING, content="input parsing is fragile")
    )
    cortex.failure.record(
        FailureInput(
            pattern="drop the database",
            context="ops",
            severity=FailureSeverity.HARD,
            reason="irreversible",
        )
    )
    return cortex, identity


class TestRunner:
    def test_success_run(self, seeded):
        cortex, identity = seeded
        output = SandboxRunner(cortex).run(SandboxInput(identity.id, "validate input"))

        assert output.success is True
        assert output.error is None
        assert output.decision.blocked is False
        assert output.decision.retrieved_memory_count == 1
        assert output.state_before.identity["id"] == identity.id
        assert len(output.state_before.memories) == 2
        assert output.state_after.memories == output.state_before.memories
        assert output.duration_ms >= 0

    def test_block_is_a_successful_run(self, seeded):
        cortex, identity = seeded
        output = SandboxRunner(cortex).run(SandboxInput(identity.id, "drop the database"))

        assert output.success is True
        assert output.decision.blocked is True
        assert output.decision.block_reason == "irreversible"
        assert output.decision.matched_pattern_count == 1
        assert output.decision.retrieved_memory_count == 0

    def test_pipeline_error_is_a_failed_run(self, seeded):
        cortex, _ = seeded
        output = SandboxRunner(cortex).run(SandboxInput("missing", "anything"))

        assert output.success is False
        assert output.error == "Identity not found: missing"
        assert output.state_before.identity is None

    def test_options_pass_through(self, seeded):
        cortex, identity = seeded
        spec = SandboxInput(
            identity.id,
            "drop the database",
            failure_options={"skip_check": True},
            memory_options={"limit_per_type": 1},
        )
        output = SandboxRunner(cortex).run(spec)

        assert output.decision.blocked is False
        assert output.decision.matched_pattern_count == 1

    def test_default_runner_is_isolated_and_resettable(self):
        runner = SandboxRunner()
        first = runner.cortex
        runner.reset()
        assert runner.cortex is not first
        assert runner.cortex.identity.list() == []


class TestInputSpec:
    def test_valid(self):
        assert validate_input_spec({"identity_id": "a", "query": "b"}) == []

    def test_collects_problems(self):
        errors = validate_input_spec(
            {
                "identity_id": "",
                "query": 3,
                "context": 1,
                "memory_options": {"limit": 3},
                "failure_options": [],
            }
        )
        assert errors == [
            "identity_id must be a non-empty string",
            "query must be a non-empty string",
            "context must be a string if provided",
            "memory_options has unknown keys: limit",
            "failure_options must be an object if provided",
        ]

    def test_not_an_object(self):
        assert validate_input_spec([]) == ["Input must be an object"]

    def test_round_trip_omits_unset(self):
        spec = SandboxInput.from_dict({"identity_id": "a", "query": "b"})
        assert spec.to_dict() == {"identity_id": "a", "query": "b"}


class TestRecordAndReplay:
    def test_replay_is_identical(self, seeded, tmp_path):
        cortex, identity = seeded
        for query in ("validate input", "drop the database", "nothing relevant"):
            output = SandboxRunner(cortex).run(SandboxInput(identity.id, query))
            path = save_run(create_recorded_run(output), tmp_path / "runs" / "run.json")

            recorded = load_run(path)
            replay_cortex = restore_state_snapshot(recorded.state_before)
            replayed = SandboxRunner(replay_cortex).run(recorded.input)

            comparison = compare_outputs(recorded.output, replayed)
            assert comparison.identical, comparison.differences

    def test_restore_preserves_records_exactly(self, seeded):
        cortex, identity = seeded
        snapshot = capture_state_snapshot(cortex, identity.id)
        restored = restore_state_snapshot(StateSnapshot.from_dict(snapshot.to_dict()))

        assert restored.identity.load(identity.id) == identity
        assert restored.memory.list_all() == cortex.memory.list_all()
        assert restored.failure.list_all() == cortex.failure.list_all()

    def test_comparator_reports_paths(self, seeded):
        cortex, identity = seeded
        runner = SandboxRunner(cortex)
        a = runner.run(SandboxInput(identity.id, "validate input"))
        cortex.memory.record(MemoryInput(memory_type=MemoryType.LESSON, content="new lesson here"))
        b = runner.run(SandboxInput(identity.id, "validate input"))

        result = compare_outputs(a, b)
        assert not result.identical
        assert "state_before.memories.length" in [d.path for d in result.differences]

    def test_comparator_ignores_timing(self, seeded):
        cortex, identity = seeded
        runner = SandboxRunner(cortex)
        a = runner.run(SandboxInput(identity.id, "validate input"))
        b = runner.run(SandboxInput(identity.id, "validate input"))
        b.duration_ms = a.duration_ms + 1000
        b.state_after.timestamp = "later"

        assert compare_outputs(a, b).identical


class TestLoadRun:
    def test_missing_file(self, tmp_path):
        with pytest.raises(ValueError, match="Run file not found"):
            load_run(tmp_path / "nope.json")

    def test_not_json(self, tmp_path):
        path = tmp_path / "bad.json"
        path.write_text("{nope")
        with pytest.raises(ValueError, match="not valid JSON"):
            load_run(path)

    def test_missing_sections(self, tmp_path):
        path = tmp_path / "partial.json"
        path.write_text(json.dumps({"id": "x", "timestamp": "t", "input": {}}))
        with pytest.raises(ValueError, match="missing output"):
            load_run(path)


class TestRestoreErrors:
    def test_memory_missing_fields(self):
        snapshot = StateSnapshot(identity=None, memories=[{"id": "m1", "content": "x"}])
        with pytest.raises(RestorationError, match=r"Memory\[0\] missing memory_type"):
            restore_state_snapshot(snapshot)

    def test_failure_tags_must_be_list(self, seeded):
        cortex, identity = seeded
        snapshot = capture_state_snapshot(cortex, identity.id)
        snapshot.failures[0]["tags"] = "ops"
        with pytest.raises(RestorationError, match="missing tags array"):
            restore_state_snapshot(snapshot)

    def test_invalid_identity(self, seeded):
        cortex, identity = seeded
        snapshot = capture_state_snapshot(cortex, identity.id)
        snapshot.identity["values"][0]["priority"] = -1
        with pytest.raises(RestorationError, match="Identity snapshot invalid"):
            restore_state_snapshot(snapshot)

    def test_restoration_error_is_value_error(self):
        assert issubclass(RestorationError, ValueError)
