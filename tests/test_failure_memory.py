"""Tests for failure memory: recording, severity upgrade, blocking checks, retrieval."""

import pytest

from cortex.protocols import NotFoundError, ValidationError
from cortex.types import FailureInput, FailureQuery, FailureSeverity


def failure(pattern, severity=FailureSeverity.SOFT, context="deploy", reason="broke prod", **kw):
    return FailureInput(pattern=pattern, context=context, severity=severity, reason=reason, **kw)


@pytest.fixture
def failures(cortex):
    return cortex.failure


class TestRecord:
    def test_creates_active_pattern(self, failures, clock):
        p = failures.record(failure("  drop the production table ", tags=["db", "db"]))

        assert p.pattern == "drop the production table"
        assert p.occurrence_count == 1
        assert p.active is True
        assert p.tags == ["db"]
        assert p.created_at == p.last_occurred_at == clock.now

    def test_repeat_increments_and_refreshes(self, failures, clock):
        first = failures.record(failure("drop the production table"))
        clock.advance(hours=2)
        outcome = failures.record_outcome(failure("drop the production table"))

        assert not outcome.created
        assert outcome.record.id == first.id
        assert outcome.record.occurrence_count == 2
        assert outcome.record.last_occurred_at == clock.now
        assert outcome.record.created_at == first.created_at
        assert len(failures.list_all()) == 1

    def test_repeat_reactivates_inactive_pattern(self, failures):
        p = failures.record(failure("force push to main"))
        failures.deactivate(p.id)

        again = failures.record(failure("force push to main"))
        assert again.id == p.id
        assert again.active is True

    def test_hard_repeat_upgrades_soft(self, failures):
        p = failures.record(failure("force push to main"))
        again = failures.record(failure("force push to main", severity=FailureSeverity.HARD))

        assert again.id == p.id
        assert again.severity == FailureSeverity.HARD

    def test_soft_repeat_never_downgrades_hard(self, failures):
        failures.record(failure("force push to main", severity=FailureSeverity.HARD))
        again = failures.record(failure("force push to main", severity=FailureSeverity.SOFT))
        assert again.severity == FailureSeverity.HARD

    def test_validation(self, failures):
        with pytest.raises(ValidationError) as exc_info:
            failures.record(FailureInput(pattern="", context="", severity="fatal", reason=""))
        errors = exc_info.value.errors
        assert "pattern must be a non-empty string" in errors
        assert "context must be a non-empty string" in errors
        assert "reason must be a non-empty string" in errors
        assert any(e.startswith("severity must be one of") for e in errors)


class TestCheckBlocking:
    def test_hard_pattern_blocks_identical_text(self, failures):
        p = failures.record(failure("rm -rf /", severity=FailureSeverity.HARD))
        result = failures.check_blocking("rm -rf /")

        assert result.blocked is True
        assert result.severity == FailureSeverity.HARD
        assert [m.id for m in result.matched_patterns] == [p.id]

    def test_soft_pattern_matches_without_blocking(self, failures):
        p = failures.record(failure("skip code review"))
        result = failures.check_blocking("skip code review")

        assert result.blocked is False
        assert result.severity == FailureSeverity.SOFT
        assert [m.id for m in result.matched_patterns] == [p.id]

    def test_no_match(self, failures):
        failures.record(failure("skip code review", severity=FailureSeverity.HARD))
        result = failures.check_blocking("write documentation")

        assert result.blocked is False
        assert result.matched_patterns == []
        assert result.severity is None

    def test_inactive_patterns_ignored(self, failures):
        p = failures.record(failure("rm -rf /", severity=FailureSeverity.HARD))
        failures.deactivate(p.id)
        assert failures.check_blocking("rm -rf /").blocked is False

        failures.activate(p.id)
        assert failures.check_blocking("rm -rf /").blocked is True

    def test_context_can_lift_score_over_threshold(self, failures):
        failures.record(
            failure("delete old branches", severity=FailureSeverity.HARD, context="release day")
        )
        # pattern score 0.67 alone; with matching context (0.67 + 1.0) / 2 = 0.83
        assert failures.check_blocking("delete old tags").blocked is False
        assert failures.check_blocking("delete old tags", context="release day").blocked is True

    def test_context_never_lowers_score(self, failures):
        failures.record(failure("rm -rf /", severity=FailureSeverity.HARD, context="cleanup"))
        result = failures.check_blocking("rm -rf /", context="something unrelated")
        assert result.blocked is True

    def test_matches_sorted_by_occurrence_count(self, failures):
        once = failures.record(failure("push to main branch today"))
        hard_push = failure("never push directly to main", severity=FailureSeverity.HARD)
        thrice = failures.record(hard_push)
        assert once.id != thrice.id
        failures.record(hard_push)
        failures.record(hard_push)

        result = failures.check_blocking("push directly to main", threshold=0.6)
        assert [p.id for p in result.matched_patterns] == [thrice.id, once.id]
        assert result.blocked is True

    def test_threshold_override(self, failures):
        failures.record(failure("delete old branches", severity=FailureSeverity.HARD))
        assert failures.check_blocking("delete old tags").blocked is False
        assert failures.check_blocking("delete old tags", threshold=0.5).blocked is True

    def test_get_matching_patterns_is_read_only(self, failures):
        p = failures.record(failure("skip code review", severity=FailureSeverity.HARD))
        failures.record(failure("something else entirely"))

        matches = failures.get_matching_patterns("skip code review")
        assert [m.id for m in matches] == [p.id]
        assert failures.load(p.id).occurrence_count == 1


class TestActivation:
    def test_toggle_keeps_history(self, failures):
        p = failures.record(failure("x y"))
        failures.record(failure("x y"))

        off = failures.deactivate(p.id)
        assert off.active is False
        assert off.occurrence_count == 2
        assert failures.load(p.id).active is False

    def test_unknown_id(self, failures):
        with pytest.raises(NotFoundError, match="Failure pattern not found: nope"):
            failures.activate("nope")
        with pytest.raises(NotFoundError):
            failures.deactivate("nope")

    def test_delete(self, failures):
        p = failures.record(failure("x y"))
        failures.delete(p.id)
        assert failures.load(p.id) is None
        with pytest.raises(NotFoundError):
            failures.delete(p.id)


class TestRetrieve:
    def _populate(self, failures):
        hard = failures.record(failure("alpha beta", severity=FailureSeverity.HARD, tags=["ops"]))
        soft = failures.record(failure("gamma delta", tags=["ops", "ci"]))
        failures.record(failure("gamma delta"))
        off = failures.record(failure("epsilon zeta", tags=["ci"]))
        failures.deactivate(off.id)
        return hard, soft, off

    def test_filters(self, failures):
        hard, soft, off = self._populate(failures)

        assert [p.id for p in failures.retrieve(FailureQuery(severity="hard")).patterns] == [
            hard.id
        ]
        assert [p.id for p in failures.retrieve(FailureQuery(tags=["ci", "ops"])).patterns] == [
            soft.id
        ]
        assert [p.id for p in failures.retrieve(FailureQuery(active=False)).patterns] == [off.id]
        assert [p.id for p in failures.retrieve(FailureQuery(min_occurrences=2)).patterns] == [
            soft.id
        ]

    def test_semantic_query_and_limit(self, failures):
        hard, soft, _ = self._populate(failures)

        result = failures.retrieve(FailureQuery(semantic_query="gamma delta"))
        assert [p.id for p in result.patterns] == [soft.id]

        limited = failures.retrieve(FailureQuery(limit=1))
        assert len(limited.patterns) == 1
        assert limited.total_count == 3

    def test_invalid_query(self, failures):
        with pytest.raises(ValidationError):
            failures.retrieve(FailureQuery(severity="fatal"))

    def test_invalid_filter_types_are_reported_together(self, failures):
        self._populate(failures)

        with pytest.raises(ValidationError) as exc_info:
            failures.retrieve(FailureQuery(limit="5", active="yes", min_occurrences="2"))
        assert exc_info.value.errors == [
            "active must be a boolean",
            "min_occurrences must be a number",
            "limit must be an integer",
        ]
