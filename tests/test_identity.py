"""Tests for the identity service: creation, versioning, validation."""

import dataclasses

import pytest

from cortex.identity import INITIAL_CHANGE_REASON, IdentityService, validate_identity_input
from cortex.protocols import NotFoundError, StorageError, ValidationError
from cortex.storage.memory import InMemoryIdentityStorage
from cortex.storage.sqlite import SQLiteStorage
from cortex.types import (
    IdentityInput,
    IdentityUpdate,
    IdentityVersion,
    Invariant,
    RiskPosture,
    StyleConstraint,
    Value,
)


class TestCreate:
    def test_create_starts_at_version_one(self, cortex, sample_identity_input):
        identity = cortex.identity.create(sample_identity_input)

        assert identity.version == 1
        assert identity.name == "Careful Assistant"
        assert identity.risk_posture == RiskPosture.CONSERVATIVE
        assert identity.created_at == identity.updated_at

    def test_create_records_initial_version(self, cortex, sample_identity_input):
        identity = cortex.identity.create(sample_identity_input)

        history = cortex.identity.get_version_history(identity.id)
        assert len(history) == 1
        assert history[0].version == 1
        assert history[0].change_reason == INITIAL_CHANGE_REASON == "initial"
        assert history[0].snapshot == identity

    def test_nested_elements_get_unique_ids(self, cortex, sample_identity_input):
        identity = cortex.identity.create(sample_identity_input)

        ids = [v.id for v in identity.values]
        ids += [i.id for i in identity.invariants]
        ids += [s.id for s in identity.style_constraints]
        assert all(ids)
        assert len(set(ids)) == len(ids)

    def test_caller_supplied_nested_ids_are_replaced(self, cortex):
        identity = cortex.identity.create(
            IdentityInput(
                name="x",
                risk_posture=RiskPosture.MODERATE,
                values=[Value(name="a", description="b", priority=1, id="mine")],
            )
        )
        assert identity.values[0].id != "mine"

    def test_two_identities_never_share_nested_ids(self, cortex, sample_identity_input):
        a = cortex.identity.create(sample_identity_input)
        b = cortex.identity.create(sample_identity_input)

        assert {v.id for v in a.values}.isdisjoint({v.id for v in b.values})

    def test_accepts_risk_posture_string(self, cortex):
        identity = cortex.identity.create(IdentityInput(name="x", risk_posture="aggressive"))
        assert identity.risk_posture == RiskPosture.AGGRESSIVE

    def test_load_returns_created_identity(self, cortex, identity):
        assert cortex.identity.load(identity.id) == identity

    def test_load_unknown_returns_none(self, cortex):
        assert cortex.identity.load("missing") is None

    def test_list_returns_ids(self, cortex, sample_identity_input):
        a = cortex.identity.create(sample_identity_input)
        b = cortex.identity.create(sample_identity_input)
        assert set(cortex.identity.list()) == {a.id, b.id}


class TestCreateValidation:
    def test_collects_every_violation(self, cortex):
        bad = IdentityInput(
            name="  ",
            risk_posture="reckless",
            values=[Value(name="", description="", priority=-1)],
            invariants=[Invariant(description="", rule="r", rationale="")],
            style_constraints=[StyleConstraint(aspect="tone", constraint="")],
        )

        with pytest.raises(ValidationError) as exc_info:
            cortex.identity.create(bad)

        errors = exc_info.value.errors
        assert "name must be a non-empty string" in errors
        assert any(e.startswith("risk_posture must be one of") for e in errors)
        assert "values[0].name must be a non-empty string" in errors
        assert "values[0].description must be a non-empty string" in errors
        assert "values[0].priority must be a non-negative number" in errors
        assert "invariants[0].description must be a non-empty string" in errors
        assert "invariants[0].rationale must be a non-empty string" in errors
        assert "style_constraints[0].constraint must be a non-empty string" in errors

    def test_validation_error_is_a_value_error(self, cortex):
        with pytest.raises(ValueError, match="Invalid identity input"):
            cortex.identity.create(IdentityInput(name="", risk_posture=RiskPosture.MODERATE))

    def test_zero_priority_is_valid(self):
        data = IdentityInput(
            name="x",
            risk_posture=RiskPosture.MODERATE,
            values=[Value(name="a", description="b", priority=0)],
        )
        assert validate_identity_input(data) == []

    def test_boolean_priority_is_rejected(self):
        data = IdentityInput(
            name="x",
            risk_posture=RiskPosture.MODERATE,
            values=[Value(name="a", description="b", priority=True)],
        )
        assert validate_identity_input(data) == ["values[0].priority must be a non-negative number"]

    def test_nothing_is_saved_on_failure(self, cortex):
        with pytest.raises(ValidationError):
            cortex.identity.create(IdentityInput(name="", risk_posture=RiskPosture.MODERATE))
        assert cortex.identity.list() == []


class TestUpdate:
    def test_version_increments_by_one_per_update(self, cortex, identity, clock):
        current = identity
        for n in range(2, 6):
            clock.advance(minutes=1)
            current = cortex.identity.update(
                identity.id, IdentityUpdate(change_reason=f"change {n}")
            )
            assert current.version == n

        history = cortex.identity.get_version_history(identity.id)
        assert [v.version for v in history] == [1, 2, 3, 4, 5]
        assert history[-1].change_reason == "change 5"

    def test_omitted_fields_carry_over(self, cortex, identity):
        updated = cortex.identity.update(
            identity.id,
            IdentityUpdate(change_reason="posture", risk_posture=RiskPosture.AGGRESSIVE),
        )

        assert updated.risk_posture == RiskPosture.AGGRESSIVE
        assert updated.values == identity.values
        assert updated.invariants == identity.invariants
        assert updated.style_constraints == identity.style_constraints
        assert updated.description == identity.description
        assert updated.created_at == identity.created_at

    def test_provided_collection_replaced_with_fresh_ids(self, cortex, identity):
        same_content = [
            Value(name=v.name, description=v.description, priority=v.priority)
            for v in identity.values
        ]
        updated = cortex.identity.update(
            identity.id, IdentityUpdate(change_reason="same values", values=same_content)
        )

        assert [v.name for v in updated.values] == [v.name for v in identity.values]
        assert {v.id for v in updated.values}.isdisjoint({v.id for v in identity.values})

    def test_empty_collection_clears(self, cortex, identity):
        updated = cortex.identity.update(
            identity.id, IdentityUpdate(change_reason="drop style", style_constraints=[])
        )
        assert updated.style_constraints == ()

    def test_past_versions_are_untouched(self, cortex, identity):
        cortex.identity.update(
            identity.id, IdentityUpdate(change_reason="rename", description="changed")
        )

        v1 = cortex.identity.get_version(identity.id, 1)
        assert v1.snapshot == identity
        assert v1.snapshot.description == "Test identity"
        assert cortex.identity.load(identity.id).description == "changed"

    def test_requires_change_reason(self, cortex, identity):
        with pytest.raises(ValidationError) as exc_info:
            cortex.identity.update(identity.id, IdentityUpdate(change_reason=" "))
        assert exc_info.value.errors == ["change_reason must be a non-empty string"]
        assert cortex.identity.load(identity.id).version == 1

    def test_invalid_replacement_rejected(self, cortex, identity):
        with pytest.raises(ValidationError):
            cortex.identity.update(
                identity.id,
                IdentityUpdate(
                    change_reason="bad",
                    values=[Value(name="x", description="y", priority=-3)],
                ),
            )
        assert len(cortex.identity.get_version_history(identity.id)) == 1

    def test_unknown_identity(self, cortex):
        with pytest.raises(NotFoundError, match="Identity not found: nope"):
            cortex.identity.update("nope", IdentityUpdate(change_reason="x"))


class TestDelete:
    def test_delete_removes_record_and_history(self, cortex, identity):
        cortex.identity.update(identity.id, IdentityUpdate(change_reason="v2"))
        cortex.identity.delete(identity.id)

        assert cortex.identity.load(identity.id) is None
        assert cortex.identity.get_version_history(identity.id) == []
        assert cortex.identity.get_version(identity.id, 1) is None

    def test_delete_unknown_raises(self, cortex):
        with pytest.raises(NotFoundError) as exc_info:
            cortex.identity.delete("ghost")
        assert exc_info.value.kind == "Identity"
        assert exc_info.value.record_id == "ghost"


class TestVersionConflicts:
    @pytest.fixture(params=["memory", "sqlite"])
    def store(self, request, tmp_path):
        if request.param == "memory":
            return InMemoryIdentityStorage()
        return SQLiteStorage(tmp_path / "identity.db").identities

    def test_conflicting_version_leaves_live_record_alone(
        self, store, clock, sample_identity_input
    ):
        service = IdentityService(store, now_fn=clock)
        identity = service.create(sample_identity_input)
        # another writer already produced version 2
        store.save_version(
            IdentityVersion(
                identity_id=identity.id,
                version=2,
                snapshot=dataclasses.replace(identity, version=2),
                created_at=clock(),
                change_reason="concurrent edit",
            )
        )

        with pytest.raises(StorageError, match="already has version 2"):
            service.update(
                identity.id,
                IdentityUpdate(change_reason="escalate", risk_posture=RiskPosture.AGGRESSIVE),
            )

        live = service.load(identity.id)
        assert live.version == 1
        assert live.risk_posture == RiskPosture.CONSERVATIVE
        assert service.get_version(identity.id, 2).change_reason == "concurrent edit"

    def test_history_cannot_be_rewritten(self, store, clock, sample_identity_input):
        service = IdentityService(store, now_fn=clock)
        identity = service.create(sample_identity_input)

        with pytest.raises(StorageError):
            store.save_version(IdentityVersion(identity.id, 1, identity, clock(), "rewritten"))

        history = service.get_version_history(identity.id)
        assert [v.change_reason for v in history] == [INITIAL_CHANGE_REASON]
