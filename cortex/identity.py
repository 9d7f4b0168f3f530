"""Identity service: versioned, audit-trailed configuration records.

An identity is never edited in place. create() writes version 1; every
update() builds a new Identity with the next version number and appends an
IdentityVersion snapshot carrying the caller's change reason.
"""

import dataclasses
import logging
import uuid
from datetime import datetime
from typing import Callable, List, Optional, Sequence

from cortex.core.validation import (
    check_enum,
    check_number,
    check_optional_string,
    check_string,
    is_non_empty_string,
)
from cortex.protocols import IdentityStorage, NotFoundError, ValidationError
from cortex.types import (
    Identity,
    IdentityInput,
    IdentityUpdate,
    IdentityVersion,
    Invariant,
    RiskPosture,
    StyleConstraint,
    Value,
    utc_now,
)

logger = logging.getLogger(__name__)

INITIAL_CHANGE_REASON = "initial"


# =============================================================================
# Validation
# =============================================================================


def _check_value(value: Value, index: int, errors: List[str]) -> None:
    prefix = f"values[{index}]"
    check_string(getattr(value, "name", None), f"{prefix}.name", errors)
    check_string(getattr(value, "description", None), f"{prefix}.description", errors)
    priority = getattr(value, "priority", None)
    if isinstance(priority, bool) or not isinstance(priority, (int, float)) or priority < 0:
        errors.append(f"{prefix}.priority must be a non-negative number")


def _check_invariant(invariant: Invariant, index: int, errors: List[str]) -> None:
    prefix = f"invariants[{index}]"
    check_string(getattr(invariant, "description", None), f"{prefix}.description", errors)
    check_string(getattr(invariant, "rule", None), f"{prefix}.rule", errors)
    check_string(getattr(invariant, "rationale", None), f"{prefix}.rationale", errors)


def _check_style_constraint(constraint: StyleConstraint, index: int, errors: List[str]) -> None:
    prefix = f"style_constraints[{index}]"
    check_string(getattr(constraint, "aspect", None), f"{prefix}.aspect", errors)
    check_string(getattr(constraint, "constraint", None), f"{prefix}.constraint", errors)


def _check_collection(items, field_name: str, checker, errors: List[str]) -> None:
    if not isinstance(items, (list, tuple)):
        errors.append(f"{field_name} must be an array")
        return
    for i, item in enumerate(items):
        checker(item, i, errors)


def validate_identity_input(data: IdentityInput) -> List[str]:
    """Return every violation in a create request (empty when valid)."""
    errors: List[str] = []
    check_string(data.name, "name", errors)
    check_enum(data.risk_posture, "risk_posture", RiskPosture, errors)
    _check_collection(data.values, "values", _check_value, errors)
    _check_collection(data.invariants, "invariants", _check_invariant, errors)
    _check_collection(data.style_constraints, "style_constraints", _check_style_constraint, errors)
    check_optional_string(data.description, "description", errors)
    return errors


def validate_identity_update(data: IdentityUpdate) -> List[str]:
    """Return every violation in an update request (empty when valid)."""
    errors: List[str] = []
    check_string(data.change_reason, "change_reason", errors)
    if data.risk_posture is not None:
        check_enum(data.risk_posture, "risk_posture", RiskPosture, errors)
    if data.values is not None:
        _check_collection(data.values, "values", _check_value, errors)
    if data.invariants is not None:
        _check_collection(data.invariants, "invariants", _check_invariant, errors)
    if data.style_constraints is not None:
        _check_collection(
            data.style_constraints, "style_constraints", _check_style_constraint, errors
        )
    check_optional_string(data.description, "description", errors)
    return errors


def validate_identity(identity: Identity) -> List[str]:
    """Validate a complete identity record, including nested ids."""
    errors: List[str] = []
    check_string(identity.id, "id", errors)
    check_string(identity.name, "name", errors)
    if isinstance(identity.version, bool) or not isinstance(identity.version, int):
        errors.append("version must be a positive integer")
    else:
        check_number(identity.version, "version", errors, min_val=1)
    if not isinstance(identity.created_at, datetime):
        errors.append("created_at must be a datetime")
    if not isinstance(identity.updated_at, datetime):
        errors.append("updated_at must be a datetime")
    check_enum(identity.risk_posture, "risk_posture", RiskPosture, errors)

    for field_name, items, checker in (
        ("values", identity.values, _check_value),
        ("invariants", identity.invariants, _check_invariant),
        ("style_constraints", identity.style_constraints, _check_style_constraint),
    ):
        for i, item in enumerate(items):
            if not is_non_empty_string(item.id):
                errors.append(f"{field_name}[{i}].id must be a non-empty string")
            checker(item, i, errors)
    check_optional_string(identity.description, "description", errors)
    return errors


# =============================================================================
# Service
# =============================================================================


def _with_fresh_ids(items: Sequence) -> tuple:
    """Copy nested elements with new ids. Caller-supplied ids are discarded."""
    return tuple(dataclasses.replace(item, id=str(uuid.uuid4())) for item in items)


class IdentityService:
    """Controlled access to identity records and their version history.

    Args:
        storage: Backend implementing the IdentityStorage protocol.
        now_fn: Clock, injectable for tests.
    """

    def __init__(self, storage: IdentityStorage, now_fn: Callable[[], datetime] = utc_now):
        self._storage = storage
        self._now = now_fn

    def create(self, data: IdentityInput) -> Identity:
        """Create a new identity at version 1.

        Raises:
            ValidationError: Listing every malformed field.
        """
        errors = validate_identity_input(data)
        if errors:
            raise ValidationError(errors, "identity input")

        now = self._now()
        identity = Identity(
            id=str(uuid.uuid4()),
            name=data.name.strip(),
            version=1,
            created_at=now,
            updated_at=now,
            values=_with_fresh_ids(data.values),
            invariants=_with_fresh_ids(data.invariants),
            style_constraints=_with_fresh_ids(data.style_constraints),
            risk_posture=RiskPosture(data.risk_posture),
            description=data.description,
        )

        errors = validate_identity(identity)
        if errors:
            raise ValidationError(errors, "identity")

        self._storage.save_version(
            IdentityVersion(
                identity_id=identity.id,
                version=1,
                snapshot=identity,
                created_at=now,
                change_reason=INITIAL_CHANGE_REASON,
            )
        )
        self._storage.save(identity)
        logger.info("Created identity %s (%s)", identity.id, identity.name)
        return identity

    def update(self, identity_id: str, data: IdentityUpdate) -> Identity:
        """Produce the next version of an identity.

        Omitted fields carry over; provided collections are replaced wholesale
        with freshly identified elements.

        Raises:
            ValidationError: If the update or the resulting record is malformed.
            NotFoundError: If the identity does not exist.
            StorageError: If another writer already saved the next version.
        """
        errors = validate_identity_update(data)
        if errors:
            raise ValidationError(errors, "identity update")

        existing = self._storage.load(identity_id)
        if existing is None:
            raise NotFoundError("Identity", identity_id)

        now = self._now()
        updated = dataclasses.replace(
            existing,
            version=existing.version + 1,
            updated_at=now,
            values=(
                _with_fresh_ids(data.values) if data.values is not None else existing.values
            ),
            invariants=(
                _with_fresh_ids(data.invariants)
                if data.invariants is not None
                else existing.invariants
            ),
            style_constraints=(
                _with_fresh_ids(data.style_constraints)
                if data.style_constraints is not None
                else existing.style_constraints
            ),
            risk_posture=(
                RiskPosture(data.risk_posture)
                if data.risk_posture is not None
                else existing.risk_posture
            ),
            description=(
                data.description if data.description is not None else existing.description
            ),
        )

        errors = validate_identity(updated)
        if errors:
            raise ValidationError(errors, "updated identity")

        # snapshot first: a version conflict must leave the live record untouched
        self._storage.save_version(
            IdentityVersion(
                identity_id=identity_id,
                version=updated.version,
                snapshot=updated,
                created_at=now,
                change_reason=data.change_reason.strip(),
            )
        )
        self._storage.save(updated)
        logger.info(
            "Updated identity %s to version %d: %s",
            identity_id,
            updated.version,
            data.change_reason,
        )
        return updated

    def load(self, identity_id: str) -> Optional[Identity]:
        return self._storage.load(identity_id)

    def get_version(self, identity_id: str, version: int) -> Optional[IdentityVersion]:
        return self._storage.get_version(identity_id, version)

    def get_version_history(self, identity_id: str) -> List[IdentityVersion]:
        """All snapshots for an identity, oldest first."""
        return sorted(self._storage.get_versions(identity_id), key=lambda v: v.version)

    def list(self) -> List[str]:
        return self._storage.list_ids()

    def delete(self, identity_id: str) -> None:
        """Delete an identity and its whole version history.

        Raises:
            NotFoundError: If the identity does not exist.
        """
        if self._storage.load(identity_id) is None:
            raise NotFoundError("Identity", identity_id)
        self._storage.delete(identity_id)
        logger.info("Deleted identity %s", identity_id)
