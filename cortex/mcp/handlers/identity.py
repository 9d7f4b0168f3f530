"""Handlers for identity tools: create, load, history."""

from typing import Any, Dict

from cortex.core import Cortex
from cortex.core.serializers import dumps
from cortex.mcp.sanitize import (
    sanitize_enum,
    sanitize_number,
    sanitize_object_list,
    sanitize_optional_string,
    sanitize_string,
)
from cortex.protocols import NotFoundError
from cortex.types import IdentityInput, Invariant, RiskPosture, StyleConstraint, Value

# ---------------------------------------------------------------------------
# Validators
# ---------------------------------------------------------------------------


def validate_identity_create(arguments: Dict[str, Any]) -> Dict[str, Any]:
    sanitized: Dict[str, Any] = {}
    sanitized["name"] = sanitize_string(arguments.get("name"), "name", 200)
    sanitized["risk_posture"] = sanitize_enum(
        arguments.get("risk_posture"), "risk_posture", RiskPosture
    )
    sanitized["description"] = sanitize_optional_string(
        arguments.get("description"), "description", 2000
    )

    values = []
    for i, v in enumerate(sanitize_object_list(arguments.get("values"), "values")):
        values.append(
            Value(
                name=sanitize_string(v.get("name"), f"values[{i}].name", 100),
                description=sanitize_string(v.get("description"), f"values[{i}].description"),
                priority=sanitize_number(v.get("priority"), f"values[{i}].priority"),
            )
        )
    sanitized["values"] = values

    invariants = []
    for i, inv in enumerate(sanitize_object_list(arguments.get("invariants"), "invariants")):
        rule = sanitize_string(inv.get("rule"), f"invariants[{i}].rule")
        invariants.append(
            Invariant(
                description=sanitize_optional_string(
                    inv.get("description"), f"invariants[{i}].description"
                )
                or rule,
                rule=rule,
                rationale=sanitize_string(inv.get("rationale"), f"invariants[{i}].rationale"),
            )
        )
    sanitized["invariants"] = invariants

    styles = []
    for i, sc in enumerate(
        sanitize_object_list(arguments.get("style_constraints"), "style_constraints")
    ):
        styles.append(
            StyleConstraint(
                aspect=sanitize_string(sc.get("aspect"), f"style_constraints[{i}].aspect", 100),
                constraint=sanitize_string(
                    sc.get("constraint"), f"style_constraints[{i}].constraint"
                ),
            )
        )
    sanitized["style_constraints"] = styles
    return sanitized


def validate_identity_id(arguments: Dict[str, Any]) -> Dict[str, Any]:
    return {"identity_id": sanitize_string(arguments.get("identity_id"), "identity_id", 100)}


# ---------------------------------------------------------------------------
# Handlers
# ---------------------------------------------------------------------------


def handle_identity_create(args: Dict[str, Any], c: Cortex) -> str:
    identity = c.identity.create(IdentityInput(**args))
    return dumps(identity)


def handle_identity_load(args: Dict[str, Any], c: Cortex) -> str:
    identity = c.identity.load(args["identity_id"])
    if identity is None:
        raise NotFoundError("Identity", args["identity_id"])
    return dumps(identity)


def handle_identity_history(args: Dict[str, Any], c: Cortex) -> str:
    if c.identity.load(args["identity_id"]) is None:
        raise NotFoundError("Identity", args["identity_id"])
    history = c.identity.get_version_history(args["identity_id"])
    return dumps(
        [
            {
                "version": v.version,
                "change_reason": v.change_reason,
                "created_at": v.created_at,
                "snapshot": v.snapshot,
            }
            for v in history
        ]
    )


# ---------------------------------------------------------------------------
# Registry dicts
# ---------------------------------------------------------------------------

HANDLERS = {
    "identity_create": handle_identity_create,
    "identity_load": handle_identity_load,
    "identity_history": handle_identity_history,
}

VALIDATORS = {
    "identity_create": validate_identity_create,
    "identity_load": validate_identity_id,
    "identity_history": validate_identity_id,
}
