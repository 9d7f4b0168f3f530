"""Identity commands for Cortex CLI."""

import logging
from typing import TYPE_CHECKING

from cortex.cli.commands.helpers import print_json, resolve_id, validate_input
from cortex.types import IdentityInput, IdentityUpdate, RiskPosture

if TYPE_CHECKING:
    from cortex import Cortex

logger = logging.getLogger(__name__)


def _print_identity(identity) -> None:
    print(f"## {identity.name} (v{identity.version})")
    print(f"ID: {identity.id}")
    print(f"Risk posture: {identity.risk_posture.value}")
    if identity.description:
        print(f"Description: {identity.description}")
    if identity.values:
        print("Values:")
        for v in sorted(identity.values, key=lambda v: v.priority, reverse=True):
            print(f"  [{v.priority}] {v.name}: {v.description}")
    if identity.invariants:
        print("Invariants:")
        for inv in identity.invariants:
            print(f"  - {inv.rule} ({inv.rationale})")
    if identity.style_constraints:
        print("Style:")
        for sc in identity.style_constraints:
            print(f"  - {sc.aspect}: {sc.constraint}")


def cmd_identity(args, c: "Cortex"):
    """Handle identity subcommands."""
    action = args.identity_action

    if action == "create":
        identity = c.identity.create(
            IdentityInput(
                name=validate_input(args.name, "name", 200),
                risk_posture=RiskPosture(args.risk),
                values=list(args.value or []),
                invariants=list(args.invariant or []),
                style_constraints=list(args.style or []),
                description=(
                    validate_input(args.description, "description", 2000)
                    if args.description
                    else None
                ),
            )
        )
        if getattr(args, "json", False):
            print_json(identity)
        else:
            print(f"✓ Identity created: {identity.id}")
            print(f"  Name: {identity.name} (v{identity.version})")

    elif action == "show":
        identity_id = resolve_id(args.id, c.identity.list(), "Identity")
        identity = c.identity.load(identity_id)
        if args.json:
            print_json(identity)
        else:
            _print_identity(identity)

    elif action == "history":
        identity_id = resolve_id(args.id, c.identity.list(), "Identity")
        history = c.identity.get_version_history(identity_id)
        if getattr(args, "json", False):
            print_json(history)
            return
        for v in history:
            print(f"v{v.version}  {v.created_at.isoformat()}  {v.change_reason}")

    elif action == "list":
        ids = c.identity.list()
        if not ids:
            print("No identities found.")
            return
        for identity_id in ids:
            identity = c.identity.load(identity_id)
            if identity is not None:
                print(f"{identity.id}  {identity.name} (v{identity.version})")

    elif action == "update":
        identity_id = resolve_id(args.id, c.identity.list(), "Identity")
        identity = c.identity.update(
            identity_id,
            IdentityUpdate(
                change_reason=validate_input(args.reason, "reason", 500),
                values=list(args.value) if args.value else None,
                invariants=list(args.invariant) if args.invariant else None,
                style_constraints=list(args.style) if args.style else None,
                risk_posture=RiskPosture(args.risk) if args.risk else None,
                description=(
                    validate_input(args.description, "description", 2000)
                    if args.description
                    else None
                ),
            ),
        )
        print(f"✓ Identity updated: {identity.id} (v{identity.version})")

    elif action == "delete":
        identity_id = resolve_id(args.id, c.identity.list(), "Identity")
        c.identity.delete(identity_id)
        print(f"✓ Identity deleted: {identity_id}")
