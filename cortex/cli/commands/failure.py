"""Failure pattern commands for Cortex CLI."""

import logging
from typing import TYPE_CHECKING

from cortex.cli.commands.helpers import print_json, resolve_id, validate_input
from cortex.types import FailureInput, FailureQuery, FailureSeverity

if TYPE_CHECKING:
    from cortex import Cortex

logger = logging.getLogger(__name__)


def _pattern_id(c: "Cortex", partial: str) -> str:
    return resolve_id(partial, [p.id for p in c.failure.list_all()], "Failure pattern")


def _format_pattern(p) -> str:
    state = "" if p.active else "  (inactive)"
    return f"{p.id[:8]}  [{p.severity.value}] {p.pattern}  x{p.occurrence_count}: {p.reason}{state}"


def cmd_failure(args, c: "Cortex"):
    """Handle failure subcommands."""
    action = args.failure_action

    if action == "record":
        severity = (
            FailureSeverity(args.severity) if args.severity else c.failure.config.default_severity
        )
        outcome = c.failure.record_outcome(
            FailureInput(
                pattern=validate_input(args.pattern, "pattern", 1000),
                context=validate_input(args.context, "context", 2000),
                severity=severity,
                reason=validate_input(args.reason, "reason", 1000),
                tags=[validate_input(t, "tag", 100) for t in (args.tag or [])],
            )
        )
        pattern = outcome.record
        if outcome.created:
            print(f"✓ Failure pattern recorded: {pattern.id}")
        else:
            print(f"✓ Existing pattern occurred again: {pattern.id} (x{pattern.occurrence_count})")
        print(f"  Severity: {pattern.severity.value}")

    elif action == "check":
        result = c.failure.check_blocking(
            validate_input(args.text, "text", 2000),
            validate_input(args.context, "context", 2000) if args.context else None,
        )
        if args.json:
            print_json(result)
            return
        if result.blocked:
            print("✗ BLOCKED")
        elif result.matched_patterns:
            print("⚠ Soft matches (not blocked)")
        else:
            print("✓ No matching failure patterns")
        for p in result.matched_patterns:
            print(f"  {_format_pattern(p)}")

    elif action == "list":
        result = c.failure.retrieve(
            FailureQuery(
                severity=FailureSeverity(args.severity) if args.severity else None,
                tags=args.tag or None,
                active=False if args.inactive else (True if args.active else None),
                limit=args.limit,
                semantic_query=args.query,
            )
        )
        if args.json:
            print_json(result)
            return
        if not result.patterns:
            print("No failure patterns found.")
            return
        for p in result.patterns:
            print(_format_pattern(p))

    elif action in ("activate", "deactivate"):
        pattern_id = _pattern_id(c, args.id)
        if action == "activate":
            c.failure.activate(pattern_id)
        else:
            c.failure.deactivate(pattern_id)
        print(f"✓ Failure pattern {action}d: {pattern_id}")

    elif action == "delete":
        pattern_id = _pattern_id(c, args.id)
        c.failure.delete(pattern_id)
        print(f"✓ Failure pattern deleted: {pattern_id}")
