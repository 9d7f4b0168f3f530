"""Handlers for failure pattern tools."""

from typing import Any, Dict

from cortex.core import Cortex
from cortex.core.serializers import dumps
from cortex.mcp.sanitize import (
    sanitize_enum,
    sanitize_limit,
    sanitize_list,
    sanitize_number,
    sanitize_optional_string,
    sanitize_string,
)
from cortex.types import FailureInput, FailureQuery, FailureSeverity

# ---------------------------------------------------------------------------
# Validators
# ---------------------------------------------------------------------------


def validate_failure_record(arguments: Dict[str, Any]) -> Dict[str, Any]:
    sanitized: Dict[str, Any] = {}
    sanitized["pattern"] = sanitize_string(arguments.get("pattern"), "pattern", 2000)
    sanitized["context"] = sanitize_string(arguments.get("context"), "context", 2000)
    sanitized["reason"] = sanitize_string(arguments.get("reason"), "reason", 1000)
    # None falls back to the configured default severity in the handler
    severity = arguments.get("severity")
    sanitized["severity"] = (
        sanitize_enum(severity, "severity", FailureSeverity) if severity is not None else None
    )
    sanitized["tags"] = sanitize_list(arguments.get("tags"), "tags", 100, 20)
    return sanitized


def validate_failure_check(arguments: Dict[str, Any]) -> Dict[str, Any]:
    sanitized: Dict[str, Any] = {}
    sanitized["text"] = sanitize_string(arguments.get("text"), "text", 4000)
    sanitized["context"] = sanitize_optional_string(arguments.get("context"), "context", 4000)
    sanitized["threshold"] = sanitize_number(arguments.get("threshold"), "threshold", 0.0, 1.0)
    return sanitized


def validate_failure_retrieve(arguments: Dict[str, Any]) -> Dict[str, Any]:
    sanitized: Dict[str, Any] = {}
    severity = arguments.get("severity")
    sanitized["severity"] = (
        sanitize_enum(severity, "severity", FailureSeverity) if severity is not None else None
    )
    sanitized["tags"] = sanitize_list(arguments.get("tags"), "tags", 100, 20) or None
    active = arguments.get("active")
    if active is not None and not isinstance(active, bool):
        raise ValueError("active must be a boolean")
    sanitized["active"] = active
    min_occurrences = sanitize_number(arguments.get("min_occurrences"), "min_occurrences", 1)
    sanitized["min_occurrences"] = int(min_occurrences) if min_occurrences is not None else None
    sanitized["semantic_query"] = sanitize_optional_string(arguments.get("query"), "query", 2000)
    sanitized["similarity_threshold"] = sanitize_number(
        arguments.get("similarity_threshold"), "similarity_threshold", 0.0, 1.0
    )
    sanitized["limit"] = sanitize_limit(arguments.get("limit"), default=20)
    return sanitized


def validate_failure_set_active(arguments: Dict[str, Any]) -> Dict[str, Any]:
    active = arguments.get("active")
    if not isinstance(active, bool):
        raise ValueError("active must be a boolean")
    return {
        "pattern_id": sanitize_string(arguments.get("pattern_id"), "pattern_id", 100),
        "active": active,
    }


# ---------------------------------------------------------------------------
# Handlers
# ---------------------------------------------------------------------------


def handle_failure_record(args: Dict[str, Any], c: Cortex) -> str:
    severity = args["severity"] or c.failure.config.default_severity
    outcome = c.failure.record_outcome(
        FailureInput(
            pattern=args["pattern"],
            context=args["context"],
            severity=severity,
            reason=args["reason"],
            tags=args["tags"],
        )
    )
    return dumps({"action": outcome.action, "similarity": outcome.similarity, "pattern": outcome.record})


def handle_failure_check(args: Dict[str, Any], c: Cortex) -> str:
    result = c.failure.check_blocking(args["text"], args["context"], args["threshold"])
    return dumps(result)


def handle_failure_retrieve(args: Dict[str, Any], c: Cortex) -> str:
    result = c.failure.retrieve(FailureQuery(**args))
    return dumps(result)


def handle_failure_set_active(args: Dict[str, Any], c: Cortex) -> str:
    if args["active"]:
        pattern = c.failure.activate(args["pattern_id"])
    else:
        pattern = c.failure.deactivate(args["pattern_id"])
    return dumps(pattern)


# ---------------------------------------------------------------------------
# Registry dicts
# ---------------------------------------------------------------------------

HANDLERS = {
    "failure_record": handle_failure_record,
    "failure_check": handle_failure_check,
    "failure_retrieve": handle_failure_retrieve,
    "failure_set_active": handle_failure_set_active,
}

VALIDATORS = {
    "failure_record": validate_failure_record,
    "failure_check": validate_failure_check,
    "failure_retrieve": validate_failure_retrieve,
    "failure_set_active": validate_failure_set_active,
}
