"""Handler for the context preparation tool."""

from typing import Any, Dict

from cortex.core import Cortex
from cortex.core.serializers import dumps
from cortex.engine import FailureOptions, MemoryOptions, PrepareContextInput
from cortex.mcp.sanitize import (
    sanitize_limit,
    sanitize_number,
    sanitize_optional_string,
    sanitize_string,
)


def validate_prepare_context(arguments: Dict[str, Any]) -> Dict[str, Any]:
    sanitized: Dict[str, Any] = {}
    sanitized["identity_id"] = sanitize_string(arguments.get("identity_id"), "identity_id", 100)
    sanitized["query"] = sanitize_string(arguments.get("query"), "query", 4000)
    sanitized["context"] = sanitize_optional_string(arguments.get("context"), "context", 4000)
    sanitized["limit_per_type"] = sanitize_limit(arguments.get("limit_per_type"))
    for key in ("min_confidence", "similarity_threshold", "block_threshold"):
        sanitized[key] = sanitize_number(arguments.get(key), key, 0.0, 1.0)
    skip_check = arguments.get("skip_check", False)
    if not isinstance(skip_check, bool):
        raise ValueError("skip_check must be a boolean")
    sanitized["skip_check"] = skip_check
    return sanitized


def handle_prepare_context(args: Dict[str, Any], c: Cortex) -> str:
    result = c.prepare_context(
        PrepareContextInput(
            identity_id=args["identity_id"],
            query=args["query"],
            context=args["context"],
            memory_options=MemoryOptions(
                limit_per_type=args["limit_per_type"],
                min_confidence=args["min_confidence"],
                similarity_threshold=args["similarity_threshold"],
            ),
            failure_options=FailureOptions(
                skip_check=args["skip_check"],
                similarity_threshold=args["block_threshold"],
            ),
        )
    )

    if result.blocked:
        return dumps(
            {
                "success": False,
                "blocked": True,
                "reason": result.reason,
                "matched_patterns": result.matched_patterns,
            }
        )
    if not result.success:
        return dumps({"success": False, "blocked": False, "error": result.error})

    ctx = result.context
    return dumps(
        {
            "success": True,
            "blocked": False,
            "identity": ctx.identity_context,
            "memories": ctx.memory_context,
            "failures": ctx.failure_context,
            "prepared_at": ctx.prepared_at,
        }
    )


HANDLERS = {"cortex_prepare_context": handle_prepare_context}

VALIDATORS = {"cortex_prepare_context": validate_prepare_context}
