"""Handlers for distilled memory tools."""

import logging
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
from cortex.types import MemoryInput, MemoryQuery, MemoryType

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Validators
# ---------------------------------------------------------------------------


def validate_memory_record(arguments: Dict[str, Any]) -> Dict[str, Any]:
    sanitized: Dict[str, Any] = {}
    sanitized["memory_type"] = sanitize_enum(arguments.get("type"), "type", MemoryType)
    sanitized["content"] = sanitize_string(arguments.get("content"), "content", 2000)
    sanitized["confidence"] = sanitize_number(arguments.get("confidence"), "confidence", 0.0, 1.0)
    sanitized["tags"] = sanitize_list(arguments.get("tags"), "tags", 100, 20)
    sanitized["source_context"] = sanitize_optional_string(
        arguments.get("source_context"), "source_context", 500
    )
    return sanitized


def validate_memory_retrieve(arguments: Dict[str, Any]) -> Dict[str, Any]:
    sanitized: Dict[str, Any] = {}
    memory_type = arguments.get("type")
    sanitized["memory_type"] = (
        sanitize_enum(memory_type, "type", MemoryType) if memory_type is not None else None
    )
    sanitized["tags"] = sanitize_list(arguments.get("tags"), "tags", 100, 20) or None
    sanitized["min_confidence"] = sanitize_number(
        arguments.get("min_confidence"), "min_confidence", 0.0, 1.0
    )
    sanitized["semantic_query"] = sanitize_optional_string(arguments.get("query"), "query", 2000)
    sanitized["similarity_threshold"] = sanitize_number(
        arguments.get("similarity_threshold"), "similarity_threshold", 0.0, 1.0
    )
    sanitized["limit"] = sanitize_limit(arguments.get("limit"), default=20)
    return sanitized


def validate_memory_reinforce(arguments: Dict[str, Any]) -> Dict[str, Any]:
    return {"memory_id": sanitize_string(arguments.get("memory_id"), "memory_id", 100)}


def validate_no_arguments(arguments: Dict[str, Any]) -> Dict[str, Any]:
    return {}


# ---------------------------------------------------------------------------
# Handlers
# ---------------------------------------------------------------------------


def handle_memory_record(args: Dict[str, Any], c: Cortex) -> str:
    outcome = c.memory.record_outcome(MemoryInput(**args))
    return dumps({"action": outcome.action, "similarity": outcome.similarity, "memory": outcome.record})


def handle_memory_retrieve(args: Dict[str, Any], c: Cortex) -> str:
    result = c.memory.retrieve(MemoryQuery(**args))
    return dumps(result)


def handle_memory_reinforce(args: Dict[str, Any], c: Cortex) -> str:
    result = c.memory.reinforce(args["memory_id"])
    return dumps(result)


def handle_memory_decay(args: Dict[str, Any], c: Cortex) -> str:
    changed = c.memory.apply_decay()
    return dumps({"decayed": changed})


def handle_memory_cleanup(args: Dict[str, Any], c: Cortex) -> str:
    deleted = c.memory.cleanup()
    if deleted:
        logger.info("MCP cleanup removed %d memories", len(deleted))
    return dumps({"deleted": deleted})


# ---------------------------------------------------------------------------
# Registry dicts
# ---------------------------------------------------------------------------

HANDLERS = {
    "memory_record": handle_memory_record,
    "memory_retrieve": handle_memory_retrieve,
    "memory_reinforce": handle_memory_reinforce,
    "memory_decay": handle_memory_decay,
    "memory_cleanup": handle_memory_cleanup,
}

VALIDATORS = {
    "memory_record": validate_memory_record,
    "memory_retrieve": validate_memory_retrieve,
    "memory_reinforce": validate_memory_reinforce,
    "memory_decay": validate_no_arguments,
    "memory_cleanup": validate_no_arguments,
}
