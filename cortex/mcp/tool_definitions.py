"""MCP tool schema definitions for Cortex operations.

Each Tool() defines the name, description, and JSON Schema for one MCP tool.
Validators and handlers live in cortex.mcp.handlers.
"""

from mcp.types import Tool

from cortex.types import VALID_MEMORY_TYPE_VALUES, VALID_RISK_POSTURE_VALUES, VALID_SEVERITY_VALUES

MEMORY_TYPES = list(VALID_MEMORY_TYPE_VALUES)
RISK_POSTURES = list(VALID_RISK_POSTURE_VALUES)
SEVERITIES = list(VALID_SEVERITY_VALUES)

_UNIT = {"type": "number", "minimum": 0, "maximum": 1}
_TAGS = {
    "type": "array",
    "items": {"type": "string"},
    "description": "Tags for categorization",
}

TOOLS = [
    Tool(
        name="cortex_prepare_context",
        description="Prepare context for a query: load the identity, check failure patterns (a hard match blocks), and retrieve relevant lessons, preferences and warnings. Call before acting on a request.",
        inputSchema={
            "type": "object",
            "properties": {
                "identity_id": {"type": "string", "description": "Identity to act as"},
                "query": {"type": "string", "description": "What is about to be done"},
                "context": {
                    "type": "string",
                    "description": "Additional context for the failure check",
                },
                "limit_per_type": {
                    "type": "integer",
                    "minimum": 1,
                    "maximum": 100,
                    "description": "Memories per type (default: 10)",
                },
                "min_confidence": {**_UNIT, "description": "Minimum memory confidence"},
                "similarity_threshold": {**_UNIT, "description": "Memory relevance threshold"},
                "block_threshold": {**_UNIT, "description": "Failure blocking threshold"},
                "skip_check": {
                    "type": "boolean",
                    "description": "Report failure matches without blocking (default: false)",
                    "default": False,
                },
            },
            "required": ["identity_id", "query"],
        },
    ),
    Tool(
        name="identity_create",
        description="Create a new identity with values, invariants, and style constraints.",
        inputSchema={
            "type": "object",
            "properties": {
                "name": {"type": "string"},
                "risk_posture": {"type": "string", "enum": RISK_POSTURES},
                "description": {"type": "string"},
                "values": {
                    "type": "array",
                    "items": {
                        "type": "object",
                        "properties": {
                            "name": {"type": "string"},
                            "description": {"type": "string"},
                            "priority": {"type": "number"},
                        },
                        "required": ["name", "description", "priority"],
                    },
                },
                "invariants": {
                    "type": "array",
                    "items": {
                        "type": "object",
                        "properties": {
                            "rule": {"type": "string"},
                            "rationale": {"type": "string"},
                            "description": {"type": "string"},
                        },
                        "required": ["rule", "rationale"],
                    },
                },
                "style_constraints": {
                    "type": "array",
                    "items": {
                        "type": "object",
                        "properties": {
                            "aspect": {"type": "string"},
                            "constraint": {"type": "string"},
                        },
                        "required": ["aspect", "constraint"],
                    },
                },
            },
            "required": ["name", "risk_posture"],
        },
    ),
    Tool(
        name="identity_load",
        description="Load the current version of an identity.",
        inputSchema={
            "type": "object",
            "properties": {"identity_id": {"type": "string"}},
            "required": ["identity_id"],
        },
    ),
    Tool(
        name="identity_history",
        description="List every recorded version of an identity, oldest first.",
        inputSchema={
            "type": "object",
            "properties": {"identity_id": {"type": "string"}},
            "required": ["identity_id"],
        },
    ),
    Tool(
        name="memory_record",
        description="Record a distilled lesson, preference, or warning. A near-duplicate reinforces the existing memory instead.",
        inputSchema={
            "type": "object",
            "properties": {
                "type": {"type": "string", "enum": MEMORY_TYPES},
                "content": {"type": "string", "description": "The distilled statement"},
                "confidence": {**_UNIT, "description": "Initial confidence (default: 0.5)"},
                "tags": _TAGS,
                "source_context": {"type": "string", "description": "Where this was learned"},
            },
            "required": ["type", "content"],
        },
    ),
    Tool(
        name="memory_retrieve",
        description="Retrieve distilled memories by type, tags, confidence, and semantic relevance.",
        inputSchema={
            "type": "object",
            "properties": {
                "type": {"type": "string", "enum": MEMORY_TYPES},
                "tags": _TAGS,
                "min_confidence": _UNIT,
                "query": {"type": "string", "description": "Semantic query"},
                "similarity_threshold": _UNIT,
                "limit": {"type": "integer", "minimum": 1, "maximum": 100},
            },
        },
    ),
    Tool(
        name="memory_reinforce",
        description="Reinforce a memory: raise its confidence and reset its decay.",
        inputSchema={
            "type": "object",
            "properties": {"memory_id": {"type": "string"}},
            "required": ["memory_id"],
        },
    ),
    Tool(
        name="memory_decay",
        description="Apply time-based decay to all distilled memories. Returns how many changed.",
        inputSchema={"type": "object", "properties": {}},
    ),
    Tool(
        name="memory_cleanup",
        description="Delete memories that are too weak or too stale. Returns the deleted ids.",
        inputSchema={"type": "object", "properties": {}},
    ),
    Tool(
        name="failure_record",
        description="Record a failure occurrence. A repeat of a known pattern increments it and escalates it to a hard block.",
        inputSchema={
            "type": "object",
            "properties": {
                "pattern": {"type": "string", "description": "What went wrong"},
                "context": {"type": "string", "description": "Where it went wrong"},
                "reason": {"type": "string", "description": "Why it is a failure"},
                "severity": {"type": "string", "enum": SEVERITIES},
                "tags": _TAGS,
            },
            "required": ["pattern", "context", "reason"],
        },
    ),
    Tool(
        name="failure_check",
        description="Check text against active failure patterns without running the full pipeline.",
        inputSchema={
            "type": "object",
            "properties": {
                "text": {"type": "string"},
                "context": {"type": "string"},
                "threshold": _UNIT,
            },
            "required": ["text"],
        },
    ),
    Tool(
        name="failure_retrieve",
        description="Retrieve failure patterns by severity, tags, state, occurrences, and semantic relevance.",
        inputSchema={
            "type": "object",
            "properties": {
                "severity": {"type": "string", "enum": SEVERITIES},
                "tags": _TAGS,
                "active": {"type": "boolean"},
                "min_occurrences": {"type": "integer", "minimum": 1},
                "query": {"type": "string", "description": "Semantic query"},
                "similarity_threshold": _UNIT,
                "limit": {"type": "integer", "minimum": 1, "maximum": 100},
            },
        },
    ),
    Tool(
        name="failure_set_active",
        description="Activate or deactivate a failure pattern. Inactive patterns never block.",
        inputSchema={
            "type": "object",
            "properties": {
                "pattern_id": {"type": "string"},
                "active": {"type": "boolean"},
            },
            "required": ["pattern_id", "active"],
        },
    ),
]

TOOL_SCHEMAS = {tool.name: tool.inputSchema for tool in TOOLS}
