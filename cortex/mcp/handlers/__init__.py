"""Handler registry for MCP tools.

Merges HANDLERS and VALIDATORS from all sub-modules into unified dicts.
"""

from typing import Callable, Dict

from cortex.mcp.handlers.engine import HANDLERS as _ENGINE_H
from cortex.mcp.handlers.engine import VALIDATORS as _ENGINE_V
from cortex.mcp.handlers.failure import HANDLERS as _FAILURE_H
from cortex.mcp.handlers.failure import VALIDATORS as _FAILURE_V
from cortex.mcp.handlers.identity import HANDLERS as _IDENTITY_H
from cortex.mcp.handlers.identity import VALIDATORS as _IDENTITY_V
from cortex.mcp.handlers.memory import HANDLERS as _MEMORY_H
from cortex.mcp.handlers.memory import VALIDATORS as _MEMORY_V

HANDLERS: Dict[str, Callable] = {
    **_ENGINE_H,
    **_IDENTITY_H,
    **_MEMORY_H,
    **_FAILURE_H,
}

VALIDATORS: Dict[str, Callable] = {
    **_ENGINE_V,
    **_IDENTITY_V,
    **_MEMORY_V,
    **_FAILURE_V,
}
