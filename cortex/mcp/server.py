"""
Cortex MCP Server - identity, memory and failure tools for MCP clients.

Exposes the context preparation pipeline and the three services as MCP
tools. Every call is validated twice: first against the tool's JSON Schema,
then by the per-tool sanitizer, which also coerces enums and fills defaults.

Usage:
    cortex mcp  # Start MCP server (stdio transport)
"""

import asyncio
import logging
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

from jsonschema import Draft7Validator
from mcp.server import Server
from mcp.server.stdio import stdio_server
from mcp.types import TextContent, Tool

from cortex.config import load_config
from cortex.core import Cortex
from cortex.mcp.handlers import HANDLERS, VALIDATORS
from cortex.mcp.tool_definitions import TOOL_SCHEMAS, TOOLS
from cortex.protocols import NotFoundError

logger = logging.getLogger(__name__)

# Initialize MCP server
mcp = Server("cortex")

_SCHEMA_VALIDATORS: Dict[str, Draft7Validator] = {
    name: Draft7Validator(schema) for name, schema in TOOL_SCHEMAS.items()
}

_db_path: Optional[Path] = None


def set_db_path(db_path: Optional[Union[str, Path]]) -> None:
    """Point the server at a SQLite file and drop any cached instance."""
    global _db_path
    _db_path = Path(db_path).expanduser() if db_path else None
    if hasattr(get_cortex, "_instance"):
        delattr(get_cortex, "_instance")


def get_cortex() -> Cortex:
    """Get or create the Cortex instance."""
    if not hasattr(get_cortex, "_instance"):
        get_cortex._instance = Cortex.create_with_sqlite(  # type: ignore[attr-defined]
            _db_path, config=load_config()
        )
    return get_cortex._instance  # type: ignore[attr-defined]


# =============================================================================
# INPUT VALIDATION & SANITIZATION
# =============================================================================


def _check_schema(name: str, arguments: Dict[str, Any]) -> None:
    validator = _SCHEMA_VALIDATORS.get(name)
    if validator is None:
        return
    errors = sorted(validator.iter_errors(arguments), key=lambda err: list(err.path))
    if errors:
        first = errors[0]
        path = ".".join(str(part) for part in first.path) or "(root)"
        raise ValueError(f"Schema validation failed at {path}: {first.message}")


def validate_tool_input(name: str, arguments: Dict[str, Any]) -> Dict[str, Any]:
    """Validate and sanitize MCP tool inputs."""
    try:
        if not isinstance(name, str):
            raise ValueError(f"tool name must be a string, got {type(name).__name__}")
        if not name:
            raise ValueError("tool name must not be empty")
        if not isinstance(arguments, dict):
            raise ValueError(f"arguments must be an object, got {type(arguments).__name__}")

        validator = VALIDATORS.get(name)
        if validator is None:
            raise ValueError(f"Unknown tool: {name}")

        _check_schema(name, arguments)
        return validator(arguments)

    except (ValueError, TypeError) as e:
        logger.warning(f"Input validation failed for tool {name}: {e}")
        raise ValueError(str(e)) from e


def handle_tool_error(e: Exception, tool_name: str, arguments: Dict[str, Any]) -> List[TextContent]:
    """Handle tool errors securely."""
    if isinstance(e, ValueError):
        # Input validation or business logic error
        logger.warning(f"Invalid input for tool {tool_name}: {e}")
        return [TextContent(type="text", text=f"Invalid input: {str(e)}")]

    elif isinstance(e, NotFoundError):
        logger.warning(f"Not found for tool {tool_name}: {e}")
        return [TextContent(type="text", text=f"Not found: {e.kind} {e.record_id}")]

    else:
        # Unknown error - log full details but return generic message
        argument_keys = list(arguments.keys()) if isinstance(arguments, dict) else []
        logger.error(
            f"Internal error in tool {tool_name}",
            extra={
                "tool_name": tool_name,
                "arguments_keys": argument_keys,
                "error_type": type(e).__name__,
            },
            exc_info=True,
        )
        return [TextContent(type="text", text="Internal server error")]


# =============================================================================
# MCP PROTOCOL HANDLERS
# =============================================================================


@mcp.list_tools()
async def list_tools() -> list[Tool]:
    """List available Cortex tools."""
    return list(TOOLS)


@mcp.call_tool()
async def call_tool(name: str, arguments: dict[str, Any]) -> list[TextContent]:
    """Handle tool calls with validation and error handling."""
    try:
        sanitized_args = validate_tool_input(name, arguments)
        c = get_cortex()

        handler = HANDLERS.get(name)
        if handler is None:
            # Should not reach here due to validation, but handle gracefully
            logger.error(f"Unexpected tool name after validation: {name}")
            return [TextContent(type="text", text=f"Tool '{name}' is not available")]

        result = handler(sanitized_args, c)
        return [TextContent(type="text", text=result)]

    except Exception as e:
        return handle_tool_error(e, name, arguments)


async def run_server():
    """Run the MCP server."""
    async with stdio_server() as (read_stream, write_stream):
        await mcp.run(
            read_stream,
            write_stream,
            mcp.create_initialization_options(),
        )


def main(db_path: Optional[str] = None):
    """Entry point for MCP server.

    Database resolution (in order): explicit db_path, CORTEX_DB_PATH,
    $CORTEX_HOME/cortex.db.
    """
    set_db_path(db_path)
    asyncio.run(run_server())


if __name__ == "__main__":
    main()
