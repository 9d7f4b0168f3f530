"""Cortex MCP server package."""
