"""Data models and schemas for the Modular branches MCP server."""

from .schemas import ListarFiliaisArgs, ToolDefinition

__all__ = [
    "ListarFiliaisArgs",
    "ToolDefinition",
]
