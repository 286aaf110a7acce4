"""Configuration module for the Modular branches MCP server."""

from .settings import Settings, get_settings

__all__ = ["Settings", "get_settings"]
