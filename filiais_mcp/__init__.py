"""MCP server exposing the Modular branch listing API over HTTP SSE."""

__version__ = "1.0.0"
