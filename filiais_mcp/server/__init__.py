"""Server module for the Modular branches MCP server with HTTP SSE transport."""

from .main import app, create_app, create_mcp_server
from .sse_handler import SSEHandler, SSESession

__all__ = [
    "app",
    "create_app",
    "create_mcp_server",
    "SSEHandler",
    "SSESession",
]
