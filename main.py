#!/usr/bin/env python3
"""Entry point for the MCP Modular Filiais server.

This script starts the FastAPI server with MCP protocol support over SSE,
exposing the ``listar_filiais`` tool backed by the Modular branch API.

Usage:
    python main.py

Environment Variables:
    API_TOKEN: Bearer token for the Modular API
    HOST: Server host (default: 0.0.0.0)
    PORT: Server port (default: 3000)
    DEBUG: Enable auto-reload (default: false)
    LOG_LEVEL: Logging level (default: INFO)

Example:
    API_TOKEN=your_token python main.py
"""

import uvicorn

from filiais_mcp import __version__
from filiais_mcp.config import get_settings


def main() -> None:
    """Run the MCP server."""
    settings = get_settings()

    print(f"""
    ╔══════════════════════════════════════════════════════════════╗
    ║         MCP Modular Filiais v{__version__:<32}║
    ║                                                              ║
    ║  HTTP SSE Transport for Model Context Protocol               ║
    ╠══════════════════════════════════════════════════════════════╣
    ║  Host: {settings.HOST:<54}║
    ║  Port: {settings.PORT:<54}║
    ║  Debug: {str(settings.DEBUG):<53}║
    ╠══════════════════════════════════════════════════════════════╣
    ║  Endpoints:                                                  ║
    ║    GET  {settings.EVENTS_PATH:<13}- Open SSE channel                     ║
    ║    POST {settings.MESSAGE_PATH:<13}- MCP JSON-RPC messages               ║
    ║    GET  /            - Health check                          ║
    ║    GET  /health      - Detailed health status                ║
    ╠══════════════════════════════════════════════════════════════╣
    ║  Available Tools (1):                                        ║
    ║    - listar_filiais (cidade?, uf?)                           ║
    ╚══════════════════════════════════════════════════════════════╝
    """)

    uvicorn.run(
        "filiais_mcp.server.main:app",
        host=settings.HOST,
        port=settings.PORT,
        log_level=settings.LOG_LEVEL.lower(),
        reload=settings.DEBUG,
    )


if __name__ == "__main__":
    main()
