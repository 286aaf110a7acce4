"""Main FastAPI application with MCP server integration."""

import logging
from contextlib import asynccontextmanager
from typing import Any, Dict, List, Optional

import anyio
import mcp.types as types
from anyio.streams.memory import MemoryObjectReceiveStream, MemoryObjectSendStream
from fastapi import FastAPI, Request
from fastapi.responses import PlainTextResponse
from mcp.server.lowlevel import Server
from mcp.shared.message import SessionMessage
from pydantic import ValidationError
from sse_starlette.sse import EventSourceResponse

from .. import __version__
from ..config import get_settings
from ..models.schemas import ListarFiliaisArgs, ToolDefinition
from ..tools import ModularClient, formatar_filiais, listar_filiais
from .middleware import setup_logging, setup_middleware
from .sse_handler import ServerRunner, SSEHandler

logger = logging.getLogger(__name__)

SERVER_NAME = "MCP Modular Filiais"
SERVICE_NAME = "mcp-modular-filiais"

NOT_CONNECTED_MESSAGE = "SSE não conectado."

# Tool definitions for MCP protocol
TOOL_DEFINITIONS: List[ToolDefinition] = [
    ToolDefinition(
        name="listar_filiais",
        description=(
            "Lista as filiais cadastradas no sistema Modular. Permite filtrar por "
            "cidade (trecho do nome, sem diferenciar maiúsculas) e por UF (sigla exata)."
        ),
        inputSchema={
            "type": "object",
            "properties": {
                "cidade": {"type": "string", "description": "Nome ou parte do nome da cidade"},
                "uf": {"type": "string", "description": "Sigla do estado (UF), ex.: SP"},
            },
        },
    ),
]


def create_mcp_server(client: Optional[ModularClient] = None) -> Server:
    """Create the MCP server with the branch listing tool registered.

    Args:
        client: Modular API client used by the tool. Default built from settings.

    Returns:
        Low-level MCP server instance.
    """
    server = Server(SERVER_NAME, version=__version__)

    @server.list_tools()
    async def handle_list_tools() -> List[types.Tool]:
        return [types.Tool(**tool.model_dump()) for tool in TOOL_DEFINITIONS]

    @server.call_tool()
    async def handle_call_tool(name: str, arguments: Dict[str, Any]) -> List[types.TextContent]:
        # FiliaisError propagates: the SDK turns it into an isError result
        # whose text is the error message.
        if name != "listar_filiais":
            raise ValueError(f"Ferramenta desconhecida: {name}")

        args = ListarFiliaisArgs.model_validate(arguments or {})
        filiais = await listar_filiais(cidade=args.cidade, uf=args.uf, client=client)
        return [types.TextContent(type="text", text=formatar_filiais(filiais))]

    return server


def make_server_runner(server: Server) -> ServerRunner:
    """Bind an MCP server to the session stream pair."""

    async def run(
        read_stream: MemoryObjectReceiveStream,
        write_stream: MemoryObjectSendStream,
    ) -> None:
        await server.run(read_stream, write_stream, server.create_initialization_options())

    return run


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager.

    Handles startup and shutdown events.

    Args:
        app: FastAPI application instance.
    """
    # Startup
    setup_logging()
    settings = get_settings()
    logger.info(f"Starting {SERVER_NAME} v{__version__}")
    logger.info(f"Upstream API: {settings.FILIAIS_API_URL}")
    if not settings.API_TOKEN:
        logger.warning("API_TOKEN is not set: listar_filiais calls will fail")

    yield

    # Shutdown
    logger.info(f"Shutting down {SERVER_NAME}")
    await app.state.sse_handler.close_all()


def create_app(client: Optional[ModularClient] = None) -> FastAPI:
    """Create and configure the FastAPI application.

    Args:
        client: Modular API client for the tool. Default built from settings.

    Returns:
        Configured FastAPI application instance.
    """
    app = FastAPI(
        title=SERVER_NAME,
        description="Servidor MCP (transporte SSE) para consulta de filiais da API Modular.",
        version=__version__,
        lifespan=lifespan,
    )

    mcp_server = create_mcp_server(client)
    app.state.mcp_server = mcp_server
    app.state.mcp_runner = make_server_runner(mcp_server)
    app.state.sse_handler = SSEHandler()

    # Setup middleware
    setup_middleware(app)

    # Register routes
    register_routes(app)

    return app


def register_routes(app: FastAPI) -> None:
    """Register all API routes.

    Args:
        app: FastAPI application instance.
    """
    settings = get_settings()

    @app.get("/")
    async def root():
        """Health check endpoint."""
        return {"status": "ok", "service": SERVICE_NAME}

    @app.get("/health")
    async def health(request: Request):
        """Detailed health check."""
        return {
            "status": "healthy",
            "service": SERVICE_NAME,
            "version": __version__,
            "tools_count": len(TOOL_DEFINITIONS),
            "active_sessions": len(request.app.state.sse_handler),
        }

    @app.get(settings.EVENTS_PATH)
    async def events(request: Request):
        """Open an SSE channel bound to a new MCP session.

        The first event is ``endpoint``, carrying the URI the client must
        POST its JSON-RPC messages to.
        """
        sse_handler: SSEHandler = request.app.state.sse_handler
        session = sse_handler.open_session(request.app.state.mcp_runner)
        endpoint_uri = sse_handler.endpoint_uri(session, request.scope.get("root_path", ""))

        return EventSourceResponse(
            sse_handler.event_stream(session, endpoint_uri),
            ping=settings.SSE_KEEPALIVE_INTERVAL,
            headers={"X-Accel-Buffering": "no"},
        )

    @app.post(settings.MESSAGE_PATH)
    async def message(request: Request, session_id: Optional[str] = None):
        """Relay a JSON-RPC message to an open MCP session.

        Without ``session_id`` the message goes to the most recently opened
        channel. The JSON-RPC response is delivered over SSE.

        Args:
            request: FastAPI request object.
            session_id: Target session, as announced in the endpoint event.

        Returns:
            202 on acceptance, 503 when no channel is open.
        """
        sse_handler: SSEHandler = request.app.state.sse_handler

        if not len(sse_handler):
            logger.warning("Message received with no SSE channel open")
            return PlainTextResponse(NOT_CONNECTED_MESSAGE, status_code=503)

        if session_id:
            session = sse_handler.get_session(session_id)
            if session is None:
                logger.warning(f"Message for unknown session: {session_id}")
                return PlainTextResponse("Sessão não encontrada.", status_code=404)
        else:
            session = sse_handler.latest_session()

        body = await request.body()
        try:
            mcp_message = types.JSONRPCMessage.model_validate_json(body)
        except ValidationError as e:
            logger.warning(f"Invalid MCP message for session {session.session_id}: {e}")
            return PlainTextResponse("Mensagem MCP inválida.", status_code=400)

        try:
            await session.send(SessionMessage(mcp_message))
        except (anyio.ClosedResourceError, anyio.BrokenResourceError):
            logger.warning(f"Session {session.session_id} closed while relaying message")
            return PlainTextResponse(NOT_CONNECTED_MESSAGE, status_code=503)

        return PlainTextResponse("Accepted", status_code=202)


# Create default app instance
app = create_app()
