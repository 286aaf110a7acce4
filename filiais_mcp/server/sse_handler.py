"""Server-Sent Events (SSE) session registry for the MCP transport.

Each GET on the events endpoint opens an ``SSESession``: a pair of in-memory
streams connecting the HTTP layer to an MCP server loop running in its own
task. Messages posted to the message endpoint are written into the
session's read stream; everything the server loop writes comes back out as
SSE ``message`` events.
"""

import asyncio
import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, AsyncGenerator, Awaitable, Callable, Dict, List, Optional
from urllib.parse import quote

import anyio
from anyio.streams.memory import MemoryObjectReceiveStream, MemoryObjectSendStream
from mcp.shared.message import SessionMessage

from ..config import get_settings

logger = logging.getLogger(__name__)

# Coroutine driving the MCP server over (read_stream, write_stream).
ServerRunner = Callable[[MemoryObjectReceiveStream, MemoryObjectSendStream], Awaitable[None]]


@dataclass
class SSESession:
    """Represents an open SSE channel and its MCP streams."""

    session_id: str
    read_stream_writer: MemoryObjectSendStream
    read_stream: MemoryObjectReceiveStream
    write_stream: MemoryObjectSendStream
    write_stream_reader: MemoryObjectReceiveStream
    created_at: datetime = field(default_factory=datetime.now)
    task: Optional[asyncio.Task] = None

    async def send(self, message: SessionMessage) -> None:
        """Deliver a client message to the MCP server loop."""
        await self.read_stream_writer.send(message)

    def close(self) -> None:
        """Close the streams and stop the server loop.

        Never awaits, so it is safe to call from a cancelled context.
        """
        if self.task and not self.task.done():
            self.task.cancel()
        # Send ends first so pending receivers see end-of-stream.
        for stream in (
            self.read_stream_writer,
            self.write_stream,
            self.read_stream,
            self.write_stream_reader,
        ):
            stream.close()


class SSEHandler:
    """Registry of open SSE sessions keyed by session id.

    Sessions are kept in opening order; the most recent one is the default
    target for messages posted without a session id.
    """

    def __init__(self, buffer_size: Optional[int] = None):
        """Initialize SSE handler.

        Args:
            buffer_size: Capacity of each in-memory stream. Default from settings.
        """
        self.settings = get_settings()
        self.buffer_size = self.settings.SSE_BUFFER_SIZE if buffer_size is None else buffer_size
        self.sessions: Dict[str, SSESession] = {}

    def __len__(self) -> int:
        return len(self.sessions)

    def create_session(self) -> SSESession:
        """Create and register a new SSE session.

        Returns:
            New SSESession instance.
        """
        read_stream_writer, read_stream = anyio.create_memory_object_stream(self.buffer_size)
        write_stream, write_stream_reader = anyio.create_memory_object_stream(self.buffer_size)

        session = SSESession(
            session_id=uuid.uuid4().hex,
            read_stream_writer=read_stream_writer,
            read_stream=read_stream,
            write_stream=write_stream,
            write_stream_reader=write_stream_reader,
        )
        self.sessions[session.session_id] = session
        logger.info(f"SSE session opened: {session.session_id} (active: {len(self.sessions)})")
        return session

    def open_session(self, runner: ServerRunner) -> SSESession:
        """Create a session and start the MCP server loop for it.

        Args:
            runner: Coroutine function running the MCP server on the streams.

        Returns:
            The started session.
        """
        session = self.create_session()
        session.task = asyncio.create_task(
            runner(session.read_stream, session.write_stream),
            name=f"mcp-session-{session.session_id}",
        )
        session.task.add_done_callback(lambda task: self._on_server_done(session, task))
        return session

    def _on_server_done(self, session: SSESession, task: asyncio.Task) -> None:
        if not task.cancelled() and task.exception() is not None:
            logger.error(
                f"MCP server loop failed for session {session.session_id}: {task.exception()!r}"
            )
        # Ends the event stream if the loop stopped on its own.
        session.write_stream.close()

    def get_session(self, session_id: str) -> Optional[SSESession]:
        """Get an existing session.

        Args:
            session_id: Session ID to look up.

        Returns:
            SSESession or None if not found.
        """
        return self.sessions.get(session_id)

    def latest_session(self) -> Optional[SSESession]:
        """Get the most recently opened session still alive."""
        return next(reversed(self.sessions.values()), None)

    def remove_session(self, session_id: str) -> None:
        """Remove a session and release its resources.

        Args:
            session_id: Session ID to remove.
        """
        session = self.sessions.pop(session_id, None)
        if session is None:
            return
        session.close()
        logger.info(f"SSE session closed: {session_id} (active: {len(self.sessions)})")

    async def close_all(self) -> None:
        """Close every session and wait for their server loops to stop."""
        tasks: List[asyncio.Task] = [
            session.task for session in self.sessions.values() if session.task is not None
        ]
        for session_id in list(self.sessions):
            self.remove_session(session_id)
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)

    def endpoint_uri(self, session: SSESession, root_path: str = "") -> str:
        """Build the message URI announced to the client for a session."""
        path = root_path.rstrip("/") + self.settings.MESSAGE_PATH
        return f"{quote(path)}?session_id={session.session_id}"

    async def event_stream(
        self,
        session: SSESession,
        endpoint_uri: str,
    ) -> AsyncGenerator[Dict[str, Any], None]:
        """Stream a session's outgoing MCP messages as SSE events.

        Event types:
        - endpoint: URI the client must POST its messages to
        - message: a JSON-RPC message from the server

        The session is removed from the registry when the stream ends,
        whether the client disconnected or the server loop stopped.

        Args:
            session: Session to stream.
            endpoint_uri: Message URI sent in the initial endpoint event.

        Yields:
            Event dictionaries understood by EventSourceResponse.
        """
        try:
            yield {"event": "endpoint", "data": endpoint_uri}

            async for session_message in session.write_stream_reader:
                yield {
                    "event": "message",
                    "data": session_message.message.model_dump_json(
                        by_alias=True, exclude_none=True
                    ),
                }
        finally:
            self.remove_session(session.session_id)
