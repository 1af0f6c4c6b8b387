"""
PeerChat - Connection acceptor using asyncio.

Owns the listening endpoint. Every accepted socket gets its own read loop
that decodes lines in arrival order and hands them to the message router.
Outbound sockets whose handshake was confirmed are adopted into the same
loop, which turns them into bidirectional sessions.

When a session ends, the peer it belonged to is marked disconnected only if
the registry still holds this very socket for it.
"""

import asyncio
import logging
from typing import Optional, Set

from .connection import PeerConnection
from .connection_fsm import SessionEvent, SessionStateMachine
from .constants import DEFAULT_HOST, READ_LIMIT
from .errors import ErrorCode, MalformedMessage, ServerError
from .observer import NodeObserver
from .protocol import Protocol
from .registry import PeerRegistry
from .router import MessageRouter

logger = logging.getLogger(__name__)


class PeerServer:
    """Listens for incoming peer connections."""

    def __init__(
        self,
        router: MessageRouter,
        registry: PeerRegistry,
        observer: NodeObserver,
        read_limit: int = READ_LIMIT,
    ):
        self.router = router
        self.registry = registry
        self.observer = observer
        self.read_limit = read_limit

        self.server: Optional[asyncio.Server] = None
        self.running = False
        self._sessions: Set[asyncio.Task] = set()
        self._connections: Set[PeerConnection] = set()

    @property
    def port(self) -> Optional[int]:
        """Port actually bound (useful when started on port 0)."""
        if not self.server or not self.server.sockets:
            return None
        return self.server.sockets[0].getsockname()[1]

    async def start(self, port: int, host: str = DEFAULT_HOST) -> int:
        """
        Start listening.

        Returns:
            The bound port

        Raises:
            ServerError: If the endpoint cannot be bound
        """
        try:
            self.server = await asyncio.start_server(
                self._handle_client, host, port, limit=self.read_limit
            )
        except OSError as e:
            raise ServerError(
                ErrorCode.E801_SERVER_START_FAILED,
                f"Failed to listen on {host}:{port}: {e}",
                {"host": host, "port": port},
            ) from e

        self.running = True
        logger.info(f"Server listening on {host}:{self.port}")
        return self.port

    async def stop(self) -> None:
        """Stop listening and close every live session."""
        self.running = False
        server, self.server = self.server, None
        if server:
            server.close()

        for connection in list(self._connections):
            connection.abort()
        for task in list(self._sessions):
            task.cancel()
        if self._sessions:
            await asyncio.gather(*self._sessions, return_exceptions=True)

        if server:
            await server.wait_closed()
            logger.info("Server closed")

    def adopt(self, connection: PeerConnection, peer_address: str) -> asyncio.Task:
        """Serve an outbound socket whose handshake was just confirmed."""
        fsm = SessionStateMachine()
        fsm.transition(SessionEvent.HANDSHAKE_STARTED, peer_address=peer_address)
        fsm.transition(SessionEvent.ACK_RECEIVED)
        return self._track(asyncio.create_task(self._serve(connection, fsm)))

    async def _handle_client(self, reader: asyncio.StreamReader, writer: asyncio.StreamWriter):
        connection = PeerConnection(reader, writer)
        logger.debug(f"Incoming connection {connection!r}")
        task = asyncio.current_task()
        if task is not None:
            self._track(task)
        await self._serve(connection, SessionStateMachine())

    def _track(self, task: asyncio.Task) -> asyncio.Task:
        self._sessions.add(task)
        task.add_done_callback(self._sessions.discard)
        return task

    async def _serve(self, connection: PeerConnection, fsm: SessionStateMachine) -> None:
        """Read loop for one socket."""
        self._connections.add(connection)
        try:
            while True:
                line = await connection.read_line()
                if line is None:
                    fsm.transition(SessionEvent.CLOSED)
                    break

                try:
                    message = Protocol.decode(line)
                except MalformedMessage as e:
                    logger.debug(f"Dropped line from {connection!r}: {e}")
                    continue

                fsm.transition(SessionEvent.ADDRESS_LEARNED, peer_address=message.sender)
                try:
                    await self.router.route(message, connection)
                except (ConnectionError, OSError):
                    raise
                except Exception as e:
                    logger.error(f"Error handling message from {message.sender}: {e}", exc_info=True)

        except asyncio.CancelledError:
            fsm.transition(SessionEvent.CLOSED)
            raise
        except (ConnectionError, OSError, ValueError) as e:
            # ValueError: line longer than the stream limit
            fsm.transition(SessionEvent.ERROR, error_msg=str(e))
            if fsm.is_anonymous:
                logger.warning(f"Socket error from unidentified peer {connection.remote}: {e}")
            else:
                logger.warning(f"Socket error for {fsm.peer_address}: {e}")
        finally:
            self._connections.discard(connection)
            await connection.close()
            await self._session_ended(connection, fsm)

    async def _session_ended(self, connection: PeerConnection, fsm: SessionStateMachine) -> None:
        if fsm.is_anonymous:
            logger.debug(f"Anonymous session {connection!r} closed")
            return

        address = fsm.peer_address
        record = await self.registry.mark_disconnected(address, connection)
        if record is not None:
            logger.info(f"Peer {record.team_name} ({address}) has disconnected")
            self.observer.peer_disconnected(address, record.team_name)
