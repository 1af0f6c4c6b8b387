"""
PeerChat - Message router.

Interprets decoded messages arriving on a session and applies them to the
peer registry:

- exit: forget the sender and close the handle we held for it
- connect: record the sender as connected on this socket and acknowledge
- connected: refresh the session it arrived on, if we hold that socket for
  the sender; otherwise a chat message
- anything else: a chat message, handed to the observer
"""

import logging

from .connection import PeerConnection
from .constants import TOKEN_CONNECTED
from .observer import NodeObserver
from .protocol import Identity, Message, MessageKind
from .registry import PeerRecord, PeerRegistry, PeerState

logger = logging.getLogger(__name__)


class MessageRouter:
    """Applies incoming messages to the registry."""

    def __init__(self, identity: Identity, registry: PeerRegistry, observer: NodeObserver):
        self.identity = identity
        self.registry = registry
        self.observer = observer

    async def route(self, message: Message, connection: PeerConnection) -> None:
        """Handle one decoded message received on ``connection``."""
        kind = message.kind
        if kind is MessageKind.EXIT:
            await self._handle_exit(message)
        elif kind is MessageKind.CONNECT:
            await self._handle_connect(message, connection)
        elif kind is MessageKind.CONNECTED:
            await self._handle_connected(message, connection)
        else:
            await self._handle_data(message)

    async def _handle_exit(self, message: Message) -> None:
        record = await self.registry.remove(message.sender)
        if record is None:
            logger.debug(f"Exit from unknown peer {message.sender} ignored")
            return

        if record.connection is not None:
            await record.connection.close()

        logger.info(f"Peer {record.team_name} ({message.sender}) left")
        self.observer.peer_exited(message.sender, record.team_name)

    async def _handle_connect(self, message: Message, connection: PeerConnection) -> None:
        def claim(_: PeerRecord) -> PeerRecord:
            return PeerRecord(message.team_name, PeerState.CONNECTED, connection)

        await self.registry.upsert(message.sender, claim)
        logger.info(f"Accepted handshake from {message.team_name} ({message.sender}) on {connection!r}")
        self.observer.peer_connected(message.sender, message.team_name)

        try:
            await connection.write(self.identity.frame(TOKEN_CONNECTED))
        except (ConnectionError, OSError) as e:
            logger.warning(f"Could not acknowledge handshake from {message.sender}: {e}")

    async def _handle_connected(self, message: Message, connection: PeerConnection) -> None:
        # Only an ack on the session we already hold for the sender counts;
        # anywhere else "connected" is ordinary chat text.
        record = self.registry.get(message.sender)
        if record is None or not record.owns(connection):
            await self._handle_data(message)
            return

        def confirm(_: PeerRecord) -> PeerRecord:
            return PeerRecord(message.team_name, PeerState.CONNECTED, connection)

        await self.registry.upsert(message.sender, confirm)
        logger.info(f"Handshake confirmed by {message.team_name} ({message.sender})")
        self.observer.handshake_confirmed(message.sender, message.team_name)

    async def _handle_data(self, message: Message) -> None:
        def note(record: PeerRecord) -> None:
            if not record.team_name:
                record.team_name = message.team_name
            if record.state is PeerState.DISCONNECTED:
                record.state = PeerState.MESSAGE_RECEIVED

        await self.registry.upsert(message.sender, note)
        logger.debug(f"Message from {message.team_name} ({message.sender})")
        self.observer.message_received(message.sender, message.team_name, message.payload)
