"""
PeerChat - Outbound sender.

Delivers a message to a peer, reusing the session we already hold for it
when there is a live one and opening a fresh connection otherwise.

A ``connect`` sent over a fresh connection starts a handshake: the socket
stays open and waits (bounded by the handshake timeout) for the peer's
``connected`` acknowledgement. Once acknowledged the socket is recorded as
the peer's connection and handed to the acceptor, which keeps reading from
it like any inbound session.

Every successful send is also relayed to the mandatory peers when fan-out is
enabled. Relaying is one level deep: relayed copies are never relayed again,
so nodes that list each other as mandatory cannot bounce a message forever.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Dict, Optional, Sequence, Set

from .connection import PeerConnection
from .constants import CONNECT_TIMEOUT, HANDSHAKE_TIMEOUT, READ_LIMIT
from .errors import FailureKind, HandshakeTimeout, MalformedMessage, SendFailure
from .observer import NodeObserver
from .protocol import Identity, Message, MessageKind, Protocol, classify
from .registry import PeerRecord, PeerRegistry, PeerState
from .utils import format_address, parse_address

if TYPE_CHECKING:
    from .server import PeerServer

logger = logging.getLogger(__name__)


@dataclass
class SendReceipt:
    """Outcome of a successful primary send."""

    address: str
    reused: bool = False
    fanout: Dict[str, Optional[Exception]] = field(default_factory=dict)
    handshake: Optional[asyncio.Task] = None

    @property
    def fanout_failures(self) -> Dict[str, Exception]:
        return {address: error for address, error in self.fanout.items() if error is not None}


class OutboundSender:
    """Sends messages to peers and performs the connect handshake."""

    def __init__(
        self,
        identity: Identity,
        registry: PeerRegistry,
        server: "PeerServer",
        observer: NodeObserver,
        mandatory_peers: Sequence[str] = (),
        fanout_enabled: bool = False,
        handshake_timeout: float = HANDSHAKE_TIMEOUT,
        connect_timeout: float = CONNECT_TIMEOUT,
        read_limit: int = READ_LIMIT,
    ):
        self.identity = identity
        self.registry = registry
        self.server = server
        self.observer = observer
        self.mandatory_peers = tuple(mandatory_peers)
        self.fanout_enabled = fanout_enabled
        self.handshake_timeout = handshake_timeout
        self.connect_timeout = connect_timeout
        self.read_limit = read_limit

        self._handshakes: Set[asyncio.Task] = set()

    async def send(self, ip: str, port: int, message: str, fanout: bool = True) -> SendReceipt:
        """
        Send ``message`` to ``ip:port``.

        Args:
            ip: Target host
            port: Target port
            message: Control token or free text
            fanout: Relay to the mandatory peers afterwards (if enabled)

        Returns:
            SendReceipt describing how the message went out

        Raises:
            SendFailure: If the target could not be reached
        """
        address = format_address(ip, port)
        data = self.identity.frame(message)
        kind = classify(message)
        receipt = SendReceipt(address)

        if await self._send_existing(address, data, kind):
            receipt.reused = True
            logger.info(f"Message sent to {address} through existing connection")
        else:
            connection = await self._open(ip, port, address)
            try:
                await connection.write(data)
            except (ConnectionError, OSError) as e:
                connection.abort()
                raise SendFailure.from_os_error(e, address) from e

            if kind is MessageKind.CONNECT:
                receipt.handshake = self._start_handshake(connection, address)
            else:
                await connection.close()
                if kind is MessageKind.EXIT:
                    await self._mark_exited(address)
            logger.info(f"Message sent to {address}")

        if fanout and self.fanout_enabled:
            receipt.fanout = await self._fan_out(message, address)
        return receipt

    async def _send_existing(self, address: str, data: bytes, kind: MessageKind) -> bool:
        """Try the session we hold for ``address``; False means open a new one."""
        record = self.registry.get(address)
        if record is None or not record.has_live_connection():
            return False

        connection = record.connection
        try:
            await connection.write(data)
        except (ConnectionError, OSError) as e:
            logger.warning(f"Error sending to existing connection for {address}: {e}")
            return False

        if kind is MessageKind.EXIT:
            await self._mark_exited(address)
            await connection.close()
        return True

    async def _mark_exited(self, address: str) -> None:
        def leave(record: PeerRecord) -> None:
            record.state = PeerState.DISCONNECTED

        await self.registry.upsert(address, leave, create=False)

    async def _open(self, ip: str, port: int, address: str) -> PeerConnection:
        try:
            return await PeerConnection.open(
                ip, port, timeout=self.connect_timeout, limit=self.read_limit
            )
        except asyncio.TimeoutError:
            raise SendFailure(
                FailureKind.OTHER,
                address,
                f"Connection to {address} timed out after {self.connect_timeout:g}s",
            ) from None
        except OSError as e:
            raise SendFailure.from_os_error(e, address) from e

    async def _fan_out(self, message: str, target: str) -> Dict[str, Optional[Exception]]:
        """Relay ``message`` once to every mandatory peer other than self and target."""
        sent: Set[str] = {target}
        results: Dict[str, Optional[Exception]] = {}

        for peer in self.mandatory_peers:
            if peer == self.identity.address:
                logger.debug(f"Not relaying to self: {peer}")
                continue
            if peer in sent:
                continue
            sent.add(peer)

            ip, port = parse_address(peer)
            try:
                await self.send(ip, port, message, fanout=False)
            except SendFailure as e:
                logger.warning(f"Relay to mandatory peer {peer} failed: {e.reason}")
                self.observer.send_failed(peer, e)
                results[peer] = e
            else:
                logger.info(f"Message relayed to mandatory peer {peer}")
                results[peer] = None
        return results

    def _start_handshake(self, connection: PeerConnection, address: str) -> asyncio.Task:
        task = asyncio.create_task(self._handshake(connection, address))
        self._handshakes.add(task)
        task.add_done_callback(self._handshake_done)
        return task

    def _handshake_done(self, task: asyncio.Task) -> None:
        self._handshakes.discard(task)
        if not task.cancelled():
            # Failures were already reported to the observer.
            task.exception()

    async def _handshake(self, connection: PeerConnection, address: str) -> PeerRecord:
        """Wait for the acknowledgement of a connect request sent on ``connection``."""
        try:
            ack = await asyncio.wait_for(
                self._await_ack(connection, address), timeout=self.handshake_timeout
            )
        except asyncio.TimeoutError:
            connection.abort()
            error = HandshakeTimeout(address, self.handshake_timeout)
            logger.warning(error.message)
            self.observer.handshake_failed(address, error)
            raise error from None
        except (ConnectionError, OSError, ValueError) as e:
            connection.abort()
            error = SendFailure.from_os_error(e, address)
            logger.warning(f"Handshake with {address} failed: {e}")
            self.observer.handshake_failed(address, error)
            raise error from e
        except asyncio.CancelledError:
            connection.abort()
            raise

        def confirm(_: PeerRecord) -> PeerRecord:
            return PeerRecord(ack.team_name, PeerState.CONNECTED, connection)

        record = await self.registry.upsert(address, confirm)
        self.server.adopt(connection, address)
        logger.info(f"Connection confirmed with {ack.team_name} ({address})")
        self.observer.handshake_confirmed(address, ack.team_name)
        return record

    async def _await_ack(self, connection: PeerConnection, address: str) -> Message:
        while True:
            line = await connection.read_line()
            if line is None:
                raise ConnectionResetError(f"{address} closed the connection before acknowledging")
            try:
                message = Protocol.decode(line)
            except MalformedMessage:
                logger.debug(f"Ignoring malformed line from {address} before handshake ack")
                continue
            if message.kind is MessageKind.CONNECTED:
                return message
            logger.debug(f"Ignoring unexpected data from {address} before handshake ack")

    async def cancel_pending(self) -> None:
        """Cancel handshakes still waiting for an acknowledgement."""
        tasks = list(self._handshakes)
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
