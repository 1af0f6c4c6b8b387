"""
PeerChat - Chat node.

Wires the registry, router, acceptor and sender together and exposes the
operations the menu (or any other front end) drives:

- start_server: listen for peers
- send: deliver a message
- connect_to: start a handshake
- list_peers: who we have talked to, in first-seen order
- quit: say goodbye to every known peer and stop listening
"""

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence

from .config import Config
from .constants import (
    CONNECT_TIMEOUT,
    DEFAULT_HOST,
    HANDSHAKE_TIMEOUT,
    READ_LIMIT,
    TOKEN_CONNECT,
    TOKEN_EXIT,
)
from .errors import ErrorCode, PeerChatError, ServerError
from .observer import NodeObserver
from .protocol import Identity
from .registry import PeerRegistry, PeerState
from .router import MessageRouter
from .sender import OutboundSender, SendReceipt
from .server import PeerServer
from .utils import parse_address

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PeerView:
    """One row of the peer listing."""

    address: str
    team_name: str
    state: PeerState


@dataclass
class QuitReport:
    """Per-peer outcome of the exit notifications sent on shutdown."""

    results: Dict[str, Optional[Exception]] = field(default_factory=dict)

    @property
    def notified(self) -> List[str]:
        return [address for address, error in self.results.items() if error is None]

    @property
    def failures(self) -> Dict[str, Exception]:
        return {address: error for address, error in self.results.items() if error is not None}


class ChatNode:
    """A peer-to-peer chat node: server and client at once."""

    def __init__(
        self,
        identity: Identity,
        mandatory_peers: Sequence[str] = (),
        fanout_enabled: bool = False,
        observer: Optional[NodeObserver] = None,
        host: str = DEFAULT_HOST,
        handshake_timeout: float = HANDSHAKE_TIMEOUT,
        connect_timeout: float = CONNECT_TIMEOUT,
        read_limit: int = READ_LIMIT,
    ):
        self.identity = identity
        self.host = host
        self.observer = observer or NodeObserver()

        self.registry = PeerRegistry()
        self.router = MessageRouter(identity, self.registry, self.observer)
        self.server = PeerServer(self.router, self.registry, self.observer, read_limit=read_limit)
        self.sender = OutboundSender(
            identity,
            self.registry,
            self.server,
            self.observer,
            mandatory_peers=mandatory_peers,
            fanout_enabled=fanout_enabled,
            handshake_timeout=handshake_timeout,
            connect_timeout=connect_timeout,
            read_limit=read_limit,
        )

    @classmethod
    def from_config(cls, config: Config, observer: Optional[NodeObserver] = None) -> "ChatNode":
        """Build a node from a loaded configuration."""
        return cls(
            config.identity(),
            mandatory_peers=config.mandatory_peers(),
            fanout_enabled=config.get("mandatory", "enabled", False),
            observer=observer,
            host=config.get("network", "host", DEFAULT_HOST),
            handshake_timeout=float(config.get("network", "handshake_timeout", HANDSHAKE_TIMEOUT)),
            connect_timeout=float(config.get("network", "connect_timeout", CONNECT_TIMEOUT)),
            read_limit=int(config.get("network", "read_limit", READ_LIMIT)),
        )

    @property
    def running(self) -> bool:
        return self.server.running

    async def start_server(self, port: Optional[int] = None) -> int:
        """
        Start accepting peers.

        Args:
            port: Port to listen on (default: the identity's port)

        Returns:
            The bound port, once listening
        """
        bound = await self.server.start(self.identity.port if port is None else port, self.host)
        logger.info(f"{self.identity.name} ({self.identity.address}) is online")
        return bound

    async def send(self, ip: str, port: int, message: str) -> SendReceipt:
        """
        Send a message (or control token) to a peer.

        Raises:
            SendFailure: If the peer could not be reached
        """
        return await self.sender.send(ip, int(port), message)

    async def connect_to(self, ip: str, port: int) -> SendReceipt:
        """
        Dispatch a connect request.

        The returned receipt's ``handshake`` task resolves to the confirmed
        record or fails with HandshakeTimeout; completion is also reported
        to the observer. When a live session already exists the request is
        sent over it and the acknowledgement is handled by the router.
        """
        return await self.sender.send(ip, int(port), TOKEN_CONNECT)

    def list_peers(self) -> List[PeerView]:
        return [
            PeerView(address, record.team_name, record.state)
            for address, record in self.registry.snapshot()
        ]

    async def quit(self) -> QuitReport:
        """
        Notify every known peer with ``exit`` and stop listening.

        Notifications run concurrently and each is bounded by the connect
        timeout, so unreachable peers delay shutdown but never block it.
        Terminating the process is left to the caller.

        Raises:
            ServerError: If the node was never started
        """
        if not self.running:
            raise ServerError(ErrorCode.E803_SERVER_NOT_RUNNING, "Node is not running")

        addresses = self.registry.addresses()
        logger.info(f"Sending exit message to {len(addresses)} peer(s)")

        async def notify(address: str) -> Optional[Exception]:
            ip, port = parse_address(address)
            try:
                await self.sender.send(ip, port, TOKEN_EXIT, fanout=False)
            except PeerChatError as e:
                logger.warning(f"Failed to send exit message to {address}: {e}")
                return e
            return None

        outcomes = await asyncio.gather(*(notify(address) for address in addresses))
        report = QuitReport(dict(zip(addresses, outcomes)))

        await self.sender.cancel_pending()
        await self.server.stop()
        return report
