"""
PeerChat - Peer registry.

In-memory mapping from peer address ("ip:port") to the record of what this
node knows about that peer. Records keep first-seen order for the peer
listing and are only deleted when the peer says goodbye with ``exit``.

Every mutation goes through a per-address lock: updates to one address are
linearized, updates to different addresses never wait on each other.
A lock only exists while some update for its address is in flight.
"""

import asyncio
import logging
from contextlib import asynccontextmanager
from dataclasses import dataclass, replace
from enum import Enum
from typing import AsyncIterator, Callable, Dict, List, Optional, Tuple

from .connection import PeerConnection

logger = logging.getLogger(__name__)


class PeerState(Enum):
    """What we currently know about a peer."""

    CONNECTED = "connected"
    MESSAGE_RECEIVED = "message_received"
    DISCONNECTED = "disconnected"


@dataclass
class PeerRecord:
    """Registry entry for one peer address."""

    team_name: str = ""
    state: PeerState = PeerState.MESSAGE_RECEIVED
    connection: Optional[PeerConnection] = None

    def owns(self, connection: PeerConnection) -> bool:
        """True if ``connection`` is exactly the handle this record holds."""
        return self.connection is not None and self.connection is connection

    def has_live_connection(self) -> bool:
        return (
            self.state is PeerState.CONNECTED
            and self.connection is not None
            and not self.connection.is_closed
        )


Mutator = Callable[[PeerRecord], Optional[PeerRecord]]


class PeerRegistry:
    """Concurrent-safe store of peer records keyed by address."""

    def __init__(self):
        self._peers: Dict[str, PeerRecord] = {}
        self._locks: Dict[str, asyncio.Lock] = {}
        self._users: Dict[str, int] = {}

    @asynccontextmanager
    async def _locked(self, address: str) -> AsyncIterator[None]:
        """Hold the lock for ``address``; it is dropped once nobody uses it."""
        lock = self._locks.get(address)
        if lock is None:
            lock = self._locks[address] = asyncio.Lock()
        self._users[address] = self._users.get(address, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._users[address] -= 1
            if not self._users[address]:
                del self._users[address]
                del self._locks[address]

    def get(self, address: str) -> Optional[PeerRecord]:
        """Return a copy of the record for ``address``, if any."""
        record = self._peers.get(address)
        return replace(record) if record is not None else None

    async def upsert(
        self, address: str, mutator: Mutator, create: bool = True
    ) -> Optional[PeerRecord]:
        """
        Atomically read-modify-write the record for ``address``.

        The mutator receives the current record (or a fresh
        ``MESSAGE_RECEIVED`` record when the address is unknown) and either
        edits it in place or returns a replacement.

        Args:
            address: Peer address
            mutator: Function applied to the record under the address lock
            create: If False, unknown addresses are left alone

        Returns:
            A copy of the stored record, or None if nothing was stored
        """
        async with self._locked(address):
            current = self._peers.get(address)
            if current is None and not create:
                return None
            record = replace(current) if current is not None else PeerRecord()
            result = mutator(record)
            if result is not None:
                record = result
            if record.state is not PeerState.CONNECTED:
                record.connection = None
            self._peers[address] = record
            return replace(record)

    async def remove(self, address: str) -> Optional[PeerRecord]:
        """Delete the record for ``address`` and return it."""
        async with self._locked(address):
            return self._peers.pop(address, None)

    async def mark_disconnected(
        self, address: str, connection: PeerConnection
    ) -> Optional[PeerRecord]:
        """
        Transition ``address`` to DISCONNECTED if it still owns ``connection``.

        A record that was re-handshaked on another socket, deleted, or never
        owned this socket is left alone (stale socket).

        Returns:
            A copy of the updated record, or None if nothing changed
        """
        async with self._locked(address):
            record = self._peers.get(address)
            if record is None or not record.owns(connection):
                logger.debug(f"Ignoring stale disconnect of {connection!r} for {address}")
                return None
            record = replace(record, state=PeerState.DISCONNECTED, connection=None)
            self._peers[address] = record
            return replace(record)

    def snapshot(self) -> List[Tuple[str, PeerRecord]]:
        """Return ``(address, record)`` pairs in first-seen order."""
        return [(address, replace(record)) for address, record in self._peers.items()]

    def addresses(self) -> List[str]:
        return list(self._peers)

    def __contains__(self, address: str) -> bool:
        return address in self._peers

    def __len__(self) -> int:
        return len(self._peers)
