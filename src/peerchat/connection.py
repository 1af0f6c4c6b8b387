"""
PeerChat - Owned socket handle.

A PeerConnection wraps one asyncio stream pair. Its identity (the object
itself) is what peer records store as their connection handle, so a record
can tell whether a closing socket is still the one it owns.
"""

import asyncio
import itertools
import logging
from typing import Optional

from .constants import READ_LIMIT, WIRE_ENCODING

logger = logging.getLogger(__name__)

_ids = itertools.count(1)


class PeerConnection:
    """One TCP session with a remote node."""

    def __init__(
        self,
        reader: asyncio.StreamReader,
        writer: asyncio.StreamWriter,
        outbound: bool = False,
    ):
        self.reader = reader
        self.writer = writer
        self.outbound = outbound
        self.id = next(_ids)
        self._closed = False

        peername = writer.get_extra_info("peername")
        self.remote = f"{peername[0]}:{peername[1]}" if peername else "unknown"

    @classmethod
    async def open(
        cls, host: str, port: int, timeout: float, limit: int = READ_LIMIT
    ) -> "PeerConnection":
        """
        Open an outbound connection.

        Raises:
            OSError: If the TCP connection cannot be established
            asyncio.TimeoutError: If it is not established within ``timeout``
        """
        reader, writer = await asyncio.wait_for(
            asyncio.open_connection(host, port, limit=limit), timeout=timeout
        )
        return cls(reader, writer, outbound=True)

    @property
    def is_closed(self) -> bool:
        """True once the handle was closed locally or the transport is going away."""
        return self._closed or self.writer.is_closing()

    async def write(self, data: bytes) -> None:
        """
        Write one framed message and wait until it is flushed.

        Raises:
            ConnectionError: If the handle is already closed or the peer reset it
        """
        if self.is_closed:
            raise ConnectionResetError(f"Connection #{self.id} to {self.remote} is closed")
        self.writer.write(data)
        await self.writer.drain()

    async def read_line(self) -> Optional[str]:
        """
        Read the next non-blank line.

        A trailing fragment without terminator is returned when the peer
        closes the stream.

        Returns:
            The decoded line, or None at end of stream
        """
        while True:
            data = await self.reader.readline()
            if not data:
                return None
            line = data.decode(WIRE_ENCODING, errors="replace").strip()
            if line:
                return line

    async def close(self) -> None:
        """Close the handle. Closing twice is a no-op."""
        if self._closed:
            return
        self._closed = True
        self.writer.close()
        try:
            await self.writer.wait_closed()
        except (ConnectionError, OSError) as e:
            logger.debug(f"Error closing connection #{self.id} to {self.remote}: {e}")

    def abort(self) -> None:
        """Destroy the handle without waiting for buffered data."""
        self._closed = True
        transport = self.writer.transport
        if transport is not None:
            transport.abort()

    def __repr__(self) -> str:
        direction = "out" if self.outbound else "in"
        return f"PeerConnection(#{self.id}, {direction}, remote={self.remote})"
