"""
Pytest configuration and fixtures for PeerChat tests.

Provides common fixtures and test utilities for unit and integration tests.
"""

import asyncio
import socket
import tempfile
import shutil
from pathlib import Path
from typing import Callable, Generator, List, Tuple

import pytest

from peerchat.node import ChatNode
from peerchat.observer import NodeObserver
from peerchat.protocol import Identity

LOCALHOST = "127.0.0.1"


class RecordingObserver(NodeObserver):
    """Observer that keeps every event in memory, in arrival order."""

    def __init__(self):
        self.events: List[Tuple] = []

    def message_received(self, address, team_name, text):
        self.events.append(("message", address, team_name, text))

    def peer_connected(self, address, team_name):
        self.events.append(("connected", address, team_name))

    def handshake_confirmed(self, address, team_name):
        self.events.append(("confirmed", address, team_name))

    def handshake_failed(self, address, error):
        self.events.append(("handshake_failed", address, error))

    def peer_exited(self, address, team_name):
        self.events.append(("exited", address, team_name))

    def peer_disconnected(self, address, team_name):
        self.events.append(("disconnected", address, team_name))

    def send_failed(self, address, error):
        self.events.append(("send_failed", address, error))

    def of_kind(self, kind: str) -> List[Tuple]:
        return [event for event in self.events if event[0] == kind]


class FakeConnection:
    """Stand-in for PeerConnection that records what is written to it."""

    def __init__(self, name: str = "fake"):
        self.name = name
        self.written: List[bytes] = []
        self.closed = False
        self.fail_writes = False

    @property
    def is_closed(self) -> bool:
        return self.closed

    async def write(self, data: bytes) -> None:
        if self.fail_writes or self.closed:
            raise ConnectionResetError("connection reset")
        self.written.append(data)

    async def close(self) -> None:
        self.closed = True

    def abort(self) -> None:
        self.closed = True

    @property
    def lines(self) -> List[str]:
        return [data.decode("utf-8").rstrip("\n") for data in self.written]

    def __repr__(self) -> str:
        return f"FakeConnection({self.name})"


def free_port() -> int:
    """Ask the OS for a TCP port nobody is listening on right now."""
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
        sock.bind((LOCALHOST, 0))
        return sock.getsockname()[1]


async def wait_until(predicate: Callable[[], bool], timeout: float = 3.0) -> None:
    """Poll ``predicate`` until it holds or fail the test after ``timeout``."""
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        if loop.time() > deadline:
            pytest.fail("Condition not reached before timeout")
        await asyncio.sleep(0.01)


async def shutdown(*nodes: ChatNode) -> None:
    """Stop nodes without sending exit notifications."""
    for node in nodes:
        await node.sender.cancel_pending()
        await node.server.stop()


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """
    Create a temporary directory for test data.

    Yields:
        Path: Temporary directory path
    """
    tmp = Path(tempfile.mkdtemp(prefix="peerchat_test_"))
    try:
        yield tmp
    finally:
        shutil.rmtree(tmp, ignore_errors=True)


@pytest.fixture
def make_node() -> Callable[..., ChatNode]:
    """
    Factory for nodes bound to a fresh localhost port.

    Returns:
        Callable taking a name plus ChatNode keyword arguments
    """

    def factory(name: str, **kwargs) -> ChatNode:
        kwargs.setdefault("observer", RecordingObserver())
        kwargs.setdefault("host", LOCALHOST)
        kwargs.setdefault("connect_timeout", 2.0)
        return ChatNode(Identity(name, LOCALHOST, free_port()), **kwargs)

    return factory


# Pytest marks
def pytest_configure(config):
    """
    Configure pytest markers.

    Args:
        config: Pytest configuration object
    """
    config.addinivalue_line("markers", "unit: mark test as a unit test")
    config.addinivalue_line("markers", "integration: mark test as an integration test")
    config.addinivalue_line("markers", "slow: mark test as slow running")


# Test collection hooks
def pytest_collection_modifyitems(config, items):
    """
    Add markers based on test location.

    Args:
        config: Pytest configuration
        items: List of collected test items
    """
    for item in items:
        if "unit" in str(item.fspath):
            item.add_marker(pytest.mark.unit)
        else:
            item.add_marker(pytest.mark.integration)
