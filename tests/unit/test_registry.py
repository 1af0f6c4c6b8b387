"""
PeerChat - Peer registry tests.

Tests for per-address atomic updates, ordering and the stale-socket guard.
"""

import asyncio

import pytest

from conftest import FakeConnection
from peerchat.registry import PeerRecord, PeerRegistry, PeerState

A = "127.0.0.1:5000"
B = "127.0.0.1:5001"


@pytest.mark.asyncio
class TestPeerRegistry:
    """Async tests for PeerRegistry."""

    async def test_upsert_creates_message_received_record(self):
        registry = PeerRegistry()

        record = await registry.upsert(A, lambda r: setattr(r, "team_name", "Alpha"))

        assert record.team_name == "Alpha"
        assert record.state is PeerState.MESSAGE_RECEIVED
        assert record.connection is None
        assert A in registry

    async def test_upsert_without_create_ignores_unknown(self):
        registry = PeerRegistry()

        assert await registry.upsert(A, lambda r: None, create=False) is None
        assert len(registry) == 0

    async def test_get_returns_copy(self):
        registry = PeerRegistry()
        await registry.upsert(A, lambda r: setattr(r, "team_name", "Alpha"))

        copy = registry.get(A)
        copy.team_name = "Mallory"

        assert registry.get(A).team_name == "Alpha"

    async def test_snapshot_keeps_first_seen_order(self):
        registry = PeerRegistry()
        await registry.upsert(B, lambda r: setattr(r, "team_name", "Beta"))
        await registry.upsert(A, lambda r: setattr(r, "team_name", "Alpha"))
        await registry.upsert(B, lambda r: setattr(r, "state", PeerState.DISCONNECTED))

        assert [address for address, _ in registry.snapshot()] == [B, A]

    async def test_replacement_record_wins_whole(self):
        registry = PeerRegistry()
        first, second = FakeConnection("first"), FakeConnection("second")
        await registry.upsert(A, lambda r: PeerRecord("Alpha", PeerState.CONNECTED, first))

        await registry.upsert(A, lambda r: PeerRecord("Alpha2", PeerState.CONNECTED, second))

        record = registry.get(A)
        assert record.team_name == "Alpha2"
        assert record.connection is second

    async def test_non_connected_records_hold_no_connection(self):
        registry = PeerRegistry()
        conn = FakeConnection()
        await registry.upsert(A, lambda r: PeerRecord("Alpha", PeerState.CONNECTED, conn))

        await registry.upsert(A, lambda r: setattr(r, "state", PeerState.DISCONNECTED))

        assert registry.get(A).connection is None

    async def test_remove(self):
        registry = PeerRegistry()
        await registry.upsert(A, lambda r: setattr(r, "team_name", "Alpha"))

        removed = await registry.remove(A)

        assert removed.team_name == "Alpha"
        assert A not in registry
        assert await registry.remove(A) is None

    async def test_mark_disconnected_owned_socket(self):
        registry = PeerRegistry()
        conn = FakeConnection()
        await registry.upsert(A, lambda r: PeerRecord("Alpha", PeerState.CONNECTED, conn))

        record = await registry.mark_disconnected(A, conn)

        assert record.state is PeerState.DISCONNECTED
        assert registry.get(A).state is PeerState.DISCONNECTED
        assert registry.get(A).connection is None

    async def test_mark_disconnected_never_clobbers_newer_socket(self):
        """A stale socket closing must not disconnect a re-handshaked record."""
        registry = PeerRegistry()
        old, new = FakeConnection("old"), FakeConnection("new")
        await registry.upsert(A, lambda r: PeerRecord("Alpha", PeerState.CONNECTED, old))
        await registry.upsert(A, lambda r: PeerRecord("Alpha", PeerState.CONNECTED, new))

        assert await registry.mark_disconnected(A, old) is None

        record = registry.get(A)
        assert record.state is PeerState.CONNECTED
        assert record.connection is new

    async def test_mark_disconnected_unknown_address(self):
        registry = PeerRegistry()
        assert await registry.mark_disconnected(A, FakeConnection()) is None
        assert A not in registry

    async def test_concurrent_updates_are_not_lost(self):
        """Many concurrent read-modify-writes on one address all land."""
        registry = PeerRegistry()
        await registry.upsert(A, lambda r: setattr(r, "team_name", ""))

        def append(record):
            record.team_name += "x"

        await asyncio.gather(*(registry.upsert(A, append) for _ in range(50)))

        assert registry.get(A).team_name == "x" * 50

    async def test_different_addresses_do_not_block_each_other(self):
        registry = PeerRegistry()
        async with registry._locked(A):
            record = await asyncio.wait_for(
                registry.upsert(B, lambda r: setattr(r, "team_name", "Beta")), timeout=1
            )

        assert record.team_name == "Beta"

    async def test_same_address_waits_for_holder(self):
        registry = PeerRegistry()

        async with registry._locked(A):
            pending = asyncio.create_task(
                registry.upsert(A, lambda r: setattr(r, "team_name", "Alpha"))
            )
            await asyncio.sleep(0.05)
            assert not pending.done()

        assert (await pending).team_name == "Alpha"

    async def test_locks_are_dropped_when_unused(self):
        registry = PeerRegistry()
        conn = FakeConnection()

        await asyncio.gather(*(registry.upsert(A, lambda r: None) for _ in range(10)))
        await registry.upsert(B, lambda r: PeerRecord("Beta", PeerState.CONNECTED, conn))
        await registry.mark_disconnected(B, conn)
        await registry.remove(A)
        await registry.remove(A)

        assert registry._locks == {}
        assert B in registry
