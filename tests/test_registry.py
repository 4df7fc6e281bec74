"""Tests for the room registry."""
from __future__ import annotations

import asyncio
import random

import pytest

from signaler.services.registry import (
    AlreadyInRoomError,
    JoinAccepted,
    JoinRejected,
    LeftRoom,
    RoomRegistry,
    WasNotInRoom,
)


def assert_inverse(registry: RoomRegistry, connections: list[str]) -> None:
    rooms = registry.rooms()
    for name, members in rooms.items():
        assert members, "empty rooms must be discarded"
        for member in members:
            assert registry.current_room(member) == name
    for connection_id in connections:
        room_name = registry.current_room(connection_id)
        if room_name is not None:
            assert connection_id in rooms[room_name]


@pytest.mark.asyncio
async def test_join_reports_existing_peers():
    registry = RoomRegistry(limit=3)

    first = await registry.join("a", "r1")
    second = await registry.join("b", "r1")

    assert first == JoinAccepted(room_name="r1", peers=frozenset())
    assert second == JoinAccepted(room_name="r1", peers=frozenset({"a"}))
    assert registry.peers_in_room("a") == {"b"}
    assert registry.peers_in_room("nobody") == set()


@pytest.mark.asyncio
async def test_join_rejected_when_full_mutates_nothing():
    registry = RoomRegistry(limit=2)
    await registry.join("a", "r1")
    await registry.join("b", "r1")

    result = await registry.join("c", "r1")

    assert isinstance(result, JoinRejected)
    assert result.reason == "full"
    assert registry.current_room("c") is None
    assert registry.members("r1") == {"a", "b"}

    retry = await registry.join("c", "r2")
    assert isinstance(retry, JoinAccepted)


@pytest.mark.asyncio
async def test_join_requires_leaving_first():
    registry = RoomRegistry(limit=5)
    await registry.join("a", "r1")

    with pytest.raises(AlreadyInRoomError):
        await registry.join("a", "r2")

    assert registry.current_room("a") == "r1"


@pytest.mark.asyncio
async def test_leave_discards_empty_room():
    registry = RoomRegistry(limit=5)
    await registry.join("a", "r1")
    await registry.join("b", "r1")

    assert await registry.leave("a") == LeftRoom(room_name="r1", remaining_peers=frozenset({"b"}))
    assert await registry.leave("b") == LeftRoom(room_name="r1", remaining_peers=frozenset())
    assert registry.rooms() == {}
    assert await registry.leave("b") == WasNotInRoom()

    again = await registry.join("c", "r1")
    assert again.peers == frozenset()


@pytest.mark.asyncio
async def test_concurrent_joins_never_exceed_limit():
    registry = RoomRegistry(limit=3)

    results = await asyncio.gather(*(registry.join(f"peer-{i}", "busy") for i in range(12)))

    accepted = [result for result in results if isinstance(result, JoinAccepted)]
    assert len(accepted) == 3
    assert len(registry.members("busy")) == 3


@pytest.mark.asyncio
async def test_random_join_leave_sequences_keep_maps_consistent():
    rng = random.Random(7)
    limit = 3
    registry = RoomRegistry(limit=limit)
    connections = [f"c{i}" for i in range(10)]
    rooms = ["r1", "r2", "r3"]

    for _ in range(400):
        connection_id = rng.choice(connections)
        if registry.current_room(connection_id) is None and rng.random() < 0.7:
            room_name = rng.choice(rooms)
            before = len(registry.members(room_name))
            result = await registry.join(connection_id, room_name)
            if isinstance(result, JoinAccepted):
                assert before < limit
            else:
                assert before == limit
        else:
            await registry.leave(connection_id)

        for members in registry.rooms().values():
            assert len(members) <= limit
        assert_inverse(registry, connections)


def test_limit_must_be_positive():
    with pytest.raises(ValueError):
        RoomRegistry(limit=0)
