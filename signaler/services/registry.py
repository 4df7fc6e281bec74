"""In-memory room membership registry."""
from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from typing import Dict, Literal, Set


class AlreadyInRoomError(RuntimeError):
    """Raised when a connection joins without leaving its current room first."""


@dataclass(slots=True, frozen=True)
class JoinAccepted:
    room_name: str
    peers: frozenset[str] = field(default_factory=frozenset)


@dataclass(slots=True, frozen=True)
class JoinRejected:
    room_name: str
    reason: Literal["full"] = "full"


@dataclass(slots=True, frozen=True)
class LeftRoom:
    room_name: str
    remaining_peers: frozenset[str] = field(default_factory=frozenset)


@dataclass(slots=True, frozen=True)
class WasNotInRoom:
    pass


JoinResult = JoinAccepted | JoinRejected
LeaveResult = LeftRoom | WasNotInRoom


class RoomRegistry:
    """Track room membership and enforce the per-room occupancy limit.

    Keeps two maps that are always inverses of each other: room name to member
    ids, and member id to room name. A connection belongs to at most one room,
    and rooms disappear with their last member.
    """

    def __init__(self, limit: int) -> None:
        if limit < 1:
            raise ValueError("room limit must be at least 1")
        self._limit = limit
        self._rooms: Dict[str, Set[str]] = {}
        self._room_of: Dict[str, str] = {}
        self._lock = asyncio.Lock()

    @property
    def limit(self) -> int:
        return self._limit

    def current_room(self, connection_id: str) -> str | None:
        return self._room_of.get(connection_id)

    def peers_in_room(self, connection_id: str) -> set[str]:
        room_name = self._room_of.get(connection_id)
        if room_name is None:
            return set()
        return self._rooms.get(room_name, set()) - {connection_id}

    def members(self, room_name: str) -> set[str]:
        return set(self._rooms.get(room_name, set()))

    def rooms(self) -> dict[str, set[str]]:
        """Snapshot of every non-empty room."""

        return {name: set(members) for name, members in self._rooms.items()}

    async def join(self, connection_id: str, room_name: str) -> JoinResult:
        """Add the connection to the room unless it is already at the limit."""

        async with self._lock:
            if connection_id in self._room_of:
                raise AlreadyInRoomError(
                    f"{connection_id} is already in {self._room_of[connection_id]}"
                )
            members = self._rooms.get(room_name, set())
            if len(members) >= self._limit:
                return JoinRejected(room_name=room_name)

            peers = frozenset(members)
            self._rooms.setdefault(room_name, set()).add(connection_id)
            self._room_of[connection_id] = room_name
            return JoinAccepted(room_name=room_name, peers=peers)

    async def leave(self, connection_id: str) -> LeaveResult:
        """Remove the connection from its room, discarding the room if empty."""

        async with self._lock:
            room_name = self._room_of.pop(connection_id, None)
            if room_name is None:
                return WasNotInRoom()

            members = self._rooms.get(room_name, set())
            members.discard(connection_id)
            if not members:
                self._rooms.pop(room_name, None)
            return LeftRoom(room_name=room_name, remaining_peers=frozenset(members))
