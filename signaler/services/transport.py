"""Connection hub that delivers signaling messages to live sockets."""
from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, Dict, Iterable, Set

logger = logging.getLogger(__name__)

SendCallable = Callable[[dict], Awaitable[None]]


class TransportError(RuntimeError):
    """Raised when a transport-level room primitive fails."""


@dataclass(slots=True)
class SignalingConnection:
    """Connection wrapper for signaling participants."""

    connection_id: str
    send: SendCallable


class ConnectionHub:
    """Own live connections and their transport-level room bookkeeping.

    The hub decides who actually receives a message. Delivery is best-effort:
    a send to an unknown or closed connection is dropped, never raised.
    """

    def __init__(self) -> None:
        self._connections: Dict[str, SignalingConnection] = {}
        self._rooms: Dict[str, Set[str]] = {}
        self._lock = asyncio.Lock()

    async def register(self, connection: SignalingConnection) -> None:
        async with self._lock:
            self._connections[connection.connection_id] = connection

    async def unregister(self, connection_id: str) -> None:
        """Forget a connection and drop it from any transport room."""

        async with self._lock:
            self._connections.pop(connection_id, None)
            for room_name in [name for name, members in self._rooms.items() if connection_id in members]:
                self._discard(room_name, connection_id)

    def is_connected(self, connection_id: str) -> bool:
        return connection_id in self._connections

    def room_members(self, room_name: str) -> set[str]:
        return set(self._rooms.get(room_name, set()))

    async def join_room(self, connection_id: str, room_name: str) -> None:
        async with self._lock:
            if connection_id not in self._connections:
                raise TransportError(f"unknown connection {connection_id}")
            self._rooms.setdefault(room_name, set()).add(connection_id)

    async def leave_room(self, connection_id: str, room_name: str) -> None:
        async with self._lock:
            if connection_id not in self._connections:
                raise TransportError(f"unknown connection {connection_id}")
            self._discard(room_name, connection_id)

    async def emit(self, connection_id: str, message: dict) -> bool:
        """Send to one connection. Returns False when nothing was delivered."""

        connection = self._connections.get(connection_id)
        if connection is None:
            return False
        try:
            await connection.send(message)
        except Exception as exc:  # noqa: BLE001 - the socket may already be closing
            logger.warning("Dropping %s for %s: %s", message.get("type"), connection_id, exc)
            return False
        return True

    async def emit_to_room(self, room_name: str, message: dict, *, skip: str | None = None) -> None:
        """Send to every connection in the transport room except ``skip``."""

        await self.emit_many(
            (member for member in self.room_members(room_name) if member != skip),
            message,
        )

    async def emit_many(self, connection_ids: Iterable[str], message: dict) -> None:
        tasks = [self.emit(connection_id, message) for connection_id in connection_ids]
        if tasks:
            await asyncio.gather(*tasks)

    def _discard(self, room_name: str, connection_id: str) -> None:
        members = self._rooms.get(room_name)
        if not members:
            return
        members.discard(connection_id)
        if not members:
            self._rooms.pop(room_name, None)


hub = ConnectionHub()
