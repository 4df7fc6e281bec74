"""Signaling protocol state machine.

A connection starts unjoined. ``join`` puts it in a room and answers with
``welcome``: the room name, the connection's own id, the ids of the peers
already there, and an ICE configuration when there is anyone to connect to.
The new peer builds one RTCPeerConnection per existing peer and sends
``ready``; the others get ``newPeer`` with a fresh ICE configuration and start
sending offers. ``sdp`` and ``iceCandidate`` go to the literal ``to`` id.
``leave`` (or the socket closing) sends ``byePeer`` to the rest of the room and
``bye`` back to the leaver.
"""
from __future__ import annotations

import logging
from typing import Any, Awaitable, Callable, Dict

from pydantic import ValidationError

from ..core.config import settings
from ..schemas.signaling import (
    Bye,
    ByePeer,
    IceConfig,
    IncomingIceCandidate,
    IncomingSdp,
    JoinMessage,
    NewPeer,
    OutboundMessage,
    OutgoingIceCandidate,
    OutgoingSdp,
    SignalError,
    Welcome,
)
from .ice import IceConfigBroker, IceProviderError, broker
from .registry import JoinRejected, LeaveResult, LeftRoom, RoomRegistry, WasNotInRoom
from .transport import ConnectionHub, SignalingConnection, TransportError, hub

logger = logging.getLogger(__name__)

ROOM_FULL = "room is full"
CANNOT_JOIN = "cannot join room"
CANNOT_LEAVE = "cannot leave room"
ICE_UNAVAILABLE = "cannot fetch ice config"
INVALID_MESSAGE = "invalid message"

Handler = Callable[[str, Dict[str, Any]], Awaitable[None]]


class SignalingRouter:
    """React to peer events using the registry, the transport and the broker."""

    def __init__(self, registry: RoomRegistry, transport: ConnectionHub, ice: IceConfigBroker) -> None:
        self.registry = registry
        self.transport = transport
        self.ice = ice
        self._handlers: Dict[str, Handler] = {
            "join": self.handle_join,
            "ready": self.handle_ready,
            "sdp": self.handle_sdp,
            "iceCandidate": self.handle_ice_candidate,
            "leave": self.handle_leave,
        }

    async def connect(self, connection: SignalingConnection) -> None:
        await self.transport.register(connection)
        logger.info("Peer connected: %s", connection.connection_id)

    async def dispatch(self, connection_id: str, message: Any) -> None:
        """Route one inbound envelope to its handler."""

        if not isinstance(message, dict):
            await self._error(connection_id, INVALID_MESSAGE)
            return

        event = message.get("type")
        handler = self._handlers.get(event) if isinstance(event, str) else None
        if handler is None:
            logger.warning("Unknown event %r from %s", event, connection_id)
            await self._error(connection_id, f"unknown event: {event}")
            return

        try:
            await handler(connection_id, message)
        except ValidationError as exc:
            logger.warning("Invalid %s from %s: %s", event, connection_id, exc.errors())
            await self._error(connection_id, INVALID_MESSAGE)

    async def handle_join(self, connection_id: str, message: Dict[str, Any]) -> None:
        room_name = JoinMessage.model_validate(message).room_name

        if self.registry.current_room(connection_id) is not None:
            left = await self._leave_room(connection_id)
            if left is None:
                return
            await self._emit(connection_id, Bye())

        result = await self.registry.join(connection_id, room_name)
        if isinstance(result, JoinRejected):
            logger.info("Room %s is full. Peer %s turned away.", room_name, connection_id)
            await self._error(connection_id, ROOM_FULL)
            return

        try:
            await self.transport.join_room(connection_id, room_name)
        except TransportError as exc:
            logger.error("Cannot join room %s. Transport: %s. Peer: %s", room_name, exc, connection_id)
            rolled_back = await self.registry.leave(connection_id)
            if isinstance(rolled_back, LeftRoom):
                # peers that joined meanwhile were welcomed with this id
                await self.transport.emit_many(
                    rolled_back.remaining_peers, ByePeer(id=connection_id).to_wire()
                )
            await self._error(connection_id, CANNOT_JOIN)
            return

        peers = sorted(result.peers)
        ice_config = None
        if peers:
            ice_config = await self._fetch_ice(connection_id)
            if ice_config is None:
                return

        await self._emit(
            connection_id,
            Welcome(room_name=room_name, self_id=connection_id, peers=peers, ice_config=ice_config),
        )
        logger.info("Peer %s joined %s (%d existing peers)", connection_id, room_name, len(peers))

    async def handle_ready(self, connection_id: str, message: Dict[str, Any]) -> None:
        room_name = self.registry.current_room(connection_id)
        if room_name is None:
            logger.warning("Peer %s sent ready outside a room", connection_id)
            return

        logger.info("Peer %s is ready!", connection_id)
        ice_config = await self._fetch_ice(connection_id)
        if ice_config is None:
            return
        await self.transport.emit_to_room(
            room_name,
            NewPeer(ice_config=ice_config, id=connection_id).to_wire(),
            skip=connection_id,
        )

    async def handle_sdp(self, connection_id: str, message: Dict[str, Any]) -> None:
        payload = IncomingSdp.model_validate(message)
        kind = payload.sdp.get("type") if isinstance(payload.sdp, dict) else None
        logger.info("sdp exchange - type: %s %s -> %s", kind, connection_id, payload.to)

        ice_config = None
        if payload.is_offer:
            ice_config = await self._fetch_ice(connection_id)
            if ice_config is None:
                return

        await self._emit(
            payload.to,
            OutgoingSdp(from_=connection_id, sdp=payload.sdp, ice_config=ice_config),
        )

    async def handle_ice_candidate(self, connection_id: str, message: Dict[str, Any]) -> None:
        payload = IncomingIceCandidate.model_validate(message)
        logger.info("iceCandidate exchange - %s -> %s", connection_id, payload.to)
        await self._emit(
            payload.to,
            OutgoingIceCandidate(from_=connection_id, ice_candidate=payload.ice_candidate),
        )

    async def handle_leave(self, connection_id: str, message: Dict[str, Any]) -> None:
        left = await self._leave_room(connection_id)
        if isinstance(left, LeftRoom):
            await self._emit(connection_id, Bye())

    async def disconnect(self, connection_id: str) -> None:
        """Transport-level close: leave the room best-effort, then forget the socket."""

        logger.info("Peer disconnecting: %s", connection_id)
        try:
            left = await self._leave_room(connection_id, best_effort=True)
            if isinstance(left, LeftRoom):
                await self._emit(connection_id, Bye())
        finally:
            await self.transport.unregister(connection_id)

    async def _leave_room(self, connection_id: str, *, best_effort: bool = False) -> LeaveResult | None:
        """Leave the current room and tell the remaining peers.

        Returns None when the transport refused the leave; membership is then
        unchanged and the peer has been sent an error.
        """

        room_name = self.registry.current_room(connection_id)
        if room_name is None:
            return WasNotInRoom()

        logger.info("Peer %s leaving %s.", connection_id, room_name)
        try:
            await self.transport.leave_room(connection_id, room_name)
        except TransportError as exc:
            logger.error("Cannot leave room %s. Transport: %s. Peer: %s", room_name, exc, connection_id)
            if not best_effort:
                await self._error(connection_id, CANNOT_LEAVE)
                return None

        result = await self.registry.leave(connection_id)
        if isinstance(result, LeftRoom):
            await self.transport.emit_to_room(
                result.room_name, ByePeer(id=connection_id).to_wire(), skip=connection_id
            )
        return result

    async def _fetch_ice(self, connection_id: str) -> IceConfig | None:
        try:
            return await self.ice.fetch()
        except IceProviderError as exc:
            logger.error("ICE config unavailable for %s: %s", connection_id, exc)
            await self._error(connection_id, ICE_UNAVAILABLE)
            return None

    async def _emit(self, connection_id: str, message: OutboundMessage) -> None:
        await self.transport.emit(connection_id, message.to_wire())

    async def _error(self, connection_id: str, message: str) -> None:
        await self._emit(connection_id, SignalError(message=message))


relay = SignalingRouter(RoomRegistry(settings.users_per_room_limit), hub, broker)
