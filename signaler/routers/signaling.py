"""Signaling WebSocket endpoint and room stats."""
from __future__ import annotations

import json
import logging
from uuid import uuid4

from fastapi import APIRouter, WebSocket, WebSocketDisconnect

from ..schemas.signaling import RoomStats, SignalError
from ..services.signaling import INVALID_MESSAGE, relay
from ..services.transport import SignalingConnection

logger = logging.getLogger(__name__)

router = APIRouter()


@router.websocket("/ws")
async def signaling_endpoint(websocket: WebSocket) -> None:
    """Relay handshake metadata between peers; one event at a time per socket."""

    connection_id = uuid4().hex
    await websocket.accept()
    await relay.connect(SignalingConnection(connection_id=connection_id, send=websocket.send_json))

    try:
        while True:
            frame = await websocket.receive()
            if frame["type"] == "websocket.disconnect":
                raise WebSocketDisconnect(frame.get("code", 1000), frame.get("reason"))
            try:
                # binary frames carry no "text" key
                message = json.loads(frame["text"])
            except (KeyError, TypeError, ValueError):
                await relay.transport.emit(connection_id, SignalError(message=INVALID_MESSAGE).to_wire())
                continue
            await relay.dispatch(connection_id, message)
    except WebSocketDisconnect:
        pass
    except Exception as exc:  # noqa: BLE001 - one broken socket must not take the relay down
        logger.exception("Signaling loop failed for %s: %s", connection_id, exc)
    finally:
        await relay.disconnect(connection_id)


@router.get("/api/rooms", response_model=RoomStats, tags=["signaling"])
async def room_stats() -> RoomStats:
    """Current occupancy per room."""

    rooms = relay.registry.rooms()
    return RoomStats(
        limit=relay.registry.limit,
        rooms={name: len(members) for name, members in rooms.items()},
    )
