"""Wire contracts for the signaling protocol.

Inbound messages are what peers send to the relay, outbound messages are what
the relay emits. Every envelope is a JSON object with a ``type`` discriminator
and camelCase fields. Session descriptions and ICE candidates are opaque.
"""
from __future__ import annotations

from typing import Any, ClassVar, Literal

from pydantic import BaseModel, ConfigDict, Field, field_serializer, field_validator


class SignalModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


class IceServer(SignalModel):
    urls: list[str] | str
    username: str | None = None
    credential: str | None = None


class IceConfig(SignalModel):
    """Relay credential handed to peers for STUN/TURN access."""

    ice_servers: list[IceServer] = Field(default_factory=list, alias="iceServers")

    @field_validator("ice_servers", mode="before")
    @classmethod
    def _wrap_single_server(cls, value: object) -> object:
        """Some provider API versions return one server object instead of a list."""

        if isinstance(value, dict):
            return [value]
        return value

    def to_wire(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True)


# Inbound


class JoinMessage(SignalModel):
    room_name: str = Field(..., alias="roomName", min_length=1)


class IncomingSdp(SignalModel):
    to: str = Field(..., min_length=1)
    sdp: Any = None

    @property
    def is_offer(self) -> bool:
        return isinstance(self.sdp, dict) and self.sdp.get("type") == "offer"


class IncomingIceCandidate(SignalModel):
    to: str = Field(..., min_length=1)
    ice_candidate: Any = Field(default=None, alias="iceCandidate")


# Outbound


class OutboundMessage(SignalModel):
    omit_if_none: ClassVar[tuple[str, ...]] = ()

    @field_serializer("ice_config", check_fields=False)
    def _serialize_ice_config(self, value: IceConfig | None) -> dict[str, Any] | None:
        return value.to_wire() if value is not None else None

    def to_wire(self) -> dict[str, Any]:
        payload = self.model_dump(by_alias=True, mode="json")
        for key in self.omit_if_none:
            if payload.get(key) is None:
                payload.pop(key, None)
        return payload


class Welcome(OutboundMessage):
    omit_if_none = ("iceConfig",)

    type: Literal["welcome"] = "welcome"
    room_name: str = Field(..., alias="roomName")
    self_id: str = Field(..., alias="selfId")
    peers: list[str] = Field(default_factory=list)
    ice_config: IceConfig | None = Field(default=None, alias="iceConfig")


class NewPeer(OutboundMessage):
    type: Literal["newPeer"] = "newPeer"
    ice_config: IceConfig = Field(..., alias="iceConfig")
    id: str


class OutgoingSdp(OutboundMessage):
    omit_if_none = ("iceConfig",)

    type: Literal["sdp"] = "sdp"
    from_: str = Field(..., alias="from")
    sdp: Any = None
    ice_config: IceConfig | None = Field(default=None, alias="iceConfig")


class OutgoingIceCandidate(OutboundMessage):
    type: Literal["iceCandidate"] = "iceCandidate"
    from_: str = Field(..., alias="from")
    ice_candidate: Any = Field(default=None, alias="iceCandidate")


class ByePeer(OutboundMessage):
    type: Literal["byePeer"] = "byePeer"
    id: str


class Bye(OutboundMessage):
    type: Literal["bye"] = "bye"


class SignalError(OutboundMessage):
    type: Literal["error"] = "error"
    message: str


class RoomStats(BaseModel):
    limit: int = Field(..., ge=1, description="Maximum peers per room")
    rooms: dict[str, int] = Field(default_factory=dict, description="Occupancy keyed by room name")
