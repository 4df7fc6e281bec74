"""End-to-end tests for the signaling websocket."""
from __future__ import annotations

from fastapi.testclient import TestClient

from signaler.main import app
from signaler.schemas.signaling import IceConfig, IceServer
from signaler.services.signaling import relay

ICE = IceConfig(ice_servers=[IceServer(urls="turn:turn.example:3478", username="u", credential="c")])


class StubBroker:
    async def fetch(self) -> IceConfig:
        return ICE


def test_websocket_session_flow(monkeypatch):
    monkeypatch.setattr(relay, "ice", StubBroker())
    with TestClient(app) as client:
        with client.websocket_connect("/ws") as ws_a:
            ws_a.send_json({"type": "join", "roomName": "ws-room"})
            welcome_a = ws_a.receive_json()
            assert welcome_a["type"] == "welcome"
            assert welcome_a["peers"] == []
            assert "iceConfig" not in welcome_a
            a_id = welcome_a["selfId"]

            with client.websocket_connect("/ws") as ws_b:
                ws_b.send_json({"type": "join", "roomName": "ws-room"})
                welcome_b = ws_b.receive_json()
                assert welcome_b["peers"] == [a_id]
                assert welcome_b["iceConfig"] == ICE.to_wire()
                b_id = welcome_b["selfId"]
                assert b_id != a_id

                ws_b.send_json({"type": "ready"})
                assert ws_a.receive_json() == {"type": "newPeer", "iceConfig": ICE.to_wire(), "id": b_id}

                offer = {"type": "offer", "sdp": "v=0\r\n"}
                ws_a.send_json({"type": "sdp", "to": b_id, "sdp": offer})
                assert ws_b.receive_json() == {"type": "sdp", "from": a_id, "sdp": offer, "iceConfig": ICE.to_wire()}

                ws_b.send_json({"type": "iceCandidate", "to": a_id, "iceCandidate": {"candidate": "c1"}})
                assert ws_a.receive_json() == {"type": "iceCandidate", "from": b_id, "iceCandidate": {"candidate": "c1"}}

            assert ws_a.receive_json() == {"type": "byePeer", "id": b_id}

            ws_a.send_json({"type": "leave"})
            assert ws_a.receive_json() == {"type": "bye"}

        assert relay.registry.members("ws-room") == set()


def test_websocket_rejects_bad_payloads():
    client = TestClient(app)

    with client.websocket_connect("/ws") as ws:
        ws.send_text("{not json")
        assert ws.receive_json() == {"type": "error", "message": "invalid message"}

        ws.send_json({"type": "dance"})
        assert ws.receive_json() == {"type": "error", "message": "unknown event: dance"}


def test_websocket_binary_frame_gets_error_and_session_survives():
    client = TestClient(app)

    with client.websocket_connect("/ws") as ws:
        ws.send_bytes(b"\x00\x01")
        assert ws.receive_json() == {"type": "error", "message": "invalid message"}

        ws.send_json({"type": "join", "roomName": "binary-room"})
        assert ws.receive_json()["type"] == "welcome"

    assert relay.registry.members("binary-room") == set()


def test_websocket_room_full(monkeypatch):
    monkeypatch.setattr(relay.registry, "_limit", 1)
    with TestClient(app) as client:
        with client.websocket_connect("/ws") as ws_a, client.websocket_connect("/ws") as ws_b:
            ws_a.send_json({"type": "join", "roomName": "tiny"})
            assert ws_a.receive_json()["type"] == "welcome"

            ws_b.send_json({"type": "join", "roomName": "tiny"})
            assert ws_b.receive_json() == {"type": "error", "message": "room is full"}

            ws_b.send_json({"type": "join", "roomName": "elsewhere"})
            assert ws_b.receive_json()["roomName"] == "elsewhere"
