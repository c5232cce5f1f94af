"""
WebSocket integration tests for the relay endpoint.
Runs the real FastAPI app; both sockets share one TestClient event loop.
"""
from fastapi.testclient import TestClient

from stationv.config import settings
from stationv.core.router import hub
from stationv.main import app

WS_PATH = settings.ws_path


def _register(ws, nickname: str) -> dict:
    ws.send_json({"type": "register", "nickname": nickname})
    return ws.receive_json()


class TestWebSocketConnection:
    """Tests for WebSocket connection establishment."""

    def test_ws_relay_accepts_connection(self):
        with TestClient(app) as client:
            with client.websocket_connect(WS_PATH) as websocket:
                assert websocket is not None

    def test_register_ack(self):
        with TestClient(app) as client:
            with client.websocket_connect(WS_PATH) as websocket:
                assert _register(websocket, "alice") == {
                    "type": "registered",
                    "nickname": "alice",
                    "success": True,
                }

    def test_malformed_frames_keep_connection_open(self):
        with TestClient(app) as client:
            with client.websocket_connect(WS_PATH) as websocket:
                websocket.send_text("definitely not json")
                websocket.send_json({"type": "unknown_type"})
                websocket.send_bytes(b"\x00\x01")
                websocket.send_text("[" * 100000)
                # Still served afterwards
                assert _register(websocket, "alice")["type"] == "registered"


class TestWebSocketBasicFlow:
    """alice and bob chat in #test."""

    def test_join_and_message_flow(self):
        with TestClient(app) as client:
            with client.websocket_connect(WS_PATH) as alice, client.websocket_connect(WS_PATH) as bob:
                _register(alice, "alice")
                alice.send_json({"type": "join", "nickname": "alice", "channel": "#test"})
                joined = alice.receive_json()
                assert joined["type"] == "joined"
                assert joined["channel"] == "#test"
                assert [u["nickname"] for u in joined["channelData"]["users"]] == ["alice"]
                assert joined["channelData"]["messages"] == []
                assert joined["channelData"]["topic"] == ""

                _register(bob, "bob")
                bob.send_json({"type": "join", "nickname": "bob", "channel": "#test"})
                assert bob.receive_json()["type"] == "joined"
                assert alice.receive_json() == {"type": "user_joined", "nickname": "bob", "channel": "#test"}

                alice.send_json({"type": "message", "channel": "#test", "content": "hi"})
                for ws in (alice, bob):
                    frame = ws.receive_json()
                    assert frame["type"] == "message"
                    assert frame["channel"] == "#test"
                    assert frame["message"]["nickname"] == "alice"
                    assert frame["message"]["content"] == "hi"

    def test_rename_collision_returns_error(self):
        with TestClient(app) as client:
            with client.websocket_connect(WS_PATH) as alice, client.websocket_connect(WS_PATH) as bob:
                _register(alice, "alice")
                _register(bob, "bob")

                bob.send_json({"type": "nick", "newNickname": "alice"})

                assert bob.receive_json() == {"type": "error", "message": "Nickname already in use"}
                assert hub.identity.get("alice") is not None
                assert hub.identity.get("bob") is not None

    def test_close_runs_quit_cascade(self):
        with TestClient(app) as client:
            with client.websocket_connect(WS_PATH) as alice:
                _register(alice, "alice")
                alice.send_json({"type": "join", "channel": "#test"})
                alice.receive_json()

                with client.websocket_connect(WS_PATH) as bob:
                    _register(bob, "bob")
                    bob.send_json({"type": "join", "channel": "#test"})
                    bob.receive_json()
                    assert alice.receive_json()["type"] == "user_joined"

                assert alice.receive_json() == {"type": "user_parted", "nickname": "bob", "channel": "#test"}
                assert alice.receive_json() == {"type": "user_quit", "nickname": "bob"}
                assert hub.directory.members_of("#test") == {"alice"}
