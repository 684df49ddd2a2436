"""
Tests for the realtime room registry and the /ws endpoint.
"""
import pytest
from unittest.mock import AsyncMock, MagicMock

from fastapi.testclient import TestClient

from services.realtime_service import ConnectionManager, manager


def fake_socket(fail: bool = False):
    ws = MagicMock()
    ws.send_json = AsyncMock(side_effect=RuntimeError("socket closed") if fail else None)
    return ws


@pytest.mark.unit
class TestConnectionManager:

    def test_join_subscribes_own_and_broadcast_room(self):
        rooms = ConnectionManager()
        ws = fake_socket()
        joined = rooms.join(ws, "user", "u-1")
        assert joined == ["user:u-1", "user:*"]
        assert rooms.subscribers("user:u-1") == 1
        assert rooms.subscribers("user:*") == 1

    async def test_emit_without_subscribers_is_dropped(self):
        rooms = ConnectionManager()
        assert await rooms.emit(["user:nobody"], "notification", {"id": 1}) == 0

    async def test_emit_delivers_once_per_session(self):
        rooms = ConnectionManager()
        ws = fake_socket()
        rooms.join(ws, "user", "u-1")

        reached = await rooms.emit(["user:u-1", "user:*"], "notification", {"id": 1})

        assert reached == 1
        ws.send_json.assert_awaited_once_with({"event": "notification", "data": {"id": 1}})

    async def test_failing_socket_is_dropped(self):
        rooms = ConnectionManager()
        good, bad = fake_socket(), fake_socket(fail=True)
        rooms.join(good, "admin", "a-1")
        rooms.join(bad, "admin", "a-2")

        reached = await rooms.emit(["admin:*"], "notification", {"id": 2})

        assert reached == 1
        assert rooms.subscribers("admin:*") == 1
        assert rooms.subscribers("admin:a-2") == 0

    def test_leave_removes_empty_rooms(self):
        rooms = ConnectionManager()
        ws = fake_socket()
        rooms.join(ws, "user", "u-1")
        rooms.leave(ws)
        assert rooms.rooms == {}


@pytest.mark.api
class TestWebSocketEndpoint:

    def test_join_acknowledges_rooms(self):
        from main import app

        # no context manager: the lifespan (DB init, scheduler) is not needed here
        client = TestClient(app)
        with client.websocket_connect("/ws") as ws:
            ws.send_json({"event": "join", "userId": "u-1", "role": "user"})
            reply = ws.receive_json()
            assert reply == {"event": "joined", "rooms": ["user:u-1", "user:*"]}
            assert manager.subscribers("user:u-1") == 1

    def test_invalid_join_gets_error(self):
        from main import app

        client = TestClient(app)
        with client.websocket_connect("/ws") as ws:
            ws.send_json({"event": "join", "userId": "u-1", "role": "both"})
            reply = ws.receive_json()
            assert reply["event"] == "error"
