"""
Real-time channel: WebSocket sessions grouped into rooms.

Room names are "<role>:<userId>" for a session and "<role>:*" for a role-wide
broadcast (see domain/recipients.py). Emission is fire-and-forget: an event
for a room nobody has joined is dropped, and a socket that fails on send is
removed from every room.
"""
import logging
from typing import Any

from fastapi import WebSocket

from domain.recipients import broadcast_room_for, room_for

logger = logging.getLogger(__name__)


class ConnectionManager:
    """In-process room registry. One instance per API process."""

    def __init__(self):
        self.rooms: dict[str, set[WebSocket]] = {}

    def join(self, websocket: WebSocket, role: str, user_id: str) -> list[str]:
        """Subscribe a session to its own room and its role's broadcast room."""
        joined = [room_for(role, user_id), broadcast_room_for(role)]
        for room in joined:
            self.rooms.setdefault(room, set()).add(websocket)
        logger.info(f"Realtime session joined {joined}")
        return joined

    def leave(self, websocket: WebSocket) -> None:
        for room in list(self.rooms):
            members = self.rooms[room]
            members.discard(websocket)
            if not members:
                del self.rooms[room]

    def subscribers(self, room: str) -> int:
        return len(self.rooms.get(room, ()))

    async def emit(self, rooms: list[str], event: str, data: Any) -> int:
        """
        Send {"event", "data"} to every session in `rooms`.

        A session present in several of the rooms receives the event once.
        Returns the number of sessions reached.
        """
        targets: set[WebSocket] = set()
        for room in rooms:
            targets.update(self.rooms.get(room, ()))

        if not targets:
            logger.debug(f"No realtime subscribers for {rooms}, event dropped")
            return 0

        reached = 0
        for websocket in targets:
            try:
                await websocket.send_json({"event": event, "data": data})
                reached += 1
            except Exception as e:
                logger.warning(f"Dropping realtime session after send failure: {e}")
                self.leave(websocket)
        return reached


manager = ConnectionManager()
