"""
Realtime WebSocket endpoint.

Protocol:
    client -> {"event": "join", "userId": "...", "role": "user" | "admin"}
    server -> {"event": "joined", "rooms": ["user:42", "user:*"]}
    server -> {"event": "notification", "data": {...}}   (for every fanout to a joined room)
"""
import logging

from fastapi import APIRouter, WebSocket, WebSocketDisconnect
from pydantic import ValidationError as PydanticValidationError

from models import RealtimeJoinMessage
from services.realtime_service import manager

logger = logging.getLogger(__name__)
router = APIRouter(tags=["realtime"])


@router.websocket("/ws")
async def realtime_socket(websocket: WebSocket):
    await websocket.accept()
    try:
        while True:
            raw = await websocket.receive_json()
            try:
                join = RealtimeJoinMessage.model_validate(raw)
            except PydanticValidationError as e:
                await websocket.send_json(
                    {"event": "error", "message": "expected {event: 'join', userId, role}", "errors": len(e.errors())}
                )
                continue
            rooms = manager.join(websocket, join.role, join.user_id)
            await websocket.send_json({"event": "joined", "rooms": rooms})
    except WebSocketDisconnect:
        logger.debug("Realtime session disconnected")
    finally:
        manager.leave(websocket)
