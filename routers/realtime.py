"""
WebSocket endpoint for real-time study guide events.

Endpoints:
- WS /ws - Event stream; clients join and leave per-guide rooms
- GET /ws/status - Connection and room counts
"""
import json
from typing import Any, Optional

from fastapi import APIRouter, WebSocket, WebSocketDisconnect

from core.logging import get_logger
from services.notification_service import (
    ClientConnection, EventType, RealtimeEvent, connection_manager
)

logger = get_logger("realtime")

router = APIRouter(tags=["Realtime"])


def parse_study_guide_id(value: Any) -> Optional[int]:
    """Accept a bare id (int or numeric string) or ``{"study_guide_id": id}``."""
    if isinstance(value, dict):
        value = value.get("study_guide_id")
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, str) and value.strip().isdigit():
        return int(value.strip())
    return None


async def handle_client_message(connection: ClientConnection, raw: str):
    try:
        message = json.loads(raw)
    except json.JSONDecodeError:
        logger.warning("Invalid JSON from client", connection_id=connection.connection_id, data=raw[:100])
        await connection_manager.send_personal(
            connection, RealtimeEvent(EventType.ERROR, {"message": "Invalid JSON"})
        )
        return

    if not isinstance(message, dict):
        message = {}
    event = message.get("event", "")

    if event == "ping":
        await connection_manager.send_personal(connection, RealtimeEvent(EventType.PONG, {}))
        return

    if event in ("joinStudyGuide", "leaveStudyGuide"):
        study_guide_id = parse_study_guide_id(message.get("data"))
        if study_guide_id is None:
            await connection_manager.send_personal(
                connection, RealtimeEvent(EventType.ERROR, {"message": "A study guide id is required"})
            )
            return

        if event == "joinStudyGuide":
            room = connection_manager.join(connection, study_guide_id)
            reply = EventType.JOINED
        else:
            room = connection_manager.leave(connection, study_guide_id)
            reply = EventType.LEFT
        await connection_manager.send_personal(
            connection, RealtimeEvent(reply, {"room": room, "study_guide_id": study_guide_id})
        )
        return

    await connection_manager.send_personal(
        connection, RealtimeEvent(EventType.ERROR, {"message": f"Unknown event: {event}"})
    )


@router.websocket("/ws")
async def websocket_endpoint(websocket: WebSocket):
    """
    Real-time event stream.

    Client frames: ``{"event": "joinStudyGuide" | "leaveStudyGuide" | "ping", "data": <guide id>}``.
    Server frames: ``{"event": "studyGuide:created|updated|deleted|upvoted", "data": {...}, "timestamp": ...}``.
    Joining needs no authentication.
    """
    connection = await connection_manager.connect(websocket)
    try:
        while True:
            raw = await websocket.receive_text()
            await handle_client_message(connection, raw)
    except WebSocketDisconnect:
        pass
    finally:
        connection_manager.disconnect(connection)


@router.get("/ws/status")
async def websocket_status():
    """Connection and room counts."""
    return {"status": "online", **connection_manager.get_status()}
