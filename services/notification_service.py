"""
Real-time notification fan-out for study guide events.

Clients connect over a WebSocket and may join per-guide rooms. Events about a
single guide go to that guide's room plus every global listener (a connection
that has joined no room); creation events go to everyone.
"""
import asyncio
import json
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional, Set

from fastapi import WebSocket

from core.logging import get_logger

logger = get_logger("realtime")


class EventType(str, Enum):
    """Server-emitted event names."""
    CONNECTED = "connected"
    JOINED = "joined"
    LEFT = "left"
    PONG = "pong"
    ERROR = "error"

    STUDY_GUIDE_CREATED = "studyGuide:created"
    STUDY_GUIDE_UPDATED = "studyGuide:updated"
    STUDY_GUIDE_DELETED = "studyGuide:deleted"
    STUDY_GUIDE_UPVOTED = "studyGuide:upvoted"


def room_name(study_guide_id: int) -> str:
    return f"studyGuide:{study_guide_id}"


def _isoformat(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


@dataclass
class RealtimeEvent:
    """Structured event frame."""
    event_type: EventType
    data: Dict[str, Any]
    timestamp: str = field(default_factory=lambda: datetime.now(timezone.utc).isoformat())

    def to_json(self) -> str:
        return json.dumps({
            "event": self.event_type.value,
            "data": self.data,
            "timestamp": self.timestamp,
        })


@dataclass
class ClientConnection:
    """One connected WebSocket and the guide rooms it has joined."""
    websocket: WebSocket
    connection_id: str = field(default_factory=lambda: uuid.uuid4().hex)
    rooms: Set[str] = field(default_factory=set)
    connected_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def is_global_listener(self) -> bool:
        return not self.rooms


class ConnectionManager:
    """
    Tracks WebSocket connections and their room memberships.

    Joining is not authorized: any connected client may subscribe to any
    guide's room.
    """

    def __init__(self):
        # connection_id -> ClientConnection
        self.connections: Dict[str, ClientConnection] = {}
        # room name -> connection ids
        self.rooms: Dict[str, Set[str]] = {}

    async def connect(self, websocket: WebSocket) -> ClientConnection:
        await websocket.accept()
        connection = ClientConnection(websocket=websocket)
        self.connections[connection.connection_id] = connection
        logger.info("WebSocket connected", connection_id=connection.connection_id,
                    active_connections=len(self.connections))

        await self.send_personal(
            connection,
            RealtimeEvent(EventType.CONNECTED, {"connection_id": connection.connection_id}),
        )
        return connection

    def disconnect(self, connection: ClientConnection):
        self.connections.pop(connection.connection_id, None)
        for room in list(connection.rooms):
            self._remove_from_room(room, connection.connection_id)
        connection.rooms.clear()
        logger.info("WebSocket disconnected", connection_id=connection.connection_id,
                    active_connections=len(self.connections))

    def join(self, connection: ClientConnection, study_guide_id: int) -> str:
        room = room_name(study_guide_id)
        connection.rooms.add(room)
        self.rooms.setdefault(room, set()).add(connection.connection_id)
        logger.debug("Joined room", connection_id=connection.connection_id, room=room)
        return room

    def leave(self, connection: ClientConnection, study_guide_id: int) -> str:
        room = room_name(study_guide_id)
        connection.rooms.discard(room)
        self._remove_from_room(room, connection.connection_id)
        logger.debug("Left room", connection_id=connection.connection_id, room=room)
        return room

    def _remove_from_room(self, room: str, connection_id: str):
        members = self.rooms.get(room)
        if members is None:
            return
        members.discard(connection_id)
        if not members:
            del self.rooms[room]

    def global_listeners(self) -> List[ClientConnection]:
        return [conn for conn in self.connections.values() if conn.is_global_listener]

    async def send_personal(self, connection: ClientConnection, event: RealtimeEvent) -> bool:
        try:
            await connection.websocket.send_text(event.to_json())
            return True
        except Exception as e:
            logger.error("Failed to send event", connection_id=connection.connection_id,
                         event=event.event_type.value, error=str(e))
            return False

    async def _send_many(self, targets: List[ClientConnection], event: RealtimeEvent) -> int:
        delivered = 0
        for connection in targets:
            if await self.send_personal(connection, event):
                delivered += 1
        return delivered

    async def broadcast_to_all(self, event: RealtimeEvent) -> int:
        """Send to every connection. Returns the number of successful sends."""
        return await self._send_many(list(self.connections.values()), event)

    async def broadcast_to_room(self, study_guide_id: int, event: RealtimeEvent) -> int:
        """
        Send to the guide's room members and to every global listener.

        Returns:
            int: Number of successful sends
        """
        member_ids = self.rooms.get(room_name(study_guide_id), set())
        targets = [self.connections[cid] for cid in member_ids if cid in self.connections]
        targets.extend(self.global_listeners())
        return await self._send_many(targets, event)

    def get_status(self) -> Dict[str, Any]:
        return {
            "active_connections": len(self.connections),
            "global_listeners": len(self.global_listeners()),
            "rooms": {room: len(members) for room, members in self.rooms.items()},
        }


class NotificationService:
    """
    Fire-and-forget publisher used by the workflows.

    ``publish`` schedules delivery on the running event loop and returns at
    once; the caller never awaits or retries delivery.
    """

    def __init__(self, manager: ConnectionManager):
        self.manager = manager
        self._pending: Set[asyncio.Task] = set()

    def publish(self, event: RealtimeEvent, study_guide_id: Optional[int] = None):
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.warning("No running event loop, dropping event", event=event.event_type.value)
            return

        task = loop.create_task(self._deliver(event, study_guide_id))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def _deliver(self, event: RealtimeEvent, study_guide_id: Optional[int]):
        if study_guide_id is None:
            delivered = await self.manager.broadcast_to_all(event)
        else:
            delivered = await self.manager.broadcast_to_room(study_guide_id, event)
        logger.debug("Event broadcast", event=event.event_type.value,
                     study_guide_id=study_guide_id, delivered=delivered)

    def emit_created(self, study_guide):
        self.publish(RealtimeEvent(EventType.STUDY_GUIDE_CREATED, {
            "study_guide": {
                "id": study_guide.id,
                "title": study_guide.title,
                "subjects": list(study_guide.subjects or []),
                "creator": study_guide.creator_id,
                "created_at": _isoformat(study_guide.created_at),
            }
        }))

    def emit_updated(self, study_guide_id: int, updated_by: int, updated_at: datetime):
        self.publish(RealtimeEvent(EventType.STUDY_GUIDE_UPDATED, {
            "study_guide_id": study_guide_id,
            "updated_by": updated_by,
            "updated_at": _isoformat(updated_at),
        }), study_guide_id=study_guide_id)

    def emit_deleted(self, study_guide_id: int):
        self.publish(RealtimeEvent(EventType.STUDY_GUIDE_DELETED, {
            "study_guide_id": study_guide_id,
        }), study_guide_id=study_guide_id)

    def emit_upvoted(self, study_guide_id: int, upvotes: int, upvoted_by: List[int]):
        self.publish(RealtimeEvent(EventType.STUDY_GUIDE_UPVOTED, {
            "study_guide_id": study_guide_id,
            "upvotes": upvotes,
            "upvoted_by": list(upvoted_by),
        }), study_guide_id=study_guide_id)


connection_manager = ConnectionManager()
notification_service = NotificationService(connection_manager)


def get_notification_service() -> NotificationService:
    """FastAPI dependency returning the process-wide notifier."""
    return notification_service
