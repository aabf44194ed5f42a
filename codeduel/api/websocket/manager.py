import asyncio
from dataclasses import dataclass, field
from typing import Any
from uuid import UUID, uuid4

from fastapi import WebSocket

from codeduel.core.metrics import REALTIME_CONNECTIONS
from codeduel.services.realtime import ChangeEvent, RealtimeHub, Subscription


@dataclass
class ConnectionInfo:
    """Information about a WebSocket connection."""

    websocket: WebSocket
    user_id: UUID
    connection_id: UUID = field(default_factory=uuid4)
    subscriptions: dict[UUID, Subscription] = field(default_factory=dict)  # room_id -> sub


class ConnectionManager:
    """Bridges realtime hub subscriptions to WebSocket clients."""

    def __init__(self, hub: RealtimeHub):
        self.hub = hub
        self._connections: dict[UUID, ConnectionInfo] = {}
        self._lock = asyncio.Lock()

    async def connect(self, websocket: WebSocket, user_id: UUID) -> ConnectionInfo:
        """Accept a new WebSocket connection."""
        await websocket.accept()
        conn = ConnectionInfo(websocket=websocket, user_id=user_id)
        async with self._lock:
            self._connections[conn.connection_id] = conn
        REALTIME_CONNECTIONS.inc()
        return conn

    async def disconnect(self, connection_id: UUID) -> None:
        """Drop the connection and every room subscription it held."""
        async with self._lock:
            conn = self._connections.pop(connection_id, None)
        if conn is None:
            return
        REALTIME_CONNECTIONS.dec()
        for subscription in list(conn.subscriptions.values()):
            await self.hub.unsubscribe(subscription)
        conn.subscriptions.clear()

    async def subscribe(self, connection_id: UUID, room_id: UUID) -> bool:
        conn = self._connections.get(connection_id)
        if conn is None:
            return False
        if room_id in conn.subscriptions:
            return True

        async def forward(event: ChangeEvent) -> None:
            await self.send_personal(
                connection_id,
                {"type": "change", "room_id": str(room_id), "payload": event.to_dict()},
            )

        conn.subscriptions[room_id] = await self.hub.subscribe(room_id, forward)
        return True

    async def unsubscribe(self, connection_id: UUID, room_id: UUID) -> None:
        conn = self._connections.get(connection_id)
        if conn is None:
            return
        subscription = conn.subscriptions.pop(room_id, None)
        if subscription is not None:
            await self.hub.unsubscribe(subscription)

    async def send_personal(self, connection_id: UUID, message: dict[str, Any]) -> bool:
        conn = self._connections.get(connection_id)
        if conn:
            try:
                await conn.websocket.send_json(message)
                return True
            except Exception:
                await self.disconnect(connection_id)
        return False

    def is_connected(self, connection_id: UUID) -> bool:
        return connection_id in self._connections

    def get_connection_count(self) -> int:
        return len(self._connections)
