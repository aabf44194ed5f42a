import asyncio
import json
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Union
from uuid import UUID, uuid4

import websockets

logger = logging.getLogger(__name__)

PayloadCallback = Callable[[dict[str, Any]], Union[None, Awaitable[None]]]


@dataclass(frozen=True)
class RoomSubscription:
    id: UUID
    room_id: str


class RealtimeChannel:
    """WebSocket client for the room change feed.

    Change payloads are handed to callbacks in arrival order. Missed or
    out-of-order events are not reconciled.
    """

    def __init__(self, url: str):
        self.url = url
        self._ws: Any = None
        self._receive_task: asyncio.Task | None = None
        self._callbacks: dict[str, dict[UUID, PayloadCallback]] = {}
        self._connected = asyncio.Event()

    async def connect(self) -> None:
        """Establish WebSocket connection."""
        self._ws = await websockets.connect(self.url)
        self._connected.set()
        self._receive_task = asyncio.create_task(self._receive_loop())

    async def disconnect(self) -> None:
        """Close WebSocket connection."""
        self._connected.clear()
        if self._receive_task:
            self._receive_task.cancel()
            try:
                await self._receive_task
            except asyncio.CancelledError:
                pass
        if self._ws:
            await self._ws.close()
            self._ws = None
        self._callbacks.clear()

    async def send(self, message: dict[str, Any]) -> None:
        if not self._ws:
            raise RuntimeError("Not connected")
        await self._ws.send(json.dumps(message))

    async def subscribe_to_room(self, room_id: UUID | str, callback: PayloadCallback) -> RoomSubscription:
        """Receive every change to the room and its participants."""
        room_key = str(room_id)
        subscription = RoomSubscription(id=uuid4(), room_id=room_key)
        first = room_key not in self._callbacks
        self._callbacks.setdefault(room_key, {})[subscription.id] = callback
        if first:
            await self.send({"type": "subscribe", "room_id": room_key})
        return subscription

    async def unsubscribe_from_room(self, subscription: RoomSubscription) -> None:
        callbacks = self._callbacks.get(subscription.room_id)
        if callbacks is None:
            return
        callbacks.pop(subscription.id, None)
        if not callbacks:
            del self._callbacks[subscription.room_id]
            if self.is_connected:
                await self.send({"type": "unsubscribe", "room_id": subscription.room_id})

    async def dispatch(self, message: dict[str, Any]) -> None:
        """Route a server message to the room's callbacks."""
        if message.get("type") != "change":
            return
        payload = message.get("payload") or {}
        for callback in list(self._callbacks.get(str(message.get("room_id")), {}).values()):
            try:
                result = callback(payload)
                if asyncio.iscoroutine(result):
                    await result
            except Exception:
                logger.exception("Room change callback failed")

    async def _receive_loop(self) -> None:
        """Background task to receive messages."""
        if not self._ws:
            return

        try:
            async for raw_message in self._ws:
                try:
                    message = json.loads(raw_message)
                except json.JSONDecodeError:
                    continue
                await self.dispatch(message)
        except websockets.ConnectionClosed:
            pass
        finally:
            self._connected.clear()

    @property
    def is_connected(self) -> bool:
        return self._ws is not None and self._connected.is_set()
