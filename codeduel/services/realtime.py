"""In-process change feed for room rows.

Services publish a change event after every committed write to ``rooms``
or ``room_participants``; subscribers keyed by room id receive it. The
websocket endpoint bridges these subscriptions to remote clients.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Awaitable, Callable, Optional, Union
from uuid import UUID, uuid4

from codeduel.config import settings
from codeduel.core.clock import isoformat, utcnow
from codeduel.core.metrics import record_realtime_event

logger = logging.getLogger(__name__)


class EventType(str, Enum):
    INSERT = "INSERT"
    UPDATE = "UPDATE"
    DELETE = "DELETE"


@dataclass
class ChangeEvent:
    """A single row change."""
    table: str
    event_type: EventType
    new: dict[str, Any]
    old: dict[str, Any] = field(default_factory=dict)
    commit_timestamp: datetime = field(default_factory=utcnow)

    def to_dict(self) -> dict[str, Any]:
        return {
            "table": self.table,
            "event_type": self.event_type.value,
            "new": self.new,
            "old": self.old,
            "commit_timestamp": isoformat(self.commit_timestamp),
        }


ChangeCallback = Callable[[ChangeEvent], Union[None, Awaitable[None]]]


@dataclass(frozen=True)
class Subscription:
    """Handle returned by ``subscribe``; pass it back to unsubscribe."""
    id: UUID
    room_id: UUID


class RealtimeHub:
    """Fan-out of change events to per-room subscribers.

    ``publish`` only queues the event. A background task started with
    ``start()`` delivers queued events in publish order, so a slow
    subscriber never holds up the request that made the change. Each
    delivery is bounded by ``delivery_timeout``.
    """

    def __init__(self, delivery_timeout: Optional[float] = None):
        self._subscribers: dict[UUID, dict[UUID, ChangeCallback]] = {}
        self._lock = asyncio.Lock()
        self._queue: asyncio.Queue[tuple[UUID, ChangeEvent]] = asyncio.Queue()
        self._processor_task: Optional[asyncio.Task] = None
        self._running = False
        self.delivery_timeout = (
            settings.realtime_delivery_timeout_seconds if delivery_timeout is None else delivery_timeout
        )

    async def start(self) -> None:
        """Start the background event processor."""
        if self._running:
            return
        self._running = True
        self._processor_task = asyncio.create_task(self._process_events())
        logger.info("Realtime hub started")

    async def stop(self) -> None:
        """Stop the background event processor. Undelivered events are dropped."""
        self._running = False
        if self._processor_task:
            self._processor_task.cancel()
            try:
                await self._processor_task
            except asyncio.CancelledError:
                pass
            self._processor_task = None
        logger.info("Realtime hub stopped")

    @property
    def is_running(self) -> bool:
        return self._running

    async def subscribe(self, room_id: UUID, callback: ChangeCallback) -> Subscription:
        subscription = Subscription(id=uuid4(), room_id=room_id)
        async with self._lock:
            self._subscribers.setdefault(room_id, {})[subscription.id] = callback
        return subscription

    async def unsubscribe(self, subscription: Subscription) -> None:
        async with self._lock:
            room_subs = self._subscribers.get(subscription.room_id)
            if room_subs is None:
                return
            room_subs.pop(subscription.id, None)
            if not room_subs:
                del self._subscribers[subscription.room_id]

    def subscriber_count(self, room_id: Optional[UUID] = None) -> int:
        if room_id is not None:
            return len(self._subscribers.get(room_id, {}))
        return sum(len(subs) for subs in self._subscribers.values())

    def pending(self) -> int:
        return self._queue.qsize()

    async def publish(
        self,
        room_id: UUID,
        table: str,
        event_type: EventType,
        new: dict[str, Any],
        old: Optional[dict[str, Any]] = None,
    ) -> ChangeEvent:
        """Queue a change for the subscribers of ``room_id``.

        Nothing is queued while the hub is stopped.
        """
        event = ChangeEvent(table=table, event_type=event_type, new=new, old=old or {})
        record_realtime_event(table, event_type.value)
        if self._running:
            self._queue.put_nowait((room_id, event))
        return event

    async def join(self) -> None:
        """Wait until every queued event has been delivered."""
        await self._queue.join()

    async def deliver(self, room_id: UUID, event: ChangeEvent) -> int:
        """Deliver one event to the current subscribers of ``room_id``.

        Returns:
            Number of subscribers that accepted the event
        """
        callbacks = list(self._subscribers.get(room_id, {}).values())
        delivered = 0
        for callback in callbacks:
            try:
                result = callback(event)
                if asyncio.iscoroutine(result):
                    await asyncio.wait_for(result, timeout=self.delivery_timeout)
                delivered += 1
            except asyncio.TimeoutError:
                logger.warning(
                    f"Realtime subscriber for room {room_id} timed out after {self.delivery_timeout}s"
                )
            except Exception:
                logger.exception(f"Realtime subscriber failed for room {room_id}")
        return delivered

    async def _process_events(self) -> None:
        """Background task that delivers queued events."""
        while self._running:
            room_id, event = await self._queue.get()
            try:
                await self.deliver(room_id, event)
            except Exception:
                logger.exception(f"Error delivering {event.table} event for room {room_id}")
            finally:
                self._queue.task_done()


hub = RealtimeHub()


def get_hub() -> RealtimeHub:
    return hub
