"""Battle countdown.

The countdown is purely cosmetic: reaching zero does not end a battle.
"""

import asyncio
import logging
from datetime import datetime
from enum import Enum
from typing import Awaitable, Callable, Optional, Union

from codeduel.core.clock import as_utc, utcnow

logger = logging.getLogger(__name__)

BATTLE_DURATION_SECONDS = 900  # 15 minutes

TickCallback = Callable[[int], Union[None, Awaitable[None]]]


class Urgency(str, Enum):
    NORMAL = "normal"
    WARNING = "warning"  # under 5 minutes
    CRITICAL = "critical"  # under 1 minute


def time_remaining(
    started_at: Optional[datetime],
    now: Optional[datetime] = None,
    duration: int = BATTLE_DURATION_SECONDS,
) -> int:
    """Seconds left in a battle that started at ``started_at``."""
    if started_at is None:
        return duration
    now = now or utcnow()
    elapsed = int((as_utc(now) - as_utc(started_at)).total_seconds())
    return max(0, duration - elapsed)


def format_time(seconds: int) -> str:
    """Format seconds as MM:SS."""
    seconds = max(0, int(seconds))
    minutes, secs = divmod(seconds, 60)
    return f"{minutes:02d}:{secs:02d}"


def urgency(seconds: int) -> Urgency:
    if seconds < 60:
        return Urgency.CRITICAL
    if seconds < 300:
        return Urgency.WARNING
    return Urgency.NORMAL


class BattleTimer:
    """Local countdown that ticks once per second while active."""

    def __init__(self, duration: int = BATTLE_DURATION_SECONDS, tick_interval: float = 1.0):
        self.duration = duration
        self.tick_interval = tick_interval
        self.remaining = duration
        self.is_active = False
        self._task: Optional[asyncio.Task] = None

    def tick(self) -> int:
        """Decrement by one second. Never goes below zero."""
        if self.remaining > 0:
            self.remaining -= 1
        return self.remaining

    @property
    def expired(self) -> bool:
        return self.remaining == 0

    @property
    def display(self) -> str:
        return format_time(self.remaining)

    @property
    def urgency(self) -> Urgency:
        return urgency(self.remaining)

    def start(self, on_tick: Optional[TickCallback] = None) -> None:
        """Run the countdown in the background."""
        self.is_active = True
        if self._task is None or self._task.done():
            self._task = asyncio.create_task(self._run(on_tick))

    def stop(self) -> None:
        self.is_active = False
        if self._task and not self._task.done():
            self._task.cancel()
        self._task = None

    async def _run(self, on_tick: Optional[TickCallback]) -> None:
        try:
            while self.is_active and self.remaining > 0:
                await asyncio.sleep(self.tick_interval)
                if not self.is_active:
                    break
                remaining = self.tick()
                if on_tick is not None:
                    result = on_tick(remaining)
                    if asyncio.iscoroutine(result):
                        await result
        except asyncio.CancelledError:
            pass
        except Exception:
            logger.exception("Battle timer loop failed")
