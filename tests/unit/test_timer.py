"""Unit tests for the battle countdown."""

import asyncio
from datetime import datetime, timedelta, timezone

import pytest

from codeduel.battle.timer import (
    BATTLE_DURATION_SECONDS,
    BattleTimer,
    Urgency,
    format_time,
    time_remaining,
    urgency,
)

STARTED = datetime(2026, 1, 1, 12, 0, 0, tzinfo=timezone.utc)


class TestTimeRemaining:
    def test_not_started_returns_full_duration(self):
        assert time_remaining(None) == BATTLE_DURATION_SECONDS

    def test_counts_down_from_start(self):
        now = STARTED + timedelta(seconds=125)
        assert time_remaining(STARTED, now) == BATTLE_DURATION_SECONDS - 125

    def test_clamps_at_zero(self):
        now = STARTED + timedelta(hours=1)
        assert time_remaining(STARTED, now) == 0

    def test_naive_start_is_treated_as_utc(self):
        naive = STARTED.replace(tzinfo=None)
        now = STARTED + timedelta(seconds=60)
        assert time_remaining(naive, now) == BATTLE_DURATION_SECONDS - 60


class TestFormatting:
    def test_format_time(self):
        assert format_time(900) == "15:00"
        assert format_time(61) == "01:01"
        assert format_time(0) == "00:00"
        assert format_time(-5) == "00:00"

    def test_urgency_thresholds(self):
        assert urgency(300) == Urgency.NORMAL
        assert urgency(299) == Urgency.WARNING
        assert urgency(60) == Urgency.WARNING
        assert urgency(59) == Urgency.CRITICAL


class TestBattleTimer:
    def test_tick_never_goes_negative(self):
        timer = BattleTimer(duration=2)
        assert timer.tick() == 1
        assert timer.tick() == 0
        assert timer.tick() == 0
        assert timer.expired

    def test_display_tracks_remaining(self):
        timer = BattleTimer()
        timer.remaining = time_remaining(STARTED, STARTED + timedelta(seconds=840))
        assert timer.remaining == 60
        assert timer.display == "01:00"
        assert timer.urgency == Urgency.WARNING

    @pytest.mark.asyncio
    async def test_background_countdown_calls_back(self):
        ticks: list[int] = []
        timer = BattleTimer(duration=3, tick_interval=0.01)
        timer.start(ticks.append)
        await asyncio.sleep(0.2)
        timer.stop()
        assert ticks == [2, 1, 0]
        assert not timer.is_active

    @pytest.mark.asyncio
    async def test_stop_halts_countdown(self):
        timer = BattleTimer(duration=100, tick_interval=0.01)
        timer.start()
        await asyncio.sleep(0.05)
        timer.stop()
        frozen = timer.remaining
        await asyncio.sleep(0.05)
        assert timer.remaining == frozen
        assert frozen < 100
