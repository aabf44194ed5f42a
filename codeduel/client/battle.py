"""Live battle session.

Holds everything the battle view shows: the room, the challenge, the
caller's code and stats, the opponent, and the countdown. Room state is
kept in step with the server through the realtime channel; the latest
payload always wins.
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Optional

from codeduel.battle.timer import BATTLE_DURATION_SECONDS, BattleTimer, time_remaining
from codeduel.client.auth import AuthContext
from codeduel.client.realtime import RoomSubscription
from codeduel.client.services import ChallengeService, RoomService
from codeduel.config import settings
from codeduel.core.clock import parse_timestamp
from codeduel.core.exceptions import ErrorCode

logger = logging.getLogger(__name__)

DEFAULT_TOTAL_TESTS = 5
PREVIEW_OPPONENT_ID = "demo_opponent"


@dataclass
class CompetitionStatus:
    is_active: bool = False
    time_remaining: int = BATTLE_DURATION_SECONDS
    winner: Optional[str] = None
    final_time: Optional[int] = None  # seconds taken by the winner


@dataclass
class UserStats:
    attempts: int = 0
    tests_passed: int = 0
    total_tests: int = 0
    code_lines: int = 0
    accuracy: int = 0
    last_submission: Optional[dict[str, Any]] = None


@dataclass
class OpponentView:
    """What the caller sees of the other side."""
    id: str
    name: str
    username: str
    is_connected: bool = True
    status: str = "waiting"
    attempts: int = 0
    tests_passed: int = 0
    total_tests: int = 0
    time_spent: int = 0
    code_length: int = 0
    last_activity: str = ""
    is_bot: bool = False

    @property
    def progress_percentage(self) -> int:
        if self.status == "completed":
            return 100
        if self.status == "testing":
            return 85
        if self.status == "coding":
            return min(self.code_length * 2, 80)
        return 0

    @classmethod
    def from_participant(cls, participant: dict[str, Any]) -> "OpponentView":
        user = participant.get("user") or {}
        code = participant.get("current_code") or ""
        return cls(
            id=str(participant.get("user_id")),
            name=user.get("full_name") or "Opponent",
            username=user.get("username") or "opponent",
            status=participant.get("status") or "waiting",
            attempts=participant.get("attempts") or 0,
            tests_passed=participant.get("tests_passed") or 0,
            total_tests=participant.get("total_tests") or 0,
            time_spent=participant.get("completion_time") or 0,
            code_length=len(code.splitlines()),
            last_activity=participant.get("last_activity") or "",
            is_bot=False,
        )

    @classmethod
    def from_bot_progress(cls, progress: dict[str, Any]) -> "OpponentView":
        view = cls(id=str(progress.get("id")), name="", username="", is_bot=True)
        view.merge(progress)
        return view

    def merge(self, data: dict[str, Any]) -> None:
        """Overlay fields from a progress payload."""
        for key, value in data.items():
            if key in self.__dataclass_fields__ and value is not None:
                setattr(self, key, str(value) if key == "id" else value)


def fallback_bot_opponent(room: dict[str, Any]) -> OpponentView:
    bot = room.get("demo_bot") or {}
    return OpponentView(
        id=str(room.get("demo_bot_id")),
        name=bot.get("name") or "Demo Bot",
        username=bot.get("username") or "demo_bot",
        status="coding",
        attempts=1,
        tests_passed=2,
        total_tests=DEFAULT_TOTAL_TESTS,
        time_spent=300,
        last_activity="Writing solution...",
        is_bot=True,
    )


class BattleSession:
    """State and orchestration for one visit to the battle view."""

    def __init__(
        self,
        auth: AuthContext,
        rooms: RoomService,
        challenges: ChallengeService,
        duration: int = BATTLE_DURATION_SECONDS,
        bot_poll_interval: Optional[float] = None,
    ):
        self.auth = auth
        self.rooms = rooms
        self.challenges = challenges
        self.duration = duration
        self.bot_poll_interval = (
            settings.demo_bot_poll_interval_seconds if bot_poll_interval is None else bot_poll_interval
        )

        self.room: Optional[dict[str, Any]] = None
        self.challenge: Optional[dict[str, Any]] = None
        self.code = ""
        self.opponent: Optional[OpponentView] = None
        self.competition = CompetitionStatus(time_remaining=duration)
        self.stats = UserStats()
        self.execution_results: Optional[dict[str, Any]] = None
        self.is_submitting = False
        self.loading = False
        self.error: Optional[str] = None
        self.preview_mode = False

        self.timer = BattleTimer(duration)
        self._subscription: Optional[RoomSubscription] = None
        self._bot_poll_task: Optional[asyncio.Task] = None
        self._starting = False

    @property
    def user_id(self) -> Optional[str]:
        return self.auth.user_id

    @property
    def is_host(self) -> bool:
        return bool(self.room) and self.user_id is not None and str(self.room.get("host_id")) == self.user_id

    # Initialization

    async def initialize(self, state: Optional[dict[str, Any]] = None) -> None:
        """Load from navigation state: a room, a room code, or neither."""
        state = state or {}
        self.loading = True
        self.error = None
        try:
            if state.get("room_data"):
                await self.load_room_data(state["room_data"])
            elif state.get("room_code"):
                await self.load_room_by_code(state["room_code"])
            else:
                await self.load_preview()
        except Exception:
            logger.exception("Failed to initialize battle")
            self.error = "Failed to load battle data"
        finally:
            self.loading = False

    async def load_room_data(self, room: dict[str, Any]) -> None:
        self.room = room
        result = await self.rooms.get_room_details(room["id"])
        if not result.success:
            self.error = result.error
            return

        self.room = result.data
        await self.setup_room_challenge(self.room)
        await self.setup_room_subscription(self.room["id"])
        self.update_competition_status(self.room)
        await self.setup_opponent(self.room)
        await self.maybe_auto_start()

    async def load_room_by_code(self, room_code: str) -> None:
        result = await self.rooms.join_room(room_code)
        if result.success:
            await self.load_room_data(result.data)
            return
        if result.code == ErrorCode.ALREADY_IN_ROOM.value:
            details = await self.rooms.get_room_details_by_code(room_code)
            if details.success:
                await self.load_room_data(details.data)
                return
            self.error = details.error
            return
        self.error = result.error

    async def load_preview(self) -> None:
        """No room: a random challenge against a placeholder opponent."""
        self.preview_mode = True
        result = await self.challenges.get_random_challenge()
        if not result.success:
            self.error = result.error or "Failed to load demo challenge"
            return

        self._apply_challenge(result.data)
        self.opponent = OpponentView(
            id=PREVIEW_OPPONENT_ID,
            name="Demo Opponent",
            username="demo_user",
            status="coding",
            attempts=1,
            tests_passed=2,
            total_tests=self.stats.total_tests,
            time_spent=300,
            last_activity="Writing solution...",
            is_bot=True,
        )
        self.competition = CompetitionStatus(is_active=True, time_remaining=self.duration)
        self._start_timer()

    # Challenge and battle start

    def _apply_challenge(self, challenge: dict[str, Any]) -> None:
        self.challenge = challenge
        self.stats.total_tests = len(challenge.get("test_cases") or []) or DEFAULT_TOTAL_TESTS
        self.code = challenge.get("solution_template") or ""

    async def setup_room_challenge(self, room: dict[str, Any]) -> None:
        """Load the challenge once the room is active."""
        if room.get("status") != "active":
            return
        if self.challenge and self.challenge.get("id") == room.get("challenge_id"):
            return

        if room.get("challenge_id"):
            result = await self.challenges.get_challenge_by_id(room["challenge_id"])
            if result.success:
                self._apply_challenge(result.data)
            return

        result = await self.challenges.get_random_challenge()
        if not result.success:
            return
        self._apply_challenge(result.data)
        if self.is_host:
            await self.rooms.start_battle(room["id"], result.data["id"])
            updated = await self.rooms.get_room_details(room["id"])
            if updated.success:
                self.room = updated.data

    async def maybe_auto_start(self) -> None:
        """Host starts the battle as soon as the room is full."""
        room = self.room
        if (
            not room
            or self._starting
            or room.get("status") != "waiting"
            or not self.is_host
            or len(room.get("participants") or []) < room.get("max_participants", 2)
        ):
            return

        self._starting = True
        try:
            challenge_id = room.get("challenge_id")
            if not challenge_id:
                picked = await self.challenges.get_random_challenge()
                if picked.success:
                    challenge_id = picked.data["id"]
            result = await self.rooms.start_battle(room["id"], challenge_id)
            if result.success:
                await self._merge_room(result.data)
            else:
                logger.warning(f"Auto-start failed for room {room.get('room_code')}: {result.error}")
        finally:
            self._starting = False

    # Competition status and timer

    def update_competition_status(self, room: dict[str, Any]) -> None:
        status = room.get("status")
        started_at = parse_timestamp(room.get("started_at"))

        if status == "active" and started_at is not None:
            self.competition = CompetitionStatus(
                is_active=True,
                time_remaining=time_remaining(started_at, duration=self.duration),
                winner=room.get("winner_id"),
                final_time=None,
            )
            self._start_timer()
        elif status == "completed":
            completed_at = parse_timestamp(room.get("completed_at"))
            final_time = None
            if started_at is not None and completed_at is not None:
                final_time = int((completed_at - started_at).total_seconds())
            self.competition = CompetitionStatus(
                is_active=False,
                time_remaining=self.competition.time_remaining,
                winner=room.get("winner_id"),
                final_time=final_time,
            )
            self._stop_timer()
        elif status == "waiting":
            self.competition = CompetitionStatus(time_remaining=self.duration)
            self._stop_timer()
        else:
            self.competition.is_active = False
            self._stop_timer()

        self._sync_bot_polling()

    def _on_tick(self, remaining: int) -> None:
        self.competition.time_remaining = remaining

    def _start_timer(self) -> None:
        self.timer.remaining = self.competition.time_remaining
        if self.competition.time_remaining > 0:
            self.timer.start(self._on_tick)

    def _stop_timer(self) -> None:
        self.timer.stop()

    # Opponent

    async def setup_opponent(self, room: dict[str, Any]) -> None:
        if room.get("use_demo_bot") and room.get("demo_bot_id"):
            result = await self.rooms.get_demo_bot_progress(room["id"])
            if result.success:
                self.opponent = OpponentView.from_bot_progress(result.data)
            else:
                self.opponent = fallback_bot_opponent(room)
            return

        for participant in room.get("participants") or []:
            user_id = participant.get("user_id")
            if user_id and str(user_id) != self.user_id:
                self.opponent = OpponentView.from_participant(participant)
                return
        self.opponent = None

    async def poll_bot_progress(self) -> None:
        if not self.room:
            return
        result = await self.rooms.get_demo_bot_progress(self.room["id"])
        if not result.success:
            return
        if self.opponent is None:
            self.opponent = OpponentView.from_bot_progress(result.data)
        else:
            self.opponent.merge(result.data)

    def _sync_bot_polling(self) -> None:
        should_poll = bool(
            self.room
            and self.room.get("use_demo_bot")
            and self.competition.is_active
            and self.bot_poll_interval > 0
        )
        if should_poll and (self._bot_poll_task is None or self._bot_poll_task.done()):
            self._bot_poll_task = asyncio.create_task(self._bot_poll_loop())
        elif not should_poll and self._bot_poll_task is not None:
            self._bot_poll_task.cancel()
            self._bot_poll_task = None

    async def _bot_poll_loop(self) -> None:
        try:
            while True:
                await asyncio.sleep(self.bot_poll_interval)
                await self.poll_bot_progress()
        except asyncio.CancelledError:
            pass
        except Exception:
            logger.exception("Demo bot polling failed")

    # Realtime

    async def setup_room_subscription(self, room_id: str) -> None:
        self._subscription = await self.rooms.subscribe_to_room(room_id, self.handle_change)

    async def _merge_room(self, fields: dict[str, Any]) -> None:
        previous_status = (self.room or {}).get("status")
        self.room = {**(self.room or {}), **fields}
        self.update_competition_status(self.room)
        if self.room.get("status") == "active" and previous_status != "active":
            await self.setup_room_challenge(self.room)

    async def handle_change(self, payload: dict[str, Any]) -> None:
        """Apply a change event from the room channel."""
        table = payload.get("table")
        if table == "rooms":
            await self._merge_room(payload.get("new") or {})
        elif table == "room_participants" and self.room:
            result = await self.rooms.get_room_details(self.room["id"])
            if result.success:
                self.room = result.data
                await self.setup_opponent(self.room)
                await self.maybe_auto_start()

    # Submission

    async def submit(self) -> Optional[dict[str, Any]]:
        """Judge the current code and record the attempt.

        Returns the execution results, or None when there was nothing to
        submit or the room is no longer active.
        """
        if not self.code.strip() or not self.challenge:
            return None
        if self.room and not self.preview_mode and self.room.get("status") != "active":
            return None

        self.is_submitting = True
        try:
            execution = await self.challenges.execute_code(self.challenge["id"], self.code)
            if not execution.success:
                self.execution_results = {
                    "success": False,
                    "error": execution.error,
                    "test_cases": [],
                    "execution_time": 0,
                }
                return self.execution_results

            results = execution.data
            self.execution_results = results
            total = results.get("total_tests") or 0
            passed = results.get("total_passed") or 0
            accuracy = round(passed * 100 / total) if total else 0
            attempts = self.stats.attempts + 1

            self.stats.attempts = attempts
            self.stats.tests_passed = passed
            self.stats.accuracy = accuracy
            self.stats.code_lines = len(self.code.split("\n"))
            self.stats.last_submission = {"success": bool(results.get("success")), "time": "Just now"}

            if self.room and not self.preview_mode:
                await self.rooms.update_participant_progress(
                    self.room["id"],
                    {
                        "current_code": self.code,
                        "attempts": attempts,
                        "tests_passed": passed,
                        "total_tests": total,
                        "accuracy": accuracy,
                        "status": "completed" if results.get("success") else "coding",
                    },
                )
                await self.challenges.submit_code(
                    self.room["id"], self.challenge["id"], self.code, results
                )
                if results.get("success"):
                    await self._complete_battle()
            elif results.get("success"):
                self._declare_winner("user")

            return results
        finally:
            self.is_submitting = False

    async def _complete_battle(self) -> None:
        """Claim the win. The server decides who finished first."""
        completed = await self.rooms.complete_battle(self.room["id"])
        if completed.success:
            self._declare_winner(self.user_id)
            return

        logger.info(f"Win not recorded for room {self.room.get('room_code')}: {completed.error}")
        refreshed = await self.rooms.get_room_details(self.room["id"])
        if refreshed.success:
            self.room = refreshed.data
            self.update_competition_status(self.room)

    def _declare_winner(self, winner: Optional[str]) -> None:
        self.competition.winner = winner
        self.competition.final_time = self.duration - self.competition.time_remaining
        self.competition.is_active = False
        self._stop_timer()
        self._sync_bot_polling()

    # Teardown

    async def close(self) -> None:
        """Unsubscribe and stop background work. In-flight calls may still land."""
        await self.rooms.unsubscribe_from_room(self._subscription)
        self._subscription = None
        self._stop_timer()
        if self._bot_poll_task is not None:
            self._bot_poll_task.cancel()
            self._bot_poll_task = None
