"""Unit tests for the battle session with stubbed services."""

from datetime import timedelta
from typing import Any, Optional

import pytest

from codeduel.client.auth import AuthContext
from codeduel.client.battle import BattleSession, OpponentView, fallback_bot_opponent
from codeduel.core.clock import isoformat, utcnow
from codeduel.core.exceptions import ErrorCode
from codeduel.core.results import ServiceResult

HOST_ID = "user-1"
GUEST_ID = "user-2"

CHALLENGE = {
    "id": "challenge-1",
    "title": "Two Sum",
    "test_cases": [{"input": [[1, 2], 3], "expected": [0, 1]}] * 3,
    "solution_template": "def two_sum(nums, target):\n    pass\n",
}


def participant(user_id: str, is_host: bool = False, **fields: Any) -> dict[str, Any]:
    return {
        "user_id": user_id,
        "is_host": is_host,
        "status": "waiting",
        "user": {"username": user_id, "full_name": user_id.title()},
        **fields,
    }


def make_room(status: str = "waiting", **fields: Any) -> dict[str, Any]:
    room = {
        "id": "room-1",
        "room_code": "ABC123",
        "host_id": HOST_ID,
        "status": status,
        "challenge_id": None,
        "max_participants": 2,
        "use_demo_bot": False,
        "demo_bot_id": None,
        "winner_id": None,
        "started_at": None,
        "completed_at": None,
        "participants": [participant(HOST_ID, is_host=True), participant(GUEST_ID)],
    }
    room.update(fields)
    return room


class StubRooms:
    def __init__(self, room: dict[str, Any]):
        self.room = room
        self.started: list[tuple[str, Optional[str]]] = []
        self.progress: list[dict[str, Any]] = []
        self.completed: list[str] = []
        self.callback = None
        self.unsubscribed = False
        self.join_result: Optional[ServiceResult] = None
        self.bot_progress: Optional[ServiceResult] = None
        self.complete_result: Optional[ServiceResult] = None

    async def get_room_details(self, room_id):
        return ServiceResult.ok(dict(self.room))

    async def get_room_details_by_code(self, room_code):
        return ServiceResult.ok(dict(self.room))

    async def join_room(self, room_code):
        return self.join_result or ServiceResult.ok(dict(self.room))

    async def start_battle(self, room_id, challenge_id=None):
        self.started.append((room_id, challenge_id))
        self.room.update(
            status="active",
            challenge_id=challenge_id,
            started_at=isoformat(utcnow()),
        )
        return ServiceResult.ok({k: v for k, v in self.room.items() if k != "participants"})

    async def get_demo_bot_progress(self, room_id):
        return self.bot_progress or ServiceResult.fail("Room has no demo bot", ErrorCode.NOT_FOUND)

    async def update_participant_progress(self, room_id, updates):
        self.progress.append(updates)
        return ServiceResult.ok(updates)

    async def complete_battle(self, room_id):
        self.completed.append(room_id)
        return self.complete_result or ServiceResult.ok({"status": "completed"})

    async def subscribe_to_room(self, room_id, callback):
        self.callback = callback
        return "subscription"

    async def unsubscribe_from_room(self, subscription):
        self.unsubscribed = subscription == "subscription"


class StubChallenges:
    def __init__(self, execution: Optional[ServiceResult] = None):
        self.execution = execution or ServiceResult.ok({
            "success": True,
            "total_tests": 3,
            "total_passed": 3,
            "test_cases": [],
            "execution_time": 12,
        })
        self.submissions: list[dict[str, Any]] = []

    async def get_random_challenge(self, difficulty=None):
        return ServiceResult.ok(dict(CHALLENGE))

    async def get_challenge_by_id(self, challenge_id):
        return ServiceResult.ok(dict(CHALLENGE))

    async def execute_code(self, challenge_id, code, language="python"):
        return self.execution

    async def submit_code(self, room_id, challenge_id, code, execution_results):
        self.submissions.append(execution_results)
        return ServiceResult.ok({"id": "submission-1"})


def auth_for(user_id: str) -> AuthContext:
    auth = AuthContext(client=None)
    auth.user = {"id": user_id, "email": f"{user_id}@example.com"}
    return auth


def make_session(rooms, challenges=None, user_id: str = HOST_ID) -> BattleSession:
    return BattleSession(auth_for(user_id), rooms, challenges or StubChallenges(), bot_poll_interval=0)


class TestLoadRoom:
    @pytest.mark.asyncio
    async def test_host_auto_starts_full_room(self):
        rooms = StubRooms(make_room())
        session = make_session(rooms)

        await session.initialize({"room_data": {"id": "room-1"}})

        try:
            assert rooms.started == [("room-1", "challenge-1")]
            assert session.room["status"] == "active"
            assert session.competition.is_active
            assert session.challenge["id"] == "challenge-1"
            assert session.code == CHALLENGE["solution_template"]
            assert session.stats.total_tests == 3
            assert session.opponent.id == GUEST_ID
            assert rooms.callback is not None
        finally:
            await session.close()

    @pytest.mark.asyncio
    async def test_guest_does_not_start(self):
        rooms = StubRooms(make_room())
        session = make_session(rooms, user_id=GUEST_ID)

        await session.initialize({"room_data": {"id": "room-1"}})

        assert rooms.started == []
        assert not session.competition.is_active
        assert session.opponent.id == HOST_ID
        await session.close()

    @pytest.mark.asyncio
    async def test_active_room_syncs_timer(self):
        started = utcnow() - timedelta(seconds=120)
        rooms = StubRooms(make_room("active", challenge_id="challenge-1", started_at=isoformat(started)))
        session = make_session(rooms)

        await session.initialize({"room_data": {"id": "room-1"}})

        try:
            assert session.competition.is_active
            assert 775 <= session.competition.time_remaining <= 780
            assert session.timer.is_active
            assert session.challenge["id"] == "challenge-1"
        finally:
            await session.close()

    @pytest.mark.asyncio
    async def test_room_code_already_joined_falls_back_to_details(self):
        rooms = StubRooms(make_room(participants=[participant(HOST_ID, is_host=True)]))
        rooms.join_result = ServiceResult.fail("You are already in this room", ErrorCode.ALREADY_IN_ROOM)
        session = make_session(rooms)

        await session.initialize({"room_code": "ABC123"})

        assert session.error is None
        assert session.room["room_code"] == "ABC123"
        assert session.opponent is None
        await session.close()

    @pytest.mark.asyncio
    async def test_demo_bot_opponent_falls_back_to_placeholder(self):
        rooms = StubRooms(make_room(
            "active",
            challenge_id="challenge-1",
            started_at=isoformat(utcnow()),
            use_demo_bot=True,
            demo_bot_id="bot-1",
            demo_bot={"name": "Stack Sage", "username": "stack_sage"},
        ))
        session = make_session(rooms)

        await session.initialize({"room_data": {"id": "room-1"}})

        try:
            assert session.opponent.is_bot
            assert session.opponent.name == "Stack Sage"
        finally:
            await session.close()


class TestRealtime:
    @pytest.mark.asyncio
    async def test_room_completion_event_stops_timer(self):
        started = utcnow() - timedelta(seconds=60)
        rooms = StubRooms(make_room("active", challenge_id="challenge-1", started_at=isoformat(started)))
        session = make_session(rooms)
        await session.initialize({"room_data": {"id": "room-1"}})

        completed = started + timedelta(seconds=45)
        await rooms.callback({
            "table": "rooms",
            "event_type": "UPDATE",
            "new": {"status": "completed", "winner_id": GUEST_ID, "completed_at": isoformat(completed)},
        })

        assert not session.competition.is_active
        assert session.competition.winner == GUEST_ID
        assert session.competition.final_time == 45
        assert not session.timer.is_active
        await session.close()

    @pytest.mark.asyncio
    async def test_participant_event_refetches_room(self):
        rooms = StubRooms(make_room(participants=[participant(HOST_ID, is_host=True)]))
        session = make_session(rooms, user_id=GUEST_ID)
        await session.initialize({"room_data": {"id": "room-1"}})

        rooms.room["participants"] = [
            participant(HOST_ID, is_host=True, status="coding", current_code="a\nb\nc"),
            participant(GUEST_ID),
        ]
        await rooms.callback({"table": "room_participants", "event_type": "UPDATE", "new": {}})

        assert session.opponent.status == "coding"
        assert session.opponent.code_length == 3
        await session.close()


class TestSubmit:
    @pytest.mark.asyncio
    async def test_winning_submission_completes_battle(self):
        rooms = StubRooms(make_room("active", challenge_id="challenge-1", started_at=isoformat(utcnow())))
        challenges = StubChallenges()
        session = make_session(rooms, challenges)
        await session.initialize({"room_data": {"id": "room-1"}})
        session.code = "def two_sum(nums, target):\n    return [0, 1]\n"

        results = await session.submit()

        assert results["success"]
        assert rooms.progress[-1]["status"] == "completed"
        assert rooms.progress[-1]["accuracy"] == 100
        assert len(challenges.submissions) == 1
        assert rooms.completed == ["room-1"]
        assert session.competition.winner == HOST_ID
        assert not session.competition.is_active
        assert session.stats.attempts == 1
        assert session.stats.code_lines == 3
        await session.close()

    @pytest.mark.asyncio
    async def test_lost_race_shows_server_winner(self):
        started = utcnow() - timedelta(seconds=90)
        rooms = StubRooms(make_room("active", challenge_id="challenge-1", started_at=isoformat(started)))
        rooms.complete_result = ServiceResult.fail("Battle already completed", ErrorCode.CONFLICT)
        session = make_session(rooms, user_id=GUEST_ID)
        await session.initialize({"room_data": {"id": "room-1"}})
        session.code = "def two_sum(nums, target):\n    return [0, 1]\n"
        # The host finished first; the room update has not reached this session yet
        rooms.room.update(
            status="completed",
            winner_id=HOST_ID,
            completed_at=isoformat(started + timedelta(seconds=60)),
        )

        results = await session.submit()

        assert results["success"]
        assert rooms.completed == ["room-1"]
        assert session.competition.winner == HOST_ID
        assert session.competition.final_time == 60
        assert not session.competition.is_active
        assert not session.timer.is_active
        await session.close()

    @pytest.mark.asyncio
    async def test_completed_room_rejects_submission(self):
        started = utcnow() - timedelta(seconds=90)
        rooms = StubRooms(make_room("active", challenge_id="challenge-1", started_at=isoformat(started)))
        challenges = StubChallenges()
        session = make_session(rooms, challenges, user_id=GUEST_ID)
        await session.initialize({"room_data": {"id": "room-1"}})
        session.code = "def two_sum(nums, target):\n    return [0, 1]\n"

        await rooms.callback({
            "table": "rooms",
            "event_type": "UPDATE",
            "new": {"status": "completed", "winner_id": HOST_ID},
        })
        results = await session.submit()

        assert results is None
        assert session.competition.winner == HOST_ID
        assert rooms.progress == []
        assert rooms.completed == []
        assert challenges.submissions == []
        await session.close()

    @pytest.mark.asyncio
    async def test_partial_pass_keeps_battle_going(self):
        rooms = StubRooms(make_room("active", challenge_id="challenge-1", started_at=isoformat(utcnow())))
        challenges = StubChallenges(ServiceResult.ok({
            "success": False, "total_tests": 3, "total_passed": 1, "test_cases": [], "execution_time": 5,
        }))
        session = make_session(rooms, challenges)
        await session.initialize({"room_data": {"id": "room-1"}})
        session.code = "def two_sum(nums, target):\n    return []\n"

        await session.submit()

        assert rooms.completed == []
        assert rooms.progress[-1]["status"] == "coding"
        assert session.stats.accuracy == 33
        assert session.competition.is_active
        await session.close()

    @pytest.mark.asyncio
    async def test_failed_execution_is_reported(self):
        rooms = StubRooms(make_room("active", challenge_id="challenge-1", started_at=isoformat(utcnow())))
        challenges = StubChallenges(ServiceResult.fail("Failed to execute code"))
        session = make_session(rooms, challenges)
        await session.initialize({"room_data": {"id": "room-1"}})
        session.code = "def two_sum(nums, target): ..."

        results = await session.submit()

        assert results == {
            "success": False,
            "error": "Failed to execute code",
            "test_cases": [],
            "execution_time": 0,
        }
        assert rooms.progress == []
        await session.close()

    @pytest.mark.asyncio
    async def test_blank_code_is_not_submitted(self):
        rooms = StubRooms(make_room("active", challenge_id="challenge-1", started_at=isoformat(utcnow())))
        session = make_session(rooms)
        await session.initialize({"room_data": {"id": "room-1"}})
        session.code = "   "

        assert await session.submit() is None
        await session.close()


class TestPreview:
    @pytest.mark.asyncio
    async def test_preview_without_room(self):
        session = make_session(StubRooms(make_room()))

        await session.initialize()

        try:
            assert session.preview_mode
            assert session.opponent.name == "Demo Opponent"
            assert session.competition.is_active
            assert session.competition.time_remaining == session.duration
            session.code = "def two_sum(nums, target):\n    return [0, 1]\n"
            await session.submit()
            assert session.competition.winner == "user"
        finally:
            await session.close()


class TestOpponentView:
    def test_progress_percentage(self):
        view = OpponentView(id="o", name="O", username="o")
        assert view.progress_percentage == 0
        view.status = "coding"
        view.code_length = 10
        assert view.progress_percentage == 20
        view.code_length = 60
        assert view.progress_percentage == 80
        view.status = "testing"
        assert view.progress_percentage == 85
        view.status = "completed"
        assert view.progress_percentage == 100

    def test_merge_bot_progress(self):
        view = OpponentView.from_bot_progress({
            "id": "bot-1", "name": "Stack Sage", "username": "stack_sage",
            "status": "testing", "tests_passed": 4, "unknown": "ignored",
        })
        assert view.is_bot
        assert view.name == "Stack Sage"
        assert view.tests_passed == 4

    def test_fallback_bot_opponent(self):
        view = fallback_bot_opponent({"demo_bot_id": "bot-1", "demo_bot": None})
        assert view.name == "Demo Bot"
        assert view.status == "coding"
