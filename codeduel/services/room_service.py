"""Battle room lifecycle.

Rooms are created by a host, joined by code, started once full and
completed by the first submission that passes every test case. Every
committed change to ``rooms`` or ``room_participants`` is published on the
realtime hub.
"""

import logging
from datetime import datetime
from typing import Any, Optional
from uuid import UUID

from sqlalchemy import func, select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from codeduel.battle.room_code import (
    INVALID_CODE_LENGTH,
    ROOM_CODE_LENGTH,
    format_room_code,
    generate_room_code,
)
from codeduel.config import settings
from codeduel.core.clock import as_utc, isoformat, utcnow
from codeduel.core.exceptions import ErrorCode, describe_failure
from codeduel.core.metrics import (
    record_battle_completed,
    record_battle_started,
    record_room_created,
    record_room_join,
)
from codeduel.core.results import ServiceResult
from codeduel.db.models.challenge import Challenge
from codeduel.db.models.demo_bot import DemoBot
from codeduel.db.models.room import ParticipantStatus, Room, RoomParticipant, RoomStatus
from codeduel.services.realtime import (
    ChangeCallback,
    EventType,
    RealtimeHub,
    Subscription,
    hub as default_hub,
)

logger = logging.getLogger(__name__)

ROOM_CODE_ATTEMPTS = 10
DEFAULT_TOTAL_TESTS = 5

ROOM_NOT_AVAILABLE = "Room not found or already started"
ALREADY_IN_ROOM = "You are already in this room"
ROOM_FULL = "Room is full"

# Fields a participant may write about their own progress
PROGRESS_FIELDS = frozenset({
    "current_code",
    "attempts",
    "tests_passed",
    "total_tests",
    "accuracy",
    "status",
    "completion_time",
})


class RoomService:
    """Room operations for one database session."""

    def __init__(self, session: AsyncSession, hub: Optional[RealtimeHub] = None):
        self.session = session
        self.hub = hub or default_hub

    # Loading

    async def _load_room(self, room_id: UUID) -> Optional[Room]:
        """Room with challenge, demo bot and participants (user/bot) loaded."""
        stmt = (
            select(Room)
            .where(Room.id == room_id)
            .options(
                selectinload(Room.challenge),
                selectinload(Room.demo_bot),
                selectinload(Room.winner),
                selectinload(Room.participants).selectinload(RoomParticipant.user),
                selectinload(Room.participants).selectinload(RoomParticipant.demo_bot),
            )
            .execution_options(populate_existing=True)
        )
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def _get_participant(self, room_id: UUID, user_id: UUID) -> Optional[RoomParticipant]:
        result = await self.session.execute(
            select(RoomParticipant).where(
                RoomParticipant.room_id == room_id,
                RoomParticipant.user_id == user_id,
            )
        )
        return result.scalar_one_or_none()

    async def _random_challenge_id(self) -> Optional[UUID]:
        return await self.session.scalar(
            select(Challenge.id)
            .where(Challenge.is_active.is_(True))
            .order_by(func.random())
            .limit(1)
        )

    # Publishing

    async def _publish_room(
        self,
        room: Room,
        event_type: EventType,
        old: Optional[dict[str, Any]] = None,
    ) -> None:
        await self.hub.publish(room.id, "rooms", event_type, room.to_dict(), old)

    async def _publish_participant(
        self,
        participant: RoomParticipant,
        event_type: EventType,
    ) -> None:
        await self.hub.publish(
            participant.room_id, "room_participants", event_type, participant.to_dict()
        )

    async def _fail(self, exc: SQLAlchemyError, fallback: str) -> ServiceResult:
        await self.session.rollback()
        logger.warning(f"{fallback}: {exc}")
        return ServiceResult.fail(*describe_failure(exc, fallback))

    # Backend procedures

    async def generate_room_code(self) -> ServiceResult[str]:
        """A fresh code not used by any existing room."""
        try:
            for _ in range(ROOM_CODE_ATTEMPTS):
                code = generate_room_code()
                taken = await self.session.scalar(
                    select(Room.id).where(Room.room_code == code)
                )
                if taken is None:
                    return ServiceResult.ok(code)
        except SQLAlchemyError as e:
            return await self._fail(e, "Failed to generate room code")
        return ServiceResult.fail("Failed to generate room code")

    async def get_available_demo_bot(self) -> ServiceResult[Optional[DemoBot]]:
        """Random active demo bot; data is None when there is none."""
        try:
            result = await self.session.execute(
                select(DemoBot)
                .where(DemoBot.is_active.is_(True))
                .order_by(func.random())
                .limit(1)
            )
            return ServiceResult.ok(result.scalar_one_or_none())
        except SQLAlchemyError as e:
            return await self._fail(e, "Failed to get demo bot")

    # Rooms

    async def create_room(
        self,
        user_id: UUID,
        challenge_id: Optional[UUID] = None,
        use_demo_bot: bool = False,
    ) -> ServiceResult[dict[str, Any]]:
        """Create a waiting room with the caller as host.

        With ``use_demo_bot`` a random bot joins immediately with status
        ``coding``. Not finding a bot is logged and does not fail creation.
        """
        code_result = await self.generate_room_code()
        if not code_result.success:
            return ServiceResult.fail(
                f"Failed to generate room code: {code_result.error}",
                code_result.code or ErrorCode.ERROR,
            )

        demo_bot: Optional[DemoBot] = None
        if use_demo_bot:
            bot_result = await self.get_available_demo_bot()
            if bot_result.success and bot_result.data is not None:
                demo_bot = bot_result.data
            else:
                logger.warning(f"No demo bot available for new room: {bot_result.error or 'none active'}")

        room = Room(
            room_code=code_result.data,
            host_id=user_id,
            challenge_id=challenge_id,
            status=RoomStatus.WAITING.value,
            max_participants=settings.max_room_participants,
            current_participants=0,
            use_demo_bot=use_demo_bot,
            demo_bot_id=demo_bot.id if demo_bot else None,
        )
        try:
            self.session.add(room)
            await self.session.flush()
        except SQLAlchemyError as e:
            await self.session.rollback()
            message, code = describe_failure(e, f"Failed to create room: {e}")
            return ServiceResult.fail(message, code)

        host = RoomParticipant(
            room_id=room.id,
            user_id=user_id,
            is_host=True,
            status=ParticipantStatus.WAITING.value,
        )
        try:
            self.session.add(host)
            room.current_participants = 1
            await self.session.flush()
            await self.session.commit()
        except SQLAlchemyError as e:
            # Rolling back discards the room row along with the participant
            await self.session.rollback()
            message, code = describe_failure(e, f"Failed to add host as participant: {e}")
            return ServiceResult.fail(message, code)

        bot_participant: Optional[RoomParticipant] = None
        if demo_bot is not None:
            bot_participant = RoomParticipant(
                room_id=room.id,
                demo_bot_id=demo_bot.id,
                is_host=False,
                status=ParticipantStatus.CODING.value,
            )
            try:
                self.session.add(bot_participant)
                room.current_participants = 2
                await self.session.commit()
            except SQLAlchemyError as e:
                await self.session.rollback()
                logger.warning(f"Failed to add demo bot to room {room.room_code}: {e}")
                bot_participant = None
                await self.session.refresh(room)
                await self.session.refresh(host)

        record_room_created(use_demo_bot)
        logger.info(
            f"Room {room.room_code} created by {user_id}"
            + (f" with demo bot {demo_bot.username}" if bot_participant else "")
        )

        await self._publish_room(room, EventType.INSERT)
        await self._publish_participant(host, EventType.INSERT)
        if bot_participant is not None:
            await self._publish_participant(bot_participant, EventType.INSERT)

        return ServiceResult.ok(room.to_dict())

    async def join_room(self, user_id: UUID, room_code: str) -> ServiceResult[dict[str, Any]]:
        """Join a waiting room by its code.

        A caller who already occupies the room gets the ``already_in_room``
        failure and no row is written.
        """
        code = format_room_code(room_code)
        if len(code) != ROOM_CODE_LENGTH:
            record_room_join("invalid_code")
            return ServiceResult.fail(
                INVALID_CODE_LENGTH, ErrorCode.INVALID_ROOM_CODE
            )

        try:
            result = await self.session.execute(select(Room).where(Room.room_code == code))
            room = result.scalar_one_or_none()
            if room is None:
                record_room_join("not_found")
                return ServiceResult.fail(ROOM_NOT_AVAILABLE, ErrorCode.ROOM_NOT_AVAILABLE)

            if await self._get_participant(room.id, user_id) is not None:
                record_room_join("already_in_room")
                return ServiceResult.fail(ALREADY_IN_ROOM, ErrorCode.ALREADY_IN_ROOM)

            if room.status != RoomStatus.WAITING.value:
                record_room_join("not_found")
                return ServiceResult.fail(ROOM_NOT_AVAILABLE, ErrorCode.ROOM_NOT_AVAILABLE)

            # Claim a seat atomically; zero rows means the room filled up or started
            claimed = await self.session.execute(
                update(Room)
                .where(
                    Room.id == room.id,
                    Room.status == RoomStatus.WAITING.value,
                    Room.current_participants < Room.max_participants,
                )
                .values(current_participants=Room.current_participants + 1)
            )
            if claimed.rowcount == 0:
                await self.session.rollback()
                current_status = await self.session.scalar(
                    select(Room.status).where(Room.id == room.id)
                )
                if current_status != RoomStatus.WAITING.value:
                    record_room_join("not_found")
                    return ServiceResult.fail(ROOM_NOT_AVAILABLE, ErrorCode.ROOM_NOT_AVAILABLE)
                record_room_join("full")
                return ServiceResult.fail(ROOM_FULL, ErrorCode.ROOM_FULL)

            participant = RoomParticipant(
                room_id=room.id,
                user_id=user_id,
                is_host=False,
                status=ParticipantStatus.WAITING.value,
            )
            self.session.add(participant)
            await self.session.flush()
            await self.session.commit()
            await self.session.refresh(room)
        except IntegrityError:
            await self.session.rollback()
            record_room_join("already_in_room")
            return ServiceResult.fail(ALREADY_IN_ROOM, ErrorCode.ALREADY_IN_ROOM)
        except SQLAlchemyError as e:
            return await self._fail(e, "Failed to join room")

        record_room_join("joined")
        logger.info(f"User {user_id} joined room {room.room_code}")

        await self._publish_participant(participant, EventType.INSERT)
        await self._publish_room(room, EventType.UPDATE)
        return ServiceResult.ok(room.to_dict())

    async def get_room_details(self, room_id: UUID) -> ServiceResult[dict[str, Any]]:
        try:
            room = await self._load_room(room_id)
        except SQLAlchemyError as e:
            return await self._fail(e, "Failed to get room details")
        if room is None:
            return ServiceResult.fail("Room not found", ErrorCode.NOT_FOUND)
        return ServiceResult.ok(room.to_detail_dict())

    async def get_room_details_by_code(self, room_code: str) -> ServiceResult[dict[str, Any]]:
        code = format_room_code(room_code)
        try:
            room_id = await self.session.scalar(select(Room.id).where(Room.room_code == code))
        except SQLAlchemyError as e:
            return await self._fail(e, "Failed to get room details")
        if room_id is None:
            return ServiceResult.fail("Room not found", ErrorCode.NOT_FOUND)
        return await self.get_room_details(room_id)

    async def get_demo_bot_progress(
        self,
        room_id: UUID,
        now: Optional[datetime] = None,
    ) -> ServiceResult[dict[str, Any]]:
        """Advance the simulated opponent and return its view.

        Progress is a pure function of time since the battle started and
        the bot's solve time. The bot's participant row is updated to match.
        """
        try:
            room = await self._load_room(room_id)
            if room is None:
                return ServiceResult.fail("Room not found", ErrorCode.NOT_FOUND)
            if not room.use_demo_bot or room.demo_bot is None:
                return ServiceResult.fail("Room has no demo bot", ErrorCode.NOT_FOUND)

            bot = room.demo_bot
            participant = next(
                (p for p in room.participants if p.demo_bot_id == bot.id), None
            )
            total_tests = len(room.challenge.test_cases) if room.challenge else DEFAULT_TOTAL_TESTS
            progress = simulate_bot_progress(
                started_at=room.started_at,
                finished_at=room.completed_at,
                solve_time_seconds=bot.solve_time_seconds,
                total_tests=total_tests,
                now=now,
            )

            changed = False
            if participant is not None:
                before = (participant.status, participant.attempts, participant.tests_passed,
                          participant.total_tests)
                participant.status = progress["status"]
                participant.attempts = progress["attempts"]
                participant.tests_passed = progress["tests_passed"]
                participant.total_tests = total_tests
                participant.accuracy = (
                    round(progress["tests_passed"] * 100 / total_tests) if total_tests else 0
                )
                if progress["status"] == ParticipantStatus.COMPLETED.value:
                    participant.completion_time = progress["time_spent"]
                after = (participant.status, participant.attempts, participant.tests_passed,
                         participant.total_tests)
                changed = before != after
                if changed:
                    participant.last_activity = utcnow()
                await self.session.commit()
        except SQLAlchemyError as e:
            return await self._fail(e, "Failed to get demo bot progress")

        # Unchanged rows are not published; subscribers refetch on every event
        if changed and participant is not None:
            await self._publish_participant(participant, EventType.UPDATE)

        return ServiceResult.ok({
            "id": str(bot.id),
            "name": bot.name,
            "username": bot.username,
            "avatar_url": bot.avatar_url,
            "is_connected": True,
            "is_bot": True,
            "total_tests": total_tests,
            **progress,
        })

    async def start_battle(
        self,
        room_id: UUID,
        challenge_id: Optional[UUID] = None,
        requested_by: Optional[UUID] = None,
    ) -> ServiceResult[dict[str, Any]]:
        """Move a waiting room to active.

        Assigns ``challenge_id``, else the room's challenge, else a random
        active one. An already active room is returned unchanged.
        """
        try:
            room = await self._load_room(room_id)
            if room is None:
                return ServiceResult.fail("Room not found", ErrorCode.NOT_FOUND)
            if requested_by is not None and room.host_id != requested_by:
                return ServiceResult.fail("Only the host can start the battle", ErrorCode.FORBIDDEN)
            if room.status == RoomStatus.ACTIVE.value:
                return ServiceResult.ok(room.to_dict())
            if room.status != RoomStatus.WAITING.value:
                return ServiceResult.fail(
                    f"Cannot start a {room.status} room", ErrorCode.INVALID_STATE
                )

            chosen = challenge_id or room.challenge_id
            if chosen is None:
                chosen = await self._random_challenge_id()
                if chosen is None:
                    return ServiceResult.fail("No challenges found", ErrorCode.NOT_FOUND)
            elif await self.session.get(Challenge, chosen) is None:
                return ServiceResult.fail("Challenge not found", ErrorCode.NOT_FOUND)

            started = await self.session.execute(
                update(Room)
                .where(Room.id == room_id, Room.status == RoomStatus.WAITING.value)
                .values(
                    status=RoomStatus.ACTIVE.value,
                    challenge_id=chosen,
                    started_at=utcnow(),
                )
            )
            if started.rowcount == 0:
                # Started concurrently by another request
                await self.session.rollback()
                room = await self._load_room(room_id)
                return ServiceResult.ok(room.to_dict())

            await self.session.execute(
                update(RoomParticipant)
                .where(
                    RoomParticipant.room_id == room_id,
                    RoomParticipant.status == ParticipantStatus.WAITING.value,
                )
                .values(status=ParticipantStatus.CODING.value, last_activity=utcnow())
            )
            await self.session.commit()
            room = await self._load_room(room_id)
        except SQLAlchemyError as e:
            return await self._fail(e, "Failed to start battle")

        record_battle_started()
        logger.info(f"Battle started in room {room.room_code} (challenge {room.challenge_id})")

        await self._publish_room(room, EventType.UPDATE, old={"status": RoomStatus.WAITING.value})
        for participant in room.participants:
            await self._publish_participant(participant, EventType.UPDATE)
        return ServiceResult.ok(room.to_dict())

    async def update_participant_progress(
        self,
        room_id: UUID,
        user_id: UUID,
        updates: dict[str, Any],
    ) -> ServiceResult[dict[str, Any]]:
        values = {k: v for k, v in updates.items() if k in PROGRESS_FIELDS}
        if "status" in values:
            try:
                values["status"] = ParticipantStatus(values["status"]).value
            except ValueError:
                return ServiceResult.fail(
                    f"Invalid participant status: {values['status']}", ErrorCode.VALIDATION_ERROR
                )

        try:
            participant = await self._get_participant(room_id, user_id)
            if participant is None:
                return ServiceResult.fail("Participant not found", ErrorCode.NOT_FOUND)
            for key, value in values.items():
                setattr(participant, key, value)
            participant.last_activity = utcnow()
            await self.session.commit()
        except SQLAlchemyError as e:
            return await self._fail(e, "Failed to update progress")

        await self._publish_participant(participant, EventType.UPDATE)
        return ServiceResult.ok(participant.to_dict())

    async def complete_battle(self, room_id: UUID, winner_id: UUID) -> ServiceResult[dict[str, Any]]:
        """Record the winner. Only the first call on an active room succeeds."""
        try:
            if await self._get_participant(room_id, winner_id) is None:
                room = await self.session.get(Room, room_id)
                if room is None:
                    return ServiceResult.fail("Room not found", ErrorCode.NOT_FOUND)
                return ServiceResult.fail(
                    "Winner must be a participant in this room", ErrorCode.FORBIDDEN
                )

            completed = await self.session.execute(
                update(Room)
                .where(
                    Room.id == room_id,
                    Room.status == RoomStatus.ACTIVE.value,
                    Room.winner_id.is_(None),
                )
                .values(
                    status=RoomStatus.COMPLETED.value,
                    winner_id=winner_id,
                    completed_at=utcnow(),
                )
            )
            if completed.rowcount == 0:
                await self.session.rollback()
                room = await self.session.get(Room, room_id, populate_existing=True)
                if room is not None and room.winner_id is not None:
                    return ServiceResult.fail("Battle already has a winner", ErrorCode.CONFLICT)
                return ServiceResult.fail("Battle is not active", ErrorCode.INVALID_STATE)

            await self.session.commit()
            room = await self._load_room(room_id)
        except SQLAlchemyError as e:
            return await self._fail(e, "Failed to complete battle")

        record_battle_completed()
        logger.info(f"Battle in room {room.room_code} won by {winner_id}")

        await self._publish_room(room, EventType.UPDATE, old={"status": RoomStatus.ACTIVE.value})
        return ServiceResult.ok(room.to_dict())

    async def cancel_room(self, room_id: UUID, user_id: UUID) -> ServiceResult[dict[str, Any]]:
        """Host abandons a room that has not started."""
        try:
            room = await self.session.get(Room, room_id, populate_existing=True)
            if room is None:
                return ServiceResult.fail("Room not found", ErrorCode.NOT_FOUND)
            if room.host_id != user_id:
                return ServiceResult.fail("Only the host can cancel this room", ErrorCode.FORBIDDEN)
            if room.status != RoomStatus.WAITING.value:
                return ServiceResult.fail(
                    "Only waiting rooms can be cancelled", ErrorCode.INVALID_STATE
                )
            room.status = RoomStatus.CANCELLED.value
            await self.session.commit()
        except SQLAlchemyError as e:
            return await self._fail(e, "Failed to cancel room")

        logger.info(f"Room {room.room_code} cancelled by host")
        await self._publish_room(room, EventType.UPDATE, old={"status": RoomStatus.WAITING.value})
        return ServiceResult.ok(room.to_dict())

    async def get_recent_rooms(self, user_id: UUID, limit: int = 5) -> ServiceResult[list[dict[str, Any]]]:
        """Rooms the user joined, most recent join first."""
        try:
            result = await self.session.execute(
                select(Room)
                .join(RoomParticipant, RoomParticipant.room_id == Room.id)
                .where(RoomParticipant.user_id == user_id)
                .order_by(RoomParticipant.joined_at.desc())
                .limit(limit)
                .options(selectinload(Room.challenge), selectinload(Room.winner))
            )
            rooms = result.scalars().all()
        except SQLAlchemyError as e:
            return await self._fail(e, "Failed to get recent rooms")

        return ServiceResult.ok([
            {
                "id": str(room.id),
                "room_code": room.room_code,
                "status": room.status,
                "created_at": isoformat(room.created_at),
                "completed_at": isoformat(room.completed_at),
                "use_demo_bot": room.use_demo_bot,
                "challenge": (
                    {"title": room.challenge.title, "difficulty": room.challenge.difficulty}
                    if room.challenge else None
                ),
                "winner": {"username": room.winner.username} if room.winner else None,
            }
            for room in rooms
        ])

    # Realtime

    async def subscribe_to_room(self, room_id: UUID, callback: ChangeCallback) -> Subscription:
        return await self.hub.subscribe(room_id, callback)

    async def unsubscribe_from_room(self, subscription: Subscription) -> None:
        await self.hub.unsubscribe(subscription)


def simulate_bot_progress(
    started_at: Optional[datetime],
    finished_at: Optional[datetime],
    solve_time_seconds: int,
    total_tests: int,
    now: Optional[datetime] = None,
) -> dict[str, Any]:
    """Derive a bot's progress from elapsed battle time.

    The bot reaches every test case at ``solve_time_seconds``. Clock stops
    when the battle finishes.
    """
    if started_at is None:
        return {
            "status": ParticipantStatus.CODING.value,
            "attempts": 0,
            "tests_passed": 0,
            "time_spent": 0,
            "code_length": 0,
            "last_activity": "Reading the problem...",
        }

    end = as_utc(finished_at) or as_utc(now) or utcnow()
    elapsed = max(0, int((end - as_utc(started_at)).total_seconds()))
    fraction = min(1.0, elapsed / max(1, solve_time_seconds))
    tests_passed = int(fraction * total_tests)

    if fraction >= 1.0:
        status = ParticipantStatus.COMPLETED.value
        activity = "Solved all test cases"
    elif fraction >= 0.75:
        status = ParticipantStatus.TESTING.value
        activity = "Running tests..."
    else:
        status = ParticipantStatus.CODING.value
        activity = "Writing solution..."

    return {
        "status": status,
        "attempts": 0 if elapsed < 60 else 1 + elapsed // 180,
        "tests_passed": tests_passed,
        "time_spent": min(elapsed, solve_time_seconds) if fraction >= 1.0 else elapsed,
        "code_length": int(fraction * 40),
        "last_activity": activity,
    }
