"""Challenge lookup, judging and the submission log."""

import logging
from typing import Any, Optional
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from codeduel.battle.judge import SolutionJudge, judge as default_judge
from codeduel.config import settings
from codeduel.core.exceptions import ErrorCode, describe_failure
from codeduel.core.metrics import record_submission
from codeduel.core.results import ServiceResult
from codeduel.db.models.challenge import Challenge, CodeSubmission, Difficulty
from codeduel.db.models.room import Room, RoomParticipant

logger = logging.getLogger(__name__)


class ChallengeService:
    def __init__(self, session: AsyncSession, judge: Optional[SolutionJudge] = None):
        self.session = session
        self.judge = judge or default_judge

    async def get_challenges(self) -> ServiceResult[list[dict[str, Any]]]:
        """Active challenges, newest first."""
        try:
            result = await self.session.execute(
                select(Challenge)
                .where(Challenge.is_active.is_(True))
                .order_by(Challenge.created_at.desc())
            )
            challenges = result.scalars().all()
        except SQLAlchemyError as e:
            return ServiceResult.fail(*describe_failure(e, "Failed to load challenges"))
        return ServiceResult.ok([c.to_dict() for c in challenges])

    async def _get_active(self, challenge_id: UUID) -> Optional[Challenge]:
        result = await self.session.execute(
            select(Challenge).where(Challenge.id == challenge_id, Challenge.is_active.is_(True))
        )
        return result.scalar_one_or_none()

    async def get_challenge_by_id(self, challenge_id: UUID) -> ServiceResult[dict[str, Any]]:
        try:
            challenge = await self._get_active(challenge_id)
        except SQLAlchemyError as e:
            return ServiceResult.fail(*describe_failure(e, "Failed to load challenge"))
        if challenge is None:
            return ServiceResult.fail("Challenge not found", ErrorCode.NOT_FOUND)
        return ServiceResult.ok(challenge.to_dict())

    async def get_random_challenge(
        self,
        difficulty: Optional[str] = None,
    ) -> ServiceResult[dict[str, Any]]:
        if difficulty is not None:
            try:
                difficulty = Difficulty(difficulty.lower()).value
            except ValueError:
                return ServiceResult.fail(
                    f"Unknown difficulty: {difficulty}", ErrorCode.VALIDATION_ERROR
                )

        stmt = select(Challenge).where(Challenge.is_active.is_(True))
        if difficulty:
            stmt = stmt.where(Challenge.difficulty == difficulty)
        try:
            result = await self.session.execute(stmt.order_by(func.random()).limit(1))
            challenge = result.scalar_one_or_none()
        except SQLAlchemyError as e:
            return ServiceResult.fail(*describe_failure(e, "Failed to load random challenge"))
        if challenge is None:
            return ServiceResult.fail("No challenges found", ErrorCode.NOT_FOUND)
        return ServiceResult.ok(challenge.to_dict())

    async def execute_code(
        self,
        challenge_id: UUID,
        code: str,
        language: str = "python",
    ) -> ServiceResult[dict[str, Any]]:
        """Judge ``code`` against the challenge's test cases.

        A judged submission is a successful call even when tests fail or a
        pre-check rejects the code; ``data["success"]`` carries the verdict.
        """
        if language.lower() != settings.judge_language:
            return ServiceResult.fail(
                f"Unsupported language: {language}", ErrorCode.VALIDATION_ERROR
            )

        try:
            challenge = await self._get_active(challenge_id)
        except SQLAlchemyError as e:
            return ServiceResult.fail(*describe_failure(e, "Failed to load challenge"))
        if challenge is None:
            return ServiceResult.fail("Challenge not found", ErrorCode.NOT_FOUND)

        result = await self.judge.judge_solution(
            code,
            list(challenge.test_cases or []),
            challenge.function_signature,
        )
        logger.info(
            f"Judged code for challenge {challenge.title}: "
            f"{result.total_passed}/{result.total_tests} passed"
        )
        return ServiceResult.ok(result.to_dict())

    async def submit_code(
        self,
        room_id: UUID,
        user_id: UUID,
        challenge_id: Optional[UUID],
        code: str,
        execution_results: dict[str, Any],
    ) -> ServiceResult[dict[str, Any]]:
        """Append a submission to the room's log."""
        try:
            if await self.session.get(Room, room_id) is None:
                return ServiceResult.fail("Room not found", ErrorCode.NOT_FOUND)
            member = await self.session.scalar(
                select(RoomParticipant.id).where(
                    RoomParticipant.room_id == room_id,
                    RoomParticipant.user_id == user_id,
                )
            )
            if member is None:
                return ServiceResult.fail(
                    "You are not a participant in this room", ErrorCode.FORBIDDEN
                )

            submission = CodeSubmission(
                room_id=room_id,
                user_id=user_id,
                challenge_id=challenge_id,
                code=code,
                execution_time=execution_results.get("execution_time"),
                test_results=execution_results.get("test_cases") or [],
                is_successful=bool(execution_results.get("success")),
                error_message=execution_results.get("error"),
            )
            self.session.add(submission)
            await self.session.commit()
        except SQLAlchemyError as e:
            await self.session.rollback()
            return ServiceResult.fail(*describe_failure(e, "Failed to submit code"))

        record_submission("passed" if submission.is_successful else "failed")
        return ServiceResult.ok(submission.to_dict())
