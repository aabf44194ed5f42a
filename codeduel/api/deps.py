from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from codeduel.battle.judge import SolutionJudge, judge
from codeduel.db.database import get_session
from codeduel.services.challenge_service import ChallengeService
from codeduel.services.realtime import RealtimeHub, get_hub
from codeduel.services.room_service import RoomService


def get_judge() -> SolutionJudge:
    return judge


async def get_room_service(
    session: AsyncSession = Depends(get_session),
    hub: RealtimeHub = Depends(get_hub),
) -> RoomService:
    return RoomService(session, hub)


async def get_challenge_service(
    session: AsyncSession = Depends(get_session),
    solution_judge: SolutionJudge = Depends(get_judge),
) -> ChallengeService:
    return ChallengeService(session, solution_judge)
