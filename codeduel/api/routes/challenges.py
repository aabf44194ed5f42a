"""API routes for challenges and judging."""

from typing import Any, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query, status
from pydantic import BaseModel, Field

from codeduel.api.deps import get_challenge_service
from codeduel.core.security import get_current_user_id
from codeduel.services.challenge_service import ChallengeService

router = APIRouter()


class ExecuteCodeRequest(BaseModel):
    code: str = Field(..., max_length=50000)
    language: str = "python"


class SubmitCodeRequest(BaseModel):
    room_id: UUID
    challenge_id: Optional[UUID] = None
    code: str = Field(..., max_length=50000)
    execution_results: dict[str, Any] = Field(default_factory=dict)


@router.get("")
async def list_challenges(
    challenges: ChallengeService = Depends(get_challenge_service),
) -> list[dict[str, Any]]:
    result = await challenges.get_challenges()
    return result.unwrap()


@router.get("/random")
async def random_challenge(
    difficulty: Optional[str] = Query(None, pattern="^(easy|medium|hard)$"),
    challenges: ChallengeService = Depends(get_challenge_service),
) -> dict[str, Any]:
    result = await challenges.get_random_challenge(difficulty)
    return result.unwrap()


@router.get("/{challenge_id}")
async def get_challenge(
    challenge_id: UUID,
    challenges: ChallengeService = Depends(get_challenge_service),
) -> dict[str, Any]:
    result = await challenges.get_challenge_by_id(challenge_id)
    return result.unwrap()


@router.post("/{challenge_id}/execute")
async def execute_code(
    challenge_id: UUID,
    request: ExecuteCodeRequest,
    user_id: UUID = Depends(get_current_user_id),
    challenges: ChallengeService = Depends(get_challenge_service),
) -> dict[str, Any]:
    """Run the code against every test case through the remote judge."""
    result = await challenges.execute_code(challenge_id, request.code, request.language)
    return result.unwrap()


@router.post("/submissions", status_code=status.HTTP_201_CREATED)
async def submit_code(
    request: SubmitCodeRequest,
    user_id: UUID = Depends(get_current_user_id),
    challenges: ChallengeService = Depends(get_challenge_service),
) -> dict[str, Any]:
    result = await challenges.submit_code(
        request.room_id,
        user_id,
        request.challenge_id,
        request.code,
        request.execution_results,
    )
    return result.unwrap()
