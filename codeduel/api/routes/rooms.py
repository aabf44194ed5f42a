"""API routes for battle rooms."""

from typing import Any, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query, status
from pydantic import BaseModel, Field

from codeduel.api.deps import get_room_service
from codeduel.core.security import get_current_user_id
from codeduel.db.models.room import ParticipantStatus
from codeduel.services.room_service import RoomService

router = APIRouter()


class CreateRoomRequest(BaseModel):
    challenge_id: Optional[UUID] = None
    use_demo_bot: bool = False


class JoinRoomRequest(BaseModel):
    room_code: str = Field(..., min_length=1, max_length=32)


class StartBattleRequest(BaseModel):
    challenge_id: Optional[UUID] = None


class ProgressUpdateRequest(BaseModel):
    """Participant progress; omitted fields are left unchanged."""
    current_code: Optional[str] = Field(None, max_length=50000)
    attempts: Optional[int] = Field(None, ge=0)
    tests_passed: Optional[int] = Field(None, ge=0)
    total_tests: Optional[int] = Field(None, ge=0)
    accuracy: Optional[int] = Field(None, ge=0, le=100)
    status: Optional[ParticipantStatus] = None
    completion_time: Optional[int] = Field(None, ge=0)


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_room(
    request: CreateRoomRequest,
    user_id: UUID = Depends(get_current_user_id),
    rooms: RoomService = Depends(get_room_service),
) -> dict[str, Any]:
    """Create a room with the caller as host."""
    result = await rooms.create_room(user_id, request.challenge_id, request.use_demo_bot)
    return result.unwrap()


@router.post("/join")
async def join_room(
    request: JoinRoomRequest,
    user_id: UUID = Depends(get_current_user_id),
    rooms: RoomService = Depends(get_room_service),
) -> dict[str, Any]:
    result = await rooms.join_room(user_id, request.room_code)
    return result.unwrap()


@router.get("/recent")
async def recent_rooms(
    limit: int = Query(5, ge=1, le=50),
    user_id: UUID = Depends(get_current_user_id),
    rooms: RoomService = Depends(get_room_service),
) -> list[dict[str, Any]]:
    """Rooms the caller joined, newest first."""
    result = await rooms.get_recent_rooms(user_id, limit)
    return result.unwrap()


@router.get("/code/{room_code}")
async def get_room_by_code(
    room_code: str,
    user_id: UUID = Depends(get_current_user_id),
    rooms: RoomService = Depends(get_room_service),
) -> dict[str, Any]:
    result = await rooms.get_room_details_by_code(room_code)
    return result.unwrap()


@router.get("/{room_id}")
async def get_room(
    room_id: UUID,
    user_id: UUID = Depends(get_current_user_id),
    rooms: RoomService = Depends(get_room_service),
) -> dict[str, Any]:
    result = await rooms.get_room_details(room_id)
    return result.unwrap()


@router.post("/{room_id}/start")
async def start_battle(
    room_id: UUID,
    request: StartBattleRequest,
    user_id: UUID = Depends(get_current_user_id),
    rooms: RoomService = Depends(get_room_service),
) -> dict[str, Any]:
    """Start the battle. Host only."""
    result = await rooms.start_battle(room_id, request.challenge_id, requested_by=user_id)
    return result.unwrap()


@router.patch("/{room_id}/progress")
async def update_progress(
    room_id: UUID,
    request: ProgressUpdateRequest,
    user_id: UUID = Depends(get_current_user_id),
    rooms: RoomService = Depends(get_room_service),
) -> dict[str, Any]:
    updates = request.model_dump(exclude_none=True)
    if "status" in updates:
        updates["status"] = updates["status"].value
    result = await rooms.update_participant_progress(room_id, user_id, updates)
    return result.unwrap()


@router.post("/{room_id}/complete")
async def complete_battle(
    room_id: UUID,
    user_id: UUID = Depends(get_current_user_id),
    rooms: RoomService = Depends(get_room_service),
) -> dict[str, Any]:
    """Claim the win for the caller."""
    result = await rooms.complete_battle(room_id, user_id)
    return result.unwrap()


@router.post("/{room_id}/cancel")
async def cancel_room(
    room_id: UUID,
    user_id: UUID = Depends(get_current_user_id),
    rooms: RoomService = Depends(get_room_service),
) -> dict[str, Any]:
    result = await rooms.cancel_room(room_id, user_id)
    return result.unwrap()


@router.get("/{room_id}/demo-bot-progress")
async def demo_bot_progress(
    room_id: UUID,
    user_id: UUID = Depends(get_current_user_id),
    rooms: RoomService = Depends(get_room_service),
) -> dict[str, Any]:
    result = await rooms.get_demo_bot_progress(room_id)
    return result.unwrap()
