"""Room creation and join orchestration."""

import logging
from typing import Any, Optional
from uuid import UUID

from codeduel.battle.room_code import normalize_room_code_input
from codeduel.client.auth import AuthContext
from codeduel.client.routes import BATTLE_PATH, Navigator
from codeduel.client.services import RoomService
from codeduel.core.exceptions import ErrorCode
from codeduel.core.results import ServiceResult

logger = logging.getLogger(__name__)

ALREADY_IN_ROOM = "You are already in this room"


class RoomCodeInput:
    """Room code text field.

    Keeps the value upper-case alphanumeric; edits that would exceed six
    characters are ignored.
    """

    def __init__(self):
        self.value = ""

    def change(self, raw: str) -> str:
        normalized = normalize_room_code_input(raw)
        if normalized is not None:
            self.value = normalized
        return self.value

    def clear(self) -> None:
        self.value = ""


class Lobby:
    def __init__(self, auth: AuthContext, rooms: RoomService, navigator: Navigator):
        self.auth = auth
        self.rooms = rooms
        self.navigator = navigator
        self.code_input = RoomCodeInput()
        self.recent_rooms: list[dict[str, Any]] = []
        self.is_loading = False
        self.loading_message = ""
        self.loading_sub_message = ""
        self.error: Optional[str] = None

    def on_code_change(self, raw: str) -> str:
        value = self.code_input.change(raw)
        self.error = None
        return value

    async def load_recent_rooms(self) -> None:
        if not self.auth.is_authenticated:
            self.recent_rooms = []
            return
        result = await self.rooms.get_recent_rooms()
        if result.success:
            self.recent_rooms = result.data or []
        else:
            logger.warning(f"Failed to load recent rooms: {result.error}")

    def _enter_room(self, room: dict[str, Any], message: str) -> None:
        self.is_loading = True
        self.loading_message = message
        self.loading_sub_message = f"Room Code: {room.get('room_code')}"
        self.navigator.navigate(BATTLE_PATH, {"room_data": room})

    async def create_room(
        self,
        use_demo_bot: bool = False,
        challenge_id: UUID | str | None = None,
    ) -> ServiceResult[dict[str, Any]]:
        if not self.auth.is_authenticated:
            self.error = "Please sign in to create a room"
            return ServiceResult.fail(self.error, ErrorCode.NOT_AUTHENTICATED)

        self.error = None
        result = await self.rooms.create_room(challenge_id, use_demo_bot)
        if result.success:
            self._enter_room(result.data, "Room Created Successfully!")
        else:
            self.error = result.error or "Failed to create room"
        return result

    async def join_room(self, room_code: Optional[str] = None) -> ServiceResult[dict[str, Any]]:
        """Join by code; a room the user already occupies is entered directly."""
        if not self.auth.is_authenticated:
            self.error = "Please sign in to join a room"
            return ServiceResult.fail(self.error, ErrorCode.NOT_AUTHENTICATED)

        code = (room_code if room_code is not None else self.code_input.value).strip()
        if not code:
            self.error = "Please enter a room code"
            return ServiceResult.fail(self.error, ErrorCode.INVALID_ROOM_CODE)

        self.error = None
        result = await self.rooms.join_room(code)
        if result.success:
            self._enter_room(result.data, "Joining Room...")
            return result

        if result.code == ErrorCode.ALREADY_IN_ROOM.value or result.error == ALREADY_IN_ROOM:
            details = await self.rooms.get_room_details_by_code(code)
            if details.success:
                self._enter_room(details.data, "Rejoining Room...")
            else:
                self.error = details.error or "Failed to load room details"
            return details

        self.error = result.error or "Failed to join room"
        return result

    async def rejoin_room(self, room_code: str) -> ServiceResult[dict[str, Any]]:
        """Re-enter a room picked from the recent rooms list."""
        return await self.join_room(room_code)
