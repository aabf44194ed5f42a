"""Client-side room and challenge services.

Every call returns a ``ServiceResult``. HTTP failures carry the server's
message and error code; transport failures collapse to the generic
service-unreachable message.
"""

import logging
from typing import Any, Awaitable, Optional, TypeVar
from uuid import UUID

import httpx

from codeduel.battle.room_code import INVALID_CODE_LENGTH, ROOM_CODE_LENGTH, format_room_code
from codeduel.client.api import CodeDuelClient
from codeduel.client.realtime import PayloadCallback, RealtimeChannel, RoomSubscription
from codeduel.core.exceptions import ErrorCode, describe_failure
from codeduel.core.results import ServiceResult

logger = logging.getLogger(__name__)

T = TypeVar("T")

NOT_AUTHENTICATED = "User not authenticated"


def result_from_response(response: httpx.Response, fallback: str) -> ServiceResult:
    """Map an error response back to a failed result."""
    message = fallback
    try:
        detail = response.json().get("detail")
    except ValueError:
        detail = None
    if isinstance(detail, str) and detail:
        message = detail

    code = response.headers.get("X-Error-Code")
    if code is None:
        if response.status_code == 401:
            code = ErrorCode.NOT_AUTHENTICATED.value
        elif response.status_code == 404:
            code = ErrorCode.NOT_FOUND.value
        elif response.status_code == 422:
            code = ErrorCode.VALIDATION_ERROR.value
        else:
            code = ErrorCode.ERROR.value
    return ServiceResult.fail(message, code)


async def call_api(request: Awaitable[T], fallback: str) -> ServiceResult[T]:
    try:
        return ServiceResult.ok(await request)
    except httpx.HTTPStatusError as e:
        return result_from_response(e.response, fallback)
    except (httpx.HTTPError, ConnectionError, OSError) as e:
        logger.warning(f"{fallback}: {e}")
        return ServiceResult.fail(*describe_failure(e, fallback))


class RoomService:
    def __init__(self, client: CodeDuelClient, channel: Optional[RealtimeChannel] = None):
        self.client = client
        self.channel = channel

    def _require_auth(self) -> Optional[ServiceResult]:
        if not self.client.is_authenticated:
            return ServiceResult.fail(NOT_AUTHENTICATED, ErrorCode.NOT_AUTHENTICATED)
        return None

    async def create_room(
        self,
        challenge_id: UUID | str | None = None,
        use_demo_bot: bool = False,
    ) -> ServiceResult[dict[str, Any]]:
        denied = self._require_auth()
        if denied:
            return denied
        return await call_api(
            self.client.create_room(challenge_id, use_demo_bot), "Failed to create room"
        )

    async def join_room(self, room_code: str) -> ServiceResult[dict[str, Any]]:
        denied = self._require_auth()
        if denied:
            return denied
        formatted = format_room_code(room_code)
        if len(formatted) != ROOM_CODE_LENGTH:
            return ServiceResult.fail(
                INVALID_CODE_LENGTH, ErrorCode.INVALID_ROOM_CODE
            )
        return await call_api(self.client.join_room(formatted), "Failed to join room")

    async def get_room_details(self, room_id: UUID | str) -> ServiceResult[dict[str, Any]]:
        return await call_api(self.client.get_room(room_id), "Failed to get room details")

    async def get_room_details_by_code(self, room_code: str) -> ServiceResult[dict[str, Any]]:
        return await call_api(
            self.client.get_room_by_code(room_code.upper().strip()),
            "Failed to get room details",
        )

    async def get_demo_bot_progress(self, room_id: UUID | str) -> ServiceResult[dict[str, Any]]:
        return await call_api(
            self.client.get_demo_bot_progress(room_id), "Failed to get demo bot progress"
        )

    async def start_battle(
        self,
        room_id: UUID | str,
        challenge_id: UUID | str | None = None,
    ) -> ServiceResult[dict[str, Any]]:
        return await call_api(
            self.client.start_battle(room_id, challenge_id), "Failed to start battle"
        )

    async def update_participant_progress(
        self,
        room_id: UUID | str,
        updates: dict[str, Any],
    ) -> ServiceResult[dict[str, Any]]:
        denied = self._require_auth()
        if denied:
            return denied
        return await call_api(
            self.client.update_progress(room_id, updates), "Failed to update progress"
        )

    async def complete_battle(self, room_id: UUID | str) -> ServiceResult[dict[str, Any]]:
        """Claim the win for the signed-in user."""
        return await call_api(self.client.complete_battle(room_id), "Failed to complete battle")

    async def cancel_room(self, room_id: UUID | str) -> ServiceResult[dict[str, Any]]:
        return await call_api(self.client.cancel_room(room_id), "Failed to cancel room")

    async def get_recent_rooms(self, limit: int = 5) -> ServiceResult[list[dict[str, Any]]]:
        return await call_api(self.client.get_recent_rooms(limit), "Failed to get recent rooms")

    async def subscribe_to_room(
        self,
        room_id: UUID | str,
        callback: PayloadCallback,
    ) -> Optional[RoomSubscription]:
        if self.channel is None:
            return None
        if not self.channel.is_connected:
            await self.channel.connect()
        return await self.channel.subscribe_to_room(room_id, callback)

    async def unsubscribe_from_room(self, subscription: Optional[RoomSubscription]) -> None:
        if self.channel is not None and subscription is not None:
            await self.channel.unsubscribe_from_room(subscription)


class ChallengeService:
    def __init__(self, client: CodeDuelClient):
        self.client = client

    async def get_challenges(self) -> ServiceResult[list[dict[str, Any]]]:
        return await call_api(self.client.list_challenges(), "Failed to load challenges")

    async def get_challenge_by_id(self, challenge_id: UUID | str) -> ServiceResult[dict[str, Any]]:
        return await call_api(self.client.get_challenge(challenge_id), "Failed to load challenge")

    async def get_random_challenge(self, difficulty: str | None = None) -> ServiceResult[dict[str, Any]]:
        return await call_api(
            self.client.get_random_challenge(difficulty), "Failed to load random challenge"
        )

    async def execute_code(
        self,
        challenge_id: UUID | str,
        code: str,
        language: str = "python",
    ) -> ServiceResult[dict[str, Any]]:
        return await call_api(
            self.client.execute_code(challenge_id, code, language), "Failed to execute code"
        )

    async def submit_code(
        self,
        room_id: UUID | str,
        challenge_id: UUID | str | None,
        code: str,
        execution_results: dict[str, Any],
    ) -> ServiceResult[dict[str, Any]]:
        if not self.client.is_authenticated:
            return ServiceResult.fail(NOT_AUTHENTICATED, ErrorCode.NOT_AUTHENTICATED)
        return await call_api(
            self.client.submit_code(room_id, challenge_id, code, execution_results),
            "Failed to submit code",
        )
