"""Unit tests for client-side error mapping."""

import httpx
import pytest

from codeduel.battle.room_code import generate_room_code
from codeduel.client.api import CodeDuelClient
from codeduel.client.services import RoomService, call_api, result_from_response
from codeduel.core.exceptions import SERVICE_UNREACHABLE_MESSAGE


def make_client(handler, token: str | None = "token") -> CodeDuelClient:
    http_client = httpx.AsyncClient(
        transport=httpx.MockTransport(handler), base_url="http://api.test"
    )
    return CodeDuelClient(base_url="http://api.test", token=token, http_client=http_client)


class TestResultFromResponse:
    def test_detail_and_error_code_header(self):
        response = httpx.Response(
            409, json={"detail": "Room is full"}, headers={"X-Error-Code": "room_full"}
        )
        result = result_from_response(response, "Failed to join room")
        assert result.error == "Room is full"
        assert result.code == "room_full"

    def test_status_fallbacks(self):
        assert result_from_response(httpx.Response(401, json={}), "x").code == "not_authenticated"
        assert result_from_response(httpx.Response(404, json={}), "x").code == "not_found"
        assert result_from_response(httpx.Response(500, text="oops"), "Failed").error == "Failed"

    def test_validation_detail_list_uses_fallback(self):
        response = httpx.Response(422, json={"detail": [{"msg": "field required"}]})
        result = result_from_response(response, "Failed to join room")
        assert result.error == "Failed to join room"
        assert result.code == "validation_error"


class TestRoomService:
    @pytest.mark.asyncio
    async def test_unreachable_backend(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("Connection refused", request=request)

        rooms = RoomService(make_client(handler))
        result = await rooms.get_room_details("room-1")

        assert not result.success
        assert result.error == SERVICE_UNREACHABLE_MESSAGE
        assert result.code == "service_unavailable"

    @pytest.mark.asyncio
    async def test_join_requires_sign_in(self):
        calls = []

        def handler(request: httpx.Request) -> httpx.Response:
            calls.append(request)
            return httpx.Response(200, json={})

        result = await RoomService(make_client(handler, token=None)).join_room("ABC123")

        assert result.error == "User not authenticated"
        assert calls == []

    @pytest.mark.asyncio
    async def test_join_validates_length_locally(self):
        calls = []

        def handler(request: httpx.Request) -> httpx.Response:
            calls.append(request)
            return httpx.Response(200, json={})

        result = await RoomService(make_client(handler)).join_room(" abc ")

        assert result.error == "Room code must be 6 characters long"
        assert calls == []

    @pytest.mark.asyncio
    async def test_join_sends_formatted_code_with_token(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["auth"] = request.headers.get("Authorization")
            seen["body"] = request.content
            return httpx.Response(200, json={"id": "r1", "room_code": "ABC123"})

        result = await RoomService(make_client(handler)).join_room(" abc123 ")

        assert result.success
        assert result.data["room_code"] == "ABC123"
        assert seen["auth"] == "Bearer token"
        assert b'"ABC123"' in seen["body"]

    @pytest.mark.asyncio
    async def test_join_accepts_generated_code(self):
        code = generate_room_code()
        calls = []

        def handler(request: httpx.Request) -> httpx.Response:
            calls.append(request)
            return httpx.Response(200, json={"id": "r1", "room_code": code})

        result = await RoomService(make_client(handler)).join_room(code.lower())

        assert result.success
        assert len(calls) == 1

    @pytest.mark.asyncio
    async def test_subscribe_without_channel(self):
        rooms = RoomService(make_client(lambda r: httpx.Response(200, json={})))
        assert await rooms.subscribe_to_room("r1", lambda payload: None) is None
        await rooms.unsubscribe_from_room(None)


class TestCallApi:
    @pytest.mark.asyncio
    async def test_wraps_success(self):
        async def ok():
            return [1, 2]

        result = await call_api(ok(), "Failed")
        assert result.success
        assert result.data == [1, 2]
