"""Unit tests for service results and error mapping."""

import httpx
import pytest
from fastapi import HTTPException
from sqlalchemy.exc import OperationalError

from codeduel.core.exceptions import (
    SERVICE_UNREACHABLE_MESSAGE,
    ErrorCode,
    describe_failure,
    http_error,
    is_network_error,
)
from codeduel.core.results import ServiceResult


class TestServiceResult:
    def test_ok(self):
        result = ServiceResult.ok({"id": "1"})
        assert result.success
        assert result.unwrap() == {"id": "1"}
        assert result.to_dict() == {"success": True, "data": {"id": "1"}}

    def test_fail_carries_code_value(self):
        result = ServiceResult.fail("Room is full", ErrorCode.ROOM_FULL)
        assert not result.success
        assert result.code == "room_full"
        assert result.to_dict() == {"success": False, "error": "Room is full", "code": "room_full"}

    def test_unwrap_raises_http_error(self):
        result = ServiceResult.fail("Room not found", ErrorCode.NOT_FOUND)
        with pytest.raises(HTTPException) as exc_info:
            result.unwrap()
        assert exc_info.value.status_code == 404
        assert exc_info.value.detail == "Room not found"
        assert exc_info.value.headers["X-Error-Code"] == "not_found"


class TestErrorMapping:
    def test_http_error_status_codes(self):
        assert http_error("x", ErrorCode.ALREADY_IN_ROOM).status_code == 409
        assert http_error("x", ErrorCode.FORBIDDEN).status_code == 403
        assert http_error("x", ErrorCode.SERVICE_UNAVAILABLE).status_code == 503
        assert http_error("x", ErrorCode.INVALID_ROOM_CODE).status_code == 400

    def test_unknown_code_falls_back_to_error(self):
        error = http_error("x", "something_else")
        assert error.status_code == 400
        assert error.headers["X-Error-Code"] == "error"

    def test_network_errors_detected(self):
        assert is_network_error(httpx.ConnectError("Connection refused"))
        assert is_network_error(OperationalError("SELECT 1", {}, Exception("could not connect to server")))
        assert is_network_error(RuntimeError("TypeError: Failed to fetch"))
        assert not is_network_error(ValueError("bad value"))

    def test_describe_failure(self):
        assert describe_failure(ConnectionRefusedError(), "Failed to join room") == (
            SERVICE_UNREACHABLE_MESSAGE,
            ErrorCode.SERVICE_UNAVAILABLE,
        )
        assert describe_failure(ValueError("x"), "Failed to join room") == (
            "Failed to join room",
            ErrorCode.ERROR,
        )
