from enum import Enum

import httpx
from fastapi import HTTPException, status
from sqlalchemy.exc import InterfaceError, OperationalError

SERVICE_UNREACHABLE_MESSAGE = (
    "Cannot connect to the CodeDuel service. The backend may be down or unreachable. "
    "Please check your connection and try again."
)

# Fragments that show up in transport failures from drivers and HTTP clients
NETWORK_ERROR_MARKERS = (
    "Failed to fetch",
    "NetworkError",
    "Connection refused",
    "Connect call failed",
    "Name or service not known",
    "Temporary failure in name resolution",
    "could not connect to server",
)


class ErrorCode(str, Enum):
    """Machine-readable failure categories carried by service results."""

    NOT_AUTHENTICATED = "not_authenticated"
    NOT_FOUND = "not_found"
    INVALID_ROOM_CODE = "invalid_room_code"
    ROOM_NOT_AVAILABLE = "room_not_available"
    ALREADY_IN_ROOM = "already_in_room"
    ROOM_FULL = "room_full"
    INVALID_STATE = "invalid_state"
    FORBIDDEN = "forbidden"
    CONFLICT = "conflict"
    SERVICE_UNAVAILABLE = "service_unavailable"
    VALIDATION_ERROR = "validation_error"
    ERROR = "error"


class CodeDuelError(Exception):
    """Base exception for CodeDuel Arena."""

    def __init__(self, message: str, code: ErrorCode = ErrorCode.ERROR):
        self.message = message
        self.code = code
        super().__init__(message)


class JudgeUnavailableError(CodeDuelError):
    """The remote execution API could not be reached or answered badly."""

    def __init__(self, message: str):
        super().__init__(message, ErrorCode.SERVICE_UNAVAILABLE)


def is_network_error(exc: BaseException) -> bool:
    """Check whether a failure means the backend could not be reached."""
    if isinstance(exc, (OperationalError, InterfaceError, httpx.TransportError, ConnectionError)):
        return True
    message = str(exc)
    return any(marker in message for marker in NETWORK_ERROR_MARKERS)


def describe_failure(exc: BaseException, fallback: str) -> tuple[str, ErrorCode]:
    """Collapse an unexpected exception into a user-facing message and code."""
    if is_network_error(exc):
        return SERVICE_UNREACHABLE_MESSAGE, ErrorCode.SERVICE_UNAVAILABLE
    return fallback, ErrorCode.ERROR


ERROR_STATUS_MAP: dict[ErrorCode, int] = {
    ErrorCode.NOT_AUTHENTICATED: status.HTTP_401_UNAUTHORIZED,
    ErrorCode.NOT_FOUND: status.HTTP_404_NOT_FOUND,
    ErrorCode.INVALID_ROOM_CODE: status.HTTP_400_BAD_REQUEST,
    ErrorCode.ROOM_NOT_AVAILABLE: status.HTTP_404_NOT_FOUND,
    ErrorCode.ALREADY_IN_ROOM: status.HTTP_409_CONFLICT,
    ErrorCode.ROOM_FULL: status.HTTP_409_CONFLICT,
    ErrorCode.INVALID_STATE: status.HTTP_409_CONFLICT,
    ErrorCode.FORBIDDEN: status.HTTP_403_FORBIDDEN,
    ErrorCode.CONFLICT: status.HTTP_409_CONFLICT,
    ErrorCode.SERVICE_UNAVAILABLE: status.HTTP_503_SERVICE_UNAVAILABLE,
    ErrorCode.VALIDATION_ERROR: status.HTTP_400_BAD_REQUEST,
    ErrorCode.ERROR: status.HTTP_400_BAD_REQUEST,
}


def http_error(message: str, code: ErrorCode | str = ErrorCode.ERROR) -> HTTPException:
    """Build the HTTP error for a failed service result."""
    try:
        error_code = ErrorCode(code)
    except ValueError:
        error_code = ErrorCode.ERROR
    return HTTPException(
        status_code=ERROR_STATUS_MAP[error_code],
        detail=message,
        headers={"X-Error-Code": error_code.value},
    )


# HTTP Exceptions
def unauthorized(detail: str = "Unauthorized") -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer", "X-Error-Code": ErrorCode.NOT_AUTHENTICATED.value},
    )
