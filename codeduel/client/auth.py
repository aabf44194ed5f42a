import logging
from typing import Any, Optional

from codeduel.client.api import CodeDuelClient
from codeduel.client.services import call_api
from codeduel.core.exceptions import ErrorCode
from codeduel.core.results import ServiceResult

logger = logging.getLogger(__name__)

PASSWORD_MISMATCH = "Passwords do not match"


class AuthContext:
    """Signed-in user state shared by the lobby and battle views.

    ``auth_error`` holds the message of the last failed call until
    ``clear_error`` is called or another call succeeds.
    """

    def __init__(self, client: CodeDuelClient):
        self.client = client
        self.user: Optional[dict[str, Any]] = None
        self.user_profile: Optional[dict[str, Any]] = None
        self.auth_error: Optional[str] = None
        self.loading = False

    def _set_session(self, profile: dict[str, Any]) -> None:
        self.user = {"id": profile["id"], "email": profile.get("email")}
        self.user_profile = profile
        self.auth_error = None

    async def initialize(self) -> None:
        """Restore the profile when the client already holds a token."""
        if not self.client.is_authenticated:
            return
        self.loading = True
        try:
            result = await call_api(self.client.get_me(), "Failed to load profile")
            if result.success:
                self._set_session(result.data)
            else:
                await self.client.sign_out()
                self.user = None
                self.user_profile = None
        finally:
            self.loading = False

    async def sign_in(self, email: str, password: str) -> ServiceResult[dict[str, Any]]:
        self.loading = True
        try:
            result = await call_api(self.client.sign_in(email, password), "Failed to sign in")
        finally:
            self.loading = False
        if result.success:
            self._set_session(result.data["user"])
        else:
            self.auth_error = result.error
        return result

    async def sign_up(
        self,
        email: str,
        password: str,
        confirm_password: str,
        username: str,
        full_name: Optional[str] = None,
    ) -> ServiceResult[dict[str, Any]]:
        if password != confirm_password:
            self.auth_error = PASSWORD_MISMATCH
            return ServiceResult.fail(PASSWORD_MISMATCH, ErrorCode.VALIDATION_ERROR)

        self.loading = True
        try:
            result = await call_api(
                self.client.sign_up(email, password, username, full_name),
                "Failed to create account",
            )
        finally:
            self.loading = False
        if result.success:
            self._set_session(result.data["user"])
        else:
            self.auth_error = result.error
        return result

    async def sign_out(self) -> ServiceResult[None]:
        await self.client.sign_out()
        self.user = None
        self.user_profile = None
        self.auth_error = None
        return ServiceResult.ok()

    def clear_error(self) -> None:
        self.auth_error = None

    @property
    def is_authenticated(self) -> bool:
        return self.user is not None

    @property
    def user_id(self) -> Optional[str]:
        return self.user["id"] if self.user else None
