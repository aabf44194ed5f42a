from typing import Any
from uuid import UUID

import httpx


class CodeDuelClient:
    """HTTP client for the CodeDuel Arena API."""

    def __init__(
        self,
        base_url: str = "http://localhost:8000",
        token: str | None = None,
        http_client: httpx.AsyncClient | None = None,
    ):
        self.base_url = base_url.rstrip("/")
        self._token = token
        self._client = http_client or httpx.AsyncClient(base_url=self.base_url, timeout=30.0)

    async def __aenter__(self) -> "CodeDuelClient":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    async def close(self) -> None:
        """Close the HTTP client."""
        await self._client.aclose()

    def _headers(self) -> dict[str, str]:
        """Get headers for authenticated requests."""
        if self._token:
            return {"Authorization": f"Bearer {self._token}"}
        return {}

    async def _request(self, method: str, path: str, **kwargs: Any) -> Any:
        response = await self._client.request(method, path, headers=self._headers(), **kwargs)
        response.raise_for_status()
        return response.json()

    # Auth

    async def sign_up(
        self,
        email: str,
        password: str,
        username: str,
        full_name: str | None = None,
    ) -> dict[str, Any]:
        data = await self._request(
            "POST",
            "/api/auth/signup",
            json={"email": email, "password": password, "username": username, "full_name": full_name},
        )
        self._token = data["access_token"]
        return data

    async def sign_in(self, email: str, password: str) -> dict[str, Any]:
        data = await self._request(
            "POST", "/api/auth/signin", json={"email": email, "password": password}
        )
        self._token = data["access_token"]
        return data

    async def sign_out(self) -> None:
        """Forget the token. The server keeps no session state."""
        self._token = None

    async def get_me(self) -> dict[str, Any]:
        return await self._request("GET", "/api/auth/me")

    # Rooms

    async def create_room(
        self,
        challenge_id: UUID | str | None = None,
        use_demo_bot: bool = False,
    ) -> dict[str, Any]:
        return await self._request(
            "POST",
            "/api/rooms",
            json={
                "challenge_id": str(challenge_id) if challenge_id else None,
                "use_demo_bot": use_demo_bot,
            },
        )

    async def join_room(self, room_code: str) -> dict[str, Any]:
        return await self._request("POST", "/api/rooms/join", json={"room_code": room_code})

    async def get_recent_rooms(self, limit: int = 5) -> list[dict[str, Any]]:
        return await self._request("GET", "/api/rooms/recent", params={"limit": limit})

    async def get_room(self, room_id: UUID | str) -> dict[str, Any]:
        return await self._request("GET", f"/api/rooms/{room_id}")

    async def get_room_by_code(self, room_code: str) -> dict[str, Any]:
        return await self._request("GET", f"/api/rooms/code/{room_code}")

    async def start_battle(
        self,
        room_id: UUID | str,
        challenge_id: UUID | str | None = None,
    ) -> dict[str, Any]:
        return await self._request(
            "POST",
            f"/api/rooms/{room_id}/start",
            json={"challenge_id": str(challenge_id) if challenge_id else None},
        )

    async def update_progress(self, room_id: UUID | str, updates: dict[str, Any]) -> dict[str, Any]:
        return await self._request("PATCH", f"/api/rooms/{room_id}/progress", json=updates)

    async def complete_battle(self, room_id: UUID | str) -> dict[str, Any]:
        return await self._request("POST", f"/api/rooms/{room_id}/complete")

    async def cancel_room(self, room_id: UUID | str) -> dict[str, Any]:
        return await self._request("POST", f"/api/rooms/{room_id}/cancel")

    async def get_demo_bot_progress(self, room_id: UUID | str) -> dict[str, Any]:
        return await self._request("GET", f"/api/rooms/{room_id}/demo-bot-progress")

    # Challenges

    async def list_challenges(self) -> list[dict[str, Any]]:
        return await self._request("GET", "/api/challenges")

    async def get_random_challenge(self, difficulty: str | None = None) -> dict[str, Any]:
        params = {"difficulty": difficulty} if difficulty else None
        return await self._request("GET", "/api/challenges/random", params=params)

    async def get_challenge(self, challenge_id: UUID | str) -> dict[str, Any]:
        return await self._request("GET", f"/api/challenges/{challenge_id}")

    async def execute_code(
        self,
        challenge_id: UUID | str,
        code: str,
        language: str = "python",
    ) -> dict[str, Any]:
        return await self._request(
            "POST",
            f"/api/challenges/{challenge_id}/execute",
            json={"code": code, "language": language},
        )

    async def submit_code(
        self,
        room_id: UUID | str,
        challenge_id: UUID | str | None,
        code: str,
        execution_results: dict[str, Any],
    ) -> dict[str, Any]:
        return await self._request(
            "POST",
            "/api/challenges/submissions",
            json={
                "room_id": str(room_id),
                "challenge_id": str(challenge_id) if challenge_id else None,
                "code": code,
                "execution_results": execution_results,
            },
        )

    @property
    def token(self) -> str | None:
        """Get the current JWT token."""
        return self._token

    @property
    def is_authenticated(self) -> bool:
        return self._token is not None

    @property
    def ws_url(self) -> str:
        """Get the change feed URL with token."""
        if not self._token:
            raise ValueError("Not authenticated")
        ws_base = self.base_url.replace("http://", "ws://").replace("https://", "wss://")
        return f"{ws_base}/api/realtime?token={self._token}"
