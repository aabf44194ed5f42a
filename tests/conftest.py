import json
from typing import Any, AsyncGenerator, Optional

import httpx
import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from codeduel.api.deps import get_judge
from codeduel.battle.challenges import seed_defaults
from codeduel.battle.executor import RemoteExecutor
from codeduel.battle.judge import SolutionJudge, render_expected
from codeduel.core.security import create_access_token, hash_password
from codeduel.db.database import Base, get_session
from codeduel.db.models import UserProfile
from codeduel.main import app
from codeduel.services.realtime import RealtimeHub, get_hub


TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"
TEST_PASSWORD = "hunter22"
JUDGE_URL = "http://judge.test/api/v2/execute"


class FakeJudgeAPI:
    """Stands in for the remote execute endpoint.

    Answers each request with the stdout registered for its stdin.
    """

    def __init__(self):
        self.requests: list[dict[str, Any]] = []
        self.outputs: dict[str, str] = {}
        self.stderr = ""
        self.status_code = 200
        self.fail_on: set[str] = set()

    def solve(self, test_cases: list[dict[str, Any]], wrong: tuple[int, ...] = ()) -> None:
        """Answer every test case correctly, except the indices in ``wrong``."""
        for index, case in enumerate(test_cases):
            output = render_expected(case["expected"])
            if index in wrong:
                output = "WRONG"
            self.outputs[json.dumps(case["input"])] = output

    def handler(self, request: httpx.Request) -> httpx.Response:
        payload = json.loads(request.content)
        self.requests.append(payload)
        if payload["stdin"] in self.fail_on:
            raise httpx.ConnectError("Connection refused", request=request)
        if self.status_code != 200:
            return httpx.Response(self.status_code, json={"message": "Too many requests"})

        stdout = self.outputs.get(payload["stdin"], "")
        stdout = stdout + "\n" if stdout else ""
        return httpx.Response(
            200,
            json={
                "language": payload["language"],
                "version": payload["version"],
                "run": {
                    "stdout": stdout,
                    "stderr": self.stderr,
                    "output": stdout + self.stderr,
                    "code": 1 if self.stderr else 0,
                },
            },
        )


@pytest.fixture
def judge_api() -> FakeJudgeAPI:
    return FakeJudgeAPI()


@pytest_asyncio.fixture
async def solution_judge(judge_api) -> AsyncGenerator[SolutionJudge, None]:
    """Judge wired to the fake execute endpoint, with no pause between cases."""
    http_client = httpx.AsyncClient(transport=httpx.MockTransport(judge_api.handler))
    executor = RemoteExecutor(api_url=JUDGE_URL, client=http_client)
    yield SolutionJudge(executor=executor, request_delay=0)
    await executor.close()


@pytest_asyncio.fixture
async def test_engine():
    """Create a test database engine."""
    engine = create_async_engine(
        TEST_DATABASE_URL,
        echo=False,
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest_asyncio.fixture
async def test_session(test_engine) -> AsyncGenerator[AsyncSession, None]:
    """Create a test database session."""
    async_session_factory = async_sessionmaker(
        test_engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )
    async with async_session_factory() as session:
        yield session


@pytest_asyncio.fixture
async def seeded(test_session) -> AsyncSession:
    """Session with the built-in challenges and demo bots loaded."""
    await seed_defaults(test_session)
    await test_session.commit()
    return test_session


@pytest_asyncio.fixture
async def hub() -> AsyncGenerator[RealtimeHub, None]:
    """Running hub; tests call ``join()`` to wait for delivery."""
    realtime_hub = RealtimeHub()
    await realtime_hub.start()
    yield realtime_hub
    await realtime_hub.stop()


@pytest.fixture(scope="session")
def password_hash() -> str:
    # bcrypt is slow; hash once per run
    return hash_password(TEST_PASSWORD)


@pytest.fixture
def make_user(test_session, password_hash):
    """Factory inserting a user profile; returns (profile, bearer token)."""

    async def _make(username: str, email: Optional[str] = None) -> tuple[UserProfile, str]:
        profile = UserProfile(
            email=email or f"{username}@example.com",
            password_hash=password_hash,
            username=username,
            full_name=username.title(),
        )
        test_session.add(profile)
        await test_session.commit()
        return profile, create_access_token(data={"sub": str(profile.id)})

    return _make


def auth_headers(token: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {token}"}


@pytest_asyncio.fixture
async def client(test_session, solution_judge, hub) -> AsyncGenerator[AsyncClient, None]:
    """Create a test HTTP client."""

    async def override_get_session():
        yield test_session

    app.dependency_overrides[get_session] = override_get_session
    app.dependency_overrides[get_judge] = lambda: solution_judge
    app.dependency_overrides[get_hub] = lambda: hub

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()
