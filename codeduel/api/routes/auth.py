from typing import Any, Optional

from fastapi import APIRouter, Depends, status
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession

from codeduel.core.security import get_current_user
from codeduel.db.database import get_session
from codeduel.db.models.user import UserProfile
from codeduel.services.auth_service import AuthService

router = APIRouter()


class SignUpRequest(BaseModel):
    email: str = Field(..., min_length=3, max_length=255, pattern=r"^[^@\s]+@[^@\s]+$")
    password: str = Field(..., min_length=6, max_length=128)
    username: str = Field(..., min_length=3, max_length=50, pattern=r"^[A-Za-z0-9_.-]+$")
    full_name: Optional[str] = Field(None, max_length=100)


class SignInRequest(BaseModel):
    email: str
    password: str


class SessionResponse(BaseModel):
    user: dict[str, Any]
    access_token: str
    token_type: str = "bearer"
    expires_in: int


@router.post("/signup", response_model=SessionResponse, status_code=status.HTTP_201_CREATED)
async def sign_up(
    request: SignUpRequest,
    session: AsyncSession = Depends(get_session),
) -> SessionResponse:
    """Create an account and return a session token."""
    result = await AuthService(session).sign_up(
        email=request.email,
        password=request.password,
        username=request.username,
        full_name=request.full_name,
    )
    return SessionResponse(**result.unwrap())


@router.post("/signin", response_model=SessionResponse)
async def sign_in(
    request: SignInRequest,
    session: AsyncSession = Depends(get_session),
) -> SessionResponse:
    result = await AuthService(session).sign_in(request.email, request.password)
    return SessionResponse(**result.unwrap())


@router.post("/signout")
async def sign_out(user: UserProfile = Depends(get_current_user)) -> dict[str, bool]:
    """Tokens are stateless; the client discards its copy."""
    return {"success": True}


@router.get("/me")
async def get_me(user: UserProfile = Depends(get_current_user)) -> dict[str, Any]:
    return user.to_dict()
