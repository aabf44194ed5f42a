from datetime import datetime, timedelta, timezone
from typing import TYPE_CHECKING, Any
from uuid import UUID

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt
from passlib.context import CryptContext
from sqlalchemy.ext.asyncio import AsyncSession

from codeduel.config import settings
from codeduel.core.exceptions import unauthorized
from codeduel.db.database import get_session

if TYPE_CHECKING:
    from codeduel.db.models.user import UserProfile

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")
security = HTTPBearer()


def hash_password(password: str) -> str:
    """Hash a password for storage."""
    return pwd_context.hash(password)


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """Verify a password against its hash."""
    return pwd_context.verify(plain_password, hashed_password)


def create_access_token(data: dict[str, Any], expires_delta: timedelta | None = None) -> str:
    """Create a JWT access token."""
    to_encode = data.copy()
    expire = datetime.now(timezone.utc) + (
        expires_delta or timedelta(hours=settings.jwt_expiration_hours)
    )
    to_encode.update({"exp": expire})
    return jwt.encode(to_encode, settings.secret_key, algorithm=settings.jwt_algorithm)


def decode_token(token: str) -> dict[str, Any]:
    """Decode and validate a JWT token."""
    try:
        return jwt.decode(token, settings.secret_key, algorithms=[settings.jwt_algorithm])
    except JWTError as e:
        raise unauthorized("Invalid or expired token") from e


def user_id_from_token(token: str) -> UUID:
    payload = decode_token(token)
    user_id = payload.get("sub")
    if user_id is None:
        raise unauthorized("Invalid token payload")
    try:
        return UUID(user_id)
    except ValueError as e:
        raise unauthorized("Invalid token payload") from e


async def get_current_user_id(
    credentials: HTTPAuthorizationCredentials = Depends(security),
) -> UUID:
    """Extract user_id from JWT token."""
    return user_id_from_token(credentials.credentials)


class CurrentUser:
    """Dependency for getting the current authenticated user's profile."""

    async def __call__(
        self,
        user_id: UUID = Depends(get_current_user_id),
        session: AsyncSession = Depends(get_session),
    ) -> "UserProfile":
        from codeduel.db.models.user import UserProfile

        profile = await session.get(UserProfile, user_id)
        if profile is None:
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="User not authenticated",
            )
        return profile


get_current_user = CurrentUser()
