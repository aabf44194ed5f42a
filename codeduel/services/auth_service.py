"""Account creation and sign-in."""

import logging
from typing import Any
from uuid import UUID

from sqlalchemy import or_, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from codeduel.config import settings
from codeduel.core.exceptions import ErrorCode, describe_failure
from codeduel.core.results import ServiceResult
from codeduel.core.security import create_access_token, hash_password, verify_password
from codeduel.db.models.user import UserProfile

logger = logging.getLogger(__name__)

INVALID_CREDENTIALS = "Invalid email or password"


def _session_payload(profile: UserProfile) -> dict[str, Any]:
    return {
        "user": profile.to_dict(),
        "access_token": create_access_token(data={"sub": str(profile.id)}),
        "token_type": "bearer",
        "expires_in": settings.jwt_expiration_hours * 3600,
    }


class AuthService:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def sign_up(
        self,
        email: str,
        password: str,
        username: str,
        full_name: str | None = None,
    ) -> ServiceResult[dict[str, Any]]:
        email = email.strip().lower()
        username = username.strip()
        try:
            existing = await self.session.execute(
                select(UserProfile).where(
                    or_(UserProfile.email == email, UserProfile.username == username)
                )
            )
            match = existing.scalars().first()
            if match is not None:
                field = "email" if match.email == email else "username"
                return ServiceResult.fail(
                    f"An account with this {field} already exists", ErrorCode.CONFLICT
                )

            profile = UserProfile(
                email=email,
                password_hash=hash_password(password),
                username=username,
                full_name=full_name or username,
            )
            self.session.add(profile)
            await self.session.commit()
        except IntegrityError:
            await self.session.rollback()
            return ServiceResult.fail("Email or username already taken", ErrorCode.CONFLICT)
        except SQLAlchemyError as e:
            await self.session.rollback()
            return ServiceResult.fail(*describe_failure(e, "Failed to create account"))

        logger.info(f"New user signed up: {profile.username}")
        return ServiceResult.ok(_session_payload(profile))

    async def sign_in(self, email: str, password: str) -> ServiceResult[dict[str, Any]]:
        try:
            result = await self.session.execute(
                select(UserProfile).where(UserProfile.email == email.strip().lower())
            )
            profile = result.scalar_one_or_none()
        except SQLAlchemyError as e:
            return ServiceResult.fail(*describe_failure(e, "Failed to sign in"))

        if profile is None or not verify_password(password, profile.password_hash):
            return ServiceResult.fail(INVALID_CREDENTIALS, ErrorCode.NOT_AUTHENTICATED)

        return ServiceResult.ok(_session_payload(profile))

    async def get_profile(self, user_id: UUID) -> ServiceResult[dict[str, Any]]:
        try:
            profile = await self.session.get(UserProfile, user_id)
        except SQLAlchemyError as e:
            return ServiceResult.fail(*describe_failure(e, "Failed to load profile"))
        if profile is None:
            return ServiceResult.fail("Profile not found", ErrorCode.NOT_FOUND)
        return ServiceResult.ok(profile.to_dict())
