"""Database models for challenges and code submissions."""

from datetime import datetime
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

from sqlalchemy import JSON, Boolean, DateTime, ForeignKey, Integer, String, Text, Uuid
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column

from codeduel.core.clock import isoformat, utcnow
from codeduel.db.database import Base

JSONType = JSON().with_variant(JSONB(), "postgresql")


class Difficulty(str, Enum):
    """Challenge difficulty levels."""
    EASY = "easy"
    MEDIUM = "medium"
    HARD = "hard"


class Challenge(Base):
    """A programming challenge that can be assigned to a room."""

    __tablename__ = "challenges"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    title: Mapped[str] = mapped_column(String(200), nullable=False)
    difficulty: Mapped[str] = mapped_column(String(20), default=Difficulty.EASY.value, index=True)
    description: Mapped[str] = mapped_column(Text, nullable=False)
    function_signature: Mapped[Optional[str]] = mapped_column(String(300), nullable=True)

    # [{"input": "...", "output": "...", "explanation": "..."}]
    examples: Mapped[list] = mapped_column(JSONType, nullable=False, default=list)
    constraints: Mapped[list] = mapped_column(JSONType, nullable=False, default=list)
    time_complexity: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    space_complexity: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)

    # [{"input": <args>, "expected": <value>}]
    test_cases: Mapped[list] = mapped_column(JSONType, nullable=False, default=list)
    solution_template: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    is_active: Mapped[bool] = mapped_column(Boolean, default=True, index=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)

    @property
    def function_name(self) -> Optional[str]:
        """Name of the function the solution must define, from the signature."""
        if not self.function_signature:
            return None
        head = self.function_signature.split("(")[0].replace("def ", "").strip()
        return head or None

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": str(self.id),
            "title": self.title,
            "difficulty": self.difficulty,
            "description": self.description,
            "function_signature": self.function_signature,
            "examples": self.examples,
            "constraints": self.constraints,
            "time_complexity": self.time_complexity,
            "space_complexity": self.space_complexity,
            "test_cases": self.test_cases,
            "solution_template": self.solution_template,
            "is_active": self.is_active,
            "created_at": isoformat(self.created_at),
        }

    def __repr__(self) -> str:
        return f"<Challenge {self.title} ({self.difficulty})>"


class CodeSubmission(Base):
    """A judged submission. Rows are only ever appended."""

    __tablename__ = "code_submissions"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    room_id: Mapped[UUID] = mapped_column(
        Uuid,
        ForeignKey("rooms.id", ondelete="CASCADE"),
        index=True,
        nullable=False,
    )
    user_id: Mapped[UUID] = mapped_column(
        Uuid,
        ForeignKey("user_profiles.id", ondelete="CASCADE"),
        index=True,
        nullable=False,
    )
    challenge_id: Mapped[Optional[UUID]] = mapped_column(
        Uuid,
        ForeignKey("challenges.id", ondelete="SET NULL"),
        nullable=True,
    )

    code: Mapped[str] = mapped_column(Text, nullable=False)
    test_results: Mapped[list] = mapped_column(JSONType, nullable=False, default=list)
    is_successful: Mapped[bool] = mapped_column(Boolean, default=False)
    execution_time: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)  # ms
    error_message: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    submitted_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": str(self.id),
            "room_id": str(self.room_id),
            "user_id": str(self.user_id),
            "challenge_id": str(self.challenge_id) if self.challenge_id else None,
            "code": self.code,
            "test_results": self.test_results,
            "is_successful": self.is_successful,
            "execution_time": self.execution_time,
            "error_message": self.error_message,
            "submitted_at": isoformat(self.submitted_at),
        }
