"""Database models for battle rooms and their participants."""

from datetime import datetime
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

from sqlalchemy import (
    Boolean,
    DateTime,
    ForeignKey,
    Integer,
    SmallInteger,
    String,
    Text,
    UniqueConstraint,
    Uuid,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from codeduel.battle.room_code import ROOM_CODE_LENGTH
from codeduel.core.clock import isoformat, utcnow
from codeduel.db.database import Base
from codeduel.db.models.challenge import Challenge
from codeduel.db.models.demo_bot import DemoBot
from codeduel.db.models.user import UserProfile


class RoomStatus(str, Enum):
    """Lifecycle of a battle room."""
    WAITING = "waiting"
    ACTIVE = "active"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class ParticipantStatus(str, Enum):
    """Where a participant is in solving the challenge."""
    WAITING = "waiting"
    CODING = "coding"
    TESTING = "testing"
    COMPLETED = "completed"
    FAILED = "failed"


class Room(Base):
    __tablename__ = "rooms"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    room_code: Mapped[str] = mapped_column(String(ROOM_CODE_LENGTH), unique=True, index=True, nullable=False)
    host_id: Mapped[UUID] = mapped_column(
        Uuid,
        ForeignKey("user_profiles.id", ondelete="CASCADE"),
        nullable=False,
    )
    challenge_id: Mapped[Optional[UUID]] = mapped_column(
        Uuid,
        ForeignKey("challenges.id", ondelete="SET NULL"),
        nullable=True,
    )
    status: Mapped[str] = mapped_column(String(20), default=RoomStatus.WAITING.value, index=True)
    max_participants: Mapped[int] = mapped_column(SmallInteger, default=2)
    current_participants: Mapped[int] = mapped_column(SmallInteger, default=0)

    use_demo_bot: Mapped[bool] = mapped_column(Boolean, default=False)
    demo_bot_id: Mapped[Optional[UUID]] = mapped_column(
        Uuid,
        ForeignKey("demo_bots.id", ondelete="SET NULL"),
        nullable=True,
    )
    winner_id: Mapped[Optional[UUID]] = mapped_column(
        Uuid,
        ForeignKey("user_profiles.id", ondelete="SET NULL"),
        nullable=True,
    )

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    started_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    completed_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    challenge: Mapped[Optional[Challenge]] = relationship(Challenge)
    demo_bot: Mapped[Optional[DemoBot]] = relationship(DemoBot)
    winner: Mapped[Optional[UserProfile]] = relationship(UserProfile, foreign_keys=[winner_id])
    participants: Mapped[list["RoomParticipant"]] = relationship(
        back_populates="room",
        cascade="all, delete-orphan",
        order_by="RoomParticipant.joined_at",
    )

    @property
    def is_full(self) -> bool:
        return self.current_participants >= self.max_participants

    def to_dict(self) -> dict[str, Any]:
        """Plain row fields, as carried by change events."""
        return {
            "id": str(self.id),
            "room_code": self.room_code,
            "host_id": str(self.host_id),
            "challenge_id": str(self.challenge_id) if self.challenge_id else None,
            "status": self.status,
            "max_participants": self.max_participants,
            "current_participants": self.current_participants,
            "use_demo_bot": self.use_demo_bot,
            "demo_bot_id": str(self.demo_bot_id) if self.demo_bot_id else None,
            "winner_id": str(self.winner_id) if self.winner_id else None,
            "created_at": isoformat(self.created_at),
            "started_at": isoformat(self.started_at),
            "completed_at": isoformat(self.completed_at),
        }

    def to_detail_dict(self) -> dict[str, Any]:
        """Row joined with challenge, participants and demo bot.

        Relationships must already be loaded.
        """
        return {
            **self.to_dict(),
            "challenge": self.challenge.to_dict() if self.challenge else None,
            "participants": [p.to_detail_dict() for p in self.participants],
            "demo_bot": self.demo_bot.to_dict() if self.demo_bot else None,
        }

    def __repr__(self) -> str:
        return f"<Room {self.room_code} ({self.status})>"


class RoomParticipant(Base):
    __tablename__ = "room_participants"
    __table_args__ = (UniqueConstraint("room_id", "user_id", name="uq_room_participant_user"),)

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    room_id: Mapped[UUID] = mapped_column(
        Uuid,
        ForeignKey("rooms.id", ondelete="CASCADE"),
        index=True,
        nullable=False,
    )
    # Exactly one of user_id / demo_bot_id is set
    user_id: Mapped[Optional[UUID]] = mapped_column(
        Uuid,
        ForeignKey("user_profiles.id", ondelete="CASCADE"),
        index=True,
        nullable=True,
    )
    demo_bot_id: Mapped[Optional[UUID]] = mapped_column(
        Uuid,
        ForeignKey("demo_bots.id", ondelete="CASCADE"),
        nullable=True,
    )
    is_host: Mapped[bool] = mapped_column(Boolean, default=False)
    status: Mapped[str] = mapped_column(String(20), default=ParticipantStatus.WAITING.value)

    # Running stats
    attempts: Mapped[int] = mapped_column(Integer, default=0)
    tests_passed: Mapped[int] = mapped_column(Integer, default=0)
    total_tests: Mapped[int] = mapped_column(Integer, default=0)
    accuracy: Mapped[int] = mapped_column(Integer, default=0)  # percent
    completion_time: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)  # seconds
    current_code: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    last_activity: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    joined_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)

    room: Mapped[Room] = relationship(back_populates="participants")
    user: Mapped[Optional[UserProfile]] = relationship(UserProfile)
    demo_bot: Mapped[Optional[DemoBot]] = relationship(DemoBot)

    @property
    def is_bot(self) -> bool:
        return self.demo_bot_id is not None

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": str(self.id),
            "room_id": str(self.room_id),
            "user_id": str(self.user_id) if self.user_id else None,
            "demo_bot_id": str(self.demo_bot_id) if self.demo_bot_id else None,
            "is_host": self.is_host,
            "is_bot": self.is_bot,
            "status": self.status,
            "attempts": self.attempts,
            "tests_passed": self.tests_passed,
            "total_tests": self.total_tests,
            "accuracy": self.accuracy,
            "completion_time": self.completion_time,
            "current_code": self.current_code,
            "last_activity": isoformat(self.last_activity),
            "joined_at": isoformat(self.joined_at),
        }

    def to_detail_dict(self) -> dict[str, Any]:
        return {
            **self.to_dict(),
            "user": self.user.to_public_dict() if self.user else None,
            "demo_bot": self.demo_bot.to_dict() if self.demo_bot else None,
        }

    def __repr__(self) -> str:
        who = self.user_id or self.demo_bot_id
        return f"<RoomParticipant {who} in {self.room_id} ({self.status})>"
