from datetime import datetime
from typing import Any, Optional
from uuid import UUID, uuid4

from sqlalchemy import Boolean, DateTime, Integer, String, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from codeduel.core.clock import utcnow
from codeduel.db.database import Base


class DemoBot(Base):
    """A simulated opponent for practice rooms."""

    __tablename__ = "demo_bots"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    username: Mapped[str] = mapped_column(String(50), unique=True, nullable=False)
    avatar_url: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)
    skill_level: Mapped[int] = mapped_column(Integer, default=3)  # 1-5
    # Seconds the bot needs to pass every test case once the battle starts
    solve_time_seconds: Mapped[int] = mapped_column(Integer, default=600)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": str(self.id),
            "name": self.name,
            "username": self.username,
            "avatar_url": self.avatar_url,
            "skill_level": self.skill_level,
            "solve_time_seconds": self.solve_time_seconds,
        }

    def __repr__(self) -> str:
        return f"<DemoBot {self.username}>"
