"""Initial schema

Revision ID: 001
Revises:
Create Date: 2026-10-18 00:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    # User profiles
    op.create_table(
        "user_profiles",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True, server_default=sa.text("gen_random_uuid()")),
        sa.Column("email", sa.String(255), nullable=False, unique=True),
        sa.Column("password_hash", sa.String(255), nullable=False),
        sa.Column("username", sa.String(50), nullable=False, unique=True),
        sa.Column("full_name", sa.String(100), nullable=True),
        sa.Column("avatar_url", sa.String(500), nullable=True),
        sa.Column("rating", sa.Integer(), server_default="1200"),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("NOW()")),
    )
    op.create_index("ix_user_profiles_email", "user_profiles", ["email"])
    op.create_index("ix_user_profiles_username", "user_profiles", ["username"])

    # Simulated opponents
    op.create_table(
        "demo_bots",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True, server_default=sa.text("gen_random_uuid()")),
        sa.Column("name", sa.String(100), nullable=False),
        sa.Column("username", sa.String(50), nullable=False, unique=True),
        sa.Column("avatar_url", sa.String(500), nullable=True),
        sa.Column("skill_level", sa.Integer(), server_default="3"),
        sa.Column("solve_time_seconds", sa.Integer(), server_default="600"),
        sa.Column("is_active", sa.Boolean(), server_default=sa.true()),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("NOW()")),
    )

    # Challenges
    op.create_table(
        "challenges",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True, server_default=sa.text("gen_random_uuid()")),
        sa.Column("title", sa.String(200), nullable=False),
        sa.Column("difficulty", sa.String(20), server_default="easy"),
        sa.Column("description", sa.Text(), nullable=False),
        sa.Column("function_signature", sa.String(300), nullable=True),
        sa.Column("examples", postgresql.JSONB(), nullable=False, server_default="[]"),
        sa.Column("constraints", postgresql.JSONB(), nullable=False, server_default="[]"),
        sa.Column("time_complexity", sa.String(50), nullable=True),
        sa.Column("space_complexity", sa.String(50), nullable=True),
        sa.Column("test_cases", postgresql.JSONB(), nullable=False, server_default="[]"),
        sa.Column("solution_template", sa.Text(), nullable=True),
        sa.Column("is_active", sa.Boolean(), server_default=sa.true()),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("NOW()")),
    )
    op.create_index("ix_challenges_difficulty", "challenges", ["difficulty"])
    op.create_index("ix_challenges_is_active", "challenges", ["is_active"])

    # Rooms
    op.create_table(
        "rooms",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True, server_default=sa.text("gen_random_uuid()")),
        sa.Column("room_code", sa.String(6), nullable=False, unique=True),
        sa.Column("host_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("user_profiles.id", ondelete="CASCADE"), nullable=False),
        sa.Column("challenge_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("challenges.id", ondelete="SET NULL"), nullable=True),
        sa.Column("status", sa.String(20), server_default="waiting"),
        sa.Column("max_participants", sa.SmallInteger(), server_default="2"),
        sa.Column("current_participants", sa.SmallInteger(), server_default="0"),
        sa.Column("use_demo_bot", sa.Boolean(), server_default=sa.false()),
        sa.Column("demo_bot_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("demo_bots.id", ondelete="SET NULL"), nullable=True),
        sa.Column("winner_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("user_profiles.id", ondelete="SET NULL"), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("NOW()")),
        sa.Column("started_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
        sa.CheckConstraint(
            "status IN ('waiting', 'active', 'completed', 'cancelled')",
            name="ck_rooms_status",
        ),
    )
    op.create_index("ix_rooms_room_code", "rooms", ["room_code"])
    op.create_index("ix_rooms_status", "rooms", ["status"])

    # Room participants
    op.create_table(
        "room_participants",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True, server_default=sa.text("gen_random_uuid()")),
        sa.Column("room_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("rooms.id", ondelete="CASCADE"), nullable=False),
        sa.Column("user_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("user_profiles.id", ondelete="CASCADE"), nullable=True),
        sa.Column("demo_bot_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("demo_bots.id", ondelete="CASCADE"), nullable=True),
        sa.Column("is_host", sa.Boolean(), server_default=sa.false()),
        sa.Column("status", sa.String(20), server_default="waiting"),
        sa.Column("attempts", sa.Integer(), server_default="0"),
        sa.Column("tests_passed", sa.Integer(), server_default="0"),
        sa.Column("total_tests", sa.Integer(), server_default="0"),
        sa.Column("accuracy", sa.Integer(), server_default="0"),
        sa.Column("completion_time", sa.Integer(), nullable=True),
        sa.Column("current_code", sa.Text(), nullable=True),
        sa.Column("last_activity", sa.DateTime(timezone=True), server_default=sa.text("NOW()")),
        sa.Column("joined_at", sa.DateTime(timezone=True), server_default=sa.text("NOW()")),
        sa.UniqueConstraint("room_id", "user_id", name="uq_room_participant_user"),
        sa.CheckConstraint(
            "(user_id IS NULL) <> (demo_bot_id IS NULL)",
            name="ck_room_participants_user_or_bot",
        ),
    )
    op.create_index("ix_room_participants_room_id", "room_participants", ["room_id"])
    op.create_index("ix_room_participants_user_id", "room_participants", ["user_id"])

    # Submission log
    op.create_table(
        "code_submissions",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True, server_default=sa.text("gen_random_uuid()")),
        sa.Column("room_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("rooms.id", ondelete="CASCADE"), nullable=False),
        sa.Column("user_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("user_profiles.id", ondelete="CASCADE"), nullable=False),
        sa.Column("challenge_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("challenges.id", ondelete="SET NULL"), nullable=True),
        sa.Column("code", sa.Text(), nullable=False),
        sa.Column("test_results", postgresql.JSONB(), nullable=False, server_default="[]"),
        sa.Column("is_successful", sa.Boolean(), server_default=sa.false()),
        sa.Column("execution_time", sa.Integer(), nullable=True),
        sa.Column("error_message", sa.Text(), nullable=True),
        sa.Column("submitted_at", sa.DateTime(timezone=True), server_default=sa.text("NOW()")),
    )
    op.create_index("ix_code_submissions_room_id", "code_submissions", ["room_id"])
    op.create_index("ix_code_submissions_user_id", "code_submissions", ["user_id"])


def downgrade() -> None:
    op.drop_table("code_submissions")
    op.drop_table("room_participants")
    op.drop_table("rooms")
    op.drop_table("challenges")
    op.drop_table("demo_bots")
    op.drop_table("user_profiles")
