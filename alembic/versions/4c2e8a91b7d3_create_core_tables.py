"""Create users, user_logins, game_sessions and shots tables

Revision ID: 4c2e8a91b7d3
Revises:
Create Date: 2026-10-05 10:00:00.000000

"""
from collections.abc import Sequence

import sqlalchemy as sa

from alembic import op

# revision identifiers, used by Alembic.
revision: str = "4c2e8a91b7d3"
down_revision: str | Sequence[str] | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None

user_role = sa.Enum("student", "teacher", "admin", name="user_role")


def upgrade() -> None:
    """Create the player, session and shot tables."""
    op.create_table(
        "users",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("google_id", sa.String(64), nullable=True),
        sa.Column("email", sa.String(255), nullable=False),
        sa.Column("name", sa.String(255), nullable=True),
        sa.Column("lastname", sa.String(255), nullable=True),
        sa.Column("picture", sa.Text(), nullable=True),
        sa.Column("role", user_role, nullable=False, server_default="student"),
        sa.Column("group", sa.String(255), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.UniqueConstraint("google_id"),
        sa.UniqueConstraint("email"),
    )
    op.create_index("ix_users_role", "users", ["role"])
    op.create_index("ix_users_group", "users", ["group"])

    op.create_table(
        "user_logins",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column(
            "user_id",
            sa.Integer(),
            sa.ForeignKey("users.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("logged_in_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("ip_address", sa.String(45), nullable=True),
        sa.Column("user_agent", sa.Text(), nullable=True),
    )
    op.create_index("ix_user_logins_user_time", "user_logins", ["user_id", "logged_in_at"])

    op.create_table(
        "game_sessions",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column(
            "user_id",
            sa.Integer(),
            sa.ForeignKey("users.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("group_snapshot", sa.String(255), nullable=True),
        sa.Column("started_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("finished_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("final_score", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("max_level_reached", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("duration_seconds", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("canvas_width", sa.Integer(), nullable=False),
        sa.Column("canvas_height", sa.Integer(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index(
        "ix_game_sessions_user_started", "game_sessions", ["user_id", "started_at"]
    )
    op.create_index("ix_game_sessions_finished_at", "game_sessions", ["finished_at"])

    op.create_table(
        "shots",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column(
            "game_session_id",
            sa.Integer(),
            sa.ForeignKey("game_sessions.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("shot_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("coordinate_x", sa.Float(), nullable=False),
        sa.Column("coordinate_y", sa.Float(), nullable=False),
        sa.Column("factor_1", sa.Integer(), nullable=False),
        sa.Column("factor_2", sa.Integer(), nullable=False),
        sa.Column("correct_answer", sa.Integer(), nullable=False),
        sa.Column("card_value", sa.Integer(), nullable=False),
        sa.Column("is_correct", sa.Boolean(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index("ix_shots_session_correct", "shots", ["game_session_id", "is_correct"])


def downgrade() -> None:
    """Drop all core tables."""
    op.drop_index("ix_shots_session_correct", table_name="shots")
    op.drop_table("shots")
    op.drop_index("ix_game_sessions_finished_at", table_name="game_sessions")
    op.drop_index("ix_game_sessions_user_started", table_name="game_sessions")
    op.drop_table("game_sessions")
    op.drop_index("ix_user_logins_user_time", table_name="user_logins")
    op.drop_table("user_logins")
    op.drop_index("ix_users_group", table_name="users")
    op.drop_index("ix_users_role", table_name="users")
    op.drop_table("users")
    user_role.drop(op.get_bind(), checkfirst=True)
