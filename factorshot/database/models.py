"""
factorshot.database.models — SQLAlchemy 2.0 Data Models
========================================================

Tables:
- users          — Players, teachers and admins (Google identity + roster data)
- user_logins    — Append-only login journal
- game_sessions  — One timed round per row; ``finished_at IS NULL`` means active
- shots          — Append-only scoring events inside a session
"""

from __future__ import annotations

import enum
from datetime import datetime

from sqlalchemy import (
    Boolean,
    DateTime,
    Enum,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    func,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship


# ---------------------------------------------------------------------------
# Base
# ---------------------------------------------------------------------------
class Base(DeclarativeBase):
    """Shared base for all Factorshot ORM models."""


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------
class Role(enum.StrEnum):
    """Closed set of user roles."""
    STUDENT = "student"
    TEACHER = "teacher"
    ADMIN = "admin"

    @property
    def can_administer(self) -> bool:
        """Whether this role may use the admin surface."""
        return self is Role.ADMIN


# ---------------------------------------------------------------------------
# Users — one row per person, provisioned by login or by roster import
# ---------------------------------------------------------------------------
class User(Base):
    __tablename__ = "users"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    google_id: Mapped[str | None] = mapped_column(String(64), unique=True, default=None)
    email: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)
    name: Mapped[str | None] = mapped_column(String(255), default=None)
    lastname: Mapped[str | None] = mapped_column(String(255), default=None)
    picture: Mapped[str | None] = mapped_column(Text, default=None)
    role: Mapped[Role] = mapped_column(
        Enum(Role, name="user_role", values_callable=lambda e: [m.value for m in e]),
        default=Role.STUDENT,
        nullable=False,
    )
    group: Mapped[str | None] = mapped_column(String(255), default=None)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    # Relationships
    sessions: Mapped[list[GameSession]] = relationship(
        back_populates="user", cascade="all, delete-orphan", passive_deletes=True
    )
    logins: Mapped[list[UserLogin]] = relationship(
        back_populates="user", cascade="all, delete-orphan", passive_deletes=True
    )

    __table_args__ = (
        Index("ix_users_role", "role"),
        Index("ix_users_group", "group"),
    )

    def __repr__(self) -> str:
        return f"<User id={self.id} email={self.email!r} role={self.role}>"


# ---------------------------------------------------------------------------
# UserLogin — one row per successful login
# ---------------------------------------------------------------------------
class UserLogin(Base):
    __tablename__ = "user_logins"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    logged_in_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )
    ip_address: Mapped[str | None] = mapped_column(String(45), default=None)
    user_agent: Mapped[str | None] = mapped_column(Text, default=None)

    user: Mapped[User] = relationship(back_populates="logins")

    __table_args__ = (
        Index("ix_user_logins_user_time", "user_id", "logged_in_at"),
    )


# ---------------------------------------------------------------------------
# GameSession — a single round.  Active while finished_at is NULL.
# ---------------------------------------------------------------------------
class GameSession(Base):
    __tablename__ = "game_sessions"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    group_snapshot: Mapped[str | None] = mapped_column(String(255), default=None)
    started_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    finished_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), default=None
    )
    final_score: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    max_level_reached: Mapped[int] = mapped_column(Integer, default=1, nullable=False)
    duration_seconds: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    canvas_width: Mapped[int] = mapped_column(Integer, nullable=False)
    canvas_height: Mapped[int] = mapped_column(Integer, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    user: Mapped[User] = relationship(back_populates="sessions")
    shots: Mapped[list[Shot]] = relationship(
        back_populates="session",
        cascade="all, delete-orphan",
        passive_deletes=True,
        order_by="Shot.shot_at",
    )

    __table_args__ = (
        Index("ix_game_sessions_user_started", "user_id", "started_at"),
        Index("ix_game_sessions_finished_at", "finished_at"),
    )

    @property
    def is_active(self) -> bool:
        return self.finished_at is None

    def __repr__(self) -> str:
        state = "active" if self.is_active else "finished"
        return f"<GameSession id={self.id} user={self.user_id} {state}>"


# ---------------------------------------------------------------------------
# Shot — append-only scoring event
# ---------------------------------------------------------------------------
class Shot(Base):
    __tablename__ = "shots"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    game_session_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("game_sessions.id", ondelete="CASCADE"), nullable=False
    )
    shot_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    coordinate_x: Mapped[float] = mapped_column(Float, nullable=False)
    coordinate_y: Mapped[float] = mapped_column(Float, nullable=False)
    factor_1: Mapped[int] = mapped_column(Integer, nullable=False)
    factor_2: Mapped[int] = mapped_column(Integer, nullable=False)
    correct_answer: Mapped[int] = mapped_column(Integer, nullable=False)
    card_value: Mapped[int] = mapped_column(Integer, nullable=False)
    # Stored as asserted by the client; never recomputed server-side.
    is_correct: Mapped[bool] = mapped_column(Boolean, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )

    session: Mapped[GameSession] = relationship(back_populates="shots")

    __table_args__ = (
        Index("ix_shots_session_correct", "game_session_id", "is_correct"),
    )

    def __repr__(self) -> str:
        return (
            f"<Shot id={self.id} session={self.game_session_id} "
            f"{self.factor_1}x{self.factor_2}={self.card_value} ok={self.is_correct}>"
        )
