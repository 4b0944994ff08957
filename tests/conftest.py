"""
tests/conftest.py — Shared Test Fixtures
=========================================
"""

from __future__ import annotations

import os

# ---------------------------------------------------------------------------
# Ensure a valid JWT_SECRET is always set for test runs.
# This must happen before any import of factorshot.api.deps which validates
# the secret at module-load time.
# ---------------------------------------------------------------------------
_TEST_JWT_SECRET = "test-secret-for-pytest-only-" + "x" * 40  # > 32 chars
os.environ.setdefault("JWT_SECRET", _TEST_JWT_SECRET)

from datetime import datetime  # noqa: E402

import pytest  # noqa: E402
from sqlalchemy import Engine, create_engine, event  # noqa: E402
from sqlalchemy.orm import Session  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

from factorshot.config import FactorshotConfig  # noqa: E402
from factorshot.database.models import Base, GameSession, Role, Shot, User  # noqa: E402
from factorshot.services.account_service import IdentityClaims  # noqa: E402

T0 = datetime(2026, 3, 2, 9, 0, 0)


@pytest.fixture
def db_engine() -> Engine:
    """In-memory SQLite engine with all Factorshot tables.

    Uses StaticPool so all threads share the same in-memory database
    (``run_db`` and the TestClient run service calls on worker threads).
    Foreign keys are switched on so ``ON DELETE CASCADE`` behaves as in
    PostgreSQL.
    """
    engine = create_engine(
        "sqlite://",
        echo=False,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )

    @event.listens_for(engine, "connect")
    def _enable_fks(dbapi_conn, _record):
        cursor = dbapi_conn.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    Base.metadata.create_all(engine)
    return engine


@pytest.fixture
def db_session(db_engine: Engine):
    """Provide a session that rolls back after each test."""
    with Session(db_engine) as session:
        yield session
        session.rollback()


# ---------------------------------------------------------------------------
# Data factories
# ---------------------------------------------------------------------------
def make_user(
    engine: Engine,
    email: str = "ana@example.com",
    *,
    google_id: str | None = "g-ana",
    role: Role = Role.STUDENT,
    group: str | None = "4A",
    name: str | None = "Ana",
    lastname: str | None = "Lopez",
) -> User:
    with Session(engine, expire_on_commit=False) as session:
        user = User(
            email=email,
            google_id=google_id,
            role=role,
            group=group,
            name=name,
            lastname=lastname,
        )
        session.add(user)
        session.commit()
        session.refresh(user)
        return user


def make_session(
    engine: Engine,
    user_id: int,
    *,
    started_at: datetime = T0,
    finished_at: datetime | None = None,
    final_score: int = 0,
    duration_seconds: int = 0,
    group_snapshot: str | None = None,
) -> GameSession:
    with Session(engine, expire_on_commit=False) as session:
        game = GameSession(
            user_id=user_id,
            group_snapshot=group_snapshot,
            started_at=started_at,
            finished_at=finished_at,
            final_score=final_score,
            max_level_reached=1,
            duration_seconds=duration_seconds,
            canvas_width=1200,
            canvas_height=800,
        )
        session.add(game)
        session.commit()
        session.refresh(game)
        return game


def add_shots(engine: Engine, session_id: int, correct: int, wrong: int) -> None:
    """Insert shots directly (bypassing the ledger's state check)."""
    with Session(engine) as session:
        for i in range(correct + wrong):
            ok = i < correct
            session.add(Shot(
                game_session_id=session_id,
                shot_at=T0,
                coordinate_x=100.0,
                coordinate_y=200.0,
                factor_1=3,
                factor_2=4,
                correct_answer=12,
                card_value=12 if ok else 15,
                is_correct=ok,
            ))
        session.commit()


def make_token(user: User) -> str:
    """Create an access token for *user*, as /auth/verify would."""
    from factorshot.api.deps import issue_access_token

    return issue_access_token(user, ttl_hours=1)


def auth(token: str) -> dict:
    return {"Authorization": f"Bearer {token}"}


# ---------------------------------------------------------------------------
# API fixtures
# ---------------------------------------------------------------------------
class FakeIdentityResolver:
    """Stands in for Google: known tokens map to fixed claims."""

    def __init__(self) -> None:
        self.tokens: dict[str, IdentityClaims] = {}

    async def verify(self, credential: str) -> IdentityClaims:
        from factorshot.api.identity import AuthError

        try:
            return self.tokens[credential]
        except KeyError:
            raise AuthError("Invalid or expired token") from None


@pytest.fixture
def test_config() -> FactorshotConfig:
    return FactorshotConfig(app_name="Factorshot Test", api_port=8000)


@pytest.fixture
def identity_resolver() -> FakeIdentityResolver:
    return FakeIdentityResolver()


@pytest.fixture
def client(db_engine, test_config, identity_resolver):
    """FastAPI TestClient wired to the in-memory DB and fake identity provider."""
    from fastapi.testclient import TestClient

    from factorshot.api import deps
    from factorshot.api.main import app

    app.dependency_overrides[deps.get_engine] = lambda: db_engine
    app.dependency_overrides[deps.get_config] = lambda: test_config
    app.dependency_overrides[deps.get_identity_resolver] = lambda: identity_resolver
    yield TestClient(app, raise_server_exceptions=False)
    app.dependency_overrides.clear()
