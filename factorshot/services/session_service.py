"""
factorshot.services.session_service — Session Lifecycle Engine
===============================================================

DB-backed half of the session state machine (the rules themselves live in
:mod:`factorshot.engine.lifecycle`).

Every function is one unit of work on its own :class:`Session` and takes the
acting user's id explicitly.  ``finish_session`` follows the pattern:

  1. Begin transaction
  2. ``SELECT … FOR UPDATE`` the session row
  3. Check existence → ownership → still active
  4. Conditional ``UPDATE … WHERE finished_at IS NULL``
  5. Recount shots from the ledger
  6. Commit
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime

from sqlalchemy import Engine, func, select, update
from sqlalchemy.orm import Session

from factorshot.database.engine import get_session
from factorshot.database.models import GameSession, Shot, User
from factorshot.engine.lifecycle import (
    SessionFinished,
    check_mutable,
    check_readable,
)
from factorshot.engine.stats import ShotStats
from factorshot.services.shot_service import session_stats, stats_for_sessions

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class SessionView:
    """A session together with its live shot statistics."""

    session: GameSession
    stats: ShotStats = field(default_factory=ShotStats)


@dataclass(slots=True)
class SessionDetail:
    session: GameSession
    shots: list[Shot]
    stats: ShotStats


@dataclass(slots=True)
class Page:
    """One page of results plus the numbers a client needs to paginate."""

    items: list
    total: int
    page: int
    per_page: int

    @property
    def last_page(self) -> int:
        return max(1, -(-self.total // self.per_page))

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.per_page

    def to_dict(self) -> dict:
        first = self.offset + 1 if self.items else None
        return {
            "total": self.total,
            "per_page": self.per_page,
            "current_page": self.page,
            "last_page": self.last_page,
            "from": first,
            "to": self.offset + len(self.items) if self.items else None,
        }


# ---------------------------------------------------------------------------
# Create
# ---------------------------------------------------------------------------
def create_session(
    engine: Engine,
    actor_id: int,
    *,
    started_at: datetime,
    canvas_width: int,
    canvas_height: int,
) -> GameSession:
    """Start a new ACTIVE session for *actor_id*.

    The owner's current group is copied into ``group_snapshot`` so later
    regrouping does not rewrite history.
    """
    with get_session(engine) as session:
        owner = session.get(User, actor_id)
        if owner is None:
            raise LookupError(f"User {actor_id} does not exist")

        game = GameSession(
            user_id=owner.id,
            group_snapshot=owner.group,
            started_at=started_at,
            finished_at=None,
            final_score=0,
            max_level_reached=1,
            duration_seconds=0,
            canvas_width=canvas_width,
            canvas_height=canvas_height,
        )
        session.add(game)
        session.flush()
        session.refresh(game)
        logger.info(
            "Session %s started by user %s (group=%s, canvas=%sx%s)",
            game.id, owner.id, owner.group, canvas_width, canvas_height,
        )
        return game


# ---------------------------------------------------------------------------
# Finish
# ---------------------------------------------------------------------------
def finish_session(
    engine: Engine,
    session_id: int,
    actor_id: int,
    *,
    finished_at: datetime,
    final_score: int,
    max_level_reached: int,
    duration_seconds: int,
) -> SessionView:
    """Move a session from ACTIVE to FINISHED and return it with fresh stats.

    Raises
    ------
    SessionNotFound, SessionForbidden, SessionFinished
        Checked in that order; nothing is written when any of them fires.
    """
    with get_session(engine) as session:
        game = session.scalar(
            select(GameSession).where(GameSession.id == session_id).with_for_update()
        )
        check_mutable(game, session_id, actor_id)

        result = session.execute(
            update(GameSession)
            .where(GameSession.id == session_id, GameSession.finished_at.is_(None))
            .values(
                finished_at=finished_at,
                final_score=final_score,
                max_level_reached=max_level_reached,
                duration_seconds=duration_seconds,
            )
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 0:
            # Lost a race with another finish between the check and the write.
            raise SessionFinished("Session already finished", session_id=session_id)

        session.refresh(game)
        stats = session_stats(session, session_id)
        logger.info(
            "Session %s finished by user %s: score=%s level=%s duration=%ss shots=%s acc=%.2f",
            session_id, actor_id, final_score, max_level_reached, duration_seconds,
            stats.total_shots, stats.accuracy,
        )
        return SessionView(session=game, stats=stats)


# ---------------------------------------------------------------------------
# Reads
# ---------------------------------------------------------------------------
def get_session_detail(engine: Engine, session_id: int, actor_id: int) -> SessionDetail:
    """Session, shots and stats for its owner.

    A session owned by someone else raises :class:`SessionNotFound`, the same
    as a missing one.
    """
    with Session(engine, expire_on_commit=False) as session:
        game = session.get(GameSession, session_id)
        check_readable(game, session_id, actor_id)
        shots = list(
            session.scalars(
                select(Shot)
                .where(Shot.game_session_id == session_id)
                .order_by(Shot.shot_at, Shot.id)
            )
        )
        stats = ShotStats.from_flags(s.is_correct for s in shots)
        return SessionDetail(session=game, shots=shots, stats=stats)


def list_user_sessions(
    engine: Engine,
    actor_id: int,
    *,
    page: int = 1,
    per_page: int = 10,
) -> Page:
    """The actor's sessions, newest first, each paired with its stats."""
    with Session(engine, expire_on_commit=False) as session:
        total = session.scalar(
            select(func.count()).select_from(GameSession).where(GameSession.user_id == actor_id)
        ) or 0
        games = list(
            session.scalars(
                select(GameSession)
                .where(GameSession.user_id == actor_id)
                .order_by(GameSession.started_at.desc(), GameSession.id.desc())
                .offset((page - 1) * per_page)
                .limit(per_page)
            )
        )
        stats = stats_for_sessions(session, [g.id for g in games])
        items = [SessionView(session=g, stats=stats.get(g.id, ShotStats())) for g in games]
        return Page(items=items, total=total, page=page, per_page=per_page)

