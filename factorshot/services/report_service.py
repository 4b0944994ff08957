"""
factorshot.services.report_service — Read-only reporting views
===============================================================

Projections over users, sessions and shots for the admin surface and the
CSV exports.  Nothing here writes.  Per-session numbers come from
:func:`factorshot.services.shot_service.stats_for_sessions` and aggregates
from :mod:`factorshot.engine.stats`, the same helpers the player-facing
endpoints use.
"""

from __future__ import annotations

import logging
from collections import defaultdict
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta

from sqlalchemy import Engine, Select, func, or_, select
from sqlalchemy.orm import Session

from factorshot.database.models import GameSession, Role, User
from factorshot.engine.stats import (
    PlayerSummary,
    ScoreSummary,
    ShotStats,
    summarize_player,
    summarize_scores,
)
from factorshot.services.session_service import Page, SessionView
from factorshot.services.shot_service import stats_for_sessions

logger = logging.getLogger(__name__)

SORTABLE_USER_FIELDS = ("email", "name", "group", "created_at", "sessions_count")


@dataclass(frozen=True, slots=True)
class UserFilters:
    group: str | None = None
    role: Role | None = None
    search: str | None = None

    def to_dict(self) -> dict:
        return {
            "group": self.group,
            "role": self.role.value if self.role else None,
            "search": self.search,
        }


@dataclass(slots=True)
class UserRow:
    user: User
    sessions_count: int
    scores: ScoreSummary


@dataclass(slots=True)
class UserSessionsReport:
    user: User
    summary: PlayerSummary
    page: Page


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------
def _sessions_count_subquery():
    return (
        select(GameSession.user_id, func.count(GameSession.id).label("sessions_count"))
        .group_by(GameSession.user_id)
        .subquery()
    )


def _escape_like(term: str) -> str:
    # Search is a plain substring; % and _ match themselves.
    return term.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


def _filtered_users(filters: UserFilters) -> tuple[Select, object]:
    counts = _sessions_count_subquery()
    sessions_count = func.coalesce(counts.c.sessions_count, 0).label("sessions_count")
    stmt = select(User, sessions_count).outerjoin(counts, counts.c.user_id == User.id)

    if filters.group:
        stmt = stmt.where(User.group == filters.group)
    if filters.role:
        stmt = stmt.where(User.role == filters.role)
    if filters.search:
        like = f"%{_escape_like(filters.search)}%"
        stmt = stmt.where(
            or_(
                User.name.ilike(like, escape="\\"),
                User.lastname.ilike(like, escape="\\"),
                User.email.ilike(like, escape="\\"),
            )
        )
    return stmt, sessions_count


def _order_users(stmt: Select, sessions_count, sort_by: str, order: str) -> Select:
    if order not in ("asc", "desc"):
        order = "desc"
    columns = {
        "email": User.email,
        "name": User.name,
        "group": User.group,
        "created_at": User.created_at,
        "sessions_count": sessions_count,
    }
    column = columns.get(sort_by)
    if column is None:
        return stmt.order_by(User.created_at.desc(), User.id.desc())
    direction = column.asc() if order == "asc" else column.desc()
    return stmt.order_by(direction, User.id)


def _finished_by_user(session: Session, user_ids: list[int]) -> dict[int, list[GameSession]]:
    grouped: dict[int, list[GameSession]] = defaultdict(list)
    if not user_ids:
        return grouped
    rows = session.scalars(
        select(GameSession).where(
            GameSession.user_id.in_(user_ids), GameSession.finished_at.is_not(None)
        )
    )
    for game in rows:
        grouped[game.user_id].append(game)
    return grouped


def _date_window(stmt: Select, date_from: date | None, date_to: date | None) -> Select:
    """Restrict to sessions whose start date falls in [date_from, date_to]."""
    if date_from:
        stmt = stmt.where(GameSession.started_at >= datetime.combine(date_from, time.min))
    if date_to:
        stmt = stmt.where(
            GameSession.started_at < datetime.combine(date_to + timedelta(days=1), time.min)
        )
    return stmt


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------
def list_groups(engine: Engine) -> list[str]:
    """Distinct non-empty group labels, sorted."""
    with Session(engine) as session:
        rows = session.scalars(
            select(User.group)
            .where(User.group.is_not(None), User.group != "")
            .distinct()
            .order_by(User.group)
        )
        return list(rows)


def list_users(
    engine: Engine,
    filters: UserFilters = UserFilters(),
    *,
    sort_by: str = "created_at",
    order: str = "desc",
    page: int = 1,
    per_page: int = 40,
) -> Page:
    """Filtered, sorted page of users with session count and score summary."""
    with Session(engine, expire_on_commit=False) as session:
        stmt, sessions_count = _filtered_users(filters)
        total = session.scalar(select(func.count()).select_from(stmt.subquery())) or 0
        stmt = _order_users(stmt, sessions_count, sort_by, order)
        rows = session.execute(stmt.offset((page - 1) * per_page).limit(per_page)).all()

        finished = _finished_by_user(session, [u.id for u, _ in rows])
        items = [
            UserRow(user=u, sessions_count=int(count), scores=summarize_scores(finished[u.id]))
            for u, count in rows
        ]
        return Page(items=items, total=total, page=page, per_page=per_page)


def all_users(engine: Engine, filters: UserFilters = UserFilters()) -> list[UserRow]:
    """Every matching user, newest first (export path, no pagination)."""
    with Session(engine, expire_on_commit=False) as session:
        stmt, sessions_count = _filtered_users(filters)
        rows = session.execute(stmt.order_by(User.created_at.desc(), User.id.desc())).all()
        finished = _finished_by_user(session, [u.id for u, _ in rows])
        return [
            UserRow(user=u, sessions_count=int(count), scores=summarize_scores(finished[u.id]))
            for u, count in rows
        ]


def user_sessions(
    engine: Engine,
    user_id: int,
    *,
    date_from: date | None = None,
    date_to: date | None = None,
    page: int = 1,
    per_page: int = 10,
) -> UserSessionsReport | None:
    """One user's sessions in a date window, plus a summary of that window.

    Returns ``None`` if the user does not exist.
    """
    with Session(engine, expire_on_commit=False) as session:
        user = session.get(User, user_id)
        if user is None:
            return None

        base = _date_window(
            select(GameSession).where(GameSession.user_id == user_id), date_from, date_to
        )
        total = session.scalar(select(func.count()).select_from(base.subquery())) or 0
        games = list(
            session.scalars(
                base.order_by(GameSession.started_at.desc(), GameSession.id.desc())
                .offset((page - 1) * per_page)
                .limit(per_page)
            )
        )
        stats = stats_for_sessions(session, [g.id for g in games])
        items = [SessionView(session=g, stats=stats.get(g.id, ShotStats())) for g in games]

        window = session.scalars(base.where(GameSession.finished_at.is_not(None)))
        summary = summarize_player(window)

        return UserSessionsReport(
            user=user,
            summary=summary,
            page=Page(items=items, total=total, page=page, per_page=per_page),
        )


def all_user_sessions(
    engine: Engine,
    user_id: int,
    *,
    date_from: date | None = None,
    date_to: date | None = None,
) -> tuple[User, list[SessionView]] | None:
    """Every session of a user in the window, newest first (export path)."""
    with Session(engine, expire_on_commit=False) as session:
        user = session.get(User, user_id)
        if user is None:
            return None
        base = _date_window(
            select(GameSession).where(GameSession.user_id == user_id), date_from, date_to
        )
        games = list(session.scalars(base.order_by(GameSession.started_at.desc(), GameSession.id.desc())))
        stats = stats_for_sessions(session, [g.id for g in games])
        return user, [SessionView(session=g, stats=stats.get(g.id, ShotStats())) for g in games]
