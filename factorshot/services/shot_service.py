"""
factorshot.services.shot_service — Shot Ledger
===============================================

Append-only record of scoring events inside a game session.

Admission to the ledger is gated by the parent session's state at write
time: the parent row is locked (``SELECT … FOR UPDATE``) for the whole
insert, so a shot cannot slip in after a concurrent finish committed.

Statistics are always recomputed from the child rows; nothing is cached.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from datetime import datetime

from sqlalchemy import Engine, case, func, select
from sqlalchemy.orm import Session

from factorshot.database.engine import get_session
from factorshot.database.models import GameSession, Shot
from factorshot.engine.lifecycle import check_mutable
from factorshot.engine.stats import ShotStats

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Statistics
# ---------------------------------------------------------------------------
def _stats_query():
    return select(
        Shot.game_session_id,
        func.count(Shot.id),
        func.coalesce(func.sum(case((Shot.is_correct.is_(True), 1), else_=0)), 0),
    ).group_by(Shot.game_session_id)


def session_stats(session: Session, session_id: int) -> ShotStats:
    """Shot counters for one session, read inside the caller's transaction."""
    return stats_for_sessions(session, [session_id]).get(session_id, ShotStats())


def stats_for_sessions(session: Session, session_ids: Iterable[int]) -> dict[int, ShotStats]:
    """Shot counters for many sessions in one query.

    Sessions without shots are absent from the result; callers default to an
    empty :class:`ShotStats`.
    """
    ids = list(session_ids)
    if not ids:
        return {}
    rows = session.execute(_stats_query().where(Shot.game_session_id.in_(ids))).all()
    return {
        sid: ShotStats(total_shots=int(total), correct_shots=int(correct))
        for sid, total, correct in rows
    }


# ---------------------------------------------------------------------------
# Recording
# ---------------------------------------------------------------------------
def record_shot(
    engine: Engine,
    session_id: int,
    actor_id: int,
    *,
    shot_at: datetime,
    coordinate_x: float,
    coordinate_y: float,
    factor_1: int,
    factor_2: int,
    correct_answer: int,
    card_value: int,
    is_correct: bool,
) -> Shot:
    """Append one shot to an active session owned by *actor_id*.

    Raises
    ------
    SessionNotFound, SessionForbidden, SessionFinished
        When the parent session is missing, foreign or already finished.
    """
    with get_session(engine) as session:
        game = session.scalar(
            select(GameSession).where(GameSession.id == session_id).with_for_update()
        )
        check_mutable(game, session_id, actor_id)

        shot = Shot(
            game_session_id=session_id,
            shot_at=shot_at,
            coordinate_x=coordinate_x,
            coordinate_y=coordinate_y,
            factor_1=factor_1,
            factor_2=factor_2,
            correct_answer=correct_answer,
            card_value=card_value,
            is_correct=is_correct,
        )
        session.add(shot)
        session.flush()
        session.refresh(shot)
        logger.debug(
            "Shot %s recorded in session %s (%sx%s → %s, correct=%s)",
            shot.id, session_id, factor_1, factor_2, card_value, is_correct,
        )
        return shot
