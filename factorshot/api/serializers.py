"""
factorshot.api.serializers — JSON shapes shared by player and admin routes
===========================================================================
"""

from __future__ import annotations

from datetime import datetime
from typing import Any

from factorshot.database.models import GameSession, Shot, User
from factorshot.engine.stats import ShotStats


def _iso(value: datetime | None) -> str | None:
    return value.isoformat() if value else None


def user_dict(u: User) -> dict[str, Any]:
    return {
        "id": u.id,
        "email": u.email,
        "name": u.name,
        "lastname": u.lastname,
        "picture": u.picture,
        "role": u.role.value,
        "group": u.group,
        "has_google_identity": u.google_id is not None,
        "created_at": _iso(u.created_at),
    }


def session_dict(g: GameSession, stats: ShotStats | None = None) -> dict[str, Any]:
    """Session fields, plus shot statistics when *stats* is given."""
    data: dict[str, Any] = {
        "id": g.id,
        "user_id": g.user_id,
        "group_snapshot": g.group_snapshot,
        "started_at": _iso(g.started_at),
        "finished_at": _iso(g.finished_at),
        "is_active": g.is_active,
        "final_score": g.final_score,
        "max_level_reached": g.max_level_reached,
        "duration_seconds": g.duration_seconds,
        "canvas_width": g.canvas_width,
        "canvas_height": g.canvas_height,
        "created_at": _iso(g.created_at),
        "updated_at": _iso(g.updated_at),
    }
    if stats is not None:
        data.update(stats.to_dict())
    return data


def shot_dict(s: Shot) -> dict[str, Any]:
    return {
        "id": s.id,
        "game_session_id": s.game_session_id,
        "shot_at": _iso(s.shot_at),
        "coordinate_x": s.coordinate_x,
        "coordinate_y": s.coordinate_y,
        "factor_1": s.factor_1,
        "factor_2": s.factor_2,
        "correct_answer": s.correct_answer,
        "card_value": s.card_value,
        "is_correct": s.is_correct,
        "created_at": _iso(s.created_at),
    }
