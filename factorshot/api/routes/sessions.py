"""
factorshot.api.routes.sessions — Player endpoints (JWT-protected)
=================================================================

Field bounds are enforced here by pydantic; the lifecycle rules (ownership,
active state) are enforced by the services and surfaced through the
``SessionError`` handler registered in :mod:`factorshot.api.main`.
"""

from __future__ import annotations

from datetime import datetime

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, Field, StrictBool, StrictInt

from factorshot.api.deps import get_config, get_current_user, get_engine
from factorshot.api.serializers import session_dict, shot_dict
from factorshot.config import FactorshotConfig
from factorshot.constants import (
    ANSWER_MAX,
    ANSWER_MIN,
    CANVAS_MAX,
    CANVAS_MIN,
    FACTOR_MAX,
    FACTOR_MIN,
    MAX_DURATION_SECONDS,
    MIN_LEVEL,
    PLAYFIELD_HEIGHT,
    PLAYFIELD_WIDTH,
)
from factorshot.database.models import User
from factorshot.services import session_service, shot_service

router = APIRouter(prefix="/sessions", tags=["sessions"])


# ---------------------------------------------------------------------------
# Pydantic schemas
# ---------------------------------------------------------------------------
class SessionCreate(BaseModel):
    started_at: datetime
    canvas_width: StrictInt = Field(ge=CANVAS_MIN, le=CANVAS_MAX)
    canvas_height: StrictInt = Field(ge=CANVAS_MIN, le=CANVAS_MAX)


class SessionFinish(BaseModel):
    finished_at: datetime
    final_score: StrictInt = Field(ge=0)
    max_level_reached: StrictInt = Field(ge=MIN_LEVEL)
    duration_seconds: StrictInt = Field(ge=0, le=MAX_DURATION_SECONDS)


class ShotCreate(BaseModel):
    shot_at: datetime
    coordinate_x: float = Field(ge=0, le=PLAYFIELD_WIDTH)
    coordinate_y: float = Field(ge=0, le=PLAYFIELD_HEIGHT)
    factor_1: StrictInt = Field(ge=FACTOR_MIN, le=FACTOR_MAX)
    factor_2: StrictInt = Field(ge=FACTOR_MIN, le=FACTOR_MAX)
    correct_answer: StrictInt = Field(ge=ANSWER_MIN, le=ANSWER_MAX)
    card_value: StrictInt = Field(ge=ANSWER_MIN, le=ANSWER_MAX)
    is_correct: StrictBool


# ---------------------------------------------------------------------------
# Sessions
# ---------------------------------------------------------------------------
@router.get("")
def list_sessions(
    page: int = Query(1, ge=1),
    per_page: int | None = Query(None, ge=1, le=100),
    user: User = Depends(get_current_user),
    engine=Depends(get_engine),
    cfg: FactorshotConfig = Depends(get_config),
):
    result = session_service.list_user_sessions(
        engine, user.id, page=page, per_page=per_page or cfg.sessions_per_page
    )
    return {
        "data": [session_dict(v.session, v.stats) for v in result.items],
        "pagination": result.to_dict(),
    }


@router.post("", status_code=201)
def create_session(
    body: SessionCreate,
    user: User = Depends(get_current_user),
    engine=Depends(get_engine),
):
    game = session_service.create_session(
        engine,
        user.id,
        started_at=body.started_at,
        canvas_width=body.canvas_width,
        canvas_height=body.canvas_height,
    )
    return {"data": session_dict(game)}


@router.get("/{session_id}")
def get_session(
    session_id: int,
    user: User = Depends(get_current_user),
    engine=Depends(get_engine),
):
    detail = session_service.get_session_detail(engine, session_id, user.id)
    return {
        "data": {
            "session": session_dict(detail.session, detail.stats),
            "shots": [shot_dict(s) for s in detail.shots],
        }
    }


@router.put("/{session_id}/finish")
def finish_session(
    session_id: int,
    body: SessionFinish,
    user: User = Depends(get_current_user),
    engine=Depends(get_engine),
):
    view = session_service.finish_session(
        engine,
        session_id,
        user.id,
        finished_at=body.finished_at,
        final_score=body.final_score,
        max_level_reached=body.max_level_reached,
        duration_seconds=body.duration_seconds,
    )
    return {"data": session_dict(view.session, view.stats)}


# ---------------------------------------------------------------------------
# Shots
# ---------------------------------------------------------------------------
@router.post("/{session_id}/shots", status_code=201)
def record_shot(
    session_id: int,
    body: ShotCreate,
    user: User = Depends(get_current_user),
    engine=Depends(get_engine),
):
    shot = shot_service.record_shot(engine, session_id, user.id, **body.model_dump())
    return {"data": shot_dict(shot)}
