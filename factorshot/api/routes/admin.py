"""
factorshot.api.routes.admin — Admin endpoints (JWT + admin role)
================================================================
"""

from __future__ import annotations

import logging
from datetime import date
from pathlib import Path

from fastapi import APIRouter, Depends, HTTPException, Query, UploadFile
from fastapi.responses import Response

from factorshot.api.deps import get_config, get_current_admin, get_engine
from factorshot.api.serializers import session_dict, user_dict
from factorshot.config import FactorshotConfig
from factorshot.constants import ROSTER_ALLOWED_EXTENSIONS, ROSTER_MAX_BYTES
from factorshot.database.engine import run_db
from factorshot.database.models import Role, User
from factorshot.services import export_service, report_service, roster_service
from factorshot.services.report_service import UserFilters

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/admin", tags=["admin"])


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------
def _user_filters(
    group: str | None = Query(None),
    role: Role | None = Query(None),
    search: str | None = Query(None),
) -> UserFilters:
    return UserFilters(group=group or None, role=role, search=search or None)


def _csv_response(content: str, filename: str) -> Response:
    return Response(
        content=content,
        media_type="text/csv; charset=utf-8",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


# ---------------------------------------------------------------------------
# Users
# ---------------------------------------------------------------------------
@router.get("/groups")
def list_groups(
    admin: User = Depends(get_current_admin),
    engine=Depends(get_engine),
):
    return {"data": report_service.list_groups(engine)}


@router.get("/users")
def list_users(
    filters: UserFilters = Depends(_user_filters),
    sort_by: str = Query("created_at"),
    order: str = Query("desc"),
    page: int = Query(1, ge=1),
    per_page: int | None = Query(None, ge=1, le=200),
    admin: User = Depends(get_current_admin),
    engine=Depends(get_engine),
    cfg: FactorshotConfig = Depends(get_config),
):
    result = report_service.list_users(
        engine,
        filters,
        sort_by=sort_by,
        order=order,
        page=page,
        per_page=per_page or cfg.users_per_page,
    )
    return {
        "data": [
            {**user_dict(row.user), "sessions_count": row.sessions_count, **row.scores.to_dict()}
            for row in result.items
        ],
        "pagination": result.to_dict(),
        "filters_applied": filters.to_dict(),
    }


@router.get("/users/{user_id}/sessions")
def user_sessions(
    user_id: int,
    date_from: date | None = Query(None),
    date_to: date | None = Query(None),
    page: int = Query(1, ge=1),
    per_page: int | None = Query(None, ge=1, le=200),
    admin: User = Depends(get_current_admin),
    engine=Depends(get_engine),
    cfg: FactorshotConfig = Depends(get_config),
):
    report = report_service.user_sessions(
        engine,
        user_id,
        date_from=date_from,
        date_to=date_to,
        page=page,
        per_page=per_page or cfg.admin_sessions_per_page,
    )
    if report is None:
        raise HTTPException(404, "User not found")

    offset = report.page.offset
    return {
        "user": user_dict(report.user),
        "summary": report.summary.to_dict(),
        "data": [
            {"row_number": offset + i + 1, **session_dict(v.session, v.stats)}
            for i, v in enumerate(report.page.items)
        ],
        "pagination": report.page.to_dict(),
        "filters_applied": {
            "date_from": date_from.isoformat() if date_from else None,
            "date_to": date_to.isoformat() if date_to else None,
        },
    }


@router.post("/users/upload-csv")
async def upload_csv(
    file: UploadFile,
    admin: User = Depends(get_current_admin),
    engine=Depends(get_engine),
):
    """Bulk create/update users from a roster CSV (``email,group[,name][,lastname]``)."""
    ext = Path(file.filename or "").suffix.lower()
    if ext not in ROSTER_ALLOWED_EXTENSIONS:
        raise HTTPException(422, f"File type not allowed: {ext!r}. Upload a .csv file.")

    content = await file.read()
    if len(content) > ROSTER_MAX_BYTES:
        raise HTTPException(
            422, f"File too large: {len(content)} bytes (max {ROSTER_MAX_BYTES // 1024} KB)"
        )
    try:
        text = content.decode("utf-8-sig")
    except UnicodeDecodeError as exc:
        raise HTTPException(422, "File must be UTF-8 encoded") from exc

    try:
        result = await run_db(roster_service.import_roster, engine, text)
    except roster_service.RosterFormatError as exc:
        raise HTTPException(422, str(exc)) from exc

    logger.info("Admin %s imported roster %r", admin.id, file.filename)
    return {"message": "Import completed", **result.to_dict()}


# ---------------------------------------------------------------------------
# Exports
# ---------------------------------------------------------------------------
@router.get("/export/users")
def export_users(
    filters: UserFilters = Depends(_user_filters),
    admin: User = Depends(get_current_admin),
    engine=Depends(get_engine),
):
    content = export_service.export_users(engine, filters)
    return _csv_response(content, export_service.users_filename())


@router.get("/export/users/{user_id}/sessions")
def export_user_sessions(
    user_id: int,
    date_from: date | None = Query(None),
    date_to: date | None = Query(None),
    admin: User = Depends(get_current_admin),
    engine=Depends(get_engine),
):
    exported = export_service.export_user_sessions(
        engine, user_id, date_from=date_from, date_to=date_to
    )
    if exported is None:
        raise HTTPException(404, "User not found")
    user, content = exported
    return _csv_response(content, export_service.sessions_filename(user))
