"""
factorshot.services.export_service — CSV exports for the admin surface
=======================================================================
"""

from __future__ import annotations

import csv
import io
import re
from datetime import UTC, date, datetime

from sqlalchemy import Engine

from factorshot.database.models import User
from factorshot.services import report_service
from factorshot.services.report_service import UserFilters
from factorshot.services.session_service import SessionView

USERS_HEADER = [
    "Email", "Name", "Lastname", "Role", "Group", "Sessions",
    "Average", "Best Score", "Last Session", "Registered",
]
SESSIONS_HEADER = [
    "Number", "Date", "Time", "Score", "Max Level", "Total Shots",
    "Correct", "Wrong", "Accuracy", "Duration (sec)",
]


def _fmt_date(value: datetime | None, fmt: str) -> str:
    return value.strftime(fmt) if value else ""


def users_filename(now: datetime | None = None) -> str:
    now = now or datetime.now(UTC)
    return f"users_{now:%Y-%m-%d_%H-%M-%S}.csv"


def sessions_filename(user: User, today: date | None = None) -> str:
    today = today or datetime.now(UTC).date()
    safe = re.sub(r"[^a-zA-Z0-9]", "_", user.email)
    return f"sessions_{safe}_{today:%Y-%m-%d}.csv"


def export_users(engine: Engine, filters: UserFilters = UserFilters()) -> str:
    """All users matching *filters* as CSV text."""
    buf = io.StringIO()
    writer = csv.writer(buf, lineterminator="\n")
    writer.writerow(USERS_HEADER)
    for row in report_service.all_users(engine, filters):
        user, scores = row.user, row.scores
        writer.writerow([
            user.email,
            user.name or "",
            user.lastname or "",
            user.role.value,
            user.group or "",
            row.sessions_count,
            f"{scores.avg_score or 0:.1f}",
            scores.best_score or 0,
            _fmt_date(scores.last_played_at, "%Y-%m-%d %H:%M"),
            _fmt_date(user.created_at, "%Y-%m-%d"),
        ])
    return buf.getvalue()


def render_sessions(user: User, sessions: list[SessionView], exported_at: datetime) -> str:
    full_name = " ".join(p for p in (user.name, user.lastname) if p)
    buf = io.StringIO()
    buf.write(f"# Sessions of: {full_name} ({user.email})\n")
    buf.write(f"# Group: {user.group or 'N/A'}\n")
    buf.write(f"# Exported: {exported_at:%Y-%m-%d %H:%M:%S}\n")
    buf.write("#\n")

    writer = csv.writer(buf, lineterminator="\n")
    writer.writerow(SESSIONS_HEADER)
    for number, view in enumerate(sessions, start=1):
        game, stats = view.session, view.stats
        writer.writerow([
            number,
            _fmt_date(game.started_at, "%Y-%m-%d"),
            _fmt_date(game.started_at, "%H:%M:%S"),
            game.final_score,
            game.max_level_reached,
            stats.total_shots,
            stats.correct_shots,
            stats.wrong_shots,
            f"{stats.accuracy:.2f}%",
            game.duration_seconds,
        ])
    return buf.getvalue()


def export_user_sessions(
    engine: Engine,
    user_id: int,
    *,
    date_from: date | None = None,
    date_to: date | None = None,
) -> tuple[User, str] | None:
    """One user's sessions as CSV text, or ``None`` if the user is unknown."""
    found = report_service.all_user_sessions(
        engine, user_id, date_from=date_from, date_to=date_to
    )
    if found is None:
        return None
    user, sessions = found
    return user, render_sessions(user, sessions, datetime.now(UTC))
