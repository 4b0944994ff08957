"""
factorshot.engine.lifecycle — Session State Machine & Admission Rules
=====================================================================

A game session has exactly two states::

    ACTIVE ──finish()──▶ FINISHED

The state is never stored separately; it is read off ``finished_at``
(``None`` → active).  There is no way back from FINISHED.

Mutating a session (finishing it or recording a shot) is admitted only when,
checked in this order:

    1. the session exists               → else :class:`SessionNotFound`
    2. the actor owns it                → else :class:`SessionForbidden`
    3. the session is still active      → else :class:`SessionFinished`

Reads are stricter about disclosure: a session owned by someone else is
reported as not found (see :func:`check_readable`).
"""

from __future__ import annotations

import enum
import logging
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from factorshot.database.models import GameSession

logger = logging.getLogger(__name__)


class SessionState(enum.StrEnum):
    ACTIVE = "active"
    FINISHED = "finished"


# ---------------------------------------------------------------------------
# Domain errors
# ---------------------------------------------------------------------------
class SessionError(Exception):
    """Base class for lifecycle rule violations.

    ``kind`` is a stable machine-readable code surfaced to API clients.
    """

    kind = "session_error"

    def __init__(self, message: str, *, session_id: int | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.session_id = session_id


class SessionNotFound(SessionError):
    kind = "not_found"


class SessionForbidden(SessionError):
    kind = "forbidden"


class SessionFinished(SessionError):
    """The session already left the ACTIVE state."""

    kind = "invalid_state"


# ---------------------------------------------------------------------------
# Rules
# ---------------------------------------------------------------------------
def state_of(session: GameSession) -> SessionState:
    return SessionState.ACTIVE if session.finished_at is None else SessionState.FINISHED


def check_mutable(session: GameSession | None, session_id: int, actor_id: int) -> GameSession:
    """Apply the three admission checks for finish / record-shot.

    Returns the session unchanged when every check passes.
    """
    if session is None:
        raise SessionNotFound("Session not found", session_id=session_id)
    if session.user_id != actor_id:
        logger.warning(
            "User %s tried to modify session %s owned by user %s",
            actor_id, session_id, session.user_id,
        )
        raise SessionForbidden(
            "Access to the requested session is forbidden", session_id=session_id
        )
    if state_of(session) is SessionState.FINISHED:
        raise SessionFinished("Session already finished", session_id=session_id)
    return session


def check_readable(session: GameSession | None, session_id: int, actor_id: int) -> GameSession:
    """Ownership check for the read path; foreign sessions look missing."""
    if session is None or session.user_id != actor_id:
        raise SessionNotFound("Session not found", session_id=session_id)
    return session
