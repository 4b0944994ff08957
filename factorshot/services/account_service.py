"""
factorshot.services.account_service — Account Directory
========================================================

Maps a verified Google identity onto an internal :class:`User` row.

Email is the join key between roster-imported rows (no ``google_id`` yet)
and identity-provider logins.  Resolution order on login:

  1. ``google_id`` match           → existing user, profile refreshed
  2. ``email`` match, row unlinked → attach ``google_id`` to that row
                                     (only if Google verified the email)
  3. neither                       → create a new student

An email match on a row already linked to a different Google account is
refused with :class:`IdentityConflict`; the existing link is never replaced.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from sqlalchemy import Engine, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from factorshot.database.engine import get_session
from factorshot.database.models import Role, User, UserLogin

logger = logging.getLogger(__name__)


class IdentityConflict(Exception):
    """The identity cannot be bound to the user row its email points at."""


@dataclass(frozen=True, slots=True)
class IdentityClaims:
    """Profile claims returned by the identity provider for one credential."""

    google_id: str
    email: str
    name: str | None = None
    lastname: str | None = None
    picture: str | None = None
    email_verified: bool = False


def _apply_claims(user: User, claims: IdentityClaims) -> None:
    # Roster-provided names win; the provider only fills gaps.
    if claims.name and not user.name:
        user.name = claims.name
    if claims.lastname and not user.lastname:
        user.lastname = claims.lastname
    if claims.picture:
        user.picture = claims.picture


def _find_or_create(session: Session, claims: IdentityClaims) -> User:
    user = session.scalar(select(User).where(User.google_id == claims.google_id))
    if user is not None:
        _apply_claims(user, claims)
        return user

    user = session.scalar(select(User).where(User.email == claims.email))
    if user is not None:
        if user.google_id is not None:
            logger.warning(
                "Refused login for %s: user %s is linked to another Google account",
                claims.email, user.id,
            )
            raise IdentityConflict("This email is already linked to another Google account")
        if not claims.email_verified:
            logger.warning("Refused login for %s: email not verified by Google", claims.email)
            raise IdentityConflict("Google has not verified this email address")

        logger.info("Attaching Google identity to roster user %s (%s)", user.id, user.email)
        user.google_id = claims.google_id
        _apply_claims(user, claims)
        return user

    user = User(
        google_id=claims.google_id,
        email=claims.email,
        name=claims.name,
        lastname=claims.lastname,
        picture=claims.picture,
        role=Role.STUDENT,
    )
    session.add(user)
    logger.info("Created user for %s", claims.email)
    return user


def resolve_user(engine: Engine, claims: IdentityClaims) -> User:
    """Idempotent upsert of the user behind *claims*.

    Two first logins racing on the same identity may both try to insert; the
    loser hits the unique constraint and resolves again against the winner's
    row.
    """
    try:
        with get_session(engine) as session:
            user = _find_or_create(session, claims)
            session.flush()
            session.refresh(user)
            return user
    except IntegrityError:
        logger.info("Concurrent provisioning for %s, retrying lookup", claims.email)
        with get_session(engine) as session:
            user = _find_or_create(session, claims)
            session.flush()
            session.refresh(user)
            return user


def record_login(
    engine: Engine,
    user_id: int,
    *,
    ip_address: str | None = None,
    user_agent: str | None = None,
) -> None:
    """Append a row to the login journal."""
    with get_session(engine) as session:
        session.add(UserLogin(user_id=user_id, ip_address=ip_address, user_agent=user_agent))


def get_user(engine: Engine, user_id: int) -> User | None:
    with Session(engine, expire_on_commit=False) as session:
        return session.get(User, user_id)

