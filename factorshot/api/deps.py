"""
factorshot.api.deps — FastAPI dependency injection
===================================================

The authenticated actor is resolved here, once per request, and handed to
routes as a plain :class:`User`.  Routes pass ``actor.id`` explicitly into
every service call.
"""

from __future__ import annotations

import os
from datetime import UTC, datetime, timedelta
from functools import lru_cache
from typing import Annotated

import jwt
from fastapi import Depends, Header, HTTPException, status
from jwt.exceptions import InvalidTokenError
from sqlalchemy import Engine

from factorshot.api.identity import GoogleIdentityResolver
from factorshot.config import FactorshotConfig, load_config
from factorshot.database.engine import create_db_engine, run_db
from factorshot.database.models import User
from factorshot.services import account_service

JWT_ALGORITHM = "HS256"

# Values shipped in .env.example or commonly left in place by accident.
_PLACEHOLDER_SECRETS = frozenset({
    "factorshot-dev-secret-change-me",
    "change-me",
    "changeme",
    "secret",
    "dev",
})
_MIN_SECRET_LENGTH = 32


def _load_jwt_secret() -> str:
    """Return ``JWT_SECRET``, refusing to start the API with an unsafe one.

    Raises
    ------
    RuntimeError
        When the variable is unset or empty, still a placeholder, or shorter
        than 32 characters.
    """
    secret = os.getenv("JWT_SECRET") or ""
    if not secret:
        raise RuntimeError(
            "JWT_SECRET environment variable is not set; "
            "put a random value in .env (e.g. `openssl rand -base64 48`)."
        )
    if secret.lower() in _PLACEHOLDER_SECRETS:
        raise RuntimeError("JWT_SECRET is still a known weak default; replace it.")
    if len(secret) < _MIN_SECRET_LENGTH:
        raise RuntimeError(
            f"JWT_SECRET is too short: {len(secret)} characters, "
            f"need at least {_MIN_SECRET_LENGTH}."
        )
    return secret


JWT_SECRET: str = _load_jwt_secret()


@lru_cache(maxsize=1)
def get_engine() -> Engine:
    return create_db_engine()


@lru_cache(maxsize=1)
def get_config() -> FactorshotConfig:
    return load_config()


@lru_cache(maxsize=1)
def get_identity_resolver() -> GoogleIdentityResolver:
    return GoogleIdentityResolver.from_env()


def issue_access_token(user: User, ttl_hours: int) -> str:
    payload = {
        "sub": str(user.id),
        "email": user.email,
        "role": user.role.value,
        "exp": datetime.now(UTC) + timedelta(hours=ttl_hours),
    }
    return jwt.encode(payload, JWT_SECRET, algorithm=JWT_ALGORITHM)


async def get_current_user(
    authorization: Annotated[str | None, Header()] = None,
    engine: Engine = Depends(get_engine),
) -> User:
    """Validate the bearer token and re-read the user row. Raises 401."""
    scheme, _, token = (authorization or "").partition(" ")
    if scheme.lower() != "bearer" or not token:
        raise HTTPException(status.HTTP_401_UNAUTHORIZED, "Missing token")
    try:
        payload = jwt.decode(token, JWT_SECRET, algorithms=[JWT_ALGORITHM])
        user_id = int(payload["sub"])
    except (InvalidTokenError, KeyError, ValueError):
        raise HTTPException(status.HTTP_401_UNAUTHORIZED, "Invalid token")

    user = await run_db(account_service.get_user, engine, user_id)
    if user is None:
        raise HTTPException(status.HTTP_401_UNAUTHORIZED, "Unknown user")
    return user


def get_current_admin(user: User = Depends(get_current_user)) -> User:
    """Admin capability check, done once at the boundary. Raises 403."""
    if not user.role.can_administer:
        raise HTTPException(status.HTTP_403_FORBIDDEN, "Admin permissions required")
    return user
