"""
factorshot.api.auth — Google Sign-In → JWT issuance
====================================================

The frontend obtains a Google ID token and posts it to ``/auth/verify``.
The token is verified, the user row is resolved (or provisioned, or linked
to a roster-imported row by email), the login is journaled and a
short-lived access token is returned for the other endpoints.
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException, Request, status
from pydantic import BaseModel, Field

from factorshot.api.deps import (
    get_config,
    get_current_user,
    get_engine,
    get_identity_resolver,
    issue_access_token,
)
from factorshot.api.identity import AuthError, GoogleIdentityResolver
from factorshot.api.serializers import user_dict
from factorshot.config import FactorshotConfig
from factorshot.database.engine import run_db
from factorshot.database.models import User
from factorshot.services import account_service

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/auth", tags=["auth"])


class VerifyBody(BaseModel):
    token: str = Field(min_length=1)


@router.post("/verify")
async def verify(
    body: VerifyBody,
    request: Request,
    resolver: GoogleIdentityResolver = Depends(get_identity_resolver),
    cfg: FactorshotConfig = Depends(get_config),
    engine=Depends(get_engine),
):
    """Exchange a Google ID token for a Factorshot access token."""
    try:
        claims = await resolver.verify(body.token)
    except AuthError as exc:
        raise HTTPException(status.HTTP_401_UNAUTHORIZED, str(exc)) from exc

    try:
        user = await run_db(account_service.resolve_user, engine, claims)
    except account_service.IdentityConflict as exc:
        raise HTTPException(status.HTTP_401_UNAUTHORIZED, str(exc)) from exc
    await run_db(
        account_service.record_login,
        engine,
        user.id,
        ip_address=request.client.host if request.client else None,
        user_agent=request.headers.get("user-agent"),
    )
    logger.info("User %s (%s) logged in", user.id, user.email)

    return {
        "user": user_dict(user),
        "access_token": issue_access_token(user, cfg.token_ttl_hours),
        "token_type": "bearer",
    }


@router.get("/me")
async def me(user: User = Depends(get_current_user)):
    """Return the current authenticated user."""
    return user_dict(user)
