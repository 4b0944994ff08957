"""
factorshot.api.identity — Google ID token verification
=======================================================

Turns the ID token the frontend obtained from Google Sign-In into
:class:`IdentityClaims`.  Verification is delegated to Google's
``tokeninfo`` endpoint (signature + expiry), after which the audience and
issuer are checked locally.
"""

from __future__ import annotations

import logging
import os

import httpx

from factorshot.services.account_service import IdentityClaims

logger = logging.getLogger(__name__)

GOOGLE_TOKENINFO_URL = "https://oauth2.googleapis.com/tokeninfo"
GOOGLE_ISSUERS = frozenset({"accounts.google.com", "https://accounts.google.com"})


class AuthError(Exception):
    """The credential is missing, invalid, expired or for another client."""


class GoogleIdentityResolver:
    def __init__(
        self,
        client_id: str,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
        timeout: float = 10,
    ) -> None:
        self.client_id = client_id
        self._transport = transport
        self._timeout = timeout

    @classmethod
    def from_env(cls) -> GoogleIdentityResolver:
        return cls(os.getenv("GOOGLE_CLIENT_ID", "").strip())

    async def verify(self, credential: str) -> IdentityClaims:
        """Verify *credential* and return the identity behind it.

        Raises
        ------
        AuthError
            On any verification failure, including Google being unreachable.
        """
        if not self.client_id:
            raise AuthError("Google sign-in is not configured: missing GOOGLE_CLIENT_ID")
        if not credential:
            raise AuthError("Missing credential")

        transport = self._transport or httpx.AsyncHTTPTransport(retries=1)
        try:
            async with httpx.AsyncClient(timeout=self._timeout, transport=transport) as client:
                resp = await client.get(GOOGLE_TOKENINFO_URL, params={"id_token": credential})
        except httpx.HTTPError as exc:
            logger.warning("Google tokeninfo request failed: %s", exc)
            raise AuthError("Could not reach Google to verify the token") from exc

        if resp.status_code != 200:
            raise AuthError("Invalid or expired token")

        payload = resp.json()
        if payload.get("aud") != self.client_id:
            raise AuthError("Token was issued for a different client")
        if payload.get("iss") not in GOOGLE_ISSUERS:
            raise AuthError("Token was not issued by Google")
        if not payload.get("sub") or not payload.get("email"):
            raise AuthError("Token is missing identity claims")

        return IdentityClaims(
            google_id=str(payload["sub"]),
            email=payload["email"],
            name=payload.get("given_name") or payload.get("name"),
            lastname=payload.get("family_name"),
            picture=payload.get("picture"),
            # tokeninfo returns this claim as the string "true"/"false".
            email_verified=str(payload.get("email_verified", "")).lower() == "true",
        )
