"""JWT access/refresh tokens and the provider that authenticates them."""

from __future__ import annotations

import logging
import os
import time
from typing import Any

import jwt

from influencerium.auth_providers.base import AuthResult
from influencerium.config import settings
from influencerium.exceptions import AuthenticationError
from influencerium.storage.database import Database

logger = logging.getLogger("influencerium.auth_providers.jwt")

_JWT_ALGORITHM = "HS256"
_DEV_SECRET = "inf-dev-secret-do-not-use-in-production"


def _get_jwt_secret() -> str:
    # os.environ first so monkeypatch works in tests.
    secret = os.environ.get("INF_JWT_SECRET", settings.jwt_secret)
    if not secret:
        logger.warning("INF_JWT_SECRET not set, using insecure default (dev only)")
        return _DEV_SECRET
    return secret


def _encode(claims: dict[str, Any], lifetime_seconds: int, secret: str | None) -> str:
    now = int(time.time())
    payload = {**claims, "iat": now, "exp": now + lifetime_seconds}
    return jwt.encode(payload, secret or _get_jwt_secret(), algorithm=_JWT_ALGORITHM)


def issue_access_token(user: dict[str, Any], *, secret: str | None = None) -> str:
    """Issue a short-lived access token carrying the user's id, email and role."""
    return _encode(
        {"sub": user["id"], "email": user.get("email"), "role": user["role"], "type": "access"},
        settings.jwt_expires_in_seconds,
        secret,
    )


def issue_refresh_token(user: dict[str, Any], *, secret: str | None = None) -> str:
    return _encode(
        {"sub": user["id"], "type": "refresh"},
        settings.jwt_refresh_expires_in_seconds,
        secret,
    )


def verify_refresh_token(token: str, *, secret: str | None = None) -> dict[str, Any]:
    """Decode a refresh token or raise ``AuthenticationError``."""
    try:
        claims = jwt.decode(token, secret or _get_jwt_secret(), algorithms=[_JWT_ALGORITHM])
    except jwt.PyJWTError as e:
        raise AuthenticationError("Invalid refresh token") from e
    if claims.get("type") != "refresh":
        raise AuthenticationError("Invalid refresh token")
    return claims


class JWTProvider:
    """Authenticate bearer access tokens and resolve the owning active user.

    The role comes from the user row, not the token, so a demotion takes
    effect on the next request.
    """

    name = "jwt"

    def __init__(self, db: Database, secret: str | None = None) -> None:
        self._db = db
        self._secret = secret

    async def authenticate(self, token: str) -> AuthResult:
        try:
            claims = jwt.decode(
                token,
                self._secret or _get_jwt_secret(),
                algorithms=[_JWT_ALGORITHM],
                options={"require": ["sub", "exp"]},
            )
        except jwt.ExpiredSignatureError:
            return AuthResult(
                authenticated=False, provider=self.name, error="Token has expired", expired=True
            )
        except jwt.PyJWTError as e:
            return AuthResult(
                authenticated=False, provider=self.name, error=f"JWT validation failed: {e}"
            )

        if claims.get("type") != "access":
            return AuthResult(authenticated=False, provider=self.name, error="Invalid token type")

        user = await self._db.get_user(claims["sub"])
        if user is None or user["status"] != "active":
            return AuthResult(
                authenticated=False, provider=self.name, error="User not found or inactive"
            )
        return AuthResult(
            authenticated=True,
            user_id=user["id"],
            role=user["role"],
            provider=self.name,
            claims=claims,
        )
