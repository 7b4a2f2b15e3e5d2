"""Factory for creating auth providers based on configuration."""

from __future__ import annotations

from influencerium.auth_providers.base import AuthProvider
from influencerium.auth_providers.jwt_provider import JWTProvider
from influencerium.auth_providers.session_provider import SessionProvider
from influencerium.sessions.service import SessionService
from influencerium.storage.database import Database


def create_provider(
    provider_name: str,
    *,
    db: Database | None = None,
    sessions: SessionService | None = None,
    jwt_secret: str | None = None,
) -> AuthProvider:
    """Create an auth provider by name."""
    if provider_name == "jwt":
        if db is None:
            msg = "db required for jwt auth provider"
            raise ValueError(msg)
        return JWTProvider(db, secret=jwt_secret)

    if provider_name == "session":
        if sessions is None:
            msg = "sessions required for session auth provider"
            raise ValueError(msg)
        return SessionProvider(sessions)

    msg = f"Unknown auth provider: {provider_name}"
    raise ValueError(msg)
