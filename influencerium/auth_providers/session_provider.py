"""Session-token authentication provider."""

from __future__ import annotations

from influencerium.auth_providers.base import AuthResult
from influencerium.sessions.service import SessionService


class SessionProvider:
    """Authenticate a raw session token through the session service.

    A successful check also records activity on the session.
    """

    name = "session"

    def __init__(self, sessions: SessionService) -> None:
        self._sessions = sessions

    async def authenticate(self, token: str) -> AuthResult:
        session = await self._sessions.validate_session(token)
        if session is None:
            return AuthResult(
                authenticated=False, provider=self.name, error="Invalid or expired session"
            )
        if session.user is None or session.user.status != "active":
            return AuthResult(authenticated=False, provider=self.name, error="User inactive")

        await self._sessions.update_session_activity(session.id)
        return AuthResult(
            authenticated=True,
            user_id=session.user_id,
            role=session.user.role,
            provider=self.name,
            session_id=session.id,
        )
