"""Base authentication provider protocol and result types."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Protocol, runtime_checkable

from influencerium.rbac import Principal


@dataclass
class AuthResult:
    """Result of an authentication attempt."""

    authenticated: bool
    user_id: str = ""
    role: str = ""
    provider: str = ""
    session_id: str | None = None
    claims: dict = field(default_factory=dict)
    error: str | None = None
    expired: bool = False

    @property
    def principal(self) -> Principal | None:
        """The resolved caller, or None when authentication failed."""
        if not self.authenticated:
            return None
        return Principal(id=self.user_id, role=self.role)


@runtime_checkable
class AuthProvider(Protocol):
    """Protocol that all auth providers must implement."""

    name: str

    async def authenticate(self, token: str) -> AuthResult:
        """Authenticate a token and return an AuthResult."""
        ...
