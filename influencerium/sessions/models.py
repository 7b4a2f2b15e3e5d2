"""Session domain models.

A session is a server-tracked binding between a user and a bearer token.
Lifecycle: ``active`` → ``expired`` (cleanup sweep) or ``active`` → ``revoked``
(explicit action). Both end states are terminal.
"""

from __future__ import annotations

import math
from datetime import datetime
from enum import StrEnum

from pydantic import BaseModel, Field

#: Characters kept at each end of a masked token.
MASK_VISIBLE_CHARS = 8


class SessionStatus(StrEnum):
    ACTIVE = "active"
    EXPIRED = "expired"
    REVOKED = "revoked"


#: Accepted values for the listing filter ("all" disables it).
STATUS_FILTERS: frozenset[str] = frozenset({*SessionStatus, "all"})


def mask_token(token: str) -> str:
    """Display-safe form of a session token: first 8 + ``...`` + last 8."""
    return f"{token[:MASK_VISIBLE_CHARS]}...{token[-MASK_VISIBLE_CHARS:]}"


class SessionMetadata(BaseModel):
    """Provenance recorded when a session is created."""

    ip: str | None = None
    user_agent: str | None = None
    device_info: str | None = Field(default=None, max_length=100)


class SessionUser(BaseModel):
    """Owning user fields joined in when a token is validated."""

    id: str
    name: str | None = None
    email: str | None = None
    role: str
    status: str


class Session(BaseModel):
    """One authenticated device/client binding."""

    id: str
    user_id: str
    session_token: str
    ip_address: str | None = None
    user_agent: str | None = None
    device_info: str | None = None
    status: SessionStatus = SessionStatus.ACTIVE
    created_at: datetime
    last_active_at: datetime
    expires_at: datetime
    revoked_at: datetime | None = None
    user: SessionUser | None = None

    def masked(self) -> Session:
        """Copy of this session with the token masked."""
        return self.model_copy(update={"session_token": mask_token(self.session_token)})


class Pagination(BaseModel):
    page: int
    limit: int
    total: int
    pages: int

    @classmethod
    def build(cls, page: int, limit: int, total: int) -> Pagination:
        return cls(page=page, limit=limit, total=total, pages=math.ceil(total / limit))


class SessionPage(BaseModel):
    """Paginated listing envelope."""

    sessions: list[Session]
    pagination: Pagination
