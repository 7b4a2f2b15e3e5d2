"""Session lifecycle service.

Issues high-entropy session tokens, validates them, tracks activity, and
moves sessions through ``active → revoked`` and ``active → expired``.

Rules enforced here:
- A raw token leaves the service exactly once, in the ``Session`` returned
  by ``create_session``. Listings and lookups return masked tokens.
- "Not found" and "owned by someone else" produce the same ``None`` /
  ``False`` / ``0`` result, so callers cannot enumerate other users' sessions.
- Validation checks ``expires_at`` itself; only ``cleanup_expired_sessions``
  writes the ``expired`` status.
- Store failures propagate unchanged; nothing here retries.
"""

from __future__ import annotations

import logging
import secrets
from collections.abc import Callable
from datetime import datetime, timedelta, timezone
from typing import Any
from uuid import uuid4

from influencerium.exceptions import ValidationError
from influencerium.sessions.models import (
    STATUS_FILTERS,
    Pagination,
    Session,
    SessionMetadata,
    SessionPage,
    SessionStatus,
    SessionUser,
)
from influencerium.storage.database import Database, to_db_timestamp

logger = logging.getLogger("influencerium.sessions")

#: Random bytes per token; hex encoding doubles the length.
TOKEN_BYTES = 64

DEFAULT_SESSION_LIFETIME = timedelta(milliseconds=604_800_000)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def generate_session_token() -> str:
    """Return 512 bits from the OS CSPRNG as 128 lowercase hex characters."""
    return secrets.token_hex(TOKEN_BYTES)


def session_headers(session: Session | None) -> dict[str, str]:
    """Response headers describing the caller's current session."""
    return {
        "X-Session-ID": session.id if session else "",
        "X-Session-Expires": session.expires_at.isoformat() if session else "",
    }


class SessionService:
    """Creates, validates, lists, revokes and expires sessions."""

    def __init__(
        self,
        db: Database,
        *,
        lifetime: timedelta = DEFAULT_SESSION_LIFETIME,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        if lifetime <= timedelta(0):
            raise ValueError("Session lifetime must be positive")
        self.db = db
        self.lifetime = lifetime
        self._clock = clock

    def _now(self) -> str:
        return to_db_timestamp(self._clock())

    # ------------------------------------------------------------------
    # Creation and validation
    # ------------------------------------------------------------------

    async def create_session(
        self, user_id: str, metadata: SessionMetadata | None = None
    ) -> Session:
        """Persist a new active session and return it with its raw token."""
        metadata = metadata or SessionMetadata()
        now = self._clock()
        record = {
            "id": str(uuid4()),
            "user_id": user_id,
            "session_token": generate_session_token(),
            "ip_address": metadata.ip,
            "user_agent": metadata.user_agent,
            "device_info": metadata.device_info,
            "status": SessionStatus.ACTIVE.value,
            "created_at": to_db_timestamp(now),
            "last_active_at": to_db_timestamp(now),
            "expires_at": to_db_timestamp(now + self.lifetime),
            "revoked_at": None,
        }
        await self.db.insert_session(record)
        logger.info(
            "Created session %s for user %s",
            record["id"],
            user_id,
            extra={"user_id": user_id, "session_id": record["id"]},
        )
        return Session.model_validate(record)

    async def create_session_for_user(
        self, user: Any, metadata: SessionMetadata | None = None, *, create: bool = True
    ) -> Session | None:
        """Hybrid login: pair a JWT login with a tracked session unless *create* is False."""
        if not create:
            return None
        return await self.create_session(user.id, metadata)

    async def validate_session(self, token: str | None) -> Session | None:
        """Return the live session for *token*, or ``None``.

        ``None`` covers unknown tokens, revoked or expired sessions, and
        sessions whose ``expires_at`` has passed but have not been swept yet.
        """
        if not token:
            return None
        row = await self.db.get_live_session_by_token(token, self._now())
        if row is None:
            return None
        user = SessionUser(
            id=row["user_id"],
            name=row.pop("user_name"),
            email=row.pop("user_email"),
            role=row.pop("user_role"),
            status=row.pop("user_status"),
        )
        return Session.model_validate({**row, "user": user})

    # ------------------------------------------------------------------
    # Listing
    # ------------------------------------------------------------------

    async def get_user_sessions(
        self,
        user_id: str,
        *,
        status: str = SessionStatus.ACTIVE.value,
        page: int = 1,
        limit: int = 20,
    ) -> SessionPage:
        """Return one page of a user's sessions with tokens masked."""
        if status not in STATUS_FILTERS:
            raise ValidationError(f"Unknown session status filter: {status}")
        if page < 1 or limit < 1:
            raise ValidationError("page and limit must be positive integers")

        rows, total = await self.db.list_sessions(
            user_id,
            status=None if status == "all" else status,
            limit=limit,
            offset=(page - 1) * limit,
        )
        return SessionPage(
            sessions=[Session.model_validate(r).masked() for r in rows],
            pagination=Pagination.build(page, limit, total),
        )

    async def get_session_by_id(self, session_id: str, user_id: str) -> Session | None:
        """Scoped lookup; sessions of other users are invisible."""
        row = await self.db.get_session(session_id, user_id)
        if row is None:
            return None
        return Session.model_validate(row).masked()

    async def count_active_sessions(self, user_id: str) -> int:
        return await self.db.count_active_sessions(user_id, self._now())

    # ------------------------------------------------------------------
    # Mutation
    # ------------------------------------------------------------------

    async def update_session_activity(self, session_id: str) -> None:
        await self.db.touch_session(session_id, self._now())

    async def revoke_session(self, session_id: str, user_id: str) -> bool:
        """Revoke one active session owned by *user_id*; True iff a row changed."""
        changed = await self.db.revoke_session(session_id, user_id, self._now())
        if changed:
            logger.info(
                "Revoked session %s",
                session_id,
                extra={"user_id": user_id, "session_id": session_id},
            )
        return changed > 0

    async def revoke_all_sessions(
        self, user_id: str, exclude_session_id: str | None = None
    ) -> int:
        """Revoke every active session of *user_id*, optionally sparing one."""
        count = await self.db.revoke_user_sessions(
            user_id, self._now(), exclude_session_id=exclude_session_id
        )
        logger.info(
            "Revoked %d session(s) for user %s%s",
            count,
            user_id,
            " (kept current)" if exclude_session_id else "",
            extra={"user_id": user_id},
        )
        return count

    async def revoke_sessions_by_type(self, user_id: str, device_type: str | None) -> int:
        """Revoke active sessions whose device tag equals *device_type*; untagged never match."""
        count = await self.db.revoke_device_sessions(user_id, device_type, self._now())
        logger.info(
            "Revoked %d %s session(s) for user %s",
            count,
            device_type,
            user_id,
            extra={"user_id": user_id},
        )
        return count

    async def cleanup_expired_sessions(self) -> int:
        """Mark every active session past its expiry as expired. Idempotent."""
        count = await self.db.expire_sessions(self._now())
        if count:
            logger.info("Expired %d session(s)", count)
        return count
