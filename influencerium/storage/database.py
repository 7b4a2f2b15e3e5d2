"""Async SQLite storage layer for users and sessions.

Uses aiosqlite for async access. Repository pattern for clean separation:
services own the rules, this module owns the SQL.  Every mutation is a
single statement committed before the method returns.
"""

from __future__ import annotations

import os
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

import aiosqlite

DEFAULT_DB_PATH = Path(os.environ.get("INF_DB_PATH", "influencerium.db"))

SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS users (
    id TEXT PRIMARY KEY,
    email TEXT NOT NULL UNIQUE,
    name TEXT,
    password_hash TEXT NOT NULL,
    role TEXT NOT NULL DEFAULT 'user',
    status TEXT NOT NULL DEFAULT 'active',
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS sessions (
    id TEXT PRIMARY KEY,
    user_id TEXT NOT NULL REFERENCES users(id) ON DELETE CASCADE,
    session_token TEXT NOT NULL UNIQUE,
    ip_address TEXT,
    user_agent TEXT,
    device_info TEXT,
    status TEXT NOT NULL DEFAULT 'active',
    expires_at TEXT NOT NULL,
    created_at TEXT NOT NULL,
    last_active_at TEXT NOT NULL,
    revoked_at TEXT
);

CREATE INDEX IF NOT EXISTS idx_sessions_user_id
    ON sessions (user_id);

CREATE INDEX IF NOT EXISTS idx_sessions_status
    ON sessions (status);

CREATE INDEX IF NOT EXISTS idx_sessions_expires_at
    ON sessions (expires_at);
"""

_SESSION_COLUMNS = (
    "id, user_id, session_token, ip_address, user_agent, device_info, status, "
    "created_at, last_active_at, expires_at, revoked_at"
)


def to_db_timestamp(dt: datetime) -> str:
    """Fixed-width UTC ISO-8601 so string order matches time order."""
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc).isoformat(timespec="microseconds")


class Database:
    """Async SQLite database wrapper."""

    def __init__(self, db_path: Path | str = DEFAULT_DB_PATH, timeout: float = 5.0) -> None:
        self.db_path = Path(db_path)
        self.timeout = timeout
        self._db: aiosqlite.Connection | None = None

    async def connect(self) -> None:
        self._db = await aiosqlite.connect(self.db_path, timeout=self.timeout)
        self._db.row_factory = aiosqlite.Row
        await self._db.execute("PRAGMA foreign_keys = ON")
        await self._db.executescript(SCHEMA_SQL)
        await self._db.commit()

    async def close(self) -> None:
        if self._db:
            await self._db.close()
            self._db = None

    @property
    def db(self) -> aiosqlite.Connection:
        if self._db is None:
            raise RuntimeError("Database not connected. Call connect() first.")
        return self._db

    # --- Users ---

    async def insert_user(self, user: dict[str, Any]) -> None:
        await self.db.execute(
            """INSERT INTO users
               (id, email, name, password_hash, role, status, created_at, updated_at)
               VALUES (?, ?, ?, ?, ?, ?, ?, ?)""",
            (
                user["id"],
                user["email"],
                user.get("name"),
                user["password_hash"],
                user.get("role", "user"),
                user.get("status", "active"),
                user["created_at"],
                user["updated_at"],
            ),
        )
        await self.db.commit()

    async def get_user(self, user_id: str) -> dict[str, Any] | None:
        cursor = await self.db.execute(
            "SELECT id, email, name, role, status, created_at, updated_at FROM users WHERE id = ?",
            (user_id,),
        )
        row = await cursor.fetchone()
        return dict(row) if row else None

    async def get_user_by_email(self, email: str) -> dict[str, Any] | None:
        """Return the user row including ``password_hash`` for login checks."""
        cursor = await self.db.execute("SELECT * FROM users WHERE email = ?", (email,))
        row = await cursor.fetchone()
        return dict(row) if row else None

    # --- Sessions ---

    async def insert_session(self, session: dict[str, Any]) -> None:
        await self.db.execute(
            f"""INSERT INTO sessions ({_SESSION_COLUMNS})
               VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)""",  # noqa: S608
            (
                session["id"],
                session["user_id"],
                session["session_token"],
                session.get("ip_address"),
                session.get("user_agent"),
                session.get("device_info"),
                session["status"],
                session["created_at"],
                session["last_active_at"],
                session["expires_at"],
                session.get("revoked_at"),
            ),
        )
        await self.db.commit()

    async def get_live_session_by_token(self, token: str, now: str) -> dict[str, Any] | None:
        """Active, unexpired session for *token* joined with its owner."""
        cursor = await self.db.execute(
            """SELECT s.*, u.name AS user_name, u.email AS user_email,
                      u.role AS user_role, u.status AS user_status
               FROM sessions s
               JOIN users u ON s.user_id = u.id
               WHERE s.session_token = ?
                 AND s.status = 'active'
                 AND s.expires_at > ?""",
            (token, now),
        )
        row = await cursor.fetchone()
        return dict(row) if row else None

    async def get_session(self, session_id: str, user_id: str) -> dict[str, Any] | None:
        cursor = await self.db.execute(
            f"SELECT {_SESSION_COLUMNS} FROM sessions WHERE id = ? AND user_id = ?",  # noqa: S608
            (session_id, user_id),
        )
        row = await cursor.fetchone()
        return dict(row) if row else None

    async def list_sessions(
        self,
        user_id: str,
        status: str | None = None,
        limit: int = 20,
        offset: int = 0,
    ) -> tuple[list[dict[str, Any]], int]:
        """Return a page of a user's sessions (most recently active first) and the total."""
        conditions = ["user_id = ?"]
        params: list[Any] = [user_id]
        if status is not None:
            conditions.append("status = ?")
            params.append(status)

        where = f" WHERE {' AND '.join(conditions)}"
        count_cursor = await self.db.execute(
            f"SELECT COUNT(*) FROM sessions{where}",  # noqa: S608
            params,
        )
        row = await count_cursor.fetchone()
        total = row[0] if row else 0

        params.extend([limit, offset])
        cursor = await self.db.execute(
            f"SELECT {_SESSION_COLUMNS} FROM sessions{where} "  # noqa: S608
            "ORDER BY last_active_at DESC, created_at DESC LIMIT ? OFFSET ?",
            params,
        )
        rows = await cursor.fetchall()
        return [dict(r) for r in rows], total

    async def touch_session(self, session_id: str, now: str) -> None:
        await self.db.execute(
            "UPDATE sessions SET last_active_at = ? WHERE id = ?",
            (now, session_id),
        )
        await self.db.commit()

    async def revoke_session(self, session_id: str, user_id: str, now: str) -> int:
        cursor = await self.db.execute(
            """UPDATE sessions SET status = 'revoked', revoked_at = ?
               WHERE id = ? AND user_id = ? AND status = 'active'""",
            (now, session_id, user_id),
        )
        await self.db.commit()
        return cursor.rowcount

    async def revoke_user_sessions(
        self, user_id: str, now: str, *, exclude_session_id: str | None = None
    ) -> int:
        """Revoke a user's active sessions, optionally sparing one."""
        conditions = ["user_id = ?", "status = 'active'"]
        params: list[Any] = [now, user_id]
        if exclude_session_id is not None:
            conditions.append("id != ?")
            params.append(exclude_session_id)

        cursor = await self.db.execute(
            "UPDATE sessions SET status = 'revoked', revoked_at = ? "  # noqa: S608
            f"WHERE {' AND '.join(conditions)}",
            params,
        )
        await self.db.commit()
        return cursor.rowcount

    async def revoke_device_sessions(self, user_id: str, device_info: str | None, now: str) -> int:
        """Revoke a user's active sessions tagged *device_info*; a NULL tag matches nothing."""
        cursor = await self.db.execute(
            """UPDATE sessions SET status = 'revoked', revoked_at = ?
               WHERE user_id = ? AND status = 'active' AND device_info = ?""",
            (now, user_id, device_info),
        )
        await self.db.commit()
        return cursor.rowcount

    async def expire_sessions(self, now: str) -> int:
        cursor = await self.db.execute(
            "UPDATE sessions SET status = 'expired' WHERE status = 'active' AND expires_at <= ?",
            (now,),
        )
        await self.db.commit()
        return cursor.rowcount

    async def count_active_sessions(self, user_id: str, now: str) -> int:
        cursor = await self.db.execute(
            """SELECT COUNT(*) FROM sessions
               WHERE user_id = ? AND status = 'active' AND expires_at > ?""",
            (user_id, now),
        )
        row = await cursor.fetchone()
        return row[0] if row else 0
