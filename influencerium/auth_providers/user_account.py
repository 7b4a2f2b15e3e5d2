"""User account credentials: PBKDF2 password hashing and login checks."""

from __future__ import annotations

import hashlib
import hmac
import secrets
import sqlite3
from datetime import datetime, timezone
from typing import Any

from influencerium.exceptions import AuthenticationError, ConflictError
from influencerium.rbac import Role, is_valid_role
from influencerium.storage.database import Database

_PBKDF2_ITERATIONS = 260_000


def hash_password(password: str) -> str:
    """Hash password using PBKDF2-SHA256 (stdlib, no C dependency)."""
    salt = secrets.token_hex(16)
    dk = hashlib.pbkdf2_hmac("sha256", password.encode(), salt.encode(), _PBKDF2_ITERATIONS)
    return f"pbkdf2:sha256:{_PBKDF2_ITERATIONS}${salt}${dk.hex()}"


def verify_password(password: str, password_hash: str) -> bool:
    """Verify password against PBKDF2-SHA256 hash."""
    try:
        parts = password_hash.split("$")
        if len(parts) != 3:
            return False
        prefix_and_iterations, salt, stored_hash = parts
        iterations = int(prefix_and_iterations.split(":")[-1])
        dk = hashlib.pbkdf2_hmac("sha256", password.encode(), salt.encode(), iterations)
        return hmac.compare_digest(dk.hex(), stored_hash)
    except (ValueError, IndexError):
        return False


async def create_user(
    db: Database,
    email: str,
    password: str,
    *,
    name: str | None = None,
    role: str = Role.USER,
    status: str = "active",
) -> dict[str, Any]:
    """Insert a user row and return it without the password hash.

    Raises ValueError for a role outside the catalog and ConflictError when
    the e-mail is already registered.
    """
    if not is_valid_role(role):
        raise ValueError(f"Unknown role: {role}")
    now = datetime.now(timezone.utc).isoformat()
    user = {
        "id": secrets.token_hex(16),
        "email": email.lower(),
        "name": name,
        "password_hash": hash_password(password),
        "role": str(role),
        "status": status,
        "created_at": now,
        "updated_at": now,
    }
    try:
        await db.insert_user(user)
    except sqlite3.IntegrityError as e:
        raise ConflictError(f"User already exists: {user['email']}") from e
    return {k: v for k, v in user.items() if k != "password_hash"}


async def login_user(db: Database, email: str, password: str) -> dict[str, Any]:
    """Check credentials and return the user row without its password hash.

    Raises AuthenticationError with the same message for unknown e-mail and
    wrong password.
    """
    user = await db.get_user_by_email(email.lower())
    if user is None or not verify_password(password, user["password_hash"]):
        raise AuthenticationError("Invalid email or password")
    if user["status"] != "active":
        raise AuthenticationError("Account is not active")
    return {k: v for k, v in user.items() if k != "password_hash"}
