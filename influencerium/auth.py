"""Authentication and authorization adapters for the web layer.

Requests are handled in two explicit stages:

1. ``authenticate`` resolves a :class:`~influencerium.rbac.Principal` from
   the request credentials.
2. An authorization policy runs against that principal.  Each policy exists
   as a plain ``ensure_*`` function (usable outside FastAPI) and as a
   dependency factory that chains it after ``authenticate``.

Clients supply credentials via:
- ``X-Session-Token`` header or ``session_token`` cookie (session flow, preferred)
- ``Authorization: Bearer <jwt>`` header (stateless access token)

Usage::

    @router.delete("/users/{user_id}", dependencies=[Depends(require_permission("user:delete"))])
    async def delete_user(user_id: str): ...
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from typing import Any

from fastapi import Depends, Request

from influencerium.auth_providers.base import AuthResult
from influencerium.auth_providers.factory import create_provider
from influencerium.exceptions import AuthenticationError, AuthorizationError, TokenExpiredError
from influencerium.rbac import (
    Principal,
    is_role_higher_or_equal,
    user_has_all_permissions,
    user_has_any_permission,
    user_has_permission,
)

SESSION_HEADER = "X-Session-Token"
SESSION_COOKIE = "session_token"

_audit_logger = logging.getLogger("influencerium.audit")


# ---------------------------------------------------------------------------
# Stage 1: authentication
# ---------------------------------------------------------------------------


def _extract_session_token(request: Request) -> str | None:
    token = request.headers.get(SESSION_HEADER) or request.cookies.get(SESSION_COOKIE)
    if not token:
        return None
    return token.strip() or None


def _extract_bearer(request: Request) -> str | None:
    auth_header = request.headers.get("Authorization")
    if auth_header and auth_header.lower().startswith("bearer "):
        return auth_header[7:].strip() or None
    return None


def _log_auth_failure(request: Request, reason: str, result: AuthResult | None = None) -> None:
    extra: dict[str, Any] = {
        "event_category": "audit",
        "action": "auth_failure",
        "reason": reason,
        "path": request.url.path,
    }
    if result is not None:
        extra["provider"] = result.provider
        extra["error"] = result.error
    _audit_logger.warning(
        "Auth failure (%s): %s %s from %s",
        reason,
        request.method,
        request.url.path,
        request.client.host if request.client else "unknown",
        extra=extra,
    )


async def authenticate(request: Request) -> Principal:
    """FastAPI dependency that establishes the calling principal.

    The :class:`AuthResult` is attached to ``request.state.auth`` so
    downstream handlers can read the current session id.

    Raises:
        AuthenticationError: no credential, or the credential is not valid.
        TokenExpiredError: the bearer access token has expired.
    """
    cached: AuthResult | None = getattr(request.state, "auth", None)
    if cached is not None and cached.authenticated:
        return cached.principal

    session_token = _extract_session_token(request)
    bearer = _extract_bearer(request)

    if session_token:
        provider = create_provider("session", sessions=request.app.state.sessions)
        token = session_token
    elif bearer:
        provider = create_provider("jwt", db=request.app.state.db)
        token = bearer
    else:
        _log_auth_failure(request, "no_token")
        raise AuthenticationError("No token provided")

    result = await provider.authenticate(token)
    if not result.authenticated:
        _log_auth_failure(request, "invalid_token", result)
        if result.expired:
            raise TokenExpiredError()
        raise AuthenticationError("Invalid token")

    request.state.auth = result
    return result.principal


def current_session_id(request: Request) -> str | None:
    """Session id of the authenticated request, if it used a session token."""
    auth: AuthResult | None = getattr(request.state, "auth", None)
    return auth.session_id if auth else None


# ---------------------------------------------------------------------------
# Stage 2: authorization policies on a resolved principal
# ---------------------------------------------------------------------------


def _deny(principal: Principal, message: str, required: list[str]) -> AuthorizationError:
    _audit_logger.warning(
        "Authorization denied for user %s: requires %s",
        principal.id,
        ", ".join(required),
        extra={
            "event_category": "audit",
            "action": "authorization_denied",
            "user_id": principal.id,
            "required": required,
        },
    )
    return AuthorizationError(message, required=required)


def ensure_permission(principal: Principal, permission: str) -> None:
    if not user_has_permission(principal, permission):
        raise _deny(principal, f"Permission denied. Required: {permission}", [str(permission)])


def ensure_any_permission(principal: Principal, permissions: Iterable[str]) -> None:
    wanted = [str(p) for p in permissions]
    if not user_has_any_permission(principal, wanted):
        raise _deny(
            principal, f"Permission denied. Required one of: {', '.join(wanted)}", wanted
        )


def ensure_all_permissions(principal: Principal, permissions: Iterable[str]) -> None:
    wanted = [str(p) for p in permissions]
    if not user_has_all_permissions(principal, wanted):
        raise _deny(principal, f"Permission denied. Required all: {', '.join(wanted)}", wanted)


def ensure_min_role(principal: Principal, minimum_role: str) -> None:
    if not is_role_higher_or_equal(principal.role, minimum_role):
        raise _deny(
            principal,
            f"Access denied. Minimum role required: {minimum_role}",
            [str(minimum_role)],
        )


def ensure_role(principal: Principal, roles: Iterable[str]) -> None:
    allowed = [str(r) for r in roles]
    if principal.role not in allowed:
        raise _deny(principal, f"Access denied. Allowed roles: {', '.join(allowed)}", allowed)


def ensure_owner_or_permission(
    principal: Principal, owner_id: str | None, permission: str | None = None
) -> None:
    """Pass when the principal owns the resource or holds *permission*."""
    if owner_id is not None and owner_id == principal.id:
        return
    if permission and user_has_permission(principal, permission):
        return
    raise _deny(
        principal,
        "Access denied. You do not own this resource.",
        [str(permission)] if permission else [],
    )


# ---------------------------------------------------------------------------
# Dependency factories
# ---------------------------------------------------------------------------


def require_permission(permission: str):
    """Dependency factory: require a single permission."""

    async def _check(principal: Principal = Depends(authenticate)) -> Principal:
        ensure_permission(principal, permission)
        return principal

    return _check


def require_any_permission(*permissions: str):
    """Dependency factory: require at least one of *permissions*."""

    async def _check(principal: Principal = Depends(authenticate)) -> Principal:
        ensure_any_permission(principal, permissions)
        return principal

    return _check


def require_all_permissions(*permissions: str):
    """Dependency factory: require every one of *permissions*."""

    async def _check(principal: Principal = Depends(authenticate)) -> Principal:
        ensure_all_permissions(principal, permissions)
        return principal

    return _check


def require_min_role(minimum_role: str):
    """Dependency factory: require *minimum_role* or anything above it.

    Usage::

        @router.post("/admin/sessions/cleanup", dependencies=[Depends(require_min_role("admin"))])
    """

    async def _check(principal: Principal = Depends(authenticate)) -> Principal:
        ensure_min_role(principal, minimum_role)
        return principal

    return _check


def require_role(*roles: str):
    """Dependency factory: require the principal's role to be one of *roles* exactly."""

    async def _check(principal: Principal = Depends(authenticate)) -> Principal:
        ensure_role(principal, roles)
        return principal

    return _check


def owns_resource(param: str = "user_id", permission: str | None = None):
    """Dependency factory: path parameter *param* must be the caller's id, or *permission* held."""

    async def _check(request: Request, principal: Principal = Depends(authenticate)) -> Principal:
        ensure_owner_or_permission(principal, request.path_params.get(param), permission)
        return principal

    return _check
