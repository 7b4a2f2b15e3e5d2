"""Tests for authentication and authorization policies, plain and over HTTP."""

from __future__ import annotations

import time

import jwt
import pytest

from influencerium.auth import (
    ensure_all_permissions,
    ensure_any_permission,
    ensure_min_role,
    ensure_owner_or_permission,
    ensure_permission,
    ensure_role,
)
from influencerium.exceptions import AuthorizationError
from influencerium.rbac import Permission, Principal, Role

TEST_JWT_SECRET = "test-secret-0123456789abcdef-0123456789abcdef"


def _bearer(token: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {token}"}


def _session(token: str) -> dict[str, str]:
    return {"X-Session-Token": token}


# ---------------------------------------------------------------------------
# Policies on a resolved principal
# ---------------------------------------------------------------------------


class TestPolicies:
    def test_ensure_permission(self):
        ensure_permission(Principal("u1", "admin"), Permission.USER_MANAGE)
        with pytest.raises(AuthorizationError) as exc:
            ensure_permission(Principal("u1", "user"), Permission.USER_MANAGE)
        assert exc.value.required == ["user:manage"]
        assert exc.value.status_code == 403

    def test_ensure_any_permission(self):
        ensure_any_permission(Principal("u1", "user"), ["admin:access", "campaign:read"])
        with pytest.raises(AuthorizationError) as exc:
            ensure_any_permission(Principal("u1", "user"), ["admin:access", "role:manage"])
        assert exc.value.required == ["admin:access", "role:manage"]

    def test_ensure_any_permission_empty_denies(self):
        with pytest.raises(AuthorizationError):
            ensure_any_permission(Principal("u1", "super_admin"), [])

    def test_ensure_all_permissions(self):
        ensure_all_permissions(Principal("u1", "admin"), ["user:manage", "admin:access"])
        ensure_all_permissions(Principal("u1", "user"), [])
        with pytest.raises(AuthorizationError):
            ensure_all_permissions(Principal("u1", "moderator"), ["user:manage", "admin:access"])

    def test_ensure_min_role(self):
        ensure_min_role(Principal("u1", "super_admin"), Role.ADMIN)
        ensure_min_role(Principal("u1", "admin"), Role.ADMIN)
        with pytest.raises(AuthorizationError) as exc:
            ensure_min_role(Principal("u1", "moderator"), Role.ADMIN)
        assert exc.value.required == ["admin"]

    def test_ensure_min_role_unknown_principal_role(self):
        with pytest.raises(AuthorizationError):
            ensure_min_role(Principal("u1", "ghost"), Role.USER)

    def test_ensure_role_is_exact(self):
        ensure_role(Principal("u1", "moderator"), [Role.MODERATOR])
        with pytest.raises(AuthorizationError):
            ensure_role(Principal("u1", "super_admin"), [Role.MODERATOR])

    def test_ensure_owner_or_permission(self):
        ensure_owner_or_permission(Principal("u1", "user"), "u1")
        ensure_owner_or_permission(Principal("u2", "admin"), "u1", Permission.USER_MANAGE)
        with pytest.raises(AuthorizationError) as exc:
            ensure_owner_or_permission(Principal("u2", "user"), "u1", Permission.USER_MANAGE)
        assert exc.value.required == ["user:manage"]
        with pytest.raises(AuthorizationError) as exc:
            ensure_owner_or_permission(Principal("u2", "super_admin"), "u1")
        assert exc.value.required == []

    def test_missing_owner_never_matches(self):
        with pytest.raises(AuthorizationError):
            ensure_owner_or_permission(Principal("u1", "user"), None)


# ---------------------------------------------------------------------------
# Authentication over HTTP
# ---------------------------------------------------------------------------


class TestAuthentication:
    async def test_no_credentials(self, client):
        resp = await client.get("/auth/me")
        assert resp.status_code == 401
        body = resp.json()
        assert body["error"] == "AUTHENTICATION_ERROR"
        assert body["message"] == "No token provided"
        assert body["request_id"] == resp.headers["X-Request-ID"]

    async def test_bearer_token(self, client, api_user, login):
        user = await api_user("moderator")
        body = await login(user["email"], create_session=False)
        resp = await client.get("/auth/me", headers=_bearer(body["token"]))
        assert resp.status_code == 200
        assert resp.json()["role"] == "moderator"
        assert resp.json()["session_id"] is None

    async def test_session_header(self, client, api_user, login):
        user = await api_user()
        body = await login(user["email"])
        resp = await client.get("/auth/me", headers=_session(body["session_token"]))
        assert resp.status_code == 200
        assert resp.json()["session_id"] == body["session_id"]

    async def test_session_cookie(self, client, api_user, login):
        user = await api_user()
        body = await login(user["email"])
        resp = await client.get(
            "/auth/me", headers={"Cookie": f"session_token={body['session_token']}"}
        )
        assert resp.status_code == 200
        assert resp.json()["id"] == user["id"]

    async def test_session_cookie_surrounding_whitespace_ignored(self, client, api_user, login):
        user = await api_user()
        body = await login(user["email"])
        resp = await client.get(
            "/auth/me", headers={"Cookie": f'session_token=" {body["session_token"]} "'}
        )
        assert resp.status_code == 200
        assert resp.json()["session_id"] == body["session_id"]

    async def test_session_takes_precedence_over_bearer(self, client, api_user, login):
        user = await api_user()
        body = await login(user["email"])
        await client.delete("/auth/sessions/all", headers=_session(body["session_token"]))
        resp = await client.get(
            "/auth/me", headers={**_session(body["session_token"]), **_bearer(body["token"])}
        )
        assert resp.status_code == 401

    async def test_invalid_bearer(self, client):
        resp = await client.get("/auth/me", headers=_bearer("garbage"))
        assert resp.status_code == 401
        assert resp.json()["error"] == "AUTHENTICATION_ERROR"
        assert resp.json()["message"] == "Invalid token"

    async def test_expired_bearer(self, client, api_user):
        user = await api_user()
        now = int(time.time())
        token = jwt.encode(
            {"sub": user["id"], "type": "access", "iat": now - 120, "exp": now - 60},
            TEST_JWT_SECRET,
            algorithm="HS256",
        )
        resp = await client.get("/auth/me", headers=_bearer(token))
        assert resp.status_code == 401
        assert resp.json()["error"] == "TOKEN_EXPIRED"

    async def test_unknown_session_token(self, client):
        resp = await client.get("/auth/me", headers=_session("f" * 128))
        assert resp.status_code == 401

    async def test_suspended_user_session_rejected(self, client, api_user, app_sessions):
        user = await api_user(status="suspended")
        session = await app_sessions.create_session(user["id"])
        resp = await client.get("/auth/me", headers=_session(session.session_token))
        assert resp.status_code == 401


# ---------------------------------------------------------------------------
# Authorization gates over HTTP
# ---------------------------------------------------------------------------


class TestAuthorizationGates:
    async def _headers(self, api_user, login, role: str) -> tuple[dict, dict]:
        user = await api_user(role)
        body = await login(user["email"])
        return user, _session(body["session_token"])

    async def test_any_permission_gate(self, client, api_user, login):
        _, user_h = await self._headers(api_user, login, "user")
        _, admin_h = await self._headers(api_user, login, "admin")

        denied = await client.get("/admin/roles", headers=user_h)
        assert denied.status_code == 403
        body = denied.json()
        assert body["error"] == "AUTHORIZATION_ERROR"
        assert body["required"] == ["admin:access", "role:manage"]

        allowed = await client.get("/admin/roles", headers=admin_h)
        assert allowed.status_code == 200
        roles = allowed.json()["roles"]
        assert [r["role"] for r in roles] == ["user", "moderator", "admin", "super_admin"]
        assert [r["level"] for r in roles] == [1, 2, 3, 4]

    async def test_exact_role_gate(self, client, api_user, login):
        _, mod_h = await self._headers(api_user, login, "moderator")
        _, admin_h = await self._headers(api_user, login, "admin")

        denied = await client.get("/admin/roles/user/permissions", headers=mod_h)
        assert denied.status_code == 403
        assert denied.json()["required"] == ["admin", "super_admin"]

        allowed = await client.get("/admin/roles/moderator/permissions", headers=admin_h)
        assert allowed.status_code == 200
        assert "analytics:export" in allowed.json()["permissions"]

        missing = await client.get("/admin/roles/owner/permissions", headers=admin_h)
        assert missing.status_code == 404
        assert missing.json()["error"] == "NOT_FOUND"

    async def test_min_role_gate(self, client, api_user, login):
        _, mod_h = await self._headers(api_user, login, "moderator")
        _, super_h = await self._headers(api_user, login, "super_admin")

        denied = await client.post("/admin/sessions/cleanup", headers=mod_h)
        assert denied.status_code == 403
        assert denied.json()["required"] == ["admin"]

        allowed = await client.post("/admin/sessions/cleanup", headers=super_h)
        assert allowed.status_code == 200
        assert allowed.json() == {"expired": 0}

    async def test_owner_or_permission_gate(self, client, api_user, login):
        owner, owner_h = await self._headers(api_user, login, "user")
        _, other_h = await self._headers(api_user, login, "moderator")
        _, admin_h = await self._headers(api_user, login, "admin")

        own = await client.get(f"/users/{owner['id']}/sessions", headers=owner_h)
        assert own.status_code == 200
        assert own.json()["pagination"]["total"] == 1

        denied = await client.get(f"/users/{owner['id']}/sessions", headers=other_h)
        assert denied.status_code == 403
        assert denied.json()["required"] == ["user:manage"]
        assert owner["id"] not in denied.text

        managed = await client.get(f"/users/{owner['id']}/sessions", headers=admin_h)
        assert managed.status_code == 200

    async def test_single_permission_gate(self, client, api_user, login):
        owner, owner_h = await self._headers(api_user, login, "user")
        _, admin_h = await self._headers(api_user, login, "admin")

        denied = await client.get(f"/users/{owner['id']}/sessions/count", headers=owner_h)
        assert denied.status_code == 403

        allowed = await client.get(f"/users/{owner['id']}/sessions/count", headers=admin_h)
        assert allowed.json() == {"user_id": owner["id"], "active_sessions": 1}

    async def test_all_permissions_gate(self, client, api_user, login):
        target, target_h = await self._headers(api_user, login, "user")
        _, mod_h = await self._headers(api_user, login, "moderator")
        _, admin_h = await self._headers(api_user, login, "admin")

        denied = await client.delete(f"/users/{target['id']}/sessions", headers=mod_h)
        assert denied.status_code == 403
        assert denied.json()["required"] == ["user:manage", "admin:access"]

        allowed = await client.delete(f"/users/{target['id']}/sessions", headers=admin_h)
        assert allowed.json() == {"user_id": target["id"], "revoked": 1}

        after = await client.get("/auth/me", headers=target_h)
        assert after.status_code == 401

    async def test_unauthenticated_before_authorization(self, client):
        resp = await client.get("/admin/roles")
        assert resp.status_code == 401
