"""Administrative routes: role catalog, per-user session control, cleanup sweep."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query, Request

from influencerium.auth import (
    owns_resource,
    require_all_permissions,
    require_any_permission,
    require_min_role,
    require_permission,
    require_role,
)
from influencerium.exceptions import NotFoundError
from influencerium.rbac import (
    Permission,
    Role,
    available_roles,
    hierarchy_level,
    is_valid_role,
    permissions_for,
)
from influencerium.sessions.models import SessionPage

admin_router = APIRouter(prefix="/admin", tags=["Admin"])
users_router = APIRouter(prefix="/users", tags=["Users"])


def _role_entry(role: Role) -> dict:
    return {
        "role": str(role),
        "level": hierarchy_level(role),
        "permissions": sorted(str(p) for p in permissions_for(role)),
    }


@admin_router.get(
    "/roles",
    dependencies=[Depends(require_any_permission(Permission.ADMIN_ACCESS, Permission.ROLE_MANAGE))],
)
async def list_roles():
    """All roles in ascending order with their effective permissions."""
    return {"roles": [_role_entry(r) for r in available_roles()]}


@admin_router.get(
    "/roles/{role}/permissions",
    dependencies=[Depends(require_role(Role.ADMIN, Role.SUPER_ADMIN))],
)
async def role_permissions(role: str):
    if not is_valid_role(role):
        raise NotFoundError("Role")
    return _role_entry(Role(role))


@admin_router.post(
    "/sessions/cleanup",
    dependencies=[Depends(require_min_role(Role.ADMIN))],
)
async def cleanup_sessions(request: Request):
    """Run the expiry sweep now (normally driven by an external scheduler)."""
    count = await request.app.state.sessions.cleanup_expired_sessions()
    return {"expired": count}


@users_router.get(
    "/{user_id}/sessions",
    response_model=SessionPage,
    dependencies=[Depends(owns_resource("user_id", Permission.USER_MANAGE))],
)
async def user_sessions(
    user_id: str,
    request: Request,
    status: str = Query(default="active"),
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=20, ge=1, le=100),
):
    return await request.app.state.sessions.get_user_sessions(
        user_id, status=status, page=page, limit=limit
    )


@users_router.get(
    "/{user_id}/sessions/count",
    dependencies=[Depends(require_permission(Permission.USER_MANAGE))],
)
async def user_session_count(user_id: str, request: Request):
    count = await request.app.state.sessions.count_active_sessions(user_id)
    return {"user_id": user_id, "active_sessions": count}


@users_router.delete(
    "/{user_id}/sessions",
    dependencies=[
        Depends(require_all_permissions(Permission.USER_MANAGE, Permission.ADMIN_ACCESS))
    ],
)
async def force_logout(user_id: str, request: Request):
    """Revoke every active session of a user."""
    count = await request.app.state.sessions.revoke_all_sessions(user_id)
    return {"user_id": user_id, "revoked": count}
