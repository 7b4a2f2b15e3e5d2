"""Role-Based Access Control for Influencerium.

Defines the role hierarchy, the permission catalog, and the pure decision
functions every protected route goes through.  The FastAPI dependencies
that enforce these decisions live in ``auth.py``.

Roles (lowest → highest privilege):
    user         - Self-service on own profile, create/edit influencers, campaigns, models
    moderator    - Delete influencers, campaigns and models, export analytics
    admin        - Manage users, admin console access
    super_admin  - Everything, including system config and role management

Every lookup fails closed: unknown roles have no permissions and level 0.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from enum import StrEnum
from typing import Any


class Role(StrEnum):
    """Enumerated platform roles."""

    USER = "user"
    MODERATOR = "moderator"
    ADMIN = "admin"
    SUPER_ADMIN = "super_admin"


class Permission(StrEnum):
    """``resource:action`` capability tokens."""

    USER_READ = "user:read"
    USER_UPDATE = "user:update"
    USER_DELETE = "user:delete"
    USER_MANAGE = "user:manage"

    INFLUENCER_READ = "influencer:read"
    INFLUENCER_CREATE = "influencer:create"
    INFLUENCER_UPDATE = "influencer:update"
    INFLUENCER_DELETE = "influencer:delete"

    CAMPAIGN_READ = "campaign:read"
    CAMPAIGN_CREATE = "campaign:create"
    CAMPAIGN_UPDATE = "campaign:update"
    CAMPAIGN_DELETE = "campaign:delete"

    MODEL_READ = "model:read"
    MODEL_CREATE = "model:create"
    MODEL_UPDATE = "model:update"
    MODEL_DELETE = "model:delete"

    ANALYTICS_READ = "analytics:read"
    ANALYTICS_EXPORT = "analytics:export"

    ADMIN_ACCESS = "admin:access"
    SYSTEM_CONFIG = "system:config"
    ROLE_MANAGE = "role:manage"


#: Numeric rank of each role (higher number = more privilege).
ROLE_HIERARCHY: dict[Role, int] = {
    Role.USER: 1,
    Role.MODERATOR: 2,
    Role.ADMIN: 3,
    Role.SUPER_ADMIN: 4,
}

#: Permissions each role adds on top of everything the roles below it hold.
ROLE_GRANTS: dict[Role, frozenset[Permission]] = {
    Role.USER: frozenset(
        {
            Permission.USER_READ,
            Permission.USER_UPDATE,
            Permission.INFLUENCER_READ,
            Permission.INFLUENCER_CREATE,
            Permission.INFLUENCER_UPDATE,
            Permission.CAMPAIGN_READ,
            Permission.CAMPAIGN_CREATE,
            Permission.CAMPAIGN_UPDATE,
            Permission.MODEL_READ,
            Permission.MODEL_CREATE,
            Permission.MODEL_UPDATE,
            Permission.ANALYTICS_READ,
        }
    ),
    Role.MODERATOR: frozenset(
        {
            Permission.INFLUENCER_DELETE,
            Permission.CAMPAIGN_DELETE,
            Permission.MODEL_DELETE,
            Permission.ANALYTICS_EXPORT,
        }
    ),
    Role.ADMIN: frozenset({Permission.USER_MANAGE, Permission.ADMIN_ACCESS}),
    # Top of the hierarchy holds the whole catalog.
    Role.SUPER_ADMIN: frozenset(Permission),
}


def _build_role_permissions(
    hierarchy: dict[Role, int], grants: dict[Role, frozenset[Permission]]
) -> dict[Role, frozenset[Permission]]:
    """Walk the hierarchy bottom-up taking the cumulative union of grants.

    Raises ``RuntimeError`` unless every role's set is a strict superset of
    the set of the role directly below it.
    """
    result: dict[Role, frozenset[Permission]] = {}
    accumulated: frozenset[Permission] = frozenset()
    previous: Role | None = None
    for role in sorted(hierarchy, key=hierarchy.__getitem__):
        current = accumulated | grants.get(role, frozenset())
        if previous is not None and not current > accumulated:
            msg = f"Role {role!s} must hold strictly more permissions than {previous!s}"
            raise RuntimeError(msg)
        result[role] = current
        accumulated = current
        previous = role
    return result


#: Effective permissions per role, computed once at import.
ROLE_PERMISSIONS: dict[Role, frozenset[Permission]] = _build_role_permissions(
    ROLE_HIERARCHY, ROLE_GRANTS
)


@dataclass(frozen=True)
class Principal:
    """An authenticated caller as seen by the decision engine."""

    id: str
    role: str


# ---------------------------------------------------------------------------
# Catalog lookups
# ---------------------------------------------------------------------------


def _as_role(role: Any) -> Role | None:
    try:
        return Role(role)
    except ValueError:
        return None


def permissions_for(role: Any) -> frozenset[Permission]:
    """Return the effective permissions of *role* (empty for unknown roles)."""
    known = _as_role(role)
    if known is None:
        return frozenset()
    return ROLE_PERMISSIONS[known]


def hierarchy_level(role: Any) -> int:
    """Return the numeric rank of *role* (0 for unknown roles)."""
    known = _as_role(role)
    if known is None:
        return 0
    return ROLE_HIERARCHY[known]


# ---------------------------------------------------------------------------
# Decisions
# ---------------------------------------------------------------------------


def _role_of(user: Any) -> Any:
    if user is None:
        return None
    if isinstance(user, dict):
        return user.get("role")
    return getattr(user, "role", None)


def role_has_permission(role: Any, permission: str) -> bool:
    return permission in permissions_for(role)


def user_has_permission(user: Any, permission: str) -> bool:
    """Check a single permission; absent or roleless users always fail."""
    role = _role_of(user)
    if not role:
        return False
    return role_has_permission(role, permission)


def user_has_any_permission(user: Any, permissions: Iterable[str]) -> bool:
    """True when at least one of *permissions* is held.

    An empty requirement list is never satisfied.
    """
    role = _role_of(user)
    if not role:
        return False
    held = permissions_for(role)
    return any(p in held for p in permissions)


def user_has_all_permissions(user: Any, permissions: Iterable[str]) -> bool:
    """True when every one of *permissions* is held.

    An empty requirement list is satisfied by any user with a role, unlike
    ``user_has_any_permission``.
    """
    role = _role_of(user)
    if not role:
        return False
    held = permissions_for(role)
    return all(p in held for p in permissions)


def is_valid_role(role: Any) -> bool:
    return _as_role(role) is not None


def is_role_higher_or_equal(role_a: Any, role_b: Any) -> bool:
    """Compare two roles by hierarchy level; reflexive."""
    return hierarchy_level(role_a) >= hierarchy_level(role_b)


def available_roles() -> list[Role]:
    """All roles in ascending hierarchy order."""
    return sorted(ROLE_HIERARCHY, key=ROLE_HIERARCHY.__getitem__)


def permissions_for_principal(user: Any) -> list[str]:
    """Sorted permission strings for *user*, for display and templating."""
    return sorted(str(p) for p in permissions_for(_role_of(user)))
