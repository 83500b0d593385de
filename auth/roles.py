"""
auth/roles.py -- The closed role set, its hierarchy, and the permission table.

This is the single source of truth for roles. The store schema, the token
payload, the request models, and the guards all reference Role from here
rather than re-declaring the list.

Hierarchy (total order):
    guest < user < teacher < admin

Admin holds the wildcard permission "*": it satisfies every permission query,
including tags that appear in no table below.

Layer rule: stdlib only. No imports from other auth/ modules.
"""

from __future__ import annotations

from enum import Enum


class Role(str, Enum):
    GUEST = "guest"
    USER = "user"
    TEACHER = "teacher"
    ADMIN = "admin"


_RANKS: dict[Role, int] = {
    Role.GUEST: 0,
    Role.USER: 1,
    Role.TEACHER: 2,
    Role.ADMIN: 3,
}

# ---------------------------------------------------------------------------
# Permissions
# ---------------------------------------------------------------------------

ANY_PERMISSION = "*"

VIEW_PUBLIC_CONTENT = "view_public_content"
READ_COURSES = "read_courses"
ACCESS_CART = "access_cart"
VIEW_OWN_PROFILE = "view_own_profile"
CREATE_COURSES = "create_courses"
MANAGE_STUDENTS = "manage_students"
MANAGE_USERS = "manage_users"

_GUEST_PERMISSIONS = frozenset({VIEW_PUBLIC_CONTENT})
_USER_PERMISSIONS = _GUEST_PERMISSIONS | {READ_COURSES, ACCESS_CART, VIEW_OWN_PROFILE}
_TEACHER_PERMISSIONS = _USER_PERMISSIONS | {CREATE_COURSES, MANAGE_STUDENTS}

ROLE_PERMISSIONS: dict[Role, frozenset[str]] = {
    Role.GUEST: _GUEST_PERMISSIONS,
    Role.USER: _USER_PERMISSIONS,
    Role.TEACHER: _TEACHER_PERMISSIONS,
    Role.ADMIN: frozenset({ANY_PERMISSION}),
}

DEFAULT_ROLE = Role.USER


# ---------------------------------------------------------------------------
# Queries
# ---------------------------------------------------------------------------


def rank(role: Role | str) -> int:
    """Return the position of role in the hierarchy.

    Raises ValueError for anything outside the closed set -- that is a
    programming error, not a user-facing one.
    """
    return _RANKS[Role(role)]


def has_at_least_role(actual: Role | str, required: Role | str) -> bool:
    """True if actual sits at or above required in the hierarchy."""
    return rank(actual) >= rank(required)


def permissions_of(role: Role | str) -> frozenset[str]:
    return ROLE_PERMISSIONS[Role(role)]


def grants(permissions: frozenset[str], required: str) -> bool:
    """True if a permission set satisfies one required permission tag."""
    return ANY_PERMISSION in permissions or required in permissions


def role_grants(role: Role | str, permission: str) -> bool:
    return grants(permissions_of(role), permission)


def resolve_signup_role(requested: str | None, allowed: list[str] | frozenset[str]) -> Role:
    """Map a self-requested signup role onto the allow-list.

    Only roles in allowed are honored; anything else (including admin, an
    unknown string, or nothing at all) silently becomes DEFAULT_ROLE.
    """
    if requested and requested in allowed:
        try:
            return Role(requested)
        except ValueError:
            return DEFAULT_ROLE
    return DEFAULT_ROLE
