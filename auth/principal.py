"""
auth/principal.py -- Who is making this request.

A Principal is a tagged variant:

    Principal = AuthenticatedUser | Guest

AuthenticatedUser is built from the stored user record on every request.
Guest is a zero-privilege sentinel that needs no record at all. Neither
is persisted; both are discarded at the end of the request.

Behaviour lives in free functions (has_role, has_permission, is_guest)
that dispatch on the variant, not in methods bundled onto the instances.
The permission set is always derived from the role and never stored.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Union

from auth.models import User
from auth.roles import Role, grants, has_at_least_role, permissions_of


@dataclass(frozen=True)
class AuthenticatedUser:
    id: int
    first_name: str
    last_name: str
    email: str
    role: Role

    def __post_init__(self) -> None:
        if self.id is None:
            raise ValueError("AuthenticatedUser requires an identity id; use GUEST for anonymous callers")
        # Coerce plain strings and fail fast on anything outside the closed set.
        object.__setattr__(self, "role", Role(self.role))

    @property
    def permissions(self) -> frozenset[str]:
        return permissions_of(self.role)


@dataclass(frozen=True)
class Guest:
    id: None = field(default=None, init=False)
    first_name: str = field(default="Guest", init=False)
    last_name: str = field(default="", init=False)
    email: None = field(default=None, init=False)
    role: Role = field(default=Role.GUEST, init=False)

    @property
    def permissions(self) -> frozenset[str]:
        return permissions_of(Role.GUEST)


Principal = Union[AuthenticatedUser, Guest]

GUEST = Guest()


def from_user(user: User) -> AuthenticatedUser:
    """Build a Principal from the store record. The record's role is authoritative."""
    return AuthenticatedUser(
        id=user.id,
        first_name=user.first_name,
        last_name=user.last_name,
        email=user.email,
        role=user.role,
    )


def is_guest(principal: Principal) -> bool:
    return isinstance(principal, Guest)


def has_role(principal: Principal, role: Role | str) -> bool:
    """True if the principal's role is role or higher."""
    if is_guest(principal):
        return Role(role) is Role.GUEST
    return has_at_least_role(principal.role, role)


def has_permission(principal: Principal, permission: str) -> bool:
    return grants(principal.permissions, permission)


def describe(principal: Principal) -> str:
    """Short, log-safe label for a principal (no email)."""
    if is_guest(principal):
        return "guest"
    return f"user:{principal.id}({principal.role.value})"
