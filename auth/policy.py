"""
auth/policy.py -- Build a guard chain from a declarative route policy.

Call sites state *what* a route needs (roles, permissions, whether guests
may enter, optionally an owner resolver) and build_chain() decides *how*
that is checked:

    AuthenticationGuard(allow_guest)         -- always first
    RoleGuard(required_roles)                -- only if roles were given
    PermissionGuard(required_permissions)    -- only if permissions were given
    OwnershipOrAdminGuard(owner)             -- only if an owner resolver was given

An empty requirement means "no constraint of that kind", never "deny all".
build_chain() is pure and deterministic.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable
from dataclasses import dataclass
from typing import Any

from auth.guards import (
    AuthenticationGuard,
    Guard,
    OwnershipOrAdminGuard,
    PermissionGuard,
    RequestContext,
    RoleGuard,
)
from auth.roles import Role


def build_chain(
    required_roles: Iterable[Role | str] = (),
    required_permissions: Iterable[str] = (),
    allow_guest: bool = False,
    owner: Callable[[RequestContext], Any] | None = None,
) -> list[Guard]:
    roles = frozenset(Role(r) for r in required_roles)
    permissions = frozenset(required_permissions)

    chain: list[Guard] = [AuthenticationGuard(allow_guest)]
    if roles:
        chain.append(RoleGuard(roles))
    if permissions:
        chain.append(PermissionGuard(permissions))
    if owner is not None:
        chain.append(OwnershipOrAdminGuard(owner))
    return chain


@dataclass(frozen=True)
class RoutePolicy:
    """Declarative access policy for one route."""

    roles: frozenset[Role] = frozenset()
    permissions: frozenset[str] = frozenset()
    allow_guest: bool = False
    owner: Callable[[RequestContext], Any] | None = None

    def chain(self) -> list[Guard]:
        return build_chain(self.roles, self.permissions, self.allow_guest, self.owner)
