"""
auth/guards.py -- Composable allow/deny decisions over (Principal, RequestContext).

Each guard is a callable:

    guard(principal, context) -> Decision

A Decision is either ALLOW or a denial carrying the typed AuthError that
explains it. Guards do not raise for a denial and have no side effects; the
caller decides what to do with a Decision. evaluate() runs a chain strictly
in order and stops at the first denial, so nothing after a denying guard is
ever invoked.

The one exception to "guards do not raise": OwnershipOrAdminGuard calls a
caller-supplied owner resolver. If that resolver fails, the failure is
raised as ResourceLookupError -- it is not a NotOwner denial.

Guards are framework-free. RequestContext is a plain snapshot of the request
so guards can be unit-tested without FastAPI.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable, Mapping, Sequence
from dataclasses import dataclass, field
from typing import Any

from auth.errors import (
    AuthError,
    InsufficientPermission,
    InsufficientRole,
    NotOwner,
    ResourceLookupError,
    Unauthenticated,
)
from auth.principal import Principal, has_permission, is_guest
from auth.roles import Role, has_at_least_role


@dataclass(frozen=True)
class RequestContext:
    method: str = "GET"
    path: str = "/"
    path_params: Mapping[str, Any] = field(default_factory=dict)
    query_params: Mapping[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class Decision:
    allowed: bool
    error: AuthError | None = None


ALLOW = Decision(allowed=True)


def deny(error: AuthError) -> Decision:
    return Decision(allowed=False, error=error)


Guard = Callable[[Principal, RequestContext], Decision]


class AuthenticationGuard:
    """Deny the guest sentinel unless the route admits guests."""

    def __init__(self, allow_guest: bool) -> None:
        self.allow_guest = allow_guest

    def __call__(self, principal: Principal, context: RequestContext) -> Decision:
        if is_guest(principal) and not self.allow_guest:
            return deny(Unauthenticated())
        return ALLOW

    def __repr__(self) -> str:
        return f"AuthenticationGuard(allow_guest={self.allow_guest})"


class RoleGuard:
    """Allow if the principal's role is at or above any one of the required roles."""

    def __init__(self, required: Iterable[Role | str]) -> None:
        self.required = frozenset(Role(r) for r in required)
        if not self.required:
            raise ValueError("RoleGuard needs at least one role")

    def __call__(self, principal: Principal, context: RequestContext) -> Decision:
        if any(has_at_least_role(principal.role, r) for r in self.required):
            return ALLOW
        return deny(InsufficientRole(self.required, principal.role))

    def __repr__(self) -> str:
        return f"RoleGuard({sorted(r.value for r in self.required)})"


class PermissionGuard:
    """Allow if the principal holds any one of the required permissions. Admin always passes."""

    def __init__(self, required: Iterable[str]) -> None:
        self.required = frozenset(required)
        if not self.required:
            raise ValueError("PermissionGuard needs at least one permission")

    def __call__(self, principal: Principal, context: RequestContext) -> Decision:
        if principal.role is Role.ADMIN or any(has_permission(principal, p) for p in self.required):
            return ALLOW
        return deny(InsufficientPermission(self.required, principal.role))

    def __repr__(self) -> str:
        return f"PermissionGuard({sorted(self.required)})"


class OwnershipOrAdminGuard:
    """Allow admins, or the principal whose id matches the resource owner.

    resolve_owner_id receives the RequestContext and returns the owning
    identity id. Any exception it raises becomes ResourceLookupError.
    """

    def __init__(self, resolve_owner_id: Callable[[RequestContext], Any]) -> None:
        self.resolve_owner_id = resolve_owner_id

    def __call__(self, principal: Principal, context: RequestContext) -> Decision:
        if principal.role is Role.ADMIN:
            return ALLOW
        try:
            owner_id = self.resolve_owner_id(context)
        except ResourceLookupError:
            raise
        except Exception as exc:
            raise ResourceLookupError() from exc
        if principal.id is not None and principal.id == owner_id:
            return ALLOW
        return deny(NotOwner())

    def __repr__(self) -> str:
        return f"OwnershipOrAdminGuard({getattr(self.resolve_owner_id, '__name__', 'resolver')})"


def evaluate(chain: Sequence[Guard], principal: Principal, context: RequestContext) -> Decision:
    """Run guards in order; return the first denial, or ALLOW if every guard allows."""
    for guard in chain:
        decision = guard(principal, context)
        if not decision.allowed:
            return decision
    return ALLOW
