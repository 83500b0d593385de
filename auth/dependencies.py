"""
auth/dependencies.py -- FastAPI Depends() helpers for authentication and RBAC.

Credential sources, checked in priority order:
  1. "jwt" cookie -- set by signup/login.
  2. Authorization: Bearer <token> header -- API clients holding the token
     from the signup/login response body.

get_principal() is the soft variant: guests allowed, never 401.
protect(...) builds a dependency from a route policy:

    @router.get("/teacher/dashboard")
    async def dashboard(principal: Principal = Depends(protect(roles={Role.TEACHER}))): ...

The dependency resolves the Principal, runs the guard chain, and raises the
denial's AuthError. api/main.py renders AuthError into a 401/403 response.
The guard chain is built once, when the route is declared.

Layer rule: no imports from api/.
  auth/dependencies.py may import from fastapi (for Request) because this
  module is part of the FastAPI dependency injection system.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable
from typing import Any

from fastapi import Request

from auth.guards import RequestContext, evaluate
from auth.principal import Principal, describe
from auth.policy import RoutePolicy
from auth.roles import Role
from auth.session import SessionResolver
from auth.tokens import COOKIE_NAME

logger = logging.getLogger("coursegate.auth")


def read_credential(request: Request) -> str | None:
    """Return the raw session token from the cookie or Bearer header, if any."""
    token = request.cookies.get(COOKIE_NAME)
    if not token:
        auth_header = request.headers.get("Authorization", "")
        if auth_header.startswith("Bearer "):
            token = auth_header[7:].strip()
    return token or None


def request_context(request: Request) -> RequestContext:
    return RequestContext(
        method=request.method,
        path=request.url.path,
        path_params=dict(request.path_params),
        query_params=dict(request.query_params),
    )


async def get_principal(request: Request) -> Principal:
    """Resolve the caller, degrading to the guest principal on any credential problem.

    Store failures still propagate as LookupFailed.
    """
    resolver: SessionResolver = request.app.state.session_resolver
    principal = await resolver.resolve(read_credential(request), allow_guest=True)
    request.state.principal = principal
    return principal


def protect(
    roles: Iterable[Role | str] = (),
    permissions: Iterable[str] = (),
    allow_guest: bool = False,
    owner: Callable[[RequestContext], Any] | None = None,
) -> Callable[[Request], Any]:
    """Return a FastAPI dependency enforcing the given route policy."""
    policy = RoutePolicy(
        roles=frozenset(Role(r) for r in roles),
        permissions=frozenset(permissions),
        allow_guest=allow_guest,
        owner=owner,
    )
    chain = policy.chain()

    async def dependency(request: Request) -> Principal:
        resolver: SessionResolver = request.app.state.session_resolver
        principal = await resolver.resolve(read_credential(request), policy.allow_guest)
        decision = evaluate(chain, principal, request_context(request))
        if not decision.allowed:
            logger.info(
                "Access denied: %s %s for %s (%s)",
                request.method,
                request.url.path,
                describe(principal),
                decision.error.kind,
            )
            raise decision.error
        request.state.principal = principal
        return principal

    return dependency
