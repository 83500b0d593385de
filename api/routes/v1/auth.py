"""
api/routes/v1/auth.py -- Session and account management REST endpoints.

Routes:
  POST /api/v1/auth/signup        -- create account; sets jwt cookie; 201
  POST /api/v1/auth/login         -- password login; sets jwt cookie
  POST /api/v1/auth/logout        -- expires the jwt cookie
  GET  /api/v1/auth/me            -- resolved principal (guest when unauthenticated)
  POST /api/v1/auth/update-role   -- change a user's role (admin only)
  GET  /api/v1/auth/users         -- paginated user listing (admin only)

Security:
  [H2] POST /login is rate-limited per IP (LOGIN_RATE_LIMIT).
  [C1] authenticate_user() provides timing equalization -- use it, never inline.
  [M5] Cache-Control: no-store on responses that carry a token.
  [E1] Unknown email and wrong password are distinct error types internally,
       but share one message in the response unless
       REVEAL_LOGIN_FAILURE_FIELD=true.
  [R1] Signup honours only self-assignable roles; admin is never self-assignable.
  [R2] An admin cannot demote themselves away from admin.
"""

from __future__ import annotations

import logging
import math

from fastapi import APIRouter, Depends, HTTPException, Query, Request
from fastapi.responses import JSONResponse
from starlette.concurrency import run_in_threadpool

from api.limiter import limiter
from api.models import (
    AuthResponse,
    LoginRequest,
    PrincipalResponse,
    RoleUpdateRequest,
    SignupRequest,
    UserListResponse,
    UserResponse,
)
from auth.dependencies import get_principal, protect
from auth.errors import InvalidCredentials, SelfDemotion, ValidationError
from auth.models import User
from auth.passwords import authenticate_user
from auth.principal import Principal
from auth.roles import MANAGE_USERS, Role, resolve_signup_role
from auth.store import UserStore
from auth.tokens import TokenService, clear_auth_cookie, set_auth_cookie
from core.config import get_settings

logger = logging.getLogger("coursegate.api")

# Auth policy:
# - POST /api/v1/auth/signup:       public
# - POST /api/v1/auth/login:        public, rate-limited
# - POST /api/v1/auth/logout:       public -- expiring a cookie needs no prior auth
# - GET  /api/v1/auth/me:           guests allowed (get_principal)
# - POST /api/v1/auth/update-role:  role admin + manage_users
# - GET  /api/v1/auth/users:        role admin + manage_users
router = APIRouter()

_require_user_admin = protect(roles={Role.ADMIN}, permissions={MANAGE_USERS})

_GENERIC_LOGIN_FAILURE = "Incorrect email or password"


# ---------------------------------------------------------------------------
# Public endpoints
# ---------------------------------------------------------------------------


@router.post("/auth/signup", response_model=AuthResponse, status_code=201)
async def signup(request: Request, body: SignupRequest) -> JSONResponse:
    """Create an account and start a session.

    Validation order: password confirmation, then terms acceptance, then the
    store (email format/uniqueness, names, password length). The store is not
    touched until the first two checks pass.
    """
    if body.password != body.confirm_password:
        raise ValidationError({"confirmPassword": "Passwords do not match"})
    if body.terms_agreed is not True:
        raise ValidationError({"termsAgreed": "You must accept the terms and conditions"})

    settings = get_settings()
    store: UserStore = request.app.state.user_store
    role = resolve_signup_role(body.role, settings.self_assignable_roles)
    user = await run_in_threadpool(
        store.create_user,
        body.email,
        body.password,
        body.first_name,
        body.last_name,
        role,
        body.department,
    )
    logger.info("Signup: user %d (role=%s)", user.id, user.role.value)
    return _session_response(request, user, status_code=201)


@limiter.limit(get_settings().login_rate_limit)  # [H2] must be ABOVE @router to preserve introspection
@router.post("/auth/login", response_model=AuthResponse)
async def login(request: Request, body: LoginRequest) -> JSONResponse:
    """Authenticate with email and password; start a session."""
    store: UserStore = request.app.state.user_store
    try:
        user = await run_in_threadpool(authenticate_user, store, body.email, body.password)
    except InvalidCredentials as exc:
        logger.info("Login failed (%s)", exc.kind)
        if get_settings().reveal_login_failure_field:
            raise
        raise ValidationError(
            {"email": _GENERIC_LOGIN_FAILURE, "password": _GENERIC_LOGIN_FAILURE},
            message="Login failed.",
        ) from exc
    logger.info("Login: user %d", user.id)
    return _session_response(request, user, status_code=200)


@router.post("/auth/logout")
async def logout() -> JSONResponse:
    """Expire the session cookie. There is no server-side session to revoke."""
    resp = JSONResponse(content={"success": True, "message": "Logged out."})
    clear_auth_cookie(resp, get_settings())
    return resp


@router.get("/auth/me", response_model=PrincipalResponse)
async def me(principal: Principal = Depends(get_principal)) -> PrincipalResponse:
    """Return the caller's principal. Absent or invalid credentials yield the guest."""
    return PrincipalResponse.from_principal(principal)


# ---------------------------------------------------------------------------
# User management (admin only)
# ---------------------------------------------------------------------------


@router.post("/auth/update-role", response_model=UserResponse)
async def update_user_role(
    request: Request,
    body: RoleUpdateRequest,
    current: Principal = Depends(_require_user_admin),
) -> UserResponse:
    """Change another user's role. Admin only. [R2] blocks self-demotion."""
    store: UserStore = request.app.state.user_store

    if body.user_id == current.id and body.role is not Role.ADMIN:
        raise SelfDemotion()

    updated = await run_in_threadpool(store.update_role, body.user_id, body.role)
    if not updated:
        raise HTTPException(
            status_code=404,
            detail={"code": "not_found", "message": "User not found."},
        )
    logger.info("User %d role set to %s by user %d", body.user_id, body.role.value, current.id)
    user = await run_in_threadpool(store.get_by_id, body.user_id)
    return _user_to_response(user)


@router.get("/auth/users", response_model=UserListResponse)
async def list_users(
    request: Request,
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=10, ge=1, le=100),
    role: Role | None = Query(default=None),
    current: Principal = Depends(_require_user_admin),
) -> UserListResponse:
    """List user accounts, optionally filtered by role. Admin only."""
    store: UserStore = request.app.state.user_store
    users, total = await run_in_threadpool(store.list_users, page, limit, role)
    return UserListResponse(
        users=[UserResponse.from_user(u) for u in users],
        total=total,
        page=page,
        pages=math.ceil(total / limit),
    )


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _session_response(request: Request, user: User, status_code: int) -> JSONResponse:
    """Issue a token for user and return it in the body and the jwt cookie."""
    settings = get_settings()
    tokens: TokenService = request.app.state.token_service
    token = tokens.issue(user.id, user.role)
    resp = JSONResponse(
        status_code=status_code,
        content=AuthResponse(
            user=UserResponse.from_user(user),
            token=token,
            expires_in=tokens.expire_seconds,
        ).model_dump(mode="json"),
    )
    set_auth_cookie(resp, token, settings)
    resp.headers["Cache-Control"] = "no-store"  # [M5]
    return resp


def _user_to_response(user: User | None) -> UserResponse:
    if user is None:
        raise HTTPException(
            status_code=500,
            detail={"code": "internal_error", "message": "User not found after write."},
        )
    return UserResponse.from_user(user)
