"""
api/routes/v1/content.py -- Role-gated application endpoints.

Each route declares its policy through protect(); none of them hand-wires
role or ownership checks in the handler body.

Routes:
  GET  /api/v1/cart                      -- role user
  GET  /api/v1/teacher/dashboard         -- role teacher
  POST /api/v1/courses                   -- role teacher + create_courses
  GET  /api/v1/admin/dashboard           -- role admin
  GET  /api/v1/content                   -- guests allowed; tiers by role
  GET  /api/v1/users/{user_id}/profile   -- role user + owner-or-admin
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Request
from starlette.concurrency import run_in_threadpool

from api.models import ContentResponse, MessageResponse, PrincipalResponse, UserResponse
from auth.dependencies import protect
from auth.guards import RequestContext
from auth.principal import Principal, has_role
from auth.roles import ACCESS_CART, CREATE_COURSES, Role
from auth.store import UserStore

router = APIRouter()


def _profile_owner(context: RequestContext) -> int:
    """The profile at /users/{user_id}/profile is owned by user_id."""
    return int(context.path_params["user_id"])


@router.get("/cart", response_model=MessageResponse)
async def cart(
    principal: Principal = Depends(protect(roles={Role.USER}, permissions={ACCESS_CART})),
) -> MessageResponse:
    return MessageResponse(message="User cart accessed", user=PrincipalResponse.from_principal(principal))


@router.get("/teacher/dashboard", response_model=MessageResponse)
async def teacher_dashboard(principal: Principal = Depends(protect(roles={Role.TEACHER}))) -> MessageResponse:
    return MessageResponse(message="Teacher dashboard accessed", user=PrincipalResponse.from_principal(principal))


@router.post("/courses", response_model=MessageResponse, status_code=201)
async def create_course(
    principal: Principal = Depends(protect(roles={Role.TEACHER}, permissions={CREATE_COURSES})),
) -> MessageResponse:
    # Course persistence is outside this service; the policy is what matters here.
    return MessageResponse(message="Course creation endpoint", user=PrincipalResponse.from_principal(principal))


@router.get("/admin/dashboard", response_model=MessageResponse)
async def admin_dashboard(principal: Principal = Depends(protect(roles={Role.ADMIN}))) -> MessageResponse:
    return MessageResponse(message="Admin dashboard accessed", user=PrincipalResponse.from_principal(principal))


@router.get("/content", response_model=ContentResponse)
async def content(principal: Principal = Depends(protect(allow_guest=True))) -> ContentResponse:
    """Public content for everyone, plus one extra tier per role the caller holds."""
    return ContentResponse(
        public="This content is available to everyone",
        user="Course list available" if has_role(principal, Role.USER) else None,
        teacher="Course creation available" if has_role(principal, Role.TEACHER) else None,
        admin="Admin panel available" if has_role(principal, Role.ADMIN) else None,
        role=principal.role,
    )


@router.get("/users/{user_id}/profile", response_model=UserResponse)
async def user_profile(
    request: Request,
    user_id: int,
    principal: Principal = Depends(protect(roles={Role.USER}, owner=_profile_owner)),
) -> UserResponse:
    """A user's own profile. Admins may read any profile."""
    store: UserStore = request.app.state.user_store
    user = await run_in_threadpool(store.get_by_id, user_id)
    if user is None:
        raise HTTPException(
            status_code=404,
            detail={"code": "not_found", "message": "User not found."},
        )
    return UserResponse.from_user(user)
