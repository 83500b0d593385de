"""
API request and response models for CourseGate REST endpoints.

These Pydantic v2 models define the HTTP transport contract for the API layer.
They are intentionally separate from the dataclasses in auth/models.py and
auth/principal.py, which own the internal domain representation. Route
handlers map between the two.

Request bodies use the camelCase keys the frontend sends (confirmPassword,
termsAgreed, firstName ...). Field-level problems the store owns (email format,
password length) are NOT validated here: they come back from the store as a
400 field map, in the documented validation order.
"""

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from auth.models import User
from auth.principal import Principal, is_guest
from auth.roles import Role

# ---------------------------------------------------------------------------
# Request models
# ---------------------------------------------------------------------------


class SignupRequest(BaseModel):
    """Request body for POST /api/v1/auth/signup."""

    model_config = ConfigDict(str_strip_whitespace=True, populate_by_name=True)

    email: str = Field(default="", max_length=255)
    password: str = Field(default="", max_length=128)
    confirm_password: str = Field(default="", max_length=128, alias="confirmPassword")
    terms_agreed: bool = Field(default=False, alias="termsAgreed")
    first_name: str = Field(default="", max_length=100, alias="firstName")
    last_name: str = Field(default="", max_length=100, alias="lastName")
    # Free-form on purpose: anything outside the self-assignable allow-list
    # silently becomes "user" rather than failing validation.
    role: Optional[str] = Field(default=None, max_length=20)
    department: Optional[str] = Field(default=None, max_length=100)


class LoginRequest(BaseModel):
    """Request body for POST /api/v1/auth/login."""

    model_config = ConfigDict(str_strip_whitespace=True)

    email: str = Field(default="", max_length=255)
    password: str = Field(default="", max_length=128)


class RoleUpdateRequest(BaseModel):
    """Request body for POST /api/v1/auth/update-role."""

    model_config = ConfigDict(populate_by_name=True)

    user_id: int = Field(alias="userId", ge=1)
    role: Role


# ---------------------------------------------------------------------------
# Response models
# ---------------------------------------------------------------------------


class UserResponse(BaseModel):
    """Sanitized projection of a stored user. Never includes the password hash."""

    model_config = ConfigDict(frozen=True)

    id: int
    email: str
    first_name: str
    last_name: str
    role: Role
    department: Optional[str] = None
    created_at: str = ""

    @classmethod
    def from_user(cls, user: User) -> "UserResponse":
        return cls(
            id=user.id,
            email=user.email,
            first_name=user.first_name,
            last_name=user.last_name,
            role=user.role,
            department=user.department,
            created_at=user.created_at or "",
        )


class AuthResponse(BaseModel):
    """Response for successful signup and login. The token is also set as a cookie."""

    model_config = ConfigDict(frozen=True)

    user: UserResponse
    token: str
    expires_in: int


class PrincipalResponse(BaseModel):
    """The resolved caller, real or guest. Returned by GET /api/v1/auth/me."""

    model_config = ConfigDict(frozen=True)

    id: Optional[int]
    first_name: str
    last_name: str
    email: Optional[str]
    role: Role
    permissions: list[str]
    is_guest: bool

    @classmethod
    def from_principal(cls, principal: Principal) -> "PrincipalResponse":
        return cls(
            id=principal.id,
            first_name=principal.first_name,
            last_name=principal.last_name,
            email=principal.email,
            role=principal.role,
            permissions=sorted(principal.permissions),
            is_guest=is_guest(principal),
        )


class UserListResponse(BaseModel):
    """Response for GET /api/v1/auth/users."""

    model_config = ConfigDict(frozen=True)

    users: list[UserResponse]
    total: int
    page: int
    pages: int


class MessageResponse(BaseModel):
    """Generic success envelope for the protected demo routes."""

    model_config = ConfigDict(frozen=True)

    success: bool = True
    message: str
    user: Optional[PrincipalResponse] = None


class ContentResponse(BaseModel):
    """Response for GET /api/v1/content -- tiers are null when the caller's role is too low."""

    model_config = ConfigDict(frozen=True)

    public: str
    user: Optional[str] = None
    teacher: Optional[str] = None
    admin: Optional[str] = None
    role: Role


class ErrorDetail(BaseModel):
    """Machine-readable error payload.

    required/current are set for role and permission denials; fields is set
    for field-level validation errors.
    """

    model_config = ConfigDict(frozen=True)

    code: str
    message: str
    detail: Optional[str] = None
    required: Optional[list[str]] = None
    current: Optional[str] = None
    fields: Optional[dict[str, str]] = None


class ErrorResponse(BaseModel):
    """Top-level error envelope returned on 4xx/5xx responses."""

    model_config = ConfigDict(frozen=True)

    error: ErrorDetail


class HealthResponse(BaseModel):
    """Response for GET /api/v1/health."""

    model_config = ConfigDict(frozen=True)

    status: str = "ok"
    version: str
