"""
auth/errors.py -- Typed failures for authentication and authorization.

Every failure carries a machine-readable `kind` and an HTTP `status_code`.
Callers branch on the exception class, never on the human-readable message,
so wording can change without breaking control flow.

The api/ layer renders any AuthError through one exception handler; this
module stays framework-free.

Layer rule: stdlib only (plus auth.roles for typed role payloads).
"""

from __future__ import annotations

from collections.abc import Iterable

from auth.roles import Role, rank


class AuthError(Exception):
    """Base class for every per-request auth failure. Never fatal to the process."""

    kind = "auth_error"
    status_code = 400
    default_message = "Request rejected."

    def __init__(self, message: str | None = None) -> None:
        self.message = message or self.default_message
        super().__init__(self.message)

    def to_detail(self) -> dict:
        """Return the structured payload placed under "error" in responses."""
        return {"code": self.kind, "message": self.message}


# ---------------------------------------------------------------------------
# 401 -- no usable identity
# ---------------------------------------------------------------------------


class Unauthenticated(AuthError):
    kind = "unauthenticated"
    status_code = 401
    default_message = "Authentication required."


class AuthRequired(Unauthenticated):
    """No credential was presented and the route does not admit guests."""


class AuthInvalid(AuthError):
    kind = "auth_invalid"
    status_code = 401
    default_message = "Invalid session. Please log in again."
    reason = "invalid"

    def to_detail(self) -> dict:
        detail = super().to_detail()
        detail["detail"] = self.reason
        return detail


class TokenExpired(AuthInvalid):
    default_message = "Session expired. Please log in again."
    reason = "expired"


class TokenInvalid(AuthInvalid):
    reason = "invalid"


class StaleIdentity(AuthInvalid):
    """The token is valid but its identity no longer exists in the store."""

    reason = "stale_identity"


# ---------------------------------------------------------------------------
# 403 -- identity known, access refused
# ---------------------------------------------------------------------------


def _role_values(roles: Iterable[Role | str]) -> list[str]:
    return [r.value for r in sorted({Role(r) for r in roles}, key=rank)]


class InsufficientRole(AuthError):
    kind = "insufficient_role"
    status_code = 403

    def __init__(self, required: Iterable[Role | str], actual: Role | str) -> None:
        self.required = _role_values(required)
        self.actual = Role(actual).value
        super().__init__(f"Requires role {' or '.join(self.required)}; current role is {self.actual}.")

    def to_detail(self) -> dict:
        detail = super().to_detail()
        detail["required"] = self.required
        detail["current"] = self.actual
        return detail


class InsufficientPermission(AuthError):
    kind = "insufficient_permission"
    status_code = 403

    def __init__(self, required: Iterable[str], actual_role: Role | str) -> None:
        self.required = sorted(required)
        self.actual_role = Role(actual_role).value
        super().__init__(f"Requires permission {' or '.join(self.required)}.")

    def to_detail(self) -> dict:
        detail = super().to_detail()
        detail["required"] = self.required
        detail["current"] = self.actual_role
        return detail


class NotOwner(AuthError):
    kind = "not_owner"
    status_code = 403
    default_message = "You can only access your own resources."


class SelfDemotion(AuthError):
    kind = "self_demotion"
    status_code = 403
    default_message = "Admins cannot remove their own admin role."


# ---------------------------------------------------------------------------
# 404 -- the resource a guard needed could not be resolved
# ---------------------------------------------------------------------------


class ResourceLookupError(AuthError):
    kind = "resource_lookup_error"
    status_code = 404
    default_message = "The requested resource could not be resolved."


# ---------------------------------------------------------------------------
# 400 -- field-level input errors
# ---------------------------------------------------------------------------


class ValidationError(AuthError):
    """One or more request fields were rejected. `fields` maps field -> message."""

    kind = "validation_error"
    status_code = 400
    default_message = "Validation failed."

    def __init__(self, fields: dict[str, str], message: str | None = None) -> None:
        self.fields = dict(fields)
        super().__init__(message)

    def to_detail(self) -> dict:
        detail = super().to_detail()
        detail["fields"] = self.fields
        return detail


class DuplicateIdentity(ValidationError):
    kind = "duplicate_identity"
    default_message = "An account with that email already exists."

    def __init__(self, email: str) -> None:
        self.email = email
        super().__init__({"email": "That email is already registered"})


class InvalidCredentials(ValidationError):
    """Login failed. Subclasses say which half of the credential was wrong."""

    default_message = "Login failed."


class UnknownEmail(InvalidCredentials):
    kind = "unknown_email"

    def __init__(self) -> None:
        super().__init__({"email": "That email is not registered"})


class IncorrectPassword(InvalidCredentials):
    kind = "incorrect_password"

    def __init__(self) -> None:
        super().__init__({"password": "That password is incorrect"})


# ---------------------------------------------------------------------------
# 5xx -- infrastructure
# ---------------------------------------------------------------------------


class LookupFailed(AuthError):
    """The user store failed while resolving a session. Never downgraded to guest."""

    kind = "lookup_failed"
    status_code = 503
    default_message = "User lookup is temporarily unavailable."
