"""
auth/tokens.py -- Session token issue/verify and cookie transport.

Security design decisions:
  JWT: python-jose with HS256. Tokens carry the identity id, the role at
       issuance, iat and exp. The role claim is a snapshot only -- the session
       resolver re-reads the live role from the store on every request.

  Secret: injected into TokenService at construction (TokenService.from_settings
       at startup, an explicit key in tests). Nothing here reads ambient global
       state, so a test or environment can swap the key without a restart.

  Expiry: checked against TokenService's own clock rather than jose's
       built-in exp check, so the boundary is testable. A token verified at or
       after exp is TokenExpired; anything structurally wrong is TokenInvalid.
       verify() never returns partial claims.

  Cookie: "jwt", httpOnly. Production: Secure + SameSite=None (the frontend
       is served cross-site). Elsewhere: not Secure, SameSite=Lax. Logout
       overwrites the cookie with an empty value and max_age=1; there is no
       server-side revocation store.

Layer rule: no imports from api/. Import from core/ is allowed.
"""

from __future__ import annotations

import base64
import logging
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import TYPE_CHECKING

from jose import JWTError, jwt

from auth.errors import TokenExpired, TokenInvalid
from auth.roles import Role

if TYPE_CHECKING:
    from core.config import Settings

logger = logging.getLogger("coursegate.auth")

COOKIE_NAME = "jwt"

_ALGORITHM = "HS256"
_THREE_DAYS = 3 * 24 * 60 * 60


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _has_canonical_signature(token: str) -> bool:
    """True when the signature segment re-encodes to itself.

    base64 decoding ignores the spare low bits of the last character, so
    several spellings of one signature would otherwise all verify.
    """
    parts = token.split(".")
    if len(parts) != 3:
        return False
    signature = parts[2]
    try:
        raw = base64.urlsafe_b64decode(signature + "=" * (-len(signature) % 4))
    except ValueError:
        return False
    return base64.urlsafe_b64encode(raw).rstrip(b"=").decode("ascii") == signature


@dataclass(frozen=True)
class TokenClaims:
    """The verified content of a session token."""

    identity_id: int
    role: Role


class TokenService:
    """Issues and verifies signed, time-limited session tokens.

    Usage:
        tokens = TokenService(secret_key=settings.secret_key)
        token = tokens.issue(user.id, user.role)
        claims = tokens.verify(token)   # TokenClaims, or raises AuthInvalid
    """

    def __init__(
        self,
        secret_key: str,
        expire_seconds: int = _THREE_DAYS,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        if not secret_key:
            raise ValueError("TokenService requires a signing secret")
        if expire_seconds <= 0:
            raise ValueError("expire_seconds must be positive")
        self._secret_key = secret_key
        self.expire_seconds = expire_seconds
        self._clock = clock

    @classmethod
    def from_settings(cls, settings: Settings) -> TokenService:
        return cls(secret_key=settings.secret_key, expire_seconds=settings.token_expire_seconds)

    def issue(self, identity_id: int, role: Role | str) -> str:
        """Encode a signed JWT for identity_id with the given role snapshot."""
        issued_at = int(self._clock().timestamp())
        payload = {
            "sub": str(identity_id),
            "id": identity_id,
            "role": Role(role).value,
            "iat": issued_at,
            "exp": issued_at + self.expire_seconds,
        }
        return jwt.encode(payload, self._secret_key, algorithm=_ALGORITHM)

    def verify(self, token: str) -> TokenClaims:
        """Check signature and expiry; return the claims.

        Raises:
            TokenInvalid: bad signature, malformed token, or missing/ill-typed claims.
            TokenExpired: signature is good but the token is past its exp.
        """
        if not _has_canonical_signature(token):
            raise TokenInvalid()
        try:
            payload = jwt.decode(
                token,
                self._secret_key,
                algorithms=[_ALGORITHM],
                options={"verify_exp": False},
            )
        except JWTError as exc:
            raise TokenInvalid() from exc

        identity_id = payload.get("id")
        expires_at = payload.get("exp")
        # bool is an int subclass; reject it explicitly.
        if not isinstance(identity_id, int) or isinstance(identity_id, bool):
            raise TokenInvalid()
        if not isinstance(expires_at, (int, float)) or isinstance(expires_at, bool):
            raise TokenInvalid()
        try:
            role = Role(payload.get("role"))
        except ValueError as exc:
            raise TokenInvalid() from exc

        if self._clock().timestamp() >= expires_at:
            raise TokenExpired()
        return TokenClaims(identity_id=identity_id, role=role)


# ---------------------------------------------------------------------------
# Cookie helpers
# ---------------------------------------------------------------------------


def set_auth_cookie(response, token: str, settings: Settings) -> None:
    """Write the session token as an httpOnly cookie on the response.

    max_age matches the token lifetime so cookie and token expire together.
    """
    response.set_cookie(
        COOKIE_NAME,
        value=token,
        httponly=True,
        secure=settings.is_production,
        samesite="none" if settings.is_production else "lax",
        max_age=settings.token_expire_seconds,
    )


def clear_auth_cookie(response, settings: Settings) -> None:
    """Overwrite the session cookie with an empty value that expires at once."""
    response.set_cookie(
        COOKIE_NAME,
        value="",
        httponly=True,
        secure=settings.is_production,
        samesite="none" if settings.is_production else "lax",
        max_age=1,
    )
