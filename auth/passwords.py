"""
auth/passwords.py -- Password hashing and the login credential check.

Passwords: bcrypt, used directly (no passlib wrapper). passlib's wrap-bug
detection builds a password longer than 72 bytes, which bcrypt 4.x rejects,
so the wrapper buys nothing but a compatibility shim.

Login check: authenticate_user() always runs bcrypt, against the real hash
or against _DUMMY_HASH when the email is unknown, so response time does not
reveal whether an account exists [C1]. It raises UnknownEmail or
IncorrectPassword so callers (and tests) can tell the two apart; whether the
HTTP response reveals that difference is the route's decision.

Layer rule: no imports from api/.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

import bcrypt

from auth.errors import IncorrectPassword, UnknownEmail

if TYPE_CHECKING:
    from auth.models import User
    from auth.store import UserStore

logger = logging.getLogger("coursegate.auth")


def hash_password(plain: str) -> str:
    """Return a bcrypt hash of the given plaintext password.

    bcrypt silently truncates inputs beyond 72 bytes. The API layer caps
    password length well below that (Pydantic max_length).
    """
    return bcrypt.hashpw(plain.encode("utf-8"), bcrypt.gensalt()).decode("utf-8")


def verify_password(plain: str, hashed: str) -> bool:
    """Return True if the plaintext password matches the bcrypt hash."""
    try:
        return bcrypt.checkpw(plain.encode("utf-8"), hashed.encode("utf-8"))
    except ValueError:
        # Malformed hash in the store -- treat as a mismatch.
        return False


# Computed once at import so the first login is not measurably slower [C1].
_DUMMY_HASH: str = hash_password("coursegate_timing_dummy")


def authenticate_user(store: UserStore, email: str, password: str) -> User:
    """Return the User whose email and password match.

    Raises:
        UnknownEmail:      no account for this email.
        IncorrectPassword: account exists, password does not match.
    """
    user = store.get_by_email(email)
    if user is None:
        # Equalize timing -- do NOT return early before running bcrypt [C1]
        verify_password(password, _DUMMY_HASH)
        raise UnknownEmail()
    if not verify_password(password, user.hashed_password):
        raise IncorrectPassword()
    return user
