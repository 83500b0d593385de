"""
auth/models.py -- Domain dataclass for the stored user record.

Pattern: Data class (pure data container, zero logic). The store owns
persistence; routes and the session resolver do the work.

The per-request identity (Principal) lives in auth/principal.py -- it is
derived from a User but never persisted.

Layer rule: no imports from api/.
"""

from __future__ import annotations

from dataclasses import dataclass

from auth.roles import DEFAULT_ROLE, Role


@dataclass
class User:
    """A registered CourseGate account.

    email is unique and stored lower-cased. hashed_password is the bcrypt
    hash; it never leaves the auth/ layer (API projections omit it).
    department is teacher metadata and stays None for other roles.
    """

    email: str
    first_name: str
    last_name: str
    hashed_password: str
    role: Role = DEFAULT_ROLE
    department: str | None = None
    id: int | None = None
    created_at: str | None = None
