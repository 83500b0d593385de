"""
auth/store.py -- SQLAlchemy Core persistence layer for user accounts.

Pattern: Repository + Data Mapper.
UserStore is the repository; _row_to_user is the mapper.
Route, resolver and dependency code never touches SQL directly.

Validation:
  create_user() validates the fields it owns (email format, names present,
  password length) and reports every failing field at once as a
  ValidationError. The unique email constraint lives in SQL; the
  IntegrityError it raises is translated to DuplicateIdentity.

Roles:
  The role column is constrained by a CHECK built from auth.roles.Role, and
  the mapper converts the stored string back to Role. There is no second
  list of role names in this module.

Security:
  All queries use bound parameters. No f-strings in SQL.
  Plaintext passwords are hashed before insert and never logged.

Layer rule: no imports from api/.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone

from email_validator import EmailNotValidError, validate_email
from sqlalchemy import (
    CheckConstraint,
    Column,
    Integer,
    MetaData,
    String,
    Table,
    Text,
    create_engine,
    event,
    func,
    select,
)
from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError

from auth.errors import DuplicateIdentity, ValidationError
from auth.models import User
from auth.passwords import hash_password
from auth.roles import DEFAULT_ROLE, Role

logger = logging.getLogger("coursegate.auth")

MIN_PASSWORD_LENGTH = 6


# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

_metadata = MetaData()

_role_values = ", ".join(f"'{r.value}'" for r in Role)

_users = Table(
    "users",
    _metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("email", String(255), nullable=False, unique=True),
    Column("first_name", String(100), nullable=False),
    Column("last_name", String(100), nullable=False),
    Column("hashed_password", Text, nullable=False),
    Column("role", String(20), nullable=False, server_default=DEFAULT_ROLE.value),
    Column("department", String(100)),  # teacher metadata
    Column("created_at", String(32), nullable=False),
    CheckConstraint(f"role IN ({_role_values})", name="ck_users_role"),
)


# ---------------------------------------------------------------------------
# WAL mode
# ---------------------------------------------------------------------------


def _set_wal_mode(dbapi_conn, connection_record) -> None:
    """Enable WAL journal mode for concurrent read safety.

    Set per-connection because SQLite PRAGMAs are not inherited by new
    connections from the pool.
    """
    dbapi_conn.execute("PRAGMA journal_mode=WAL")


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def normalize_email(email: str) -> str:
    return email.strip().lower()


def _is_valid_email(email: str) -> bool:
    # Syntax only; no DNS lookups at signup.
    try:
        validate_email(email, check_deliverability=False)
    except EmailNotValidError:
        return False
    return True


def _validate_fields(email: str, password: str, first_name: str, last_name: str) -> dict[str, str]:
    errors: dict[str, str] = {}
    if not email:
        errors["email"] = "Please enter an email"
    elif not _is_valid_email(email):
        errors["email"] = "Please enter a valid email"
    if not password:
        errors["password"] = "Please enter a password"
    elif len(password) < MIN_PASSWORD_LENGTH:
        errors["password"] = f"Minimum password length is {MIN_PASSWORD_LENGTH} characters"
    if not first_name.strip():
        errors["firstName"] = "Please enter a first name"
    if not last_name.strip():
        errors["lastName"] = "Please enter a last name"
    return errors


# ---------------------------------------------------------------------------
# Repository
# ---------------------------------------------------------------------------


class UserStore:
    """Repository for User records.

    Usage:
        store = UserStore()
        user = store.create_user("ada@example.com", "secret1", "Ada", "Lovelace")
        same = store.get_by_id(user.id)
        store.close()
    """

    def __init__(self, db_url: str = "sqlite:///coursegate.db") -> None:
        connect_args: dict = {}
        if db_url.startswith("sqlite"):
            connect_args["check_same_thread"] = False
        self.engine: Engine = create_engine(db_url, connect_args=connect_args)
        if db_url.startswith("sqlite"):
            event.listen(self.engine, "connect", _set_wal_mode)
        _metadata.create_all(self.engine)

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def create_user(
        self,
        email: str,
        password: str,
        first_name: str,
        last_name: str,
        role: Role = DEFAULT_ROLE,
        department: str | None = None,
    ) -> User:
        """Validate, hash the password, insert, and return the stored User.

        Raises:
            ValidationError:   one or more fields failed validation.
            DuplicateIdentity: the email is already registered.
        """
        email = normalize_email(email or "")
        errors = _validate_fields(email, password or "", first_name or "", last_name or "")
        if errors:
            raise ValidationError(errors)

        role = Role(role)
        try:
            with self.engine.connect() as conn:
                result = conn.execute(
                    _users.insert().values(
                        email=email,
                        first_name=first_name.strip(),
                        last_name=last_name.strip(),
                        hashed_password=hash_password(password),
                        role=role.value,
                        department=department if role is Role.TEACHER else None,
                        created_at=_now_iso(),
                    )
                )
                conn.commit()
        except IntegrityError as exc:
            raise DuplicateIdentity(email) from exc

        user_id = result.inserted_primary_key[0]
        logger.info("User %d created (role=%s)", user_id, role.value)
        return self.get_by_id(user_id)

    def update_role(self, user_id: int, role: Role) -> bool:
        """Set a user's role. Returns True if a row was updated, False if user_id was not found."""
        with self.engine.connect() as conn:
            result = conn.execute(_users.update().where(_users.c.id == user_id).values(role=Role(role).value))
            conn.commit()
        return result.rowcount > 0

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def get_by_id(self, user_id: int) -> User | None:
        """Look up a user by primary key. Returns None if not found."""
        with self.engine.connect() as conn:
            row = conn.execute(_users.select().where(_users.c.id == user_id)).fetchone()
        return _row_to_user(row) if row is not None else None

    def get_by_email(self, email: str) -> User | None:
        """Look up a user by email (case-insensitive). Returns None if not found."""
        with self.engine.connect() as conn:
            row = conn.execute(_users.select().where(_users.c.email == normalize_email(email))).fetchone()
        return _row_to_user(row) if row is not None else None

    def count_users(self, role: Role | None = None) -> int:
        query = select(func.count()).select_from(_users)
        if role is not None:
            query = query.where(_users.c.role == Role(role).value)
        with self.engine.connect() as conn:
            return conn.execute(query).scalar() or 0

    def list_users(self, page: int = 1, limit: int = 10, role: Role | None = None) -> tuple[list[User], int]:
        """Return one page of users (oldest first) and the total matching count."""
        query = _users.select().order_by(_users.c.id)
        if role is not None:
            query = query.where(_users.c.role == Role(role).value)
        query = query.offset((page - 1) * limit).limit(limit)
        with self.engine.connect() as conn:
            rows = conn.execute(query).fetchall()
        return [_row_to_user(r) for r in rows], self.count_users(role)

    def close(self) -> None:
        self.engine.dispose()


# ---------------------------------------------------------------------------
# Row mapper (Data Mapper pattern)
# ---------------------------------------------------------------------------


def _row_to_user(row) -> User:
    return User(
        id=row.id,
        email=row.email,
        first_name=row.first_name,
        last_name=row.last_name,
        hashed_password=row.hashed_password,
        role=Role(row.role),
        department=row.department,
        created_at=row.created_at,
    )
