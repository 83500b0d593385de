"""Unit tests for auth/session.py -- SessionResolver.

The resolver is async; each test drives it with asyncio.run(). A small fake
store stands in for UserStore so the tests can count lookups and inject
failures.

Covers:
- allow_guest=True never raises for missing, expired, invalid or stale credentials
- allow_guest=False: AuthRequired (missing), TokenExpired/TokenInvalid, StaleIdentity
- store failures surface as LookupFailed, even when guests are allowed
- the stored role wins over the role embedded in the token
- no store lookup happens unless the token verifies
"""

import asyncio
from datetime import datetime, timedelta, timezone

import pytest

from auth.errors import AuthInvalid, AuthRequired, LookupFailed, StaleIdentity, TokenExpired, TokenInvalid
from auth.models import User
from auth.principal import GUEST, AuthenticatedUser, is_guest
from auth.roles import VIEW_PUBLIC_CONTENT, Role
from auth.session import SessionResolver
from auth.tokens import TokenService

T0 = datetime(2026, 3, 1, tzinfo=timezone.utc)


class _FakeStore:
    def __init__(self, users: dict[int, User] | None = None, error: Exception | None = None) -> None:
        self.users = users or {}
        self.error = error
        self.lookups: list[int] = []

    def get_by_id(self, user_id: int) -> User | None:
        self.lookups.append(user_id)
        if self.error is not None:
            raise self.error
        return self.users.get(user_id)


class _Clock:
    def __init__(self) -> None:
        self.now = T0

    def __call__(self) -> datetime:
        return self.now


def _user(user_id: int, role: Role) -> User:
    return User(
        id=user_id,
        email=f"user{user_id}@example.com",
        first_name="Grace",
        last_name="Hopper",
        hashed_password="unused",
        role=role,
    )


@pytest.fixture
def clock() -> _Clock:
    return _Clock()


@pytest.fixture
def tokens(clock) -> TokenService:
    return TokenService(secret_key="r" * 32, expire_seconds=600, clock=clock)


def _resolve(resolver: SessionResolver, token, allow_guest: bool):
    return asyncio.run(resolver.resolve(token, allow_guest))


# ---------------------------------------------------------------------------
# Guest degradation
# ---------------------------------------------------------------------------


class TestAllowGuest:
    def test_missing_credential_is_guest(self, tokens):
        store = _FakeStore()
        principal = _resolve(SessionResolver(tokens, store), None, allow_guest=True)
        assert principal is GUEST
        assert principal.role is Role.GUEST
        assert principal.permissions == frozenset({VIEW_PUBLIC_CONTENT})
        assert store.lookups == []

    def test_invalid_credential_is_guest(self, tokens):
        store = _FakeStore()
        assert _resolve(SessionResolver(tokens, store), "garbage", allow_guest=True) is GUEST
        assert store.lookups == []

    def test_expired_credential_is_guest(self, tokens, clock):
        store = _FakeStore({1: _user(1, Role.USER)})
        token = tokens.issue(1, Role.USER)
        clock.now = T0 + timedelta(seconds=601)
        assert _resolve(SessionResolver(tokens, store), token, allow_guest=True) is GUEST
        assert store.lookups == []

    def test_stale_identity_is_guest(self, tokens):
        store = _FakeStore()
        token = tokens.issue(99, Role.USER)
        assert _resolve(SessionResolver(tokens, store), token, allow_guest=True) is GUEST
        assert store.lookups == [99]


# ---------------------------------------------------------------------------
# Guests not allowed
# ---------------------------------------------------------------------------


class TestGuestForbidden:
    def test_missing_credential_is_auth_required(self, tokens):
        with pytest.raises(AuthRequired):
            _resolve(SessionResolver(tokens, _FakeStore()), None, allow_guest=False)

    def test_empty_credential_is_auth_required(self, tokens):
        with pytest.raises(AuthRequired):
            _resolve(SessionResolver(tokens, _FakeStore()), "", allow_guest=False)

    def test_invalid_credential(self, tokens):
        with pytest.raises(TokenInvalid):
            _resolve(SessionResolver(tokens, _FakeStore()), "garbage", allow_guest=False)

    def test_expired_credential(self, tokens, clock):
        token = tokens.issue(1, Role.USER)
        clock.now = T0 + timedelta(hours=1)
        with pytest.raises(TokenExpired):
            _resolve(SessionResolver(tokens, _FakeStore({1: _user(1, Role.USER)})), token, allow_guest=False)

    def test_stale_identity(self, tokens):
        with pytest.raises(StaleIdentity) as excinfo:
            _resolve(SessionResolver(tokens, _FakeStore()), tokens.issue(3, Role.USER), allow_guest=False)
        assert isinstance(excinfo.value, AuthInvalid)


# ---------------------------------------------------------------------------
# Real users
# ---------------------------------------------------------------------------


class TestRealUser:
    def test_resolves_authenticated_user(self, tokens):
        store = _FakeStore({4: _user(4, Role.TEACHER)})
        principal = _resolve(SessionResolver(tokens, store), tokens.issue(4, Role.TEACHER), allow_guest=False)
        assert isinstance(principal, AuthenticatedUser)
        assert not is_guest(principal)
        assert principal.id == 4
        assert principal.email == "user4@example.com"
        assert store.lookups == [4]

    def test_stored_role_overrides_token_role(self, tokens):
        # Token minted while the user was an admin; the store now says "user".
        store = _FakeStore({8: _user(8, Role.USER)})
        principal = _resolve(SessionResolver(tokens, store), tokens.issue(8, Role.ADMIN), allow_guest=False)
        assert principal.role is Role.USER

    def test_promotion_applies_to_old_token(self, tokens):
        store = _FakeStore({8: _user(8, Role.TEACHER)})
        principal = _resolve(SessionResolver(tokens, store), tokens.issue(8, Role.USER), allow_guest=True)
        assert principal.role is Role.TEACHER


# ---------------------------------------------------------------------------
# Infrastructure failure
# ---------------------------------------------------------------------------


class TestLookupFailed:
    @pytest.mark.parametrize("allow_guest", [True, False])
    def test_store_error_is_never_downgraded_to_guest(self, tokens, allow_guest):
        store = _FakeStore(error=ConnectionError("database unreachable"))
        with pytest.raises(LookupFailed) as excinfo:
            _resolve(SessionResolver(tokens, store), tokens.issue(1, Role.USER), allow_guest)
        assert excinfo.value.status_code == 503
        assert isinstance(excinfo.value.__cause__, ConnectionError)

    def test_no_lookup_without_credential_means_no_failure(self, tokens):
        store = _FakeStore(error=ConnectionError("database unreachable"))
        assert _resolve(SessionResolver(tokens, store), None, allow_guest=True) is GUEST
