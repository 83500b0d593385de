"""
tests/conftest.py -- Shared test fixtures for CourseGate tests.

This module provides:
  - _make_test_store(): creates an isolated in-memory user store
  - _patch_lifespan(): wires test state into app.state, bypassing real startup
  - api_client: (client, store, tokens) for API integration tests
  - make_user / auth_headers: helpers for creating accounts and Bearer headers

Design: Named shared-memory SQLite URIs (not plain :memory:) are required
because TestClient runs sync work in a thread pool, and the session resolver
runs store lookups in one too. Plain :memory: DBs are per-connection and
would present a blank schema to each worker thread.

DEBUG and RATE_LIMIT_ENABLED must be set before any project import so
get_settings() auto-generates SECRET_KEY and the login limiter stays off.
"""

from __future__ import annotations

import itertools
import os
from collections.abc import Generator
from contextlib import asynccontextmanager

# CRITICAL: set before any auth/core/api import (get_settings is cached).
os.environ.setdefault("DEBUG", "true")
os.environ.setdefault("RATE_LIMIT_ENABLED", "false")

import pytest
from fastapi.testclient import TestClient

from api.main import app
from auth.models import User
from auth.roles import Role
from auth.session import SessionResolver
from auth.store import UserStore
from auth.tokens import TokenService
from core.config import get_settings

TEST_PASSWORD = "testpass123"

_email_counter = itertools.count(1)


# ---------------------------------------------------------------------------
# Store helpers
# ---------------------------------------------------------------------------


def _make_test_store(db_suffix: str) -> UserStore:
    """Create an isolated named shared-memory SQLite store.

    Args:
        db_suffix: Unique string appended to the DB name so test modules
                   don't share state.
    """
    return UserStore(db_url=f"sqlite:///file:test_auth_{db_suffix}?mode=memory&cache=shared&uri=true")


def _patch_lifespan(store: UserStore, tokens: TokenService):
    """Return an async context manager that replaces the real lifespan."""

    @asynccontextmanager
    async def test_lifespan(app):
        app.state.user_store = store
        app.state.token_service = tokens
        app.state.session_resolver = SessionResolver(tokens, store)
        yield

    return test_lifespan


def make_user(store: UserStore, role: Role = Role.USER, email: str | None = None, **fields) -> User:
    """Create a user with a unique email and TEST_PASSWORD."""
    email = email or f"user{next(_email_counter)}@example.com"
    return store.create_user(
        email,
        fields.pop("password", TEST_PASSWORD),
        fields.pop("first_name", "Test"),
        fields.pop("last_name", "User"),
        role=role,
        **fields,
    )


def auth_headers(tokens: TokenService, user: User) -> dict[str, str]:
    return {"Authorization": f"Bearer {tokens.issue(user.id, user.role)}"}


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def tokens() -> TokenService:
    return TokenService(secret_key="k" * 32, expire_seconds=3600)


@pytest.fixture(scope="module")
def api_client(request) -> Generator[tuple[TestClient, UserStore, TokenService], None, None]:
    """Yield (client, store, tokens) for API integration tests.

    One TestClient per test module, with its own in-memory store, so tests
    hit the real routes, dependencies and exception handlers in isolation.
    """
    store = _make_test_store(request.module.__name__.rsplit(".", 1)[-1])
    tokens = TokenService.from_settings(get_settings())

    app.router.lifespan_context = _patch_lifespan(store, tokens)

    with TestClient(app, raise_server_exceptions=True) as client:
        yield client, store, tokens

    store.close()


@pytest.fixture(autouse=True)
def _fresh_cookies(request) -> None:
    """Drop cookies left by an earlier signup/login in the same module.

    The jwt cookie takes priority over the Bearer header, so a leftover
    cookie would silently change which principal a later test runs as.
    """
    if "api_client" in request.fixturenames:
        client, _store, _tokens = request.getfixturevalue("api_client")
        client.cookies.clear()
