"""
auth/session.py -- Turn an inbound credential (or its absence) into a Principal.

Trust boundary: the token authenticates *identity*; the store is authoritative
for *authorization*. The role embedded in the token is ignored here -- the
Principal always carries the role from the live user record, so a role change
takes effect on the next request even while an old token is still valid.

Resolution order:
  1. No credential          -> GUEST if allowed, else AuthRequired.
  2. Token fails to verify  -> GUEST if allowed, else TokenExpired/TokenInvalid.
  3. Identity not in store  -> GUEST if allowed, else StaleIdentity.
  4. Store lookup raises    -> LookupFailed, whether or not guests are allowed.
                               An infrastructure fault is never reported as an
                               anonymous caller.
  5. Otherwise              -> AuthenticatedUser built from the stored record.

The store is synchronous (SQLAlchemy Core); the lookup runs in Starlette's
thread pool so the event loop is never blocked.
"""

from __future__ import annotations

import logging
from typing import Protocol

from starlette.concurrency import run_in_threadpool

from auth.errors import AuthError, AuthInvalid, AuthRequired, LookupFailed, StaleIdentity
from auth.models import User
from auth.principal import GUEST, Principal, from_user
from auth.tokens import TokenService

logger = logging.getLogger("coursegate.auth")


class UserLookup(Protocol):
    def get_by_id(self, user_id: int) -> User | None: ...


class SessionResolver:
    def __init__(self, tokens: TokenService, store: UserLookup) -> None:
        self.tokens = tokens
        self.store = store

    async def resolve(self, token: str | None, allow_guest: bool) -> Principal:
        """Return the Principal for this request's credential.

        Raises:
            AuthRequired:  no credential and guests are not allowed.
            AuthInvalid:   expired, tampered or stale credential, guests not allowed.
            LookupFailed:  the user store failed.
        """
        if not token:
            if allow_guest:
                return GUEST
            raise AuthRequired()

        try:
            claims = self.tokens.verify(token)
        except AuthInvalid as exc:
            logger.debug("Session token rejected (%s)", exc.reason)
            if allow_guest:
                return GUEST
            raise

        user = await self._lookup(claims.identity_id)
        if user is None:
            logger.info("Session token references missing user %d", claims.identity_id)
            if allow_guest:
                return GUEST
            raise StaleIdentity()

        return from_user(user)

    async def _lookup(self, identity_id: int) -> User | None:
        try:
            return await run_in_threadpool(self.store.get_by_id, identity_id)
        except AuthError:
            raise
        except Exception as exc:
            logger.error("User lookup failed for id %d: %s", identity_id, exc)
            raise LookupFailed() from exc
