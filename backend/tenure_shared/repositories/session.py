"""Repository for the shared session and users tables."""

from __future__ import annotations

import logging

import asyncpg

from tenure_shared.cache import AsyncTTLCache, cached
from tenure_shared.models.session import Session, SessionUser

logger = logging.getLogger(__name__)

# Session rows are read on every request so sign-out takes effect at once;
# only the users lookup is cached
_user_cache = AsyncTTLCache(maxsize=512, ttl=300)


class SessionRepository:
    """Lookups used to validate a caller's session token."""

    def __init__(self, pool: asyncpg.Pool) -> None:
        self.pool = pool

    async def get_session_by_token(self, token: str) -> Session | None:
        async with self.pool.acquire() as conn:
            row = await conn.fetchrow(
                "SELECT id::text AS id, token, user_id::text AS user_id, expires_at "
                "FROM session WHERE token = $1",
                token,
            )
            if not row:
                return None
            return Session(**dict(row))

    @cached(cache=_user_cache, key_func=lambda self, user_id: f"user:{user_id}")
    async def get_user_by_id(self, user_id: str) -> SessionUser | None:
        async with self.pool.acquire() as conn:
            row = await conn.fetchrow(
                "SELECT id::text AS id, email, COALESCE(email_verified, FALSE) AS email_verified "
                "FROM users WHERE id::text = $1",
                user_id,
            )
            if not row:
                return None
            return SessionUser(**dict(row))

