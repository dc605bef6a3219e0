"""PostgreSQL connection pool management for the queue service.

Supabase connection modes:
  - Session Pooler  (port 5432) : persistent servers, supports prepared statements
  - Transaction Pooler (port 6543) : serverless/edge, no prepared statement support
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, fields
from typing import Any, ClassVar

import asyncpg

logger = logging.getLogger(__name__)


@dataclass
class PoolConfig:
    """Pool sizing and timeouts.

    Serverless instances each hold at most one connection and keep nothing
    idle, so many concurrent instances cannot exhaust the database's
    connection limit. A long-running server keeps a larger pool.
    """

    min_size: int = 0
    max_size: int = 10
    timeout: float = 20.0
    command_timeout: float = 30.0
    max_inactive_connection_lifetime: float = 30.0
    ssl: str | None = "require"
    max_retries: int = 3
    retry_delay: float = 2.0

    _MODE_PRESETS: ClassVar[dict[str, dict]] = {
        "serverless": {"min_size": 0, "max_size": 1, "max_inactive_connection_lifetime": 0.0},
        "server": {"min_size": 0, "max_size": 10},
    }

    @classmethod
    def for_mode(cls, mode: str, **overrides) -> PoolConfig:
        """Create a PoolConfig for ``serverless`` or ``server`` execution."""
        valid_keys = {f.name for f in fields(cls) if not f.name.startswith("_")}
        preset = dict(cls._MODE_PRESETS.get(mode, {}))
        preset.update(overrides)
        return cls(**{k: v for k, v in preset.items() if k in valid_keys})


class DatabaseManager:
    """Owns the asyncpg pool; repositories receive the pool from here."""

    def __init__(self, database_url: str, config: PoolConfig | None = None):
        self.database_url = database_url
        self.config = config or PoolConfig()
        self._pool: asyncpg.Pool | None = None
        self._pooler_mode: str = "transaction" if ":6543" in database_url else "session"

    def _pool_kwargs(self) -> dict[str, Any]:
        cfg = self.config
        kwargs: dict[str, Any] = {
            "dsn": self.database_url,
            "min_size": cfg.min_size,
            "max_size": cfg.max_size,
            "timeout": cfg.timeout,
            "command_timeout": cfg.command_timeout,
            "max_inactive_connection_lifetime": cfg.max_inactive_connection_lifetime,
            # PgBouncer in transaction mode cannot hold prepared statements
            "statement_cache_size": 0 if self._pooler_mode == "transaction" else 100,
        }
        if cfg.ssl:
            kwargs["ssl"] = cfg.ssl
        return kwargs

    async def connect(self) -> None:
        """Create the pool and verify it with ``SELECT 1``, retrying with backoff."""
        if self._pool is not None:
            logger.warning("Database pool already initialized")
            return

        if self.config.max_size == 1 and self._pooler_mode == "session":
            logger.warning(
                "Using Session Pooler (5432) in serverless mode; "
                "Transaction Pooler (6543) handles more concurrent instances"
            )

        pool_kwargs = self._pool_kwargs()
        cfg = self.config
        for attempt in range(1, cfg.max_retries + 1):
            try:
                self._pool = await asyncpg.create_pool(**pool_kwargs)
                async with self._pool.acquire() as conn:
                    await conn.fetchval("SELECT 1")

                logger.info(
                    f"Database pool created and verified "
                    f"(mode={self._pooler_mode}, size={cfg.min_size}-{cfg.max_size}, "
                    f"cache={pool_kwargs['statement_cache_size']})"
                )
                return
            except asyncio.CancelledError:
                # wait_for timed out mid-attempt; never keep an unverified pool
                self._terminate()
                raise
            except Exception as e:
                if self._pool is not None:
                    await self._close_quietly()
                if attempt < cfg.max_retries:
                    delay = cfg.retry_delay * (2 ** (attempt - 1))
                    logger.warning(
                        f"Database connection attempt {attempt}/{cfg.max_retries} failed: "
                        f"{type(e).__name__}: {e}, retrying in {delay}s..."
                    )
                    await asyncio.sleep(delay)
                else:
                    logger.error(
                        f"Database connection failed after {cfg.max_retries} attempts: "
                        f"{type(e).__name__}: {e}"
                    )
                    raise

    def _terminate(self) -> None:
        pool, self._pool = self._pool, None
        if pool is not None:
            pool.terminate()

    async def _close_quietly(self) -> None:
        pool, self._pool = self._pool, None
        if pool is None:
            return
        try:
            await pool.close()
        except Exception as e:
            logger.warning(f"Error closing half-open pool: {type(e).__name__}: {e}")

    async def disconnect(self) -> None:
        """Close the pool."""
        if self._pool is None:
            return

        try:
            await self._pool.close()
            self._pool = None
            logger.info("Database pool closed")
        except Exception as e:
            logger.exception(f"Error closing database pool: {e}")

    async def check_health(self) -> bool:
        """Return True if the pool can run ``SELECT 1``."""
        if self._pool is None:
            return False
        try:
            async with self._pool.acquire(timeout=2.0) as conn:
                await conn.fetchval("SELECT 1")
            return True
        except Exception as e:
            logger.warning(f"Database health check failed: {type(e).__name__}: {e}")
            return False

    @property
    def is_connected(self) -> bool:
        return self._pool is not None

    @property
    def pool(self) -> asyncpg.Pool:
        """Get the pool. Raises if not initialized."""
        if self._pool is None:
            raise RuntimeError("Database pool not initialized. Call connect() first.")
        return self._pool

