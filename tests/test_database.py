"""Tests for pool configuration and DatabaseManager without a live database."""

import asyncio

import asyncpg
import pytest

from tenure_shared.database import DatabaseManager, PoolConfig

SESSION_URL = "postgresql://u:p@db.example.com:5432/postgres"
TRANSACTION_URL = "postgresql://u:p@db.example.com:6543/postgres"


class TestPoolConfig:
    def test_serverless_preset(self):
        config = PoolConfig.for_mode("serverless")

        assert config.max_size == 1
        assert config.min_size == 0
        assert config.max_inactive_connection_lifetime == 0.0

    def test_server_preset(self):
        assert PoolConfig.for_mode("server").max_size == 10

    def test_overrides_and_unknown_keys(self):
        config = PoolConfig.for_mode("server", ssl=None, max_retries=1, bogus=True)

        assert config.ssl is None
        assert config.max_retries == 1


class TestDatabaseManager:
    def test_transaction_pooler_disables_statement_cache(self):
        kwargs = DatabaseManager(TRANSACTION_URL)._pool_kwargs()
        assert kwargs["statement_cache_size"] == 0

    def test_session_pooler_keeps_statement_cache(self):
        kwargs = DatabaseManager(SESSION_URL)._pool_kwargs()

        assert kwargs["statement_cache_size"] == 100
        assert kwargs["ssl"] == "require"
        assert kwargs["dsn"] == SESSION_URL

    def test_ssl_omitted_when_disabled(self):
        manager = DatabaseManager(SESSION_URL, PoolConfig.for_mode("server", ssl=None))
        assert "ssl" not in manager._pool_kwargs()

    @pytest.mark.asyncio
    async def test_unconnected_state(self):
        manager = DatabaseManager(SESSION_URL)

        assert manager.is_connected is False
        assert await manager.check_health() is False
        with pytest.raises(RuntimeError):
            _ = manager.pool
        await manager.disconnect()


class _HangingConnection:
    async def fetchval(self, query):
        await asyncio.sleep(60)


class _Acquire:
    async def __aenter__(self):
        return _HangingConnection()

    async def __aexit__(self, *exc):
        return None


class _UnverifiedPool:
    def __init__(self):
        self.terminated = False

    def acquire(self, timeout=None):
        return _Acquire()

    def terminate(self):
        self.terminated = True

    async def close(self):
        self.terminated = True


class TestConnectCancellation:
    @pytest.mark.asyncio
    async def test_timeout_during_verification_drops_pool(self, monkeypatch):
        pool = _UnverifiedPool()

        async def create_pool(**kwargs):
            return pool

        monkeypatch.setattr(asyncpg, "create_pool", create_pool)
        manager = DatabaseManager(SESSION_URL, PoolConfig(max_retries=1))

        with pytest.raises(asyncio.TimeoutError):
            await asyncio.wait_for(manager.connect(), timeout=0.05)

        assert pool.terminated is True
        assert manager.is_connected is False
        assert await manager.check_health() is False
