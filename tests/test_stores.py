"""
Tests for database engine and Redis client construction.

Covers:
    • Connection URLs (target database, server level, MySQL charset)
    • Idle/open limits and lifetimes → pool arguments
    • Engine construction without I/O
    • SQL emitted for clearing tables and creating the database, per dialect
    • Redis address parsing and client options
"""

from __future__ import annotations

import inspect
from datetime import timedelta
from unittest.mock import AsyncMock, MagicMock

import pytest
from sqlalchemy.dialects import mysql, postgresql, sqlite

from backend.app.core.cache import DEFAULT_PING_TIMEOUT, RedisConfig, make_redis
from backend.app.core.database import (
    DatabaseAdmin,
    DatabaseConfig,
    clear_all_data,
    make_engine,
    ping_database,
    pool_options,
)


# ═══════════════════════════════════════════════════════════════════════════
# Database
# ═══════════════════════════════════════════════════════════════════════════

class TestDatabaseUrl:
    def test_postgres(self):
        cfg = DatabaseConfig(username="svc", password="pw", host="db", port=5433, name="orders_dev")
        url = cfg.url()
        assert url.drivername == "postgresql+asyncpg"
        assert (url.username, url.password, url.host, url.port) == ("svc", "pw", "db", 5433)
        assert url.database == "orders_dev"
        assert "charset" not in url.query

    def test_server_url_postgres(self):
        assert DatabaseConfig(name="orders_dev").server_url().database == "postgres"

    def test_mysql_charset(self):
        cfg = DatabaseConfig(driver="mysql+aiomysql", port=3306, name="orders_test", charset="utf8mb4")
        assert cfg.url().query["charset"] == "utf8mb4"
        assert cfg.server_url().database is None
        assert cfg.backend == "mysql"


class TestPoolOptions:
    def test_idle_and_open_limits(self):
        opts = pool_options(DatabaseConfig(max_idle_conns=10, max_open_conns=100))
        assert opts["pool_size"] == 10
        assert opts["max_overflow"] == 90

    def test_unbounded_open(self):
        opts = pool_options(DatabaseConfig(max_idle_conns=5, max_open_conns=0))
        assert opts["max_overflow"] == -1

    def test_open_below_idle(self):
        opts = pool_options(DatabaseConfig(max_idle_conns=10, max_open_conns=4))
        assert opts["pool_size"] == 4
        assert opts["max_overflow"] == 0

    def test_zero_idle_uses_default(self):
        assert pool_options(DatabaseConfig(max_idle_conns=0))["pool_size"] == 2

    def test_recycle_smallest_lifetime(self):
        opts = pool_options(DatabaseConfig(
            conn_max_lifetime=timedelta(hours=1),
            conn_max_idle_time=timedelta(minutes=10),
        ))
        assert opts["pool_recycle"] == 600

    def test_recycle_disabled(self):
        assert pool_options(DatabaseConfig())["pool_recycle"] == -1


class TestMakeEngine:

    @pytest.mark.asyncio
    async def test_builds_without_connecting(self):
        engine = make_engine(DatabaseConfig(host="127.0.0.1", port=1, name="orders_dev", max_idle_conns=3))
        try:
            assert engine.url.database == "orders_dev"
            assert engine.pool.size() == 3
        finally:
            await engine.dispose()


# ═══════════════════════════════════════════════════════════════════════════
# SQL issued against the server
# ═══════════════════════════════════════════════════════════════════════════

def _engine_on(dialect, *, tables=(), method="begin"):
    """Mock AsyncEngine whose ``begin()``/``connect()`` yields a recording connection."""
    conn = MagicMock(
        dialect=dialect,
        execute=AsyncMock(),
        scalar=AsyncMock(return_value=None),
        run_sync=AsyncMock(return_value=list(tables)),
    )
    engine = MagicMock(dispose=AsyncMock())
    ctx = getattr(engine, method).return_value
    ctx.__aenter__ = AsyncMock(return_value=conn)
    ctx.__aexit__ = AsyncMock(return_value=False)
    return engine, conn


def _sql(conn) -> list:
    return [str(c.args[0]) for c in conn.execute.await_args_list]


class TestPingDatabase:

    def test_shares_redis_deadline(self):
        default = inspect.signature(ping_database).parameters["timeout"].default
        assert default == DEFAULT_PING_TIMEOUT == 10.0

    @pytest.mark.asyncio
    async def test_select_one(self):
        engine, conn = _engine_on(postgresql.dialect(), method="connect")
        await ping_database(engine, timeout=1.0)
        assert _sql(conn) == ["SELECT 1"]


class TestClearAllData:

    @pytest.mark.asyncio
    async def test_postgres_truncates_in_one_statement(self):
        engine, conn = _engine_on(postgresql.dialect(), tables=["orders", "User"])
        assert await clear_all_data(engine) == 2
        assert _sql(conn) == ['TRUNCATE TABLE orders, "User" RESTART IDENTITY CASCADE']

    @pytest.mark.asyncio
    async def test_mysql_disables_foreign_keys(self):
        engine, conn = _engine_on(mysql.dialect(), tables=["orders", "line_items"])
        assert await clear_all_data(engine) == 2
        assert _sql(conn) == [
            "SET FOREIGN_KEY_CHECKS = 0",
            "TRUNCATE TABLE orders",
            "TRUNCATE TABLE line_items",
            "SET FOREIGN_KEY_CHECKS = 1",
        ]

    @pytest.mark.asyncio
    async def test_other_dialects_delete(self):
        engine, conn = _engine_on(sqlite.dialect(), tables=["orders", "line_items"])
        assert await clear_all_data(engine) == 2
        assert _sql(conn) == ["DELETE FROM orders", "DELETE FROM line_items"]

    @pytest.mark.asyncio
    async def test_no_tables(self):
        engine, conn = _engine_on(postgresql.dialect())
        assert await clear_all_data(engine) == 0
        conn.execute.assert_not_awaited()


class TestDatabaseAdmin:

    @pytest.mark.asyncio
    async def test_postgres_creates_when_absent(self):
        engine, conn = _engine_on(postgresql.dialect(), method="connect")
        admin = DatabaseAdmin(DatabaseConfig(name="orders_test"), engine=engine)

        assert await admin.create_database() is True

        query, params = conn.scalar.await_args.args
        assert "pg_database" in str(query)
        assert params == {"name": "orders_test"}
        assert _sql(conn) == ["CREATE DATABASE orders_test"]

    @pytest.mark.asyncio
    async def test_postgres_existing_database_untouched(self):
        engine, conn = _engine_on(postgresql.dialect(), method="connect")
        conn.scalar.return_value = 1
        admin = DatabaseAdmin(DatabaseConfig(name="orders_test"), engine=engine)

        assert await admin.create_database() is False
        conn.execute.assert_not_awaited()

    @pytest.mark.asyncio
    @pytest.mark.parametrize("rowcount,created", [(1, True), (0, False)])
    async def test_mysql_if_not_exists(self, rowcount, created):
        engine, conn = _engine_on(mysql.dialect(), method="connect")
        conn.execute.return_value = MagicMock(rowcount=rowcount)
        config = DatabaseConfig(driver="mysql+aiomysql", name="orders_test", charset="utf8mb4")

        assert await DatabaseAdmin(config, engine=engine).create_database() is created
        assert _sql(conn) == ["CREATE DATABASE IF NOT EXISTS orders_test CHARACTER SET utf8mb4"]

    @pytest.mark.asyncio
    async def test_mysql_rejects_invalid_charset(self):
        engine, conn = _engine_on(mysql.dialect(), method="connect")
        config = DatabaseConfig(driver="mysql+aiomysql", name="orders_test", charset="utf8; DROP DATABASE x")

        with pytest.raises(ValueError, match="invalid charset"):
            await DatabaseAdmin(config, engine=engine).create_database()
        conn.execute.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_close_disposes_engine(self):
        engine, _ = _engine_on(postgresql.dialect(), method="connect")
        await DatabaseAdmin(DatabaseConfig(name="orders_test"), engine=engine).close()
        engine.dispose.assert_awaited_once()


# ═══════════════════════════════════════════════════════════════════════════
# Redis
# ═══════════════════════════════════════════════════════════════════════════

class TestRedisConfig:
    @pytest.mark.parametrize("addr,expected", [
        ("localhost:6379", ("localhost", 6379)),
        ("cache.internal:6380", ("cache.internal", 6380)),
        ("cache.internal", ("cache.internal", 6379)),
        ("[::1]:6379", ("::1", 6379)),
    ])
    def test_host_port(self, addr, expected):
        assert RedisConfig(addr=addr).host_port() == expected


class TestMakeRedis:

    @pytest.mark.asyncio
    async def test_client_options(self):
        client = make_redis(RedisConfig(
            addr="cache:6380",
            password="pw",
            db=4,
            dial_timeout=timedelta(seconds=2),
            read_timeout=timedelta(seconds=1),
            write_timeout=timedelta(seconds=3),
        ))
        try:
            kwargs = client.connection_pool.connection_kwargs
            assert kwargs["host"] == "cache"
            assert kwargs["port"] == 6380
            assert kwargs["db"] == 4
            assert kwargs["password"] == "pw"
            assert kwargs["socket_connect_timeout"] == 2.0
            assert kwargs["socket_timeout"] == 3.0
        finally:
            await client.aclose()

    @pytest.mark.asyncio
    async def test_zero_timeouts_mean_none(self):
        client = make_redis(RedisConfig(
            dial_timeout=timedelta(0),
            read_timeout=timedelta(0),
            write_timeout=timedelta(0),
        ))
        try:
            kwargs = client.connection_pool.connection_kwargs
            assert kwargs["socket_connect_timeout"] is None
            assert kwargs["socket_timeout"] is None
        finally:
            await client.aclose()
