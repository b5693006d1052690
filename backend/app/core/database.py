"""
Database layer — async relational store via SQLAlchemy 2.0.

Provides:
    • Connection settings → async engine with a bounded pool
    • Management handle for creating the target database
    • Full data clearing (truncate-equivalent across all tables)
    • Bounded-timeout ping

The default driver is PostgreSQL via asyncpg; any SQLAlchemy async dialect
(e.g. ``mysql+aiomysql``) can be configured.

Usage:
    from backend.app.core.database import DatabaseConfig, make_engine

    engine = make_engine(DatabaseConfig(name="orders_dev"))
    async with engine.connect() as conn:
        await conn.execute(text("SELECT 1"))
    await engine.dispose()
"""

from __future__ import annotations

import asyncio
import logging
import re
from dataclasses import dataclass
from datetime import timedelta
from typing import Any, Dict, Optional

from sqlalchemy import inspect, text
from sqlalchemy.engine import URL
from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine

from backend.app.core.cache import DEFAULT_PING_TIMEOUT

logger = logging.getLogger(__name__)

DEFAULT_IDLE_CONNS = 2

_CHARSET_RE = re.compile(r"[A-Za-z0-9_]+")


@dataclass(frozen=True)
class DatabaseConfig:
    username: str = "postgres"
    password: str = ""
    host: str = "localhost"
    port: int = 5432
    name: str = ""
    charset: str = "utf8mb4"
    max_idle_conns: int = DEFAULT_IDLE_CONNS
    max_open_conns: int = 0  # 0 = unbounded
    conn_max_lifetime: timedelta = timedelta(0)  # 0 = reuse forever
    conn_max_idle_time: timedelta = timedelta(0)
    driver: str = "postgresql+asyncpg"

    @property
    def backend(self) -> str:
        """Dialect name without the driver, e.g. ``postgresql``."""
        return self.driver.split("+", 1)[0]

    def url(self) -> URL:
        return self._url(self.name or None)

    def server_url(self) -> URL:
        """URL that does not select the target database."""
        return self._url("postgres" if self.backend == "postgresql" else None)

    def _url(self, database: Optional[str]) -> URL:
        query: Dict[str, str] = {}
        if self.backend == "mysql" and self.charset:
            query["charset"] = self.charset
        return URL.create(
            self.driver,
            username=self.username or None,
            password=self.password or None,
            host=self.host or None,
            port=self.port or None,
            database=database,
            query=query,
        )


def pool_options(config: DatabaseConfig) -> Dict[str, Any]:
    """Translate idle/open limits and lifetimes into QueuePool arguments."""
    pool_size = config.max_idle_conns if config.max_idle_conns > 0 else DEFAULT_IDLE_CONNS
    if config.max_open_conns > 0:
        pool_size = min(pool_size, config.max_open_conns)
        max_overflow = config.max_open_conns - pool_size
    else:
        max_overflow = -1

    lifetimes = [
        d.total_seconds()
        for d in (config.conn_max_lifetime, config.conn_max_idle_time)
        if d.total_seconds() > 0
    ]
    recycle = max(int(min(lifetimes)), 1) if lifetimes else -1

    return {
        "pool_size": pool_size,
        "max_overflow": max_overflow,
        "pool_recycle": recycle,
        "pool_pre_ping": True,
    }


def make_engine(config: DatabaseConfig, **overrides: Any) -> AsyncEngine:
    """Build the pooled engine for the configured database (no I/O yet)."""
    options = {**pool_options(config), "future": True, **overrides}
    engine = create_async_engine(config.url(), **options)
    logger.info(
        "Database engine created: %s@%s:%s/%s (pool_size=%d, max_overflow=%d)",
        config.username, config.host, config.port, config.name,
        options["pool_size"], options["max_overflow"],
    )
    return engine


async def ping_database(engine: AsyncEngine, timeout: float = DEFAULT_PING_TIMEOUT) -> None:
    """``SELECT 1`` with a hard deadline; raises on failure or timeout."""

    async def _ping() -> None:
        async with engine.connect() as conn:
            await conn.execute(text("SELECT 1"))

    await asyncio.wait_for(_ping(), timeout=timeout)


async def clear_all_data(engine: AsyncEngine) -> int:
    """Remove every row from every table. Returns the number of tables cleared."""
    async with engine.begin() as conn:
        tables = await conn.run_sync(lambda sync_conn: inspect(sync_conn).get_table_names())
        if not tables:
            return 0

        quote = conn.dialect.identifier_preparer.quote
        dialect = conn.dialect.name
        if dialect == "postgresql":
            names = ", ".join(quote(t) for t in tables)
            await conn.execute(text(f"TRUNCATE TABLE {names} RESTART IDENTITY CASCADE"))
        elif dialect == "mysql":
            await conn.execute(text("SET FOREIGN_KEY_CHECKS = 0"))
            for table in tables:
                await conn.execute(text(f"TRUNCATE TABLE {quote(table)}"))
            await conn.execute(text("SET FOREIGN_KEY_CHECKS = 1"))
        else:
            for table in tables:
                await conn.execute(text(f"DELETE FROM {quote(table)}"))

    logger.debug("Cleared %d tables", len(tables))
    return len(tables)


class DatabaseAdmin:
    """
    Server-level handle used to manage databases rather than their contents.

    Connects without selecting the target database (PostgreSQL: the
    ``postgres`` maintenance database) in autocommit mode.
    """

    def __init__(self, config: DatabaseConfig, engine: Optional[AsyncEngine] = None):
        self.config = config
        if engine is None:
            engine = create_async_engine(
                config.server_url(),
                isolation_level="AUTOCOMMIT",
                pool_size=1,
                max_overflow=0,
            )
        self.engine = engine

    async def create_database(self) -> bool:
        """Create the configured database if absent. Returns True if created."""
        name = self.config.name
        async with self.engine.connect() as conn:
            quoted = conn.dialect.identifier_preparer.quote(name)
            if self.config.backend == "mysql":
                charset = self.config.charset
                if not _CHARSET_RE.fullmatch(charset):
                    raise ValueError(f"invalid charset: {charset!r}")
                result = await conn.execute(
                    text(f"CREATE DATABASE IF NOT EXISTS {quoted} CHARACTER SET {charset}")
                )
                created = bool(result.rowcount)
            else:
                exists = await conn.scalar(
                    text("SELECT 1 FROM pg_database WHERE datname = :name"),
                    {"name": name},
                )
                created = not exists
                if created:
                    await conn.execute(text(f"CREATE DATABASE {quoted}"))

        if created:
            logger.info("Database created: %s", name)
        return created

    async def close(self) -> None:
        await self.engine.dispose()
