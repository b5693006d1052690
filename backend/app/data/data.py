"""
Data layer — the dependency container for the relational store and Redis.

Construction opens the database pool and checks that it answers, then
builds the Redis client and pings it. Both checks have a bounded deadline.
A failed attempt releases whatever it had already opened before raising,
so no partial container escapes.

    Uninitialized → Connecting → Ready → Closed
                              ↘ Failed

Usage:
    from backend.app.data.data import new_data

    data, cleanup = await new_data(settings.data_config())
    try:
        async with data.session_factory() as session:
            ...
    finally:
        await cleanup()
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from enum import Enum
from typing import AsyncGenerator, Awaitable, Callable, List, Optional, Tuple

import redis.asyncio as aioredis
from fastapi import Request
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

from backend.app.core.cache import DEFAULT_PING_TIMEOUT, RedisConfig, make_redis, ping_redis
from backend.app.core.database import DatabaseConfig, make_engine, ping_database
from backend.app.core.errors import (
    ConnectionFailure,
    DataStateError,
    LivenessCheckFailure,
)
from backend.app.data.guard import ResourceGuard

logger = logging.getLogger(__name__)

EngineFactory = Callable[[DatabaseConfig], AsyncEngine]
RedisFactory = Callable[[RedisConfig], aioredis.Redis]
Cleanup = Callable[[], Awaitable[None]]


@dataclass(frozen=True)
class DataConfig:
    database: DatabaseConfig
    redis: Optional[RedisConfig] = None


class DataState(str, Enum):
    UNINITIALIZED = "uninitialized"
    CONNECTING = "connecting"
    READY = "ready"
    FAILED = "failed"
    CLOSED = "closed"


class Data:
    """Owns the database engine and the Redis client for one process."""

    def __init__(
        self,
        config: DataConfig,
        *,
        ping_timeout: float = DEFAULT_PING_TIMEOUT,
        engine_factory: EngineFactory = make_engine,
        redis_factory: RedisFactory = make_redis,
    ):
        self.config = config
        self.ping_timeout = ping_timeout
        self._engine_factory = engine_factory
        self._redis_factory = redis_factory
        self._guard = ResourceGuard()
        self._state = DataState.UNINITIALIZED
        self._engine: Optional[AsyncEngine] = None
        self._redis: Optional[aioredis.Redis] = None
        self._session_factory: Optional[async_sessionmaker[AsyncSession]] = None

    @property
    def state(self) -> DataState:
        return self._state

    @property
    def db(self) -> AsyncEngine:
        return self._require(self._engine, "use the database")

    @property
    def redis(self) -> aioredis.Redis:
        return self._require(self._redis, "use redis")

    @property
    def session_factory(self) -> async_sessionmaker[AsyncSession]:
        return self._require(self._session_factory, "open a session")

    def _require(self, handle, operation: str):
        if self._state is not DataState.READY or handle is None:
            raise DataStateError(self._state.value, operation)
        return handle

    # ── Lifecycle ──

    async def connect(self) -> None:
        if self._state is not DataState.UNINITIALIZED:
            raise DataStateError(self._state.value, "connect")

        self._state = DataState.CONNECTING
        try:
            await self._open()
        except BaseException:
            self._state = DataState.FAILED
            await self._guard.close()
            self._forget_handles()
            raise
        self._state = DataState.READY
        logger.info("Data resources ready")

    async def _open(self) -> None:
        try:
            engine = self._engine_factory(self.config.database)
        except Exception as e:
            logger.error("failed to create database engine: %s", e)
            raise ConnectionFailure("database", str(e)) from e
        self._guard.push("database", engine.dispose)
        self._engine = engine
        self._session_factory = async_sessionmaker(
            engine,
            class_=AsyncSession,
            expire_on_commit=False,
        )

        try:
            await ping_database(engine, timeout=self.ping_timeout)
        except asyncio.TimeoutError as e:
            logger.error("failed to connect database: no reply within %.1fs", self.ping_timeout)
            raise ConnectionFailure(
                "database", f"no reply within {self.ping_timeout:g}s",
                timeout_seconds=self.ping_timeout,
            ) from e
        except Exception as e:
            logger.error("failed to connect database: %s", e)
            raise ConnectionFailure("database", str(e)) from e

        if self.config.redis is None:
            raise ConnectionFailure("redis", "no address configured")
        try:
            client = self._redis_factory(self.config.redis)
        except Exception as e:
            logger.error("failed to create redis client: %s", e)
            raise ConnectionFailure("redis", str(e)) from e
        self._guard.push("redis", client.aclose)
        self._redis = client

        try:
            await ping_redis(client, timeout=self.ping_timeout)
        except asyncio.TimeoutError as e:
            logger.error("failed to ping redis: no reply within %.1fs", self.ping_timeout)
            raise LivenessCheckFailure(
                "redis", f"no reply within {self.ping_timeout:g}s",
                timeout_seconds=self.ping_timeout,
            ) from e
        except Exception as e:
            logger.error("failed to ping redis: %s", e)
            raise LivenessCheckFailure("redis", str(e)) from e

    async def close(self) -> List[Exception]:
        """Close Redis, then the database. Failures are logged and returned."""
        if self._state is DataState.CLOSED:
            return []
        logger.info("closing the data resources")
        errors = await self._guard.close()
        self._state = DataState.CLOSED
        self._forget_handles()
        return errors

    def _forget_handles(self) -> None:
        self._engine = None
        self._redis = None
        self._session_factory = None


async def new_data(config: DataConfig, **options) -> Tuple[Data, Cleanup]:
    """Connect a :class:`Data` container and return it with its cleanup."""
    data = Data(config, **options)
    await data.connect()

    async def cleanup() -> None:
        await data.close()

    return data, cleanup


# ── Dependency ──
async def get_db(request: Request) -> AsyncGenerator[AsyncSession, None]:
    """FastAPI dependency: yields a session from the app's data container."""
    data: Data = request.app.state.data
    async with data.session_factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
