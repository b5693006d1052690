"""
Redis cache layer — async Redis client construction and probes.

Provides:
    • Connection settings → ``redis.asyncio.Redis`` client
    • Bounded-timeout ping (liveness check)
    • Logical-database flush for test resets

Usage:
    from backend.app.core.cache import RedisConfig, make_redis, ping_redis

    client = make_redis(RedisConfig(addr="localhost:6379", db=1))
    await ping_redis(client)
    await client.aclose()
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from datetime import timedelta
from typing import Optional, Tuple

import redis.asyncio as aioredis

logger = logging.getLogger(__name__)

DEFAULT_PING_TIMEOUT = 10.0  # seconds
DEFAULT_REDIS_PORT = 6379


@dataclass(frozen=True)
class RedisConfig:
    addr: str = "localhost:6379"
    password: str = ""
    db: int = 0
    dial_timeout: timedelta = timedelta(seconds=5)
    read_timeout: timedelta = timedelta(seconds=3)
    write_timeout: timedelta = timedelta(seconds=3)

    def host_port(self) -> Tuple[str, int]:
        """Split ``host:port``; the port defaults to 6379."""
        host, sep, port = self.addr.rpartition(":")
        if not sep:
            return self.addr, DEFAULT_REDIS_PORT
        return host.strip("[]") or "localhost", int(port)


def _seconds(value: timedelta) -> Optional[float]:
    seconds = value.total_seconds()
    return seconds if seconds > 0 else None


def make_redis(config: RedisConfig) -> aioredis.Redis:
    """Build the client (connections are opened lazily)."""
    host, port = config.host_port()
    # redis-py has a single socket timeout for reads and writes
    io_timeout = max(config.read_timeout, config.write_timeout)
    client = aioredis.Redis(
        host=host,
        port=port,
        password=config.password or None,
        db=config.db,
        socket_connect_timeout=_seconds(config.dial_timeout),
        socket_timeout=_seconds(io_timeout),
        decode_responses=True,
    )
    logger.info("Redis client created: %s/%d", config.addr, config.db)
    return client


async def ping_redis(client: aioredis.Redis, timeout: float = DEFAULT_PING_TIMEOUT) -> None:
    """PING with a hard deadline; raises on failure or timeout."""
    await asyncio.wait_for(client.ping(), timeout=timeout)


async def flush_redis(client: aioredis.Redis, timeout: float = DEFAULT_PING_TIMEOUT) -> None:
    """Drop every key in the client's logical database."""
    await asyncio.wait_for(client.flushdb(), timeout=timeout)
    logger.debug("Redis logical database flushed")
