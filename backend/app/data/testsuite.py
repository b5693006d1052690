"""
Test suite for data-layer integration tests.

Manages the database and Redis connections of a test run and provides
reset primitives. Refuses to touch any database whose name does not
contain ``test`` or ``dev``.

Usage (pytest):
    @pytest.fixture(scope="session")
    async def suite():
        suite = TestSuite.from_local()
        await suite.setup()
        yield suite
        await suite.tear_down()

The local settings live in ``configs/.local.env`` (same keys as the
service's environment: DATABASE_*, REDIS_*).
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Callable, List, Optional, Sequence, Union

import redis.asyncio as aioredis
from pydantic import ValidationError
from sqlalchemy.ext.asyncio import AsyncEngine

from backend.app.core.cache import DEFAULT_PING_TIMEOUT, flush_redis, make_redis, ping_redis
from backend.app.core.config import Settings
from backend.app.core.database import DatabaseAdmin, DatabaseConfig, clear_all_data, make_engine
from backend.app.core.errors import (
    ConfigurationError,
    ConnectionFailure,
    LivenessCheckFailure,
    SafetyViolation,
    ServiceError,
    TeardownFailure,
)
from backend.app.data.data import DataConfig, EngineFactory, RedisFactory
from backend.app.data.guard import ResourceGuard

logger = logging.getLogger(__name__)

LOCAL_CONFIG_FILE_NAME = ".local.env"
SAFE_NAME_MARKERS = ("test", "dev")

AdminFactory = Callable[[DatabaseConfig], DatabaseAdmin]


def project_root() -> Path:
    # backend/app/data/testsuite.py → project root
    return Path(__file__).resolve().parents[3]


def find_local_config() -> Path:
    """Locate configs/.local.env under the project root."""
    path = project_root() / "configs" / LOCAL_CONFIG_FILE_NAME
    if not path.is_file():
        raise ConfigurationError(
            f"local config file not found: {path}\n"
            f"Please create configs/{LOCAL_CONFIG_FILE_NAME} for local testing",
            path=str(path),
        )
    return path


class TestSuite:
    """Setup/teardown bookkeeping for tests that need real stores."""

    __test__ = False  # not a pytest test class

    def __init__(
        self,
        config: DataConfig,
        *,
        ping_timeout: float = DEFAULT_PING_TIMEOUT,
        safe_markers: Sequence[str] = SAFE_NAME_MARKERS,
        engine_factory: EngineFactory = make_engine,
        redis_factory: RedisFactory = make_redis,
        admin_factory: AdminFactory = DatabaseAdmin,
    ):
        self.config = config
        self.ping_timeout = ping_timeout
        self.safe_markers = tuple(safe_markers)
        self._engine_factory = engine_factory
        self._redis_factory = redis_factory
        self._admin_factory = admin_factory
        self._guard = ResourceGuard()
        self._admin: Optional[DatabaseAdmin] = None
        self._db: Optional[AsyncEngine] = None
        self._redis: Optional[aioredis.Redis] = None

    @classmethod
    def from_local(cls, path: Union[str, Path, None] = None, **options) -> "TestSuite":
        """Build a suite from a local env file (default: configs/.local.env)."""
        config_path = Path(path) if path is not None else find_local_config()
        if not config_path.is_file():
            raise ConfigurationError(
                f"local config file not found: {config_path}", path=str(config_path)
            )
        try:
            settings = Settings(_env_file=str(config_path))
        except ValidationError as e:
            raise ConfigurationError(f"failed to load config: {e}", path=str(config_path)) from e
        return cls(settings.data_config(), **options)

    # ── Accessors ──

    @property
    def db(self) -> Optional[AsyncEngine]:
        return self._db

    @property
    def redis(self) -> Optional[aioredis.Redis]:
        return self._redis

    # ── Lifecycle ──

    def validate_config(self) -> None:
        name = self.config.database.name
        if not any(marker in name for marker in self.safe_markers):
            raise SafetyViolation(name, self.safe_markers)

    async def setup(self) -> None:
        """Open every store. Call once before the tests run."""
        self.validate_config()
        try:
            await self._setup_database()
            await self._setup_redis()
        except BaseException:
            errors = await self._guard.close()
            self._forget_handles()
            if errors:
                logger.warning("%d release errors while aborting setup", len(errors))
            raise

    async def _setup_database(self) -> None:
        config = self.config.database
        try:
            admin = self._admin_factory(config)
            self._guard.push("database admin", admin.close)
            self._admin = admin
            await admin.create_database()

            engine = self._engine_factory(config)
            self._guard.push("database", engine.dispose)
            self._db = engine
        except ServiceError:
            raise
        except Exception as e:
            raise ConnectionFailure("database", f"setup failed: {e}") from e

    async def _setup_redis(self) -> None:
        config = self.config.redis
        if config is None or not config.addr:
            return  # redis is optional

        try:
            client = self._redis_factory(config)
        except Exception as e:
            raise ConnectionFailure("redis", f"setup failed: {e}") from e
        self._guard.push("redis", client.aclose)
        self._redis = client

        try:
            await ping_redis(client, timeout=self.ping_timeout)
        except Exception as e:
            raise LivenessCheckFailure("redis", str(e) or type(e).__name__) from e

    async def tear_down(self) -> None:
        """Clear all data and close every connection; aggregates failures."""
        errors: List[BaseException] = []
        try:
            await self.clear_all()
        except TeardownFailure as e:
            errors.extend(e.errors)
        finally:
            errors.extend(await self._guard.close())
            self._forget_handles()

        if errors:
            raise TeardownFailure(errors)

    def _forget_handles(self) -> None:
        self._admin = None
        self._db = None
        self._redis = None

    async def __aenter__(self) -> "TestSuite":
        await self.setup()
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.tear_down()

    # ── Reset primitives ──

    async def clear_all(self) -> None:
        """Clear both stores; every store is attempted."""
        errors: List[BaseException] = []
        for name, clear in (("database", self.clear_database), ("redis", self.clear_redis)):
            try:
                await clear()
            except Exception as e:
                logger.error("failed to clear %s: %s", name, e)
                errors.append(e)
        if errors:
            raise TeardownFailure(errors)

    async def clear_database(self) -> None:
        if self._db is None:
            return
        await clear_all_data(self._db)

    async def clear_redis(self) -> None:
        if self._redis is None:
            return
        await flush_redis(self._redis, timeout=self.ping_timeout)
