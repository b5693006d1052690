"""
Environment configuration — single source of truth for all settings.

Uses pydantic-settings for type-safe config with .env file support.
All values have sensible defaults for local development. Duration fields
accept ``"10s"`` / ``"1h30m"`` style strings as well as plain seconds.

Usage:
    from backend.app.core.config import settings
    print(settings.DATABASE_HOST)
    data_config = settings.data_config()
"""

from __future__ import annotations

import re
import socket
from datetime import timedelta
from functools import lru_cache
from typing import Any, Optional

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from backend.app.core import env
from backend.app.core.cache import RedisConfig
from backend.app.core.database import DatabaseConfig
from backend.app.data.data import DataConfig

DEFAULT_SERVICE_NAME = "service_layout"
DEFAULT_SERVICE_VERSION = "0.0.1"

_SECONDS_RE = re.compile(r"[+-]?[0-9]+(?:\.[0-9]*)?")


class Settings(BaseSettings):
    """
    Application-wide settings loaded from environment variables or .env file.

    Precedence: init kwargs > env var > .env file > default value
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",
    )

    # ── Application ──
    ENVIRONMENT: str = "development"  # development | staging | production
    DEBUG: bool = True
    LOG_LEVEL: str = "DEBUG"  # DEBUG | INFO | WARNING | ERROR | CRITICAL
    LOG_FORMAT: str = "console"  # console | json

    # ── Server ──
    HOST: str = "0.0.0.0"
    PORT: int = 8000

    # ── Database ──
    DATABASE_DRIVER: str = "postgresql+asyncpg"
    DATABASE_USERNAME: str = "postgres"
    DATABASE_PASSWORD: str = "postgres"
    DATABASE_HOST: str = "localhost"
    DATABASE_PORT: int = 5432
    DATABASE_NAME: str = "service_layout_dev"
    DATABASE_CHARSET: str = "utf8mb4"
    DATABASE_MAX_IDLE_CONNS: int = 10
    DATABASE_MAX_OPEN_CONNS: int = 100
    DATABASE_CONN_MAX_LIFETIME: timedelta = timedelta(hours=1)
    DATABASE_CONN_MAX_IDLE_TIME: timedelta = timedelta(minutes=10)

    # ── Redis ──
    REDIS_ADDR: str = "localhost:6379"
    REDIS_PASSWORD: str = ""
    REDIS_DB: int = 0
    REDIS_DIAL_TIMEOUT: timedelta = timedelta(seconds=5)
    REDIS_READ_TIMEOUT: timedelta = timedelta(seconds=3)
    REDIS_WRITE_TIMEOUT: timedelta = timedelta(seconds=3)

    @field_validator(
        "DATABASE_CONN_MAX_LIFETIME",
        "DATABASE_CONN_MAX_IDLE_TIME",
        "REDIS_DIAL_TIMEOUT",
        "REDIS_READ_TIMEOUT",
        "REDIS_WRITE_TIMEOUT",
        mode="before",
    )
    @classmethod
    def _parse_unit_duration(cls, value: Any) -> Any:
        # "10s", "1h30m" or plain seconds; ISO 8601 falls through to pydantic
        if isinstance(value, str):
            if _SECONDS_RE.fullmatch(value):
                return float(value)
            if value[-1:].isalpha() and not value.startswith("P"):
                return env.parse_duration(value)
        return value

    @property
    def is_production(self) -> bool:
        return self.ENVIRONMENT == "production"

    @property
    def is_development(self) -> bool:
        return self.ENVIRONMENT == "development"

    def database_config(self) -> DatabaseConfig:
        return DatabaseConfig(
            driver=self.DATABASE_DRIVER,
            username=self.DATABASE_USERNAME,
            password=self.DATABASE_PASSWORD,
            host=self.DATABASE_HOST,
            port=self.DATABASE_PORT,
            name=self.DATABASE_NAME,
            charset=self.DATABASE_CHARSET,
            max_idle_conns=self.DATABASE_MAX_IDLE_CONNS,
            max_open_conns=self.DATABASE_MAX_OPEN_CONNS,
            conn_max_lifetime=self.DATABASE_CONN_MAX_LIFETIME,
            conn_max_idle_time=self.DATABASE_CONN_MAX_IDLE_TIME,
        )

    def redis_config(self) -> Optional[RedisConfig]:
        """None when no Redis address is configured."""
        if not self.REDIS_ADDR:
            return None
        return RedisConfig(
            addr=self.REDIS_ADDR,
            password=self.REDIS_PASSWORD,
            db=self.REDIS_DB,
            dial_timeout=self.REDIS_DIAL_TIMEOUT,
            read_timeout=self.REDIS_READ_TIMEOUT,
            write_timeout=self.REDIS_WRITE_TIMEOUT,
        )

    def data_config(self) -> DataConfig:
        return DataConfig(database=self.database_config(), redis=self.redis_config())


# ── Service identity ──

def service_name() -> str:
    return env.get_or_default("SERVICE_NAME", DEFAULT_SERVICE_NAME)


def service_version() -> str:
    return env.get_or_default("SERVICE_VERSION", DEFAULT_SERVICE_VERSION)


def instance_id() -> str:
    try:
        return socket.gethostname() or "unknown"
    except OSError:
        return "unknown"


@lru_cache()
def get_settings() -> Settings:
    """Cached settings singleton."""
    return Settings()


settings = get_settings()
