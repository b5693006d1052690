"""
Health checks.

    • Liveness  — no argument, empty result; succeeds whenever the process
                  can answer at all.
    • Readiness — probes the database and Redis held by the data container.

Suitable for Kubernetes liveness/readiness probes and load balancer checks.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, List, Optional

from backend.app.core.cache import ping_redis
from backend.app.core.database import ping_database
from backend.app.data.data import Data

logger = logging.getLogger(__name__)

PROBE_TIMEOUT = 2.0  # seconds


class HealthStatus(str, Enum):
    HEALTHY = "healthy"
    UNHEALTHY = "unhealthy"


@dataclass
class ComponentHealth:
    name: str
    status: HealthStatus = HealthStatus.HEALTHY
    latency_ms: float = 0.0
    message: str = ""

    def to_dict(self) -> Dict[str, Any]:
        d: Dict[str, Any] = {
            "name": self.name,
            "status": self.status.value,
            "latency_ms": round(self.latency_ms, 2),
        }
        if self.message:
            d["message"] = self.message
        return d


@dataclass
class HealthReport:
    service: str
    version: str
    status: HealthStatus = HealthStatus.HEALTHY
    timestamp: str = ""
    uptime_seconds: float = 0.0
    components: List[ComponentHealth] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "status": self.status.value,
            "service": self.service,
            "version": self.version,
            "timestamp": self.timestamp or datetime.now(timezone.utc).isoformat(),
            "uptime_seconds": round(self.uptime_seconds, 1),
            "components": [c.to_dict() for c in self.components],
        }


# Track application start time
_start_time = time.monotonic()


def liveness() -> Dict[str, Any]:
    return {}


async def _probe(name: str, probe: Callable[[], Awaitable[None]]) -> ComponentHealth:
    comp = ComponentHealth(name=name)
    start = time.monotonic()
    try:
        await probe()
    except Exception as e:
        comp.status = HealthStatus.UNHEALTHY
        comp.message = str(e) or type(e).__name__
        logger.warning("Health probe %s failed: %s", name, comp.message)
    comp.latency_ms = (time.monotonic() - start) * 1000
    return comp


async def check_database(data: Data, timeout: float = PROBE_TIMEOUT) -> ComponentHealth:
    return await _probe("database", lambda: ping_database(data.db, timeout))


async def check_redis(data: Data, timeout: float = PROBE_TIMEOUT) -> ComponentHealth:
    return await _probe("redis", lambda: ping_redis(data.redis, timeout))


async def run_health_check(
    data: Optional[Data],
    service: str,
    version: str,
    timeout: float = PROBE_TIMEOUT,
) -> HealthReport:
    """Probe every store and aggregate into a report."""
    report = HealthReport(
        service=service,
        version=version,
        timestamp=datetime.now(timezone.utc).isoformat(),
        uptime_seconds=time.monotonic() - _start_time,
    )

    if data is None:
        report.components = [
            ComponentHealth(name=n, status=HealthStatus.UNHEALTHY, message="not initialised")
            for n in ("database", "redis")
        ]
    else:
        report.components = [
            await check_database(data, timeout),
            await check_redis(data, timeout),
        ]

    if any(c.status is HealthStatus.UNHEALTHY for c in report.components):
        report.status = HealthStatus.UNHEALTHY
    return report
