"""
Core package — cross-cutting concerns.

Modules:
    env       — typed environment variable accessor
    config    — settings (pydantic-settings)
    logging   — console / JSON logging
    errors    — exception hierarchy & handlers
    health    — liveness and readiness probes
    database  — async SQLAlchemy engine, admin handle, clearing
    cache     — async Redis client
    jsonutil  — JSON parse / stringify helpers
"""
