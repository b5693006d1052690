"""
Centralised error handling — exception hierarchy + FastAPI handlers.

Provides:
    • Domain-specific exception classes (env parsing, store lifecycle)
    • Consistent JSON error response format
    • Automatic logging of unhandled errors
    • Request context in error responses (non-production)

Usage:
    from backend.app.core.errors import (
        ServiceError,
        NotSetError,
        LivenessCheckFailure,
        register_error_handlers,
    )

    raise NotSetError("SERVICE_NAME")
"""

from __future__ import annotations

import logging
import traceback
from typing import Any, Dict, List, Optional, Sequence

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)


# ═══════════════════════════════════════════════════════════════════════════
# Exception Hierarchy
# ═══════════════════════════════════════════════════════════════════════════

class ServiceError(Exception):
    """Base exception for all application errors."""

    def __init__(
        self,
        message: str = "An unexpected error occurred",
        *,
        status_code: int = 500,
        error_code: str = "INTERNAL_ERROR",
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.error_code = error_code
        self.details = details or {}


class ConfigurationError(ServiceError):
    """Settings could not be loaded or are incomplete."""

    def __init__(self, message: str, **details: Any):
        super().__init__(
            message=message,
            error_code="CONFIGURATION_ERROR",
            details=details,
        )


class NotSetError(ServiceError, LookupError):
    """An environment variable is absent (or empty)."""

    def __init__(self, key: str):
        super().__init__(
            message=f"environment variable not set: {key}",
            error_code="ENV_NOT_SET",
            details={"key": key},
        )
        self.key = key


class ParseError(ServiceError, ValueError):
    """An environment variable is present but malformed for its type."""

    def __init__(self, key: str, value: str, kind: str, reason: str = ""):
        message = f"environment variable {key}={value!r} is not a valid {kind}"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(
            message=message,
            error_code="ENV_PARSE_ERROR",
            details={"key": key, "value": value, "kind": kind},
        )
        self.key = key
        self.value = value
        self.kind = kind


class ConnectionFailure(ServiceError):
    """A store could not be constructed (unreachable or misconfigured)."""

    summary = "Connection to {store} failed"
    code = "CONNECTION_FAILURE"

    def __init__(self, store: str, message: str = "", **details: Any):
        text = self.summary.format(store=store)
        if message:
            text = f"{text}: {message}"
        super().__init__(
            message=text,
            status_code=503,
            error_code=self.code,
            details={"store": store, **details},
        )
        self.store = store


class LivenessCheckFailure(ConnectionFailure):
    """A store accepted its configuration but did not answer a ping in time."""

    summary = "Liveness check against {store} failed"
    code = "LIVENESS_CHECK_FAILURE"


class SafetyViolation(ServiceError):
    """The test-database guard refused a database name."""

    def __init__(self, database: str, markers: Sequence[str]):
        wanted = " or ".join(repr(m) for m in markers)
        super().__init__(
            message=f"database name must contain {wanted} for safety, got: {database}",
            error_code="SAFETY_VIOLATION",
            details={"database": database, "markers": list(markers)},
        )
        self.database = database


class TeardownFailure(ServiceError):
    """One or more release steps failed; every step was still attempted."""

    def __init__(self, errors: Sequence[BaseException]):
        self.errors: List[BaseException] = list(errors)
        summary = "; ".join(f"{type(e).__name__}: {e}" for e in self.errors)
        super().__init__(
            message=f"teardown errors: [{summary}]",
            error_code="TEARDOWN_FAILURE",
            details={"count": len(self.errors)},
        )


class DataStateError(ServiceError):
    """A data container was used outside its READY state."""

    def __init__(self, state: str, operation: str):
        super().__init__(
            message=f"cannot {operation} while data container is {state}",
            status_code=503,
            error_code="DATA_STATE_ERROR",
            details={"state": state, "operation": operation},
        )


# ═══════════════════════════════════════════════════════════════════════════
# Error Response Builder
# ═══════════════════════════════════════════════════════════════════════════

def _build_error_response(
    status_code: int,
    error_code: str,
    message: str,
    details: Optional[Dict[str, Any]] = None,
    request: Optional[Request] = None,
    include_request: bool = False,
) -> JSONResponse:
    """Build a consistent JSON error response."""
    body: Dict[str, Any] = {
        "error": {
            "code": error_code,
            "message": message,
            "status": status_code,
        }
    }

    if details:
        body["error"]["details"] = details

    if request is not None and include_request:
        body["error"]["path"] = str(request.url.path)
        body["error"]["method"] = request.method

    return JSONResponse(status_code=status_code, content=body)


# ═══════════════════════════════════════════════════════════════════════════
# FastAPI Exception Handlers
# ═══════════════════════════════════════════════════════════════════════════

def register_error_handlers(app: FastAPI, *, debug: bool = False) -> None:
    """Register all exception handlers on the FastAPI app."""

    @app.exception_handler(ServiceError)
    async def handle_service_error(request: Request, exc: ServiceError):
        logger.error(
            "API Error [%s]: %s | details=%s",
            exc.error_code, exc.message, exc.details,
        )
        return _build_error_response(
            exc.status_code, exc.error_code, exc.message,
            exc.details, request, include_request=debug,
        )

    @app.exception_handler(Exception)
    async def handle_unhandled(request: Request, exc: Exception):
        logger.critical(
            "Unhandled exception: %s\n%s",
            exc, traceback.format_exc(),
        )
        message = str(exc) if debug else "Internal server error"
        details = (
            {"traceback": traceback.format_exc().split("\n")}
            if debug else None
        )
        return _build_error_response(
            500, "INTERNAL_ERROR", message, details, request,
            include_request=debug,
        )
