"""HTTP error envelope. Every failure leaving the API becomes ``{"error": {...}}``."""
from __future__ import annotations

import asyncio
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any

from fastapi import HTTPException
from fastapi.exceptions import RequestValidationError

from grok_runtime.agent.error_classifier import ApiErrorInfo, GrokApiError

DEFAULT_INTERNAL_MESSAGE = "Internal server error"


@dataclass(slots=True)
class RuntimeApiError(Exception):
    code: str
    message: str
    retryable: bool
    status_code: int
    details: dict[str, Any] | None = None
    cause: str | None = None

    def to_payload(self, trace_id: str) -> dict[str, Any]:
        body: dict[str, Any] = {
            "code": self.code,
            "message": self.message,
            "trace_id": trace_id,
            "retryable": self.retryable,
            "ts": datetime.now(tz=timezone.utc).isoformat(),
        }
        if self.details:
            body["details"] = self.details
        if self.cause:
            body["cause"] = self.cause
        return {"error": body}


def _model_status(info: ApiErrorInfo) -> int:
    # upstream statuses describe the model backend, not this runtime
    return 504 if info.code == "timeout" else 502


def as_runtime_error(exc: Exception) -> RuntimeApiError:
    """Map any exception onto the runtime error vocabulary."""
    if isinstance(exc, RuntimeApiError):
        return exc

    if isinstance(exc, GrokApiError):
        return RuntimeApiError(
            code=f"E_MODEL_{exc.info.code.upper()}",
            message=exc.info.message,
            retryable=exc.info.retryable,
            status_code=_model_status(exc.info),
            details={"upstream_status": exc.info.status} if exc.info.status is not None else None,
            cause="model_api",
        )

    if isinstance(exc, RequestValidationError):
        return RuntimeApiError(
            code="E_SCHEMA_INVALID",
            message="Request validation failed.",
            retryable=False,
            status_code=422,
            details={"errors": exc.errors()},
            cause="request_validation_error",
        )

    if isinstance(exc, HTTPException):
        server_side = exc.status_code >= 500
        return RuntimeApiError(
            code="E_INTERNAL" if server_side else "E_SCHEMA_INVALID",
            message=str(exc.detail),
            retryable=server_side,
            status_code=exc.status_code,
            cause="http_exception",
        )

    if isinstance(exc, asyncio.TimeoutError):
        return RuntimeApiError(
            code="E_TIMEOUT",
            message="Operation timed out.",
            retryable=True,
            status_code=504,
            cause="timeout",
        )

    if isinstance(exc, (KeyError, ValueError, TypeError)):
        return RuntimeApiError(
            code="E_SCHEMA_INVALID",
            message="Invalid request or payload shape.",
            retryable=False,
            status_code=400,
            cause=exc.__class__.__name__,
        )

    return RuntimeApiError(
        code="E_INTERNAL",
        message=DEFAULT_INTERNAL_MESSAGE,
        retryable=False,
        status_code=500,
        cause=exc.__class__.__name__,
    )


def error_from_exception(exc: Exception, trace_id: str) -> tuple[int, dict[str, Any]]:
    error = as_runtime_error(exc)
    return error.status_code, error.to_payload(trace_id)
