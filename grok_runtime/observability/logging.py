from __future__ import annotations

import json
import logging
import os
from datetime import datetime, timezone
from typing import Any

from grok_runtime.observability.redaction import redact
from grok_runtime.trace import peek_current_trace_id

LOGGER_NAME = "grok.runtime"

_EXTRA_KEYS = (
    "trace_id",
    "session_id",
    "tool_name",
    "call_id",
    "method",
    "endpoint",
    "model",
    "status",
    "code",
    "attempt",
    "delay_ms",
    "duration_ms",
    "outcome",
    "path",
    "body",
)


class JsonFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "level": record.levelname.lower(),
            "ts": datetime.now(tz=timezone.utc).isoformat(),
            "logger": record.name,
            "message": record.getMessage(),
        }

        trace_id = getattr(record, "trace_id", None) or peek_current_trace_id()
        if trace_id:
            payload["trace_id"] = trace_id

        for key in _EXTRA_KEYS[1:]:
            value = getattr(record, key, None)
            if value is not None:
                payload[key] = value

        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)

        return json.dumps(payload, ensure_ascii=False, default=str)


def is_debug_enabled() -> bool:
    return os.getenv("GROK_DEBUG", "").strip().lower() in {"1", "true", "yes", "on"}


def get_runtime_logger(name: str | None = None) -> logging.Logger:
    """Return the runtime logger (or a child of it), configuring the root once."""
    root = logging.getLogger(LOGGER_NAME)
    if not root.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(JsonFormatter())
        root.addHandler(handler)
        root.propagate = False
    root.setLevel(logging.DEBUG if is_debug_enabled() else logging.INFO)

    if name:
        return root.getChild(name)
    return root


def log_api_request(logger: logging.Logger, method: str, endpoint: str, body: dict[str, Any]) -> None:
    """Outgoing call shape; verbose mode only."""
    logger.debug(
        "api_request",
        extra={"method": method, "endpoint": endpoint, "body": redact(body)},
    )


def log_api_response(logger: logging.Logger, status: int, body: dict[str, Any]) -> None:
    """Successful call shape; verbose mode only."""
    logger.debug("api_response", extra={"status": status, "body": redact(body)})


def log_api_error(
    logger: logging.Logger,
    method: str,
    endpoint: str,
    status: int | str,
    message: str,
) -> None:
    """Failures are logged regardless of the verbose toggle."""
    logger.error(
        "api_error",
        extra={
            "method": method,
            "endpoint": endpoint,
            "status": status,
            "body": message,
            "outcome": "error",
        },
    )
