"""Classify raw transport/backend failures into user-facing, retry-aware records."""
from __future__ import annotations

import asyncio
import errno
import json
import socket
from dataclasses import dataclass
from typing import Any

import anthropic
import httpx
import openai

_TIMEOUT_TYPES = (
    TimeoutError,
    asyncio.TimeoutError,
    asyncio.CancelledError,
    httpx.TimeoutException,
    openai.APITimeoutError,
    anthropic.APITimeoutError,
)

_NETWORK_TYPES = (
    ConnectionError,
    socket.gaierror,
    httpx.NetworkError,
    openai.APIConnectionError,
    anthropic.APIConnectionError,
)

_NETWORK_CODES = {"ECONNREFUSED", "ENOTFOUND", "ECONNRESET"}
_NETWORK_ERRNOS = {errno.ECONNREFUSED, errno.ECONNRESET}
_NETWORK_PHRASES = ("fetch failed", "network", "bad port")
_NETWORK_PHRASES_CI = ("cannot connect", "connection error")
_MALFORMED_PHRASES = ("JSON", "Unexpected token", "parse")


@dataclass(slots=True, frozen=True)
class ApiErrorInfo:
    status: int | None
    code: str  # timeout | network | bad_request | auth | not_found | rate_limit | server | malformed | unknown
    message: str
    retryable: bool


class GrokApiError(Exception):
    """The only error type the transport and the buffered agent loop raise."""

    def __init__(self, info: ApiErrorInfo) -> None:
        super().__init__(info.message)
        self.info = info


def _error_message(error: Any) -> str:
    try:
        message = getattr(error, "message", None)
        if isinstance(message, str) and message:
            return message
        return str(error)
    except Exception:  # noqa: BLE001
        return repr(error)


def _error_code(error: Any) -> str | None:
    try:
        code = getattr(error, "code", None)
    except Exception:  # noqa: BLE001
        return None
    return code if isinstance(code, str) else None


def _status_of(error: Any) -> int | None:
    for candidate in ("status_code", "status"):
        try:
            value = getattr(error, candidate, None)
        except Exception:  # noqa: BLE001
            value = None
        if isinstance(value, int) and not isinstance(value, bool):
            return value
    try:
        response = getattr(error, "response", None)
        value = getattr(response, "status_code", None)
    except Exception:  # noqa: BLE001
        value = None
    if isinstance(value, int) and not isinstance(value, bool):
        return value
    return None


def _is_timeout(error: Any, message: str) -> bool:
    if isinstance(error, _TIMEOUT_TYPES):
        return True
    if type(error).__name__ == "AbortError" or _error_code(error) == "ECONNABORTED":
        return True
    return "timeout" in message or "Timeout" in message or "timed out" in message


def _is_network(error: Any, message: str) -> bool:
    if isinstance(error, _NETWORK_TYPES):
        return True
    if _error_code(error) in _NETWORK_CODES:
        return True
    if getattr(error, "errno", None) in _NETWORK_ERRNOS:
        return True
    if any(phrase in message for phrase in _NETWORK_PHRASES):
        return True
    lowered = message.lower()
    return any(phrase in lowered for phrase in _NETWORK_PHRASES_CI)


def classify_error(error: Any) -> ApiErrorInfo:
    message = _error_message(error)
    status = _status_of(error)

    if _is_timeout(error, message):
        return ApiErrorInfo(None, "timeout", "Request timed out. Please try again.", True)

    if _is_network(error, message):
        return ApiErrorInfo(
            None,
            "network",
            "Network error: could not reach the Grok API. Check your internet connection and base URL.",
            True,
        )

    if status == 400:
        return ApiErrorInfo(
            status,
            "bad_request",
            "Bad request (400). Check your request parameters. This can also indicate an incorrect "
            "API key; verify your key at https://console.x.ai.",
            False,
        )
    if status == 401:
        return ApiErrorInfo(
            status,
            "auth",
            "Authentication failed (401). Your API key is invalid or expired. Update it in "
            "~/.grok/user-settings.json or set the GROK_API_KEY environment variable. "
            "Get a new key at https://console.x.ai.",
            False,
        )
    if status == 403:
        return ApiErrorInfo(
            status,
            "auth",
            "Access denied (403). Your API key does not have permission, or your account may be "
            "blocked. Contact your team admin or check https://console.x.ai.",
            False,
        )
    if status == 404:
        return ApiErrorInfo(
            status,
            "not_found",
            "Not found (404). The specified model may not exist or the API endpoint URL is incorrect. "
            "Check the model name and API base URL.",
            False,
        )
    if status == 429:
        return ApiErrorInfo(
            status,
            "rate_limit",
            "Rate limited (429). Retrying automatically with backoff... "
            "To request higher limits, email support@x.ai.",
            True,
        )
    if status is not None and status >= 500:
        return ApiErrorInfo(
            status,
            "server",
            f"Grok API server error ({status}). The service may be temporarily unavailable; "
            "retrying automatically. Check https://status.x.ai for updates.",
            True,
        )

    if isinstance(error, json.JSONDecodeError) or any(p in message for p in _MALFORMED_PHRASES):
        return ApiErrorInfo(status, "malformed", "Received a malformed response from the Grok API.", True)

    return ApiErrorInfo(status, "unknown", message, False)
