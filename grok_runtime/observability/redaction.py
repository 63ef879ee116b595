from __future__ import annotations

import re
from typing import Any

_SENSITIVE_KEYWORDS = ("authorization", "api_key", "apikey", "token", "secret")
_CONTENT_KEYS = {"content", "messages", "input", "arguments", "text"}
_BEARER_PATTERN = re.compile(r"(?i)bearer\s+[a-z0-9_\-\.]+")
_XAI_KEY_PATTERN = re.compile(r"xai-[A-Za-z0-9]{8,}")


def _is_sensitive_key(key: str) -> bool:
    normalized = key.lower()
    return any(word in normalized for word in _SENSITIVE_KEYWORDS)


def _redact_string(key: str, value: str) -> str:
    if _is_sensitive_key(key):
        return "<redacted>"
    if key.lower() in _CONTENT_KEYS:
        return f"<{len(value)} chars>"

    value = _BEARER_PATTERN.sub("Bearer <redacted>", value)
    return _XAI_KEY_PATTERN.sub("xai-<redacted>", value)


def redact(value: Any, key: str = "") -> Any:
    """Strip credentials and user content from a structure before it is logged."""
    if isinstance(value, dict):
        return {k: redact(v, k) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        if key.lower() in _CONTENT_KEYS:
            return f"<{len(value)} items>"
        return [redact(item, key) for item in value]
    if isinstance(value, str):
        return _redact_string(key, value)
    return value
