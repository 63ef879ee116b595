from __future__ import annotations

import json
import os
from dataclasses import dataclass
from pathlib import Path

from grok_runtime.agent.client import DEFAULT_MAX_TOKENS, DEFAULT_MODEL
from grok_runtime.agent.loop import DEFAULT_MAX_TOOL_ROUNDS

USER_SETTINGS_PATH = Path.home() / ".grok" / "user-settings.json"


@dataclass(slots=True)
class Settings:
    api_key: str
    base_url: str | None
    model: str
    provider: str
    max_tokens: int
    max_tool_rounds: int
    debug: bool
    auto_approve: bool
    confirmation_timeout: float
    morph_api_key: str | None
    mcp_config_path: str | None
    runtime_host: str
    runtime_port: int
    workspace_root: Path


def _parse_bool(value: str | None, default: bool = False) -> bool:
    if value is None:
        return default
    normalized = value.strip().lower()
    if normalized in {"1", "true", "yes", "on"}:
        return True
    if normalized in {"0", "false", "no", "off"}:
        return False
    return default


def _parse_int(value: str | None, default: int) -> int:
    if value is None or not value.strip():
        return default
    try:
        parsed = int(value)
    except ValueError:
        return default
    return parsed if parsed > 0 else default


def _user_settings(path: Path = USER_SETTINGS_PATH) -> dict:
    if not path.is_file():
        return {}
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError):
        return {}
    return data if isinstance(data, dict) else {}


def load_settings(user_settings_path: Path = USER_SETTINGS_PATH) -> Settings:
    user_settings = _user_settings(user_settings_path)
    api_key = os.getenv("GROK_API_KEY", "").strip() or str(user_settings.get("apiKey") or "").strip()

    return Settings(
        api_key=api_key,
        base_url=os.getenv("GROK_BASE_URL", "").strip() or user_settings.get("baseURL") or None,
        model=os.getenv("GROK_MODEL", "").strip() or user_settings.get("defaultModel") or DEFAULT_MODEL,
        provider=os.getenv("GROK_PROVIDER", "xai").strip().lower() or "xai",
        max_tokens=_parse_int(os.getenv("GROK_MAX_TOKENS"), DEFAULT_MAX_TOKENS),
        max_tool_rounds=_parse_int(os.getenv("GROK_MAX_TOOL_ROUNDS"), DEFAULT_MAX_TOOL_ROUNDS),
        debug=_parse_bool(os.getenv("GROK_DEBUG"), False),
        auto_approve=_parse_bool(os.getenv("GROK_AUTO_APPROVE"), False),
        confirmation_timeout=float(_parse_int(os.getenv("GROK_CONFIRMATION_TIMEOUT"), 600)),
        morph_api_key=os.getenv("MORPH_API_KEY", "").strip() or None,
        mcp_config_path=os.getenv("GROK_MCP_CONFIG", "").strip() or None,
        runtime_host=os.getenv("GROK_RUNTIME_HOST", "127.0.0.1"),
        runtime_port=int(os.getenv("GROK_RUNTIME_PORT", "8040")),
        workspace_root=Path(os.getenv("GROK_WORKSPACE_ROOT", str(Path.cwd().resolve()))).resolve(),
    )
