import json

import pytest

from grok_runtime.config import load_settings


@pytest.fixture
def clean_env(monkeypatch: pytest.MonkeyPatch):
    for name in (
        "GROK_API_KEY",
        "GROK_BASE_URL",
        "GROK_MODEL",
        "GROK_PROVIDER",
        "GROK_MAX_TOKENS",
        "GROK_MAX_TOOL_ROUNDS",
        "GROK_AUTO_APPROVE",
        "MORPH_API_KEY",
    ):
        monkeypatch.delenv(name, raising=False)
    return monkeypatch


def test_defaults_without_env_or_settings_file(clean_env, tmp_path):
    settings = load_settings(tmp_path / "missing.json")
    assert settings.api_key == ""
    assert settings.model == "grok-code-fast-1"
    assert settings.provider == "xai"
    assert settings.max_tool_rounds == 400
    assert settings.auto_approve is False
    assert settings.morph_api_key is None


def test_user_settings_file_fills_gaps(clean_env, tmp_path):
    path = tmp_path / "user-settings.json"
    path.write_text(json.dumps({"apiKey": "xai-file", "defaultModel": "grok-4", "baseURL": "http://local"}), encoding="utf-8")
    settings = load_settings(path)
    assert settings.api_key == "xai-file"
    assert settings.model == "grok-4"
    assert settings.base_url == "http://local"


def test_env_overrides_user_settings(clean_env, tmp_path):
    path = tmp_path / "user-settings.json"
    path.write_text(json.dumps({"apiKey": "xai-file"}), encoding="utf-8")
    clean_env.setenv("GROK_API_KEY", "xai-env")
    clean_env.setenv("GROK_MAX_TOOL_ROUNDS", "5")
    clean_env.setenv("GROK_AUTO_APPROVE", "yes")
    settings = load_settings(path)
    assert settings.api_key == "xai-env"
    assert settings.max_tool_rounds == 5
    assert settings.auto_approve is True


def test_invalid_numbers_fall_back_to_defaults(clean_env, tmp_path):
    clean_env.setenv("GROK_MAX_TOKENS", "lots")
    clean_env.setenv("GROK_MAX_TOOL_ROUNDS", "-3")
    settings = load_settings(tmp_path / "missing.json")
    assert settings.max_tokens == 16384
    assert settings.max_tool_rounds == 400


def test_malformed_settings_file_is_ignored(clean_env, tmp_path):
    path = tmp_path / "user-settings.json"
    path.write_text("{not json", encoding="utf-8")
    assert load_settings(path).api_key == ""
