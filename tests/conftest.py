from __future__ import annotations

import importlib

import pytest
from fastapi.testclient import TestClient

import grok_runtime.main as main_module


@pytest.fixture
def isolated_client(tmp_path, monkeypatch: pytest.MonkeyPatch):
    monkeypatch.setenv("GROK_API_KEY", "test-key")
    monkeypatch.setenv("GROK_WORKSPACE_ROOT", str(tmp_path))
    monkeypatch.setenv("GROK_AUTO_APPROVE", "true")
    for name in ("GROK_MCP_CONFIG", "GROK_MODEL", "GROK_BASE_URL", "GROK_PROVIDER", "MORPH_API_KEY"):
        monkeypatch.delenv(name, raising=False)
    module = importlib.reload(main_module)
    with TestClient(module.app) as client:
        yield client
