import json

import pytest

from grok_runtime.tools.mcp_manager import McpManager, McpServerConfig, load_server_configs, remote_tool_name


def test_load_server_configs(tmp_path):
    path = tmp_path / "mcp.json"
    path.write_text(
        json.dumps({
            "mcpServers": {
                "docs": {"command": "docs-server", "args": ["--stdio"], "env": {"TOKEN": "x"}},
                "fs": {"command": "fs-server"},
            }
        }),
        encoding="utf-8",
    )

    configs = load_server_configs(str(path))

    assert configs == [
        McpServerConfig(name="docs", command="docs-server", args=["--stdio"], env={"TOKEN": "x"}),
        McpServerConfig(name="fs", command="fs-server"),
    ]


def test_missing_config_means_no_servers(tmp_path):
    assert load_server_configs(None) == []
    assert load_server_configs(str(tmp_path / "absent.json")) == []


def test_remote_tool_names_are_namespaced():
    assert remote_tool_name("docs", "lookup") == "mcp__docs__lookup"


@pytest.mark.asyncio
async def test_unknown_remote_tool_is_rejected():
    manager = McpManager([])
    await manager.start()
    assert manager.tool_schemas() == []
    with pytest.raises(ValueError, match="Unknown MCP tool"):
        await manager.call_tool("mcp__docs__lookup", {})
    await manager.close()


@pytest.mark.asyncio
async def test_server_launch_requires_started_manager():
    config = McpServerConfig(name="docs", command="docs-server")
    manager = McpManager([config])
    with pytest.raises(RuntimeError, match="start"):
        await manager._start_server(config)
