"""Remote tool servers over MCP stdio, exposed as ``mcp__<server>__<tool>``."""
from __future__ import annotations

import asyncio
import json
from contextlib import AsyncExitStack
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from mcp import ClientSession
from mcp.client.stdio import StdioServerParameters, stdio_client

from grok_runtime.agent.providers.base import ToolSchema
from grok_runtime.agent.tool_registry import REMOTE_TOOL_PREFIX
from grok_runtime.observability.logging import get_runtime_logger

logger = get_runtime_logger("mcp")

DEFAULT_INIT_TIMEOUT_SECONDS = 30.0


@dataclass(slots=True)
class McpServerConfig:
    name: str
    command: str
    args: list[str] = field(default_factory=list)
    env: dict[str, str] | None = None
    cwd: str | None = None


def load_server_configs(path: str | None) -> list[McpServerConfig]:
    """Read ``{"mcpServers": {name: {command, args?, env?, cwd?}}}``; missing file means none."""
    if not path:
        return []
    config_path = Path(path).expanduser()
    if not config_path.is_file():
        logger.warning(f"MCP config not found: {config_path}", extra={"path": str(config_path)})
        return []
    raw = json.loads(config_path.read_text(encoding="utf-8"))
    servers = raw.get("mcpServers") or {}
    return [
        McpServerConfig(
            name=name,
            command=cfg["command"],
            args=list(cfg.get("args") or []),
            env=cfg.get("env"),
            cwd=cfg.get("cwd"),
        )
        for name, cfg in servers.items()
    ]


def remote_tool_name(server: str, tool: str) -> str:
    return f"{REMOTE_TOOL_PREFIX}{server}__{tool}"


class McpManager:
    def __init__(
        self,
        configs: list[McpServerConfig],
        *,
        init_timeout: float = DEFAULT_INIT_TIMEOUT_SECONDS,
    ) -> None:
        self.configs = configs
        self.init_timeout = init_timeout
        self._stack: AsyncExitStack | None = None
        self._sessions: dict[str, ClientSession] = {}
        self._routes: dict[str, tuple[str, str]] = {}
        self._schemas: list[ToolSchema] = []

    async def start(self) -> None:
        self._stack = AsyncExitStack()
        for config in self.configs:
            try:
                await self._start_server(config)
            except Exception as exc:  # noqa: BLE001
                logger.warning(
                    f"MCP server {config.name} failed to start: {exc}",
                    extra={"tool_name": config.name, "outcome": "error"},
                )
        logger.info(f"MCP: {len(self._schemas)} tools from {len(self._sessions)} servers")

    async def _start_server(self, config: McpServerConfig) -> None:
        if self._stack is None:
            raise RuntimeError("McpManager.start() must run before servers are launched")
        server_stack = AsyncExitStack()
        try:
            params = StdioServerParameters(
                command=config.command,
                args=config.args,
                env=config.env,
                cwd=config.cwd,
            )
            read_stream, write_stream = await server_stack.enter_async_context(stdio_client(params))
            session = await server_stack.enter_async_context(ClientSession(read_stream, write_stream))
            await asyncio.wait_for(session.initialize(), timeout=self.init_timeout)
            listed = await session.list_tools()
        except BaseException:
            await server_stack.aclose()
            raise

        self._stack.push_async_callback(server_stack.aclose)
        self._sessions[config.name] = session
        for tool in listed.tools:
            name = remote_tool_name(config.name, tool.name)
            self._routes[name] = (config.name, tool.name)
            self._schemas.append(
                ToolSchema(
                    name=name,
                    description=tool.description or f"{tool.name} ({config.name})",
                    input_schema=tool.inputSchema or {"type": "object", "properties": {}},
                )
            )

    def tool_schemas(self) -> list[ToolSchema]:
        return list(self._schemas)

    async def call_tool(self, name: str, arguments: dict[str, Any]) -> Any:
        route = self._routes.get(name)
        if route is None:
            raise ValueError(f"Unknown MCP tool: {name}")
        server, tool = route
        return await self._sessions[server].call_tool(tool, arguments)

    async def close(self) -> None:
        if self._stack is not None:
            await self._stack.aclose()
        self._stack = None
        self._sessions = {}
        self._routes = {}
        self._schemas = []
