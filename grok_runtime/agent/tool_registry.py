"""Tool registry: definitions, schema generation, and dispatch."""
from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Protocol

from grok_runtime.agent.messages import ToolCall, ToolResult
from grok_runtime.agent.providers.base import ToolSchema
from grok_runtime.observability.logging import get_runtime_logger
from grok_runtime.observability.metrics import get_runtime_metrics

logger = get_runtime_logger("tools")
metrics = get_runtime_metrics()

REMOTE_TOOL_PREFIX = "mcp__"

ToolHandler = Callable[[dict[str, Any]], Awaitable[ToolResult]]


class RemoteToolServer(Protocol):
    def tool_schemas(self) -> list[ToolSchema]: ...

    async def call_tool(self, name: str, arguments: dict[str, Any]) -> Any: ...


@dataclass(slots=True)
class ToolDef:
    name: str
    description: str
    input_schema: dict
    handler: ToolHandler


class ToolRegistry:
    def __init__(self, remote: RemoteToolServer | None = None) -> None:
        self._tools: dict[str, ToolDef] = {}
        self._remote = remote

    def register(self, tool: ToolDef) -> None:
        self._tools[tool.name] = tool

    def attach_remote(self, remote: RemoteToolServer | None) -> None:
        self._remote = remote

    def get(self, name: str) -> ToolDef | None:
        return self._tools.get(name)

    def names(self) -> list[str]:
        return list(self._tools)

    def to_schemas(self) -> list[ToolSchema]:
        schemas = [
            ToolSchema(
                name=td.name,
                description=td.description,
                input_schema=td.input_schema,
            )
            for td in self._tools.values()
        ]
        if self._remote is not None:
            schemas.extend(self._remote.tool_schemas())
        return schemas

    async def execute(self, tool_call: ToolCall) -> ToolResult:
        """Run one tool call. Every failure comes back as an unsuccessful result."""
        metrics.increment_tool_call(tool_call.name)
        try:
            args = parse_arguments(tool_call.arguments)
            if tool_call.name.startswith(REMOTE_TOOL_PREFIX):
                result = await self._execute_remote(tool_call.name, args)
            else:
                td = self._tools.get(tool_call.name)
                if td is None:
                    result = ToolResult(success=False, error=f"Unknown tool: {tool_call.name}")
                else:
                    result = await td.handler(args)
        except Exception as exc:  # noqa: BLE001
            logger.error(
                f"execute_tool({tool_call.name}) failed",
                exc_info=True,
                extra={"tool_name": tool_call.name, "call_id": tool_call.id, "outcome": "error"},
            )
            result = ToolResult(success=False, error=f"Tool execution error: {exc}")

        if not result.success:
            metrics.tool_failures_total += 1
        logger.debug(
            "tool_result",
            extra={
                "tool_name": tool_call.name,
                "call_id": tool_call.id,
                "outcome": "ok" if result.success else "error",
            },
        )
        return result

    async def _execute_remote(self, name: str, args: dict[str, Any]) -> ToolResult:
        if self._remote is None:
            return ToolResult(success=False, error="MCP tool execution error: no remote tool server is configured")
        try:
            response = await self._remote.call_tool(name, args)
        except Exception as exc:  # noqa: BLE001
            logger.warning(f"remote tool {name} failed: {exc}", extra={"tool_name": name, "outcome": "error"})
            return ToolResult(success=False, error=f"MCP tool execution error: {exc}")
        return remote_result_to_tool_result(response)


def parse_arguments(raw: str | None) -> dict[str, Any]:
    if raw is None or not raw.strip():
        return {}
    try:
        parsed = json.loads(raw)
    except json.JSONDecodeError as exc:
        raise ValueError(f"Invalid tool arguments JSON: {exc.msg}") from exc
    if not isinstance(parsed, dict):
        raise ValueError("Tool arguments must be a JSON object")
    return parsed


def _field(item: Any, key: str, default: Any = None) -> Any:
    if isinstance(item, dict):
        return item.get(key, default)
    return getattr(item, key, default)


def _render_content_item(item: Any) -> str:
    item_type = _field(item, "type")
    if item_type == "text":
        return str(_field(item, "text", ""))
    if item_type == "resource":
        resource = _field(item, "resource")
        uri = _field(resource, "uri") if resource is not None else None
        return f"Resource: {uri or 'Unknown'}"
    return str(item)


def remote_result_to_tool_result(response: Any) -> ToolResult:
    content = list(_field(response, "content") or [])
    is_error = _field(response, "isError")
    if is_error is None:
        is_error = _field(response, "is_error", False)

    if is_error:
        first = content[0] if content else None
        message = _field(first, "text") if first is not None else None
        return ToolResult(success=False, error=message or "MCP tool error")

    output = "\n".join(_render_content_item(item) for item in content)
    return ToolResult(success=True, output=output or "Success")
