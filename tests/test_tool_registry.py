from __future__ import annotations

from dataclasses import dataclass
from typing import Any

import pytest

from grok_runtime.agent.builtin_tools import ToolSuite, build_builtin_tools, build_tool_registry
from grok_runtime.agent.messages import ToolCall, ToolResult
from grok_runtime.agent.providers.base import ToolSchema
from grok_runtime.agent.tool_registry import ToolDef, ToolRegistry, parse_arguments
from grok_runtime.services.confirmation_service import ConfirmationService


async def _echo(args: dict[str, Any]) -> ToolResult:
    return ToolResult(success=True, output=f"echo: {args.get('msg')}")


async def _explode(args: dict[str, Any]) -> ToolResult:
    raise RuntimeError("handler blew up")


def _registry() -> ToolRegistry:
    registry = ToolRegistry()
    registry.register(ToolDef(
        name="echo",
        description="echo",
        input_schema={"type": "object", "properties": {"msg": {"type": "string"}}},
        handler=_echo,
    ))
    registry.register(ToolDef(name="explode", description="fails", input_schema={"type": "object"}, handler=_explode))
    return registry


@dataclass
class TextItem:
    text: str
    type: str = "text"


@dataclass
class RemoteResponse:
    content: list
    isError: bool = False


class FakeRemote:
    def __init__(self, response: Any = None, error: Exception | None = None) -> None:
        self.response = response
        self.error = error
        self.calls: list[tuple[str, dict]] = []

    def tool_schemas(self) -> list[ToolSchema]:
        return [ToolSchema(name="mcp__docs__lookup", description="lookup", input_schema={"type": "object"})]

    async def call_tool(self, name: str, arguments: dict[str, Any]) -> Any:
        self.calls.append((name, arguments))
        if self.error is not None:
            raise self.error
        return self.response


# ─── dispatch ─────────────────────────────────────────────────────────────────

@pytest.mark.asyncio
async def test_execute_routes_to_handler():
    result = await _registry().execute(ToolCall(id="c1", name="echo", arguments='{"msg": "hi"}'))
    assert result == ToolResult(success=True, output="echo: hi")


@pytest.mark.asyncio
async def test_unknown_tool_is_a_failed_result():
    result = await _registry().execute(ToolCall(id="c1", name="nope", arguments="{}"))
    assert result == ToolResult(success=False, error="Unknown tool: nope")


@pytest.mark.asyncio
async def test_malformed_arguments_never_raise():
    result = await _registry().execute(ToolCall(id="c1", name="echo", arguments='{"msg": '))
    assert result.success is False
    assert result.error.startswith("Tool execution error: Invalid tool arguments JSON")


@pytest.mark.asyncio
async def test_non_object_arguments_are_rejected():
    result = await _registry().execute(ToolCall(id="c1", name="echo", arguments="[1, 2]"))
    assert result.success is False
    assert "must be a JSON object" in result.error


@pytest.mark.asyncio
async def test_handler_exception_is_captured():
    result = await _registry().execute(ToolCall(id="c1", name="explode", arguments=""))
    assert result == ToolResult(success=False, error="Tool execution error: handler blew up")


def test_empty_arguments_parse_to_empty_object():
    assert parse_arguments("") == {}
    assert parse_arguments("   ") == {}
    assert parse_arguments('{"a": 1}') == {"a": 1}


def test_schemas_list_builtins_then_remote_tools():
    registry = _registry()
    registry.attach_remote(FakeRemote())
    assert [s.name for s in registry.to_schemas()] == ["echo", "explode", "mcp__docs__lookup"]


# ─── remote passthrough ───────────────────────────────────────────────────────

@pytest.mark.asyncio
async def test_remote_success_joins_content_items():
    remote = FakeRemote(response={
        "isError": False,
        "content": [
            {"type": "text", "text": "first"},
            {"type": "resource", "resource": {"uri": "file:///a.txt"}},
            {"type": "resource", "resource": {}},
        ],
    })
    registry = ToolRegistry(remote)
    result = await registry.execute(ToolCall(id="c1", name="mcp__docs__lookup", arguments='{"q": "x"}'))
    assert result == ToolResult(success=True, output="first\nResource: file:///a.txt\nResource: Unknown")
    assert remote.calls == [("mcp__docs__lookup", {"q": "x"})]


@pytest.mark.asyncio
async def test_remote_empty_success_defaults_to_success():
    registry = ToolRegistry(FakeRemote(response=RemoteResponse(content=[])))
    result = await registry.execute(ToolCall(id="c1", name="mcp__docs__lookup", arguments="{}"))
    assert result == ToolResult(success=True, output="Success")


@pytest.mark.asyncio
async def test_remote_error_uses_first_text_item():
    remote = FakeRemote(response=RemoteResponse(content=[TextItem("bad query"), TextItem("ignored")], isError=True))
    result = await ToolRegistry(remote).execute(ToolCall(id="c1", name="mcp__docs__lookup", arguments="{}"))
    assert result == ToolResult(success=False, error="bad query")


@pytest.mark.asyncio
async def test_remote_error_without_text():
    remote = FakeRemote(response=RemoteResponse(content=[], isError=True))
    result = await ToolRegistry(remote).execute(ToolCall(id="c1", name="mcp__docs__lookup", arguments="{}"))
    assert result == ToolResult(success=False, error="MCP tool error")


@pytest.mark.asyncio
async def test_remote_exception_is_captured():
    remote = FakeRemote(error=ConnectionError("server went away"))
    result = await ToolRegistry(remote).execute(ToolCall(id="c1", name="mcp__docs__lookup", arguments="{}"))
    assert result == ToolResult(success=False, error="MCP tool execution error: server went away")


@pytest.mark.asyncio
async def test_remote_name_without_server():
    result = await ToolRegistry().execute(ToolCall(id="c1", name="mcp__docs__lookup", arguments="{}"))
    assert result.success is False
    assert result.error.startswith("MCP tool execution error")


# ─── built-in declarations ────────────────────────────────────────────────────

def _suite(tmp_path, morph_api_key=None) -> ToolSuite:
    return ToolSuite.create(
        ConfirmationService(auto_approve=True),
        current_directory=str(tmp_path),
        morph_api_key=morph_api_key,
    )


def test_builtin_names(tmp_path):
    names = [tool.name for tool in build_builtin_tools(_suite(tmp_path))]
    assert names == [
        "view_file",
        "write_file",
        "create_file",
        "str_replace_editor",
        "bash",
        "glob",
        "grep",
        "search",
        "create_todo_list",
        "update_todo_list",
    ]


def test_edit_file_only_with_morph_key(tmp_path):
    names = [tool.name for tool in build_builtin_tools(_suite(tmp_path, morph_api_key="mk"))]
    assert "edit_file" in names


@pytest.mark.asyncio
async def test_view_file_renames_line_range(tmp_path):
    (tmp_path / "a.txt").write_text("one\ntwo\nthree\nfour\n", encoding="utf-8")
    registry = build_tool_registry(_suite(tmp_path))
    result = await registry.execute(
        ToolCall(id="c1", name="view_file", arguments='{"path": "a.txt", "start_line": 2, "end_line": 3}')
    )
    assert result.success is True
    assert "2: two\n3: three" in result.output
    assert "1: one" not in result.output


@pytest.mark.asyncio
async def test_create_file_aliases_write_file(tmp_path):
    registry = build_tool_registry(_suite(tmp_path))
    result = await registry.execute(
        ToolCall(id="c1", name="create_file", arguments='{"path": "sub/new.txt", "content": "hello"}')
    )
    assert result.success is True
    assert (tmp_path / "sub" / "new.txt").read_text(encoding="utf-8") == "hello"


@pytest.mark.asyncio
async def test_bash_cd_resyncs_search_tools(tmp_path):
    (tmp_path / "nested").mkdir()
    suite = _suite(tmp_path)
    registry = build_tool_registry(suite)
    result = await registry.execute(ToolCall(id="c1", name="bash", arguments='{"command": "cd nested"}'))
    assert result.success is True
    expected = str((tmp_path / "nested").resolve())
    assert suite.glob.get_current_directory() == expected
    assert suite.grep.get_current_directory() == expected
    assert suite.search.get_current_directory() == expected


@pytest.mark.asyncio
async def test_todo_tools_route_arguments(tmp_path):
    registry = build_tool_registry(_suite(tmp_path))
    created = await registry.execute(ToolCall(
        id="c1",
        name="create_todo_list",
        arguments='{"todos": [{"id": "1", "content": "write tests"}]}',
    ))
    assert created.success is True
    updated = await registry.execute(ToolCall(
        id="c2",
        name="update_todo_list",
        arguments='{"updates": [{"id": "1", "status": "completed"}]}',
    ))
    assert updated.success is True
    assert "[x] write tests" in updated.output
