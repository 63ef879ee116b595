"""Built-in tool declarations bound to one session's tool collaborators."""
from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Any

from grok_runtime.agent.messages import ToolResult
from grok_runtime.agent.tool_registry import ToolDef, ToolRegistry
from grok_runtime.services.confirmation_service import ConfirmationService
from grok_runtime.tools.command_tools import DEFAULT_TIMEOUT_SECONDS, BashTool
from grok_runtime.tools.file_tools import TextEditorTool
from grok_runtime.tools.morph_editor import MorphEditorTool
from grok_runtime.tools.search_tools import GREP_MODES, GlobTool, GrepOptions, GrepTool, SearchTool
from grok_runtime.tools.todo_tool import PRIORITIES, STATUSES, TodoTool

MAX_BASH_TIMEOUT_MS = 600_000


@dataclass(slots=True)
class ToolSuite:
    """Stateful collaborators for one session; never shared across sessions."""

    bash: BashTool
    editor: TextEditorTool
    glob: GlobTool
    grep: GrepTool
    search: SearchTool
    todo: TodoTool
    morph: MorphEditorTool | None = None

    @classmethod
    def create(
        cls,
        confirmation_service: ConfirmationService,
        *,
        current_directory: str | None = None,
        morph_api_key: str | None = None,
    ) -> "ToolSuite":
        cwd = current_directory or os.getcwd()
        return cls(
            bash=BashTool(confirmation_service, cwd),
            editor=TextEditorTool(cwd),
            glob=GlobTool(cwd),
            grep=GrepTool(cwd),
            search=SearchTool(cwd),
            todo=TodoTool(),
            morph=MorphEditorTool(morph_api_key, current_directory=cwd) if morph_api_key else None,
        )

    def current_directory(self) -> str:
        return self.bash.get_current_directory()

    def sync_current_directory(self) -> None:
        cwd = self.bash.get_current_directory()
        self.search.set_current_directory(cwd)
        self.glob.set_current_directory(cwd)
        self.grep.set_current_directory(cwd)
        self.editor.set_current_directory(cwd)
        if self.morph is not None:
            self.morph.set_current_directory(cwd)


def _optional_int(value: Any) -> int | None:
    if value is None:
        return None
    return int(value)


def _bash_timeout_seconds(value: Any) -> float:
    if value is None:
        return DEFAULT_TIMEOUT_SECONDS
    return min(int(value), MAX_BASH_TIMEOUT_MS) / 1000


def build_builtin_tools(suite: ToolSuite, morph_enabled: bool | None = None) -> list[ToolDef]:
    """Declare the built-in tools; ``edit_file`` only when the fast-apply editor is configured."""
    if morph_enabled is None:
        morph_enabled = suite.morph is not None

    async def view_file(args: dict[str, Any]) -> ToolResult:
        start_line = _optional_int(args.get("start_line"))
        end_line = _optional_int(args.get("end_line"))
        view_range = (start_line, end_line) if start_line is not None and end_line is not None else None
        return await suite.editor.view(
            args.get("path", ""),
            view_range,
            offset=_optional_int(args.get("offset")),
            limit=_optional_int(args.get("limit")),
        )

    async def write_file(args: dict[str, Any]) -> ToolResult:
        return await suite.editor.write(args.get("path", ""), args.get("content", ""))

    async def str_replace_editor(args: dict[str, Any]) -> ToolResult:
        return await suite.editor.str_replace(
            args.get("path", ""),
            args.get("old_str", ""),
            args.get("new_str", ""),
            bool(args.get("replace_all", False)),
        )

    async def edit_file(args: dict[str, Any]) -> ToolResult:
        if suite.morph is None:
            return ToolResult(success=False, error="Morph Fast Apply not available. Please set MORPH_API_KEY environment variable to use this feature.")
        return await suite.morph.edit_file(
            args.get("target_file", ""),
            args.get("instructions", ""),
            args.get("code_edit", ""),
        )

    async def bash(args: dict[str, Any]) -> ToolResult:
        result = await suite.bash.execute(args.get("command", ""), _bash_timeout_seconds(args.get("timeout")))
        suite.sync_current_directory()
        return result

    async def glob(args: dict[str, Any]) -> ToolResult:
        return await suite.glob.execute(args.get("pattern", ""), args.get("path"))

    async def grep(args: dict[str, Any]) -> ToolResult:
        return await suite.grep.execute(
            GrepOptions(
                pattern=args.get("pattern", ""),
                path=args.get("path"),
                output_mode=args.get("output_mode") or "content",
                glob=args.get("glob"),
                file_type=args.get("type"),
                case_sensitive=bool(args.get("case_sensitive", False)),
                context_lines=_optional_int(args.get("context_lines")),
            )
        )

    async def search(args: dict[str, Any]) -> ToolResult:
        return await suite.search.search(
            args.get("query", ""),
            search_type=args.get("search_type") or "both",
            include_pattern=args.get("include_pattern"),
            exclude_pattern=args.get("exclude_pattern"),
            case_sensitive=bool(args.get("case_sensitive", False)),
            whole_word=bool(args.get("whole_word", False)),
            regex=bool(args.get("regex", False)),
            max_results=_optional_int(args.get("max_results")) or 50,
            file_types=args.get("file_types"),
            include_hidden=bool(args.get("include_hidden", False)),
        )

    async def create_todo_list(args: dict[str, Any]) -> ToolResult:
        return await suite.todo.create_todo_list(args.get("todos", []))

    async def update_todo_list(args: dict[str, Any]) -> ToolResult:
        return await suite.todo.update_todo_list(args.get("updates", []))

    write_schema = {
        "type": "object",
        "properties": {
            "path": {"type": "string", "description": "Path of the file to write"},
            "content": {"type": "string", "description": "Full file content"},
        },
        "required": ["path", "content"],
    }
    todo_item = {
        "type": "object",
        "properties": {
            "id": {"type": "string"},
            "content": {"type": "string"},
            "status": {"type": "string", "enum": list(STATUSES)},
            "priority": {"type": "string", "enum": list(PRIORITIES)},
        },
        "required": ["id", "content"],
    }

    tools = [
        ToolDef(
            name="view_file",
            description="Read file contents (up to 2000 lines) or list a directory. Supports offset/limit or start_line/end_line.",
            input_schema={
                "type": "object",
                "properties": {
                    "path": {"type": "string", "description": "File or directory path"},
                    "start_line": {"type": "integer", "description": "First line of a range (1-based)"},
                    "end_line": {"type": "integer", "description": "Last line of a range (inclusive)"},
                    "offset": {"type": "integer", "description": "Line to start reading from (1-based)"},
                    "limit": {"type": "integer", "description": "Number of lines to read"},
                },
                "required": ["path"],
            },
            handler=view_file,
        ),
        ToolDef(
            name="write_file",
            description="Write full content to a file. Creates new files or overwrites existing ones.",
            input_schema=write_schema,
            handler=write_file,
        ),
        ToolDef(
            name="create_file",
            description="Create a file with the given content. Same as write_file.",
            input_schema=write_schema,
            handler=write_file,
        ),
        ToolDef(
            name="str_replace_editor",
            description="Replace text in an existing file. old_str must match exactly once unless replace_all is set.",
            input_schema={
                "type": "object",
                "properties": {
                    "path": {"type": "string", "description": "Path of the file to edit"},
                    "old_str": {"type": "string", "description": "Exact text to replace"},
                    "new_str": {"type": "string", "description": "Replacement text"},
                    "replace_all": {"type": "boolean", "description": "Replace every occurrence", "default": False},
                },
                "required": ["path", "old_str", "new_str"],
            },
            handler=str_replace_editor,
        ),
    ]
    if morph_enabled:
        tools.append(
            ToolDef(
                name="edit_file",
                description="High-speed file editing with Morph Fast Apply. Use `// ... existing code ...` for unchanged regions.",
                input_schema={
                    "type": "object",
                    "properties": {
                        "target_file": {"type": "string", "description": "Path of the file to edit"},
                        "instructions": {"type": "string", "description": "One sentence describing the edit"},
                        "code_edit": {"type": "string", "description": "The edited code with elisions for unchanged parts"},
                    },
                    "required": ["target_file", "instructions", "code_edit"],
                },
                handler=edit_file,
            )
        )
    tools.extend([
        ToolDef(
            name="bash",
            description="Execute a shell command (120s default timeout, up to 600000 ms).",
            input_schema={
                "type": "object",
                "properties": {
                    "command": {"type": "string", "description": "Shell command to execute"},
                    "timeout": {"type": "integer", "description": "Timeout in milliseconds (max 600000)"},
                },
                "required": ["command"],
            },
            handler=bash,
        ),
        ToolDef(
            name="glob",
            description="Find files by glob pattern, e.g. \"**/*.py\". Ignores node_modules and .git.",
            input_schema={
                "type": "object",
                "properties": {
                    "pattern": {"type": "string", "description": "Glob pattern"},
                    "path": {"type": "string", "description": "Directory to search from (default: current directory)"},
                },
                "required": ["pattern"],
            },
            handler=glob,
        ),
        ToolDef(
            name="grep",
            description="Search file contents with a regex using ripgrep.",
            input_schema={
                "type": "object",
                "properties": {
                    "pattern": {"type": "string", "description": "Regular expression"},
                    "path": {"type": "string", "description": "File or directory to search"},
                    "output_mode": {"type": "string", "enum": list(GREP_MODES)},
                    "glob": {"type": "string", "description": "Glob filter, e.g. \"*.py\""},
                    "type": {"type": "string", "description": "ripgrep file type, e.g. \"py\""},
                    "case_sensitive": {"type": "boolean", "default": False},
                    "context_lines": {"type": "integer", "description": "Lines of context around matches"},
                },
                "required": ["pattern"],
            },
            handler=grep,
        ),
        ToolDef(
            name="search",
            description="Unified search combining text search and file-name search.",
            input_schema={
                "type": "object",
                "properties": {
                    "query": {"type": "string", "description": "Text or file name to look for"},
                    "search_type": {"type": "string", "enum": ["text", "files", "both"], "default": "both"},
                    "include_pattern": {"type": "string"},
                    "exclude_pattern": {"type": "string"},
                    "case_sensitive": {"type": "boolean", "default": False},
                    "whole_word": {"type": "boolean", "default": False},
                    "regex": {"type": "boolean", "default": False},
                    "max_results": {"type": "integer", "default": 50},
                    "file_types": {"type": "array", "items": {"type": "string"}},
                    "include_hidden": {"type": "boolean", "default": False},
                },
                "required": ["query"],
            },
            handler=search,
        ),
        ToolDef(
            name="create_todo_list",
            description="Create a todo list to plan a multi-step task.",
            input_schema={
                "type": "object",
                "properties": {"todos": {"type": "array", "items": todo_item}},
                "required": ["todos"],
            },
            handler=create_todo_list,
        ),
        ToolDef(
            name="update_todo_list",
            description="Update status, content or priority of existing todo items.",
            input_schema={
                "type": "object",
                "properties": {
                    "updates": {
                        "type": "array",
                        "items": {
                            "type": "object",
                            "properties": {
                                "id": {"type": "string"},
                                "status": {"type": "string", "enum": list(STATUSES)},
                                "content": {"type": "string"},
                                "priority": {"type": "string", "enum": list(PRIORITIES)},
                            },
                            "required": ["id"],
                        },
                    }
                },
                "required": ["updates"],
            },
            handler=update_todo_list,
        ),
    ])
    return tools


def build_tool_registry(suite: ToolSuite, remote: Any = None) -> ToolRegistry:
    registry = ToolRegistry(remote)
    for tool in build_builtin_tools(suite):
        registry.register(tool)
    return registry
