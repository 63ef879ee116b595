from __future__ import annotations

import shutil

import httpx
import pytest

from grok_runtime.agent.messages import ToolResult
from grok_runtime.services.confirmation_service import ConfirmationService
from grok_runtime.tools.command_tools import BashTool
from grok_runtime.tools.file_tools import TextEditorTool
from grok_runtime.tools.morph_editor import MorphEditorTool
from grok_runtime.tools.search_tools import GlobTool, GrepOptions, GrepTool, SearchTool
from grok_runtime.tools.todo_tool import TodoTool

needs_rg = pytest.mark.skipif(shutil.which("rg") is None, reason="ripgrep not installed")


def _bash(tmp_path, **kwargs) -> BashTool:
    return BashTool(ConfirmationService(auto_approve=True, **kwargs), str(tmp_path))


# ─── bash ─────────────────────────────────────────────────────────────────────

@pytest.mark.asyncio
async def test_bash_runs_in_current_directory(tmp_path):
    result = await _bash(tmp_path).execute("pwd")
    assert result.success is True
    assert result.output == str(tmp_path.resolve())


@pytest.mark.asyncio
async def test_bash_reports_exit_code(tmp_path):
    result = await _bash(tmp_path).execute("echo oops >&2; exit 3")
    assert result.success is False
    assert result.error.startswith("Command exited with code 3.")
    assert "oops" in result.error


@pytest.mark.asyncio
async def test_bash_no_output_message(tmp_path):
    result = await _bash(tmp_path).execute("true")
    assert result.output == "Command executed successfully (no output)"


@pytest.mark.asyncio
async def test_bash_timeout(tmp_path):
    result = await _bash(tmp_path).execute("sleep 5", timeout=0.2)
    assert result.success is False
    assert result.error.startswith("Command timed out after 0s")


@pytest.mark.asyncio
async def test_bash_cd_tracks_directory(tmp_path):
    (tmp_path / "sub").mkdir()
    bash = _bash(tmp_path)
    result = await bash.execute("cd sub")
    assert result.success is True
    assert bash.get_current_directory() == str((tmp_path / "sub").resolve())
    missing = await bash.execute("cd nowhere")
    assert missing.success is False
    assert missing.error.startswith("Cannot change directory")


@pytest.mark.asyncio
async def test_bash_empty_command(tmp_path):
    result = await _bash(tmp_path).execute("")
    assert result.success is False


@pytest.mark.asyncio
async def test_bash_denied_by_confirmation(tmp_path):
    confirmations = ConfirmationService(timeout_seconds=0.05)
    result = await BashTool(confirmations, str(tmp_path)).execute("echo hi")
    assert result.success is False
    assert result.error == "Confirmation timed out"


# ─── text editor ──────────────────────────────────────────────────────────────

@pytest.mark.asyncio
async def test_view_numbers_lines_and_paginates(tmp_path):
    (tmp_path / "f.txt").write_text("\n".join(f"line {i}" for i in range(1, 11)), encoding="utf-8")
    editor = TextEditorTool(str(tmp_path))

    full = await editor.view("f.txt")
    assert full.output.startswith("Contents of f.txt:\n1: line 1")

    page = await editor.view("f.txt", offset=3, limit=2)
    assert "3: line 3\n4: line 4" in page.output
    assert "5: line 5" not in page.output
    assert page.output.endswith("... 6 more lines")


@pytest.mark.asyncio
async def test_view_lists_directories(tmp_path):
    (tmp_path / "pkg").mkdir()
    (tmp_path / "a.py").write_text("", encoding="utf-8")
    result = await TextEditorTool(str(tmp_path)).view(".")
    assert result.output.endswith("a.py\npkg/")


@pytest.mark.asyncio
async def test_view_missing_file(tmp_path):
    result = await TextEditorTool(str(tmp_path)).view("nope.txt")
    assert result.success is False


@pytest.mark.asyncio
async def test_str_replace_requires_unique_match(tmp_path):
    target = tmp_path / "code.py"
    target.write_text("x = 1\nx = 1\n", encoding="utf-8")
    editor = TextEditorTool(str(tmp_path))

    ambiguous = await editor.str_replace("code.py", "x = 1", "x = 2")
    assert ambiguous.success is False
    assert "Found 2 occurrences" in ambiguous.error

    replaced = await editor.str_replace("code.py", "x = 1", "x = 2", replace_all=True)
    assert replaced.success is True
    assert target.read_text(encoding="utf-8") == "x = 2\nx = 2\n"
    assert "-x = 1" in replaced.output
    assert "+x = 2" in replaced.output


@pytest.mark.asyncio
async def test_str_replace_missing_text(tmp_path):
    (tmp_path / "code.py").write_text("a\n", encoding="utf-8")
    result = await TextEditorTool(str(tmp_path)).str_replace("code.py", "b", "c")
    assert result.success is False
    assert result.error.startswith("String not found")


# ─── glob / grep / search ─────────────────────────────────────────────────────

@pytest.mark.asyncio
async def test_glob_sorts_and_ignores_vendor_dirs(tmp_path):
    (tmp_path / "src").mkdir()
    (tmp_path / "node_modules").mkdir()
    (tmp_path / "src" / "b.py").write_text("", encoding="utf-8")
    (tmp_path / "a.py").write_text("", encoding="utf-8")
    (tmp_path / "node_modules" / "c.py").write_text("", encoding="utf-8")

    result = await GlobTool(str(tmp_path)).execute("**/*.py")

    assert result.success is True
    assert result.output == "a.py\nsrc/b.py\n\n2 files matched."


@pytest.mark.asyncio
async def test_glob_no_match(tmp_path):
    result = await GlobTool(str(tmp_path)).execute("*.rs")
    assert result.output.startswith('No files matched pattern "*.rs"')


def test_grep_builds_ripgrep_args(tmp_path):
    grep = GrepTool(str(tmp_path))
    args = grep.build_args(GrepOptions(pattern="TODO", output_mode="count", glob="*.py", file_type="py", context_lines=2))
    assert args[0] == "rg"
    assert "--count" in args
    assert "--ignore-case" in args
    assert args[args.index("--context") + 1] == "2"
    assert args[-2:] == ["TODO", str(tmp_path.resolve())]


@needs_rg
@pytest.mark.asyncio
async def test_grep_no_matches(tmp_path):
    (tmp_path / "a.txt").write_text("hello\n", encoding="utf-8")
    result = await GrepTool(str(tmp_path)).execute(GrepOptions(pattern="absent"))
    assert result == ToolResult(success=True, output="No matches found.")


@needs_rg
@pytest.mark.asyncio
async def test_search_finds_text_and_file_names(tmp_path):
    (tmp_path / "config_loader.py").write_text("def load_config():\n    pass\n", encoding="utf-8")
    result = await SearchTool(str(tmp_path)).search("config")
    assert "Text matches" in result.output
    assert "Files (1):\nconfig_loader.py" in result.output


@pytest.mark.asyncio
async def test_search_files_only(tmp_path):
    (tmp_path / "README.md").write_text("", encoding="utf-8")
    result = await SearchTool(str(tmp_path)).search("readme", search_type="files")
    assert result.output == "Files (1):\nREADME.md"


# ─── todo ─────────────────────────────────────────────────────────────────────

@pytest.mark.asyncio
async def test_todo_create_and_update():
    todo = TodoTool()
    created = await todo.create_todo_list([
        {"id": "1", "content": "Read code"},
        {"id": "2", "content": "Fix bug", "priority": "high"},
    ])
    assert created.output.splitlines()[:2] == ["[ ] Read code", "[ ] Fix bug (high)"]

    updated = await todo.update_todo_list([{"id": "1", "status": "completed"}, {"id": "2", "status": "in_progress"}])
    assert "[x] Read code" in updated.output
    assert "[~] Fix bug (high)" in updated.output
    assert updated.output.endswith("1/2 completed")


@pytest.mark.asyncio
async def test_todo_rejects_unknown_ids_and_statuses():
    todo = TodoTool()
    await todo.create_todo_list([{"id": "1", "content": "x"}])
    assert (await todo.update_todo_list([{"id": "9", "status": "completed"}])).success is False
    assert (await todo.update_todo_list([{"id": "1", "status": "blocked"}])).success is False


# ─── morph ────────────────────────────────────────────────────────────────────

@pytest.mark.asyncio
async def test_morph_editor_writes_merged_file(tmp_path):
    (tmp_path / "app.py").write_text("def main():\n    return 1\n", encoding="utf-8")
    seen: list[dict] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append({"auth": request.headers["Authorization"], "body": request.read().decode()})
        return httpx.Response(200, json={"choices": [{"message": {"content": "def main():\n    return 2\n"}}]})

    editor = MorphEditorTool("mk-test", current_directory=str(tmp_path), transport=httpx.MockTransport(handler))
    result = await editor.edit_file("app.py", "return 2", "def main():\n    return 2\n")

    assert result.success is True
    assert (tmp_path / "app.py").read_text(encoding="utf-8") == "def main():\n    return 2\n"
    assert seen[0]["auth"] == "Bearer mk-test"
    assert "<instruction>return 2</instruction>" in seen[0]["body"]


@pytest.mark.asyncio
async def test_morph_editor_reports_http_errors(tmp_path):
    (tmp_path / "app.py").write_text("x\n", encoding="utf-8")
    transport = httpx.MockTransport(lambda request: httpx.Response(500, text="upstream down"))
    editor = MorphEditorTool("mk-test", current_directory=str(tmp_path), transport=transport)
    result = await editor.edit_file("app.py", "edit", "y\n")
    assert result.success is False
    assert result.error.startswith("Morph API error (500)")
    assert (tmp_path / "app.py").read_text(encoding="utf-8") == "x\n"
