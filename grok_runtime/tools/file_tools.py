from __future__ import annotations

import asyncio
import difflib
import os
from pathlib import Path

from grok_runtime.agent.messages import ToolResult

MAX_VIEW_LINES = 2000
MAX_DIR_ENTRIES = 500


class TextEditorTool:
    def __init__(self, current_directory: str | None = None) -> None:
        self.current_directory = str(Path(current_directory or os.getcwd()).resolve())

    def set_current_directory(self, directory: str) -> None:
        self.current_directory = directory

    def resolve(self, path: str) -> Path:
        candidate = Path(os.path.expanduser(path))
        if not candidate.is_absolute():
            candidate = Path(self.current_directory) / candidate
        return candidate.resolve()

    async def view(
        self,
        path: str,
        view_range: tuple[int, int] | None = None,
        offset: int | None = None,
        limit: int | None = None,
    ) -> ToolResult:
        return await asyncio.to_thread(self._view, path, view_range, offset, limit)

    async def write(self, path: str, content: str) -> ToolResult:
        return await asyncio.to_thread(self._write, path, content)

    async def str_replace(self, path: str, old_str: str, new_str: str, replace_all: bool = False) -> ToolResult:
        return await asyncio.to_thread(self._str_replace, path, old_str, new_str, replace_all)

    def _view(
        self,
        path: str,
        view_range: tuple[int, int] | None,
        offset: int | None,
        limit: int | None,
    ) -> ToolResult:
        if not path:
            return ToolResult(success=False, error="path is required")
        target = self.resolve(path)
        if not target.exists():
            return ToolResult(success=False, error=f"File or directory not found: {path}")

        if target.is_dir():
            entries = sorted(
                f"{entry.name}/" if entry.is_dir() else entry.name
                for entry in target.iterdir()
            )
            shown = entries[:MAX_DIR_ENTRIES]
            listing = "\n".join(shown)
            if len(entries) > MAX_DIR_ENTRIES:
                listing += f"\n... and {len(entries) - MAX_DIR_ENTRIES} more entries"
            return ToolResult(success=True, output=f"Directory contents of {path}:\n{listing}")

        try:
            lines = target.read_text(encoding="utf-8").splitlines()
        except UnicodeDecodeError:
            return ToolResult(success=False, error=f"Cannot view binary file: {path}")

        if view_range is not None:
            start, end = view_range
            start = max(start, 1)
            end = min(end, len(lines))
            if start > end:
                return ToolResult(success=False, error=f"Invalid line range {view_range[0]}-{view_range[1]} for {path}")
        else:
            start = max(offset or 1, 1)
            end = min(start - 1 + (limit or MAX_VIEW_LINES), len(lines))

        numbered = "\n".join(f"{number}: {lines[number - 1]}" for number in range(start, end + 1))
        header = f"Lines {start}-{end} of {path}" if (start > 1 or end < len(lines)) else f"Contents of {path}"
        footer = f"\n... {len(lines) - end} more lines" if end < len(lines) else ""
        return ToolResult(success=True, output=f"{header}:\n{numbered}{footer}")

    def _write(self, path: str, content: str) -> ToolResult:
        if not path:
            return ToolResult(success=False, error="path is required")
        target = self.resolve(path)
        existed = target.exists()
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_text(content or "", encoding="utf-8")
        line_count = len((content or "").splitlines())
        verb = "Updated" if existed else "Created"
        return ToolResult(success=True, output=f"{verb} {path} ({line_count} lines)")

    def _str_replace(self, path: str, old_str: str, new_str: str, replace_all: bool) -> ToolResult:
        if not path:
            return ToolResult(success=False, error="path is required")
        if not old_str:
            return ToolResult(success=False, error="old_str must not be empty")
        target = self.resolve(path)
        if not target.is_file():
            return ToolResult(success=False, error=f"File not found: {path}")

        original = target.read_text(encoding="utf-8")
        occurrences = original.count(old_str)
        if occurrences == 0:
            return ToolResult(success=False, error=f"String not found in {path}: {old_str[:200]}")
        if occurrences > 1 and not replace_all:
            return ToolResult(
                success=False,
                error=f"Found {occurrences} occurrences in {path}. Add more context or set replace_all.",
            )

        updated = original.replace(old_str, new_str or "") if replace_all else original.replace(old_str, new_str or "", 1)
        target.write_text(updated, encoding="utf-8")
        diff = "\n".join(difflib.unified_diff(
            original.splitlines(),
            updated.splitlines(),
            fromfile=f"a/{path}",
            tofile=f"b/{path}",
            lineterm="",
        ))
        replaced = occurrences if replace_all else 1
        return ToolResult(success=True, output=f"Updated {path} ({replaced} replacement(s))\n{diff}")
