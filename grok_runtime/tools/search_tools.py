from __future__ import annotations

import asyncio
import fnmatch
import os
import subprocess
from dataclasses import dataclass
from pathlib import Path

from grok_runtime.agent.messages import ToolResult

MAX_GLOB_RESULTS = 500
MAX_GREP_OUTPUT = 50 * 1024
DEFAULT_MAX_RESULTS = 50
IGNORED_DIRS = frozenset({"node_modules", ".git"})
GREP_MODES = ("content", "files_with_matches", "count")


class _DirectoryAware:
    def __init__(self, current_directory: str | None = None) -> None:
        self.current_directory = str(Path(current_directory or os.getcwd()).resolve())

    def set_current_directory(self, directory: str) -> None:
        self.current_directory = directory

    def get_current_directory(self) -> str:
        return self.current_directory

    def _base_dir(self, search_path: str | None) -> Path:
        if not search_path:
            return Path(self.current_directory)
        return (Path(self.current_directory) / os.path.expanduser(search_path)).resolve()


def _walk_files(base: Path, include_hidden: bool = False):
    for root, dirs, files in os.walk(base):
        dirs[:] = sorted(
            d for d in dirs
            if d not in IGNORED_DIRS and (include_hidden or not d.startswith("."))
        )
        for name in sorted(files):
            if not include_hidden and name.startswith("."):
                continue
            yield Path(root) / name


class GlobTool(_DirectoryAware):
    async def execute(self, pattern: str, path: str | None = None) -> ToolResult:
        if not pattern:
            return ToolResult(success=False, error="Glob error: pattern is required")
        try:
            return await asyncio.to_thread(self._glob, pattern, path)
        except (OSError, ValueError, NotImplementedError) as exc:
            return ToolResult(success=False, error=f"Glob error: {exc}")

    def _glob(self, pattern: str, path: str | None) -> ToolResult:
        base = self._base_dir(path)
        entries = sorted(
            candidate.relative_to(base).as_posix()
            for candidate in base.glob(pattern)
            if candidate.is_file() and not candidate.is_symlink() and _visible(candidate.relative_to(base))
        )
        if not entries:
            return ToolResult(success=True, output=f'No files matched pattern "{pattern}" in {base}')

        shown = entries[:MAX_GLOB_RESULTS]
        output = "\n".join(shown)
        if len(entries) > MAX_GLOB_RESULTS:
            output += f"\n\n... and {len(entries) - MAX_GLOB_RESULTS} more files ({len(entries)} total)"
        else:
            output += f"\n\n{len(entries)} files matched."
        return ToolResult(success=True, output=output)


def _visible(relative: Path) -> bool:
    return not any(part in IGNORED_DIRS or part.startswith(".") for part in relative.parts)


@dataclass(slots=True)
class GrepOptions:
    pattern: str
    path: str | None = None
    output_mode: str = "content"
    glob: str | None = None
    file_type: str | None = None
    case_sensitive: bool = False
    context_lines: int | None = None


class GrepTool(_DirectoryAware):
    async def execute(self, options: GrepOptions) -> ToolResult:
        if not options.pattern:
            return ToolResult(success=False, error="Grep error: pattern is required")
        return await asyncio.to_thread(self._run_ripgrep, self.build_args(options))

    def build_args(self, options: GrepOptions) -> list[str]:
        args = [
            "rg",
            "--no-heading",
            "--color=never",
            "--no-require-git",
            "--glob", "!.git/**",
            "--glob", "!node_modules/**",
        ]
        if options.output_mode == "files_with_matches":
            args.append("--files-with-matches")
        elif options.output_mode == "count":
            args.append("--count")
        else:
            args.append("--line-number")
        if not options.case_sensitive:
            args.append("--ignore-case")
        if options.context_lines is not None:
            args.extend(["--context", str(options.context_lines)])
        if options.glob:
            args.extend(["--glob", options.glob])
        if options.file_type:
            args.extend(["--type", options.file_type])
        args.extend(["--", options.pattern, options.path or self.current_directory])
        return args

    def _run_ripgrep(self, args: list[str]) -> ToolResult:
        try:
            proc = subprocess.run(
                args,
                cwd=self.current_directory,
                stdin=subprocess.DEVNULL,
                capture_output=True,
                text=True,
                errors="replace",
            )
        except OSError as exc:
            return ToolResult(success=False, error=f"Failed to run ripgrep: {exc}. Is 'rg' installed?")

        if proc.returncode == 1:
            return ToolResult(success=True, output="No matches found.")
        if proc.returncode != 0:
            return ToolResult(success=False, error=f"Ripgrep failed (code {proc.returncode}): {proc.stderr.strip()}")

        stdout = proc.stdout
        note = ""
        if len(stdout) > MAX_GREP_OUTPUT:
            stdout = stdout[:MAX_GREP_OUTPUT]
            note = "\n\n[Output truncated: exceeded 50KB limit]"
        return ToolResult(success=True, output=(stdout.strip() + note) or "No matches found.")


class SearchTool(_DirectoryAware):
    """Unified search: text matches through ripgrep plus file-name matches."""

    async def search(
        self,
        query: str,
        *,
        search_type: str = "both",
        include_pattern: str | None = None,
        exclude_pattern: str | None = None,
        case_sensitive: bool = False,
        whole_word: bool = False,
        regex: bool = False,
        max_results: int = DEFAULT_MAX_RESULTS,
        file_types: list[str] | None = None,
        include_hidden: bool = False,
    ) -> ToolResult:
        if not query:
            return ToolResult(success=False, error="Search error: query is required")
        if search_type not in ("text", "files", "both"):
            return ToolResult(success=False, error=f"Search error: unknown search_type {search_type!r}")
        max_results = max(int(max_results or DEFAULT_MAX_RESULTS), 1)

        sections: list[str] = []
        if search_type in ("text", "both"):
            args = self._text_args(
                query,
                include_pattern=include_pattern,
                exclude_pattern=exclude_pattern,
                case_sensitive=case_sensitive,
                whole_word=whole_word,
                regex=regex,
                file_types=file_types or [],
                include_hidden=include_hidden,
            )
            text = await asyncio.to_thread(self._text_search, args, max_results)
            if not text.success:
                return text
            if text.output:
                sections.append(text.output)
        if search_type in ("files", "both"):
            files = await asyncio.to_thread(
                self._file_search, query, include_pattern, exclude_pattern, case_sensitive, max_results, include_hidden
            )
            if files:
                sections.append(files)

        if not sections:
            return ToolResult(success=True, output=f'No results found for "{query}"')
        return ToolResult(success=True, output="\n\n".join(sections))

    def _text_args(
        self,
        query: str,
        *,
        include_pattern: str | None,
        exclude_pattern: str | None,
        case_sensitive: bool,
        whole_word: bool,
        regex: bool,
        file_types: list[str],
        include_hidden: bool,
    ) -> list[str]:
        args = ["rg", "--no-heading", "--color=never", "--line-number", "--glob", "!.git/**", "--glob", "!node_modules/**"]
        if not case_sensitive:
            args.append("--ignore-case")
        if whole_word:
            args.append("--word-regexp")
        if not regex:
            args.append("--fixed-strings")
        if include_hidden:
            args.append("--hidden")
        if include_pattern:
            args.extend(["--glob", include_pattern])
        if exclude_pattern:
            args.extend(["--glob", f"!{exclude_pattern}"])
        for file_type in file_types:
            args.extend(["--type", file_type])
        args.extend(["--", query, "."])
        return args

    def _text_search(self, args: list[str], max_results: int) -> ToolResult:
        try:
            proc = subprocess.run(
                args,
                cwd=self.current_directory,
                stdin=subprocess.DEVNULL,
                capture_output=True,
                text=True,
                errors="replace",
            )
        except OSError as exc:
            return ToolResult(success=False, error=f"Failed to run ripgrep: {exc}. Is 'rg' installed?")
        if proc.returncode == 1:
            return ToolResult(success=True, output="")
        if proc.returncode != 0:
            return ToolResult(success=False, error=f"Search error: {proc.stderr.strip()}")

        lines = [line.removeprefix("./") for line in proc.stdout.splitlines() if line]
        shown = lines[:max_results]
        output = f"Text matches ({len(lines)}):\n" + "\n".join(shown)
        if len(lines) > max_results:
            output += f"\n... and {len(lines) - max_results} more matches"
        return ToolResult(success=True, output=output)

    def _file_search(
        self,
        query: str,
        include_pattern: str | None,
        exclude_pattern: str | None,
        case_sensitive: bool,
        max_results: int,
        include_hidden: bool,
    ) -> str:
        base = Path(self.current_directory)
        needle = query if case_sensitive else query.lower()
        matches: list[str] = []
        for candidate in _walk_files(base, include_hidden):
            relative = candidate.relative_to(base).as_posix()
            if include_pattern and not fnmatch.fnmatch(relative, include_pattern) and not fnmatch.fnmatch(candidate.name, include_pattern):
                continue
            if exclude_pattern and (fnmatch.fnmatch(relative, exclude_pattern) or fnmatch.fnmatch(candidate.name, exclude_pattern)):
                continue
            haystack = relative if case_sensitive else relative.lower()
            if needle in haystack:
                matches.append(relative)
                if len(matches) >= max_results:
                    break
        if not matches:
            return ""
        return f"Files ({len(matches)}):\n" + "\n".join(matches)
