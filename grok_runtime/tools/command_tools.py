from __future__ import annotations

import asyncio
import os
import subprocess
from pathlib import Path

from grok_runtime.agent.messages import ToolResult
from grok_runtime.services.confirmation_service import ConfirmationRequest, ConfirmationService

MAX_OUTPUT_SIZE = 100 * 1024
DEFAULT_TIMEOUT_SECONDS = 120.0


def _truncate(text: str) -> tuple[str, bool]:
    if len(text) > MAX_OUTPUT_SIZE:
        return text[:MAX_OUTPUT_SIZE], True
    return text, False


class BashTool:
    def __init__(self, confirmation_service: ConfirmationService, current_directory: str | None = None) -> None:
        self.confirmation_service = confirmation_service
        self.current_directory = str(Path(current_directory or os.getcwd()).resolve())

    async def execute(self, command: str, timeout: float = DEFAULT_TIMEOUT_SECONDS) -> ToolResult:
        if not command or not isinstance(command, str):
            return ToolResult(success=False, error="No command provided. Please specify a command to execute.")

        confirmation = await self.confirmation_service.request_confirmation(
            ConfirmationRequest(
                operation="Run bash command",
                filename=command,
                content=f"Command: {command}\nWorking directory: {self.current_directory}",
            ),
            "bash",
        )
        if not confirmation.confirmed:
            return ToolResult(success=False, error=confirmation.feedback or "Command execution cancelled by user")

        stripped = command.strip()
        if stripped == "cd" or stripped.startswith("cd "):
            return self._change_directory(stripped[2:].strip())

        try:
            return await asyncio.to_thread(self._run, command, timeout)
        except OSError as exc:
            return ToolResult(success=False, error=f"Failed to start command: {exc}")

    def _change_directory(self, target: str) -> ToolResult:
        raw = os.path.expanduser(target or "~")
        candidate = Path(raw) if Path(raw).is_absolute() else Path(self.current_directory) / raw
        resolved = candidate.resolve()
        if not resolved.is_dir():
            return ToolResult(success=False, error=f"Cannot change directory: no such directory: {target}")
        self.current_directory = str(resolved)
        return ToolResult(success=True, output=f"Changed directory to: {self.current_directory}")

    def _run(self, command: str, timeout: float) -> ToolResult:
        try:
            proc = subprocess.run(
                ["bash", "-c", command],
                cwd=self.current_directory,
                stdin=subprocess.DEVNULL,
                capture_output=True,
                text=True,
                errors="replace",
                timeout=timeout,
            )
        except subprocess.TimeoutExpired as exc:
            partial = _combine(_as_text(exc.stdout), _as_text(exc.stderr))
            return ToolResult(
                success=False,
                error=f"Command timed out after {round(timeout)}s. Partial output:\n{partial.strip()}",
            )

        output = _combine(proc.stdout, proc.stderr)
        if proc.returncode < 0:
            return ToolResult(success=False, error=f"Command killed by signal {-proc.returncode}. Output:\n{output.strip()}")
        if proc.returncode != 0:
            return ToolResult(success=False, error=f"Command exited with code {proc.returncode}.\n{output.strip()}")
        return ToolResult(success=True, output=output.strip() or "Command executed successfully (no output)")

    def get_current_directory(self) -> str:
        return self.current_directory


def _as_text(value: bytes | str | None) -> str:
    if value is None:
        return ""
    if isinstance(value, bytes):
        return value.decode("utf-8", errors="replace")
    return value


def _combine(stdout: str, stderr: str) -> str:
    stdout, out_truncated = _truncate(stdout or "")
    stderr, err_truncated = _truncate(stderr or "")
    output = stdout + (f"\nSTDERR: {stderr}" if stderr else "")
    if out_truncated or err_truncated:
        output += "\n\n[Output truncated: exceeded 100KB limit]"
    return output
