from __future__ import annotations

import asyncio
import difflib
import os
from pathlib import Path

import httpx

from grok_runtime.agent.messages import ToolResult
from grok_runtime.observability.logging import get_runtime_logger, log_api_error

logger = get_runtime_logger("morph")

MORPH_BASE_URL = "https://api.morphllm.com/v1"
MORPH_MODEL = "morph-v3-large"
MORPH_TIMEOUT_SECONDS = 60.0


class MorphEditorTool:
    """Fast-apply edits: Morph merges an abbreviated edit into the full file."""

    def __init__(
        self,
        api_key: str,
        *,
        base_url: str = MORPH_BASE_URL,
        current_directory: str | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.api_key = api_key
        self.base_url = base_url.rstrip("/")
        self.current_directory = str(Path(current_directory or os.getcwd()).resolve())
        self._transport = transport

    def set_current_directory(self, directory: str) -> None:
        self.current_directory = directory

    async def edit_file(self, target_file: str, instructions: str, code_edit: str) -> ToolResult:
        if not target_file or not code_edit:
            return ToolResult(success=False, error="target_file and code_edit are required")
        path = Path(os.path.expanduser(target_file))
        if not path.is_absolute():
            path = Path(self.current_directory) / path
        if not path.is_file():
            return ToolResult(success=False, error=f"File not found: {target_file}")

        original = await asyncio.to_thread(path.read_text, encoding="utf-8")
        try:
            merged = await self._apply(original, instructions or "", code_edit)
        except httpx.HTTPStatusError as exc:
            log_api_error(logger, "POST", f"{self.base_url}/chat/completions", exc.response.status_code, str(exc))
            return ToolResult(success=False, error=f"Morph API error ({exc.response.status_code}): {exc.response.text[:500]}")
        except httpx.HTTPError as exc:
            log_api_error(logger, "POST", f"{self.base_url}/chat/completions", "network", str(exc))
            return ToolResult(success=False, error=f"Morph API request failed: {exc}")

        if not merged:
            return ToolResult(success=False, error="Morph API returned no content")
        await asyncio.to_thread(path.write_text, merged, encoding="utf-8")
        diff = "\n".join(difflib.unified_diff(
            original.splitlines(),
            merged.splitlines(),
            fromfile=f"a/{target_file}",
            tofile=f"b/{target_file}",
            lineterm="",
        ))
        return ToolResult(success=True, output=f"Updated {target_file} with Morph Fast Apply\n{diff}")

    async def _apply(self, original: str, instructions: str, code_edit: str) -> str:
        payload = {
            "model": MORPH_MODEL,
            "messages": [
                {
                    "role": "user",
                    "content": (
                        f"<instruction>{instructions}</instruction>\n"
                        f"<code>{original}</code>\n"
                        f"<update>{code_edit}</update>"
                    ),
                }
            ],
        }
        async with httpx.AsyncClient(
            base_url=self.base_url,
            timeout=MORPH_TIMEOUT_SECONDS,
            transport=self._transport,
        ) as client:
            response = await client.post(
                "/chat/completions",
                json=payload,
                headers={"Authorization": f"Bearer {self.api_key}"},
            )
            response.raise_for_status()
            body = response.json()
        choices = body.get("choices") or []
        if not choices:
            return ""
        return (choices[0].get("message") or {}).get("content") or ""
