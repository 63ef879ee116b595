"""Anthropic Messages API provider with native tool_use support."""
from __future__ import annotations

import json
from typing import Any, AsyncIterator

from anthropic import AsyncAnthropic

from grok_runtime.agent.messages import (
    ChatResponse,
    ContentDelta,
    Message,
    TextPart,
    ToolCall,
    ToolCallDelta,
    ToolCallPart,
    ToolResultPart,
)
from grok_runtime.agent.providers.base import ChatRequest, ProviderAdapter, ToolSchema
from grok_runtime.observability.logging import get_runtime_logger

logger = get_runtime_logger("providers.anthropic")


class AnthropicProvider(ProviderAdapter):
    name = "anthropic"

    def __init__(self, api_key: str, base_url: str | None = None) -> None:
        self.base_url = base_url or "https://api.anthropic.com"
        self.client = AsyncAnthropic(api_key=api_key, base_url=base_url, max_retries=0)

    async def chat(self, request: ChatRequest) -> ChatResponse:
        response = await self.client.messages.create(**_build_payload(request))

        text_parts: list[str] = []
        tool_calls: list[ToolCall] = []
        for block in response.content:
            if block.type == "text":
                text_parts.append(block.text)
            elif block.type == "tool_use":
                tool_calls.append(ToolCall(
                    id=block.id,
                    name=block.name,
                    arguments=json.dumps(block.input if isinstance(block.input, dict) else {}),
                ))

        finish_reason = "tool_calls" if response.stop_reason == "tool_use" else "stop"
        if response.stop_reason == "max_tokens":
            finish_reason = "length"

        return ChatResponse(
            content="\n".join(text_parts) or None,
            tool_calls=tool_calls,
            finish_reason=finish_reason,
            usage={
                "input_tokens": response.usage.input_tokens,
                "output_tokens": response.usage.output_tokens,
            },
        )

    async def chat_stream(self, request: ChatRequest) -> AsyncIterator[ContentDelta | ToolCallDelta]:
        stream = await self.client.messages.create(**_build_payload(request), stream=True)
        tool_blocks: dict[int, tuple[str, str]] = {}
        async for event in stream:
            if event.type == "content_block_start":
                block = event.content_block
                if block.type == "tool_use":
                    tool_blocks[event.index] = (block.id, block.name)
                    yield ToolCallDelta(id=block.id, name=block.name, arguments="")
            elif event.type == "content_block_delta":
                delta = event.delta
                if delta.type == "text_delta":
                    yield ContentDelta(text=delta.text)
                elif delta.type == "input_json_delta" and event.index in tool_blocks:
                    call_id, name = tool_blocks[event.index]
                    yield ToolCallDelta(id=call_id, name=name, arguments=delta.partial_json)


def _build_payload(request: ChatRequest) -> dict[str, Any]:
    system_prompt = "\n\n".join(m.text for m in request.messages if m.role == "system")
    payload: dict[str, Any] = {
        "model": request.model,
        "max_tokens": request.max_tokens,
        "messages": _build_messages(request.messages),
        "temperature": request.temperature,
    }
    if system_prompt:
        payload["system"] = system_prompt
    if request.tools:
        payload["tools"] = _build_tools(request.tools)
    if request.search_options and request.search_options.search_parameters:
        logger.debug("search directive is not supported by the anthropic backend; dropped")
    return payload


def _build_messages(messages: list[Message]) -> list[dict]:
    """Convert internal Messages to Anthropic API message format."""
    result: list[dict] = []
    for msg in messages:
        if msg.role == "user":
            result.append({"role": "user", "content": msg.text})
        elif msg.role == "assistant":
            content: list[dict] = []
            for part in msg.parts:
                if isinstance(part, TextPart) and part.text:
                    content.append({"type": "text", "text": part.text})
                elif isinstance(part, ToolCallPart):
                    content.append({
                        "type": "tool_use",
                        "id": part.id,
                        "name": part.name,
                        "input": part.input,
                    })
            result.append({"role": "assistant", "content": content})
        elif msg.role == "tool":
            blocks: list[dict] = []
            for part in msg.parts:
                if isinstance(part, ToolResultPart):
                    blocks.append({
                        "type": "tool_result",
                        "tool_use_id": part.id,
                        "content": part.output.value,
                        "is_error": part.output.type == "error-text",
                    })
            # Consecutive tool results must share one user turn.
            if result and result[-1]["role"] == "user" and isinstance(result[-1]["content"], list):
                result[-1]["content"].extend(blocks)
            else:
                result.append({"role": "user", "content": blocks})
    return result


def _build_tools(tools: list[ToolSchema]) -> list[dict]:
    """Convert ToolSchema list to Anthropic tools format."""
    return [
        {
            "name": t.name,
            "description": t.description,
            "input_schema": t.input_schema,
        }
        for t in tools
    ]
