"""OpenAI-compatible Chat Completions provider (xAI by default) with function calling."""
from __future__ import annotations

import json
import uuid
from typing import Any, AsyncIterator

from openai import AsyncOpenAI

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

XAI_BASE_URL = "https://api.x.ai/v1"


class OpenAIProvider(ProviderAdapter):
    name = "xai"

    def __init__(self, api_key: str, base_url: str | None = None) -> None:
        self.base_url = base_url or XAI_BASE_URL
        # Retries are owned by GrokClient so every attempt is classified and logged.
        self.client = AsyncOpenAI(api_key=api_key, base_url=self.base_url, max_retries=0)

    async def chat(self, request: ChatRequest) -> ChatResponse:
        response = await self.client.chat.completions.create(**_build_payload(request))
        choice = response.choices[0]
        message = choice.message

        tool_calls: list[ToolCall] = []
        for tc in message.tool_calls or []:
            tool_calls.append(ToolCall(
                id=tc.id or f"call_{uuid.uuid4().hex[:8]}",
                name=tc.function.name,
                arguments=tc.function.arguments or "",
            ))

        usage_data: dict[str, int] = {}
        if response.usage:
            usage_data = {
                "input_tokens": response.usage.prompt_tokens or 0,
                "output_tokens": response.usage.completion_tokens or 0,
            }

        return ChatResponse(
            content=message.content or None,
            tool_calls=tool_calls,
            finish_reason=choice.finish_reason or "stop",
            usage=usage_data,
        )

    async def chat_stream(self, request: ChatRequest) -> AsyncIterator[ContentDelta | ToolCallDelta]:
        stream = await self.client.chat.completions.create(**_build_payload(request), stream=True)
        # Incremental fragments only carry the index after the first one.
        ids_by_index: dict[int, tuple[str, str]] = {}
        async for chunk in stream:
            if not chunk.choices:
                continue
            delta = chunk.choices[0].delta
            if delta is None:
                continue
            if delta.content:
                yield ContentDelta(text=delta.content)
            for tc in delta.tool_calls or []:
                index = tc.index if tc.index is not None else 0
                function = tc.function
                name = function.name if function and function.name else ""
                if tc.id:
                    ids_by_index[index] = (tc.id, name)
                elif index not in ids_by_index:
                    ids_by_index[index] = (f"call_{uuid.uuid4().hex[:8]}", name)
                call_id, known_name = ids_by_index[index]
                yield ToolCallDelta(
                    id=call_id,
                    name=name or known_name,
                    arguments=(function.arguments if function else None) or "",
                )


def _build_payload(request: ChatRequest) -> dict[str, Any]:
    payload: dict[str, Any] = {
        "model": request.model,
        "messages": _build_messages(request.messages),
        "max_tokens": request.max_tokens,
        "temperature": request.temperature,
    }
    if request.tools:
        payload["tools"] = _build_tools(request.tools)
        payload["tool_choice"] = "auto"
    search = request.search_options.search_parameters if request.search_options else None
    if search is not None:
        payload["extra_body"] = {"search_parameters": search.to_dict()}
    return payload


def _build_messages(messages: list[Message]) -> list[dict]:
    """Convert internal Messages to OpenAI chat format."""
    result: list[dict] = []
    for msg in messages:
        if msg.role in {"system", "user"}:
            result.append({"role": msg.role, "content": msg.text})
        elif msg.role == "assistant":
            entry: dict = {"role": "assistant"}
            text = msg.text
            if text or isinstance(msg.content, str):
                entry["content"] = text
            tool_calls = [part for part in msg.parts if isinstance(part, ToolCallPart)]
            if tool_calls:
                entry["tool_calls"] = [
                    {
                        "id": part.id,
                        "type": "function",
                        "function": {
                            "name": part.name,
                            "arguments": json.dumps(part.input),
                        },
                    }
                    for part in tool_calls
                ]
            result.append(entry)
        elif msg.role == "tool":
            for part in msg.parts:
                if isinstance(part, ToolResultPart):
                    result.append({
                        "role": "tool",
                        "tool_call_id": part.id,
                        "content": part.output.value,
                    })
                elif isinstance(part, TextPart):
                    result.append({"role": "user", "content": part.text})
    return result


def _build_tools(tools: list[ToolSchema]) -> list[dict]:
    """Convert ToolSchema list to OpenAI function-calling format."""
    return [
        {
            "type": "function",
            "function": {
                "name": t.name,
                "description": t.description,
                "parameters": t.input_schema,
            },
        }
        for t in tools
    ]
