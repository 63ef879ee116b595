"""Unified message types shared by the transport, the dispatcher and the agent loop."""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Literal, Union


@dataclass(slots=True, frozen=True)
class TextPart:
    text: str
    type: Literal["text"] = "text"


@dataclass(slots=True, frozen=True)
class ToolCallPart:
    id: str
    name: str
    input: dict[str, Any]
    type: Literal["tool-call"] = "tool-call"


@dataclass(slots=True, frozen=True)
class ToolOutput:
    type: str  # "text" | "error-text"
    value: str


@dataclass(slots=True, frozen=True)
class ToolResultPart:
    id: str
    name: str
    output: ToolOutput
    type: Literal["tool-result"] = "tool-result"


ContentPart = Union[TextPart, ToolCallPart, ToolResultPart]


@dataclass(slots=True, frozen=True)
class Message:
    role: str  # "system" | "user" | "assistant" | "tool"
    content: str | tuple[ContentPart, ...] = ""

    @property
    def parts(self) -> tuple[ContentPart, ...]:
        if isinstance(self.content, str):
            return (TextPart(self.content),) if self.content else ()
        return self.content

    @property
    def text(self) -> str:
        if isinstance(self.content, str):
            return self.content
        return "".join(part.text for part in self.content if isinstance(part, TextPart))


@dataclass(slots=True, frozen=True)
class ToolCall:
    id: str
    name: str
    arguments: str  # raw JSON text as emitted by the model

    def to_dict(self) -> dict[str, Any]:
        return {"id": self.id, "name": self.name, "arguments": self.arguments}


@dataclass(slots=True, frozen=True)
class ToolResult:
    success: bool
    output: str | None = None
    error: str | None = None

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"success": self.success}
        if self.output is not None:
            payload["output"] = self.output
        if self.error is not None:
            payload["error"] = self.error
        return payload


@dataclass(slots=True)
class ChatResponse:
    content: str | None
    tool_calls: list[ToolCall] = field(default_factory=list)
    finish_reason: str = "stop"  # "stop" | "tool_calls" | "length" | ...
    usage: dict[str, int] = field(default_factory=dict)


@dataclass(slots=True, frozen=True)
class ContentDelta:
    text: str


@dataclass(slots=True, frozen=True)
class ToolCallDelta:
    id: str
    name: str
    arguments: str


@dataclass(slots=True, frozen=True)
class StreamRestarted:
    attempt: int


StreamEvent = Union[ContentDelta, ToolCallDelta, StreamRestarted]


def _now() -> datetime:
    return datetime.now(tz=timezone.utc)


@dataclass(slots=True)
class ChatEntry:
    type: str  # "user" | "assistant" | "tool_call" | "tool_result"
    content: str
    timestamp: datetime = field(default_factory=_now)
    tool_calls: list[ToolCall] | None = None
    tool_call: ToolCall | None = None
    tool_result: ToolResult | None = None
    is_streaming: bool = False

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "type": self.type,
            "content": self.content,
            "timestamp": self.timestamp.isoformat(),
        }
        if self.tool_calls:
            payload["tool_calls"] = [tc.to_dict() for tc in self.tool_calls]
        if self.tool_call is not None:
            payload["tool_call"] = self.tool_call.to_dict()
        if self.tool_result is not None:
            payload["tool_result"] = self.tool_result.to_dict()
        if self.is_streaming:
            payload["is_streaming"] = True
        return payload


@dataclass(slots=True)
class StreamingChunk:
    type: str  # "content" | "tool_calls" | "tool_result" | "token_count" | "done"
    content: str | None = None
    tool_calls: list[ToolCall] | None = None
    tool_call: ToolCall | None = None
    tool_result: ToolResult | None = None
    token_count: int | None = None

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"type": self.type}
        if self.content is not None:
            payload["content"] = self.content
        if self.tool_calls is not None:
            payload["tool_calls"] = [tc.to_dict() for tc in self.tool_calls]
        if self.tool_call is not None:
            payload["tool_call"] = self.tool_call.to_dict()
        if self.tool_result is not None:
            payload["tool_result"] = self.tool_result.to_dict()
        if self.token_count is not None:
            payload["token_count"] = self.token_count
        return payload
