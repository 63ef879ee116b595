"""Provider base types: ChatRequest / search options / ProviderAdapter."""
from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, AsyncIterator

from grok_runtime.agent.messages import ChatResponse, ContentDelta, Message, ToolCallDelta


@dataclass(slots=True, frozen=True)
class ToolSchema:
    name: str
    description: str
    input_schema: dict


@dataclass(slots=True, frozen=True)
class SearchParameters:
    mode: str = "auto"  # "auto" | "on" | "off"

    def to_dict(self) -> dict[str, Any]:
        return {"mode": self.mode}


@dataclass(slots=True, frozen=True)
class SearchOptions:
    search_parameters: SearchParameters | None = None


@dataclass(slots=True)
class ChatRequest:
    model: str
    messages: list[Message]
    tools: list[ToolSchema] = field(default_factory=list)
    max_tokens: int = 16384
    temperature: float = 0.7
    search_options: SearchOptions | None = None


class ProviderAdapter(ABC):
    name: str = "provider"

    @abstractmethod
    async def chat(self, request: ChatRequest) -> ChatResponse: ...

    @abstractmethod
    def chat_stream(self, request: ChatRequest) -> AsyncIterator[ContentDelta | ToolCallDelta]:
        """Yield provider-neutral deltas as the backend produces them."""
