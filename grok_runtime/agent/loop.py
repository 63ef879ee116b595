"""
loop.py — Agent tool-calling loop

One round = one model turn plus the tool calls it requested, executed in order.
Session state lives in an explicit AgentSession; GrokAgent itself only holds the
transport, the tool registry and the round limit.
"""
from __future__ import annotations

import json
import uuid
from contextlib import aclosing
from dataclasses import dataclass, field
from typing import AsyncIterator

from grok_runtime.agent.client import GrokClient
from grok_runtime.agent.error_classifier import GrokApiError
from grok_runtime.agent.messages import (
    ChatEntry,
    ChatResponse,
    ContentDelta,
    ContentPart,
    Message,
    StreamingChunk,
    StreamRestarted,
    TextPart,
    ToolCall,
    ToolCallDelta,
    ToolCallPart,
    ToolOutput,
    ToolResult,
    ToolResultPart,
)
from grok_runtime.agent.providers.base import SearchOptions
from grok_runtime.agent.search_policy import search_options_for
from grok_runtime.agent.token_counter import estimate_text_tokens, estimate_tokens
from grok_runtime.agent.tool_registry import ToolRegistry
from grok_runtime.observability.logging import get_runtime_logger
from grok_runtime.observability.metrics import get_runtime_metrics

logger = get_runtime_logger("agent")
metrics = get_runtime_metrics()

DEFAULT_MAX_TOOL_ROUNDS = 400
MAX_ROUNDS_NOTICE = "\n\nMaximum tool execution rounds reached. Stopping to prevent infinite loops."
CANCELLED_NOTICE = "\n\n[Operation cancelled by user]"
STREAM_RESTARTED_NOTICE = "\n\n[Stream interrupted, retrying...]\n\n"
SKIPPED_TOOL_ERROR = "Tool call skipped: operation cancelled by user"


@dataclass(slots=True)
class CancellationHandle:
    cancelled: bool = False

    def cancel(self) -> None:
        self.cancelled = True


@dataclass(slots=True)
class AgentSession:
    """Conversation state for one session. History and chat entries are append-only."""

    session_id: str = field(default_factory=lambda: f"sess_{uuid.uuid4().hex[:12]}")
    messages: list[Message] = field(default_factory=list)
    chat_entries: list[ChatEntry] = field(default_factory=list)
    tool_rounds: int = 0
    cancellation: CancellationHandle | None = None

    @property
    def is_streaming(self) -> bool:
        return self.cancellation is not None

    def append_message(self, message: Message) -> None:
        self.messages.append(message)

    def record(self, entry: ChatEntry) -> None:
        self.chat_entries.append(entry)

    def history(self) -> list[ChatEntry]:
        return list(self.chat_entries)


def build_assistant_message(content: str | None, tool_calls: list[ToolCall]) -> Message:
    if not tool_calls:
        return Message(role="assistant", content=content or "")
    parts: list[ContentPart] = []
    if content:
        parts.append(TextPart(content))
    for tc in tool_calls:
        parts.append(ToolCallPart(id=tc.id, name=tc.name, input=_parse_input(tc.arguments)))
    return Message(role="assistant", content=tuple(parts))


def build_tool_result_message(tool_call: ToolCall, result: ToolResult) -> Message:
    if result.success:
        output = ToolOutput("text", result.output or "Success")
    else:
        output = ToolOutput("error-text", result.error or "Error")
    return Message(
        role="tool",
        content=(ToolResultPart(id=tool_call.id, name=tool_call.name, output=output),),
    )


def _parse_input(arguments: str) -> dict:
    try:
        parsed = json.loads(arguments or "{}")
    except json.JSONDecodeError:
        return {}
    return parsed if isinstance(parsed, dict) else {}


def _tool_result_text(result: ToolResult) -> str:
    if result.success:
        return result.output or "Success"
    return result.error or "Error occurred"


class GrokAgent:
    def __init__(
        self,
        client: GrokClient,
        tools: ToolRegistry,
        *,
        max_tool_rounds: int = DEFAULT_MAX_TOOL_ROUNDS,
    ) -> None:
        if max_tool_rounds < 1:
            raise ValueError("max_tool_rounds must be at least 1")
        self.client = client
        self.tools = tools
        self.max_tool_rounds = max_tool_rounds

    def new_session(self, system_prompt: str | None = None, session_id: str | None = None) -> AgentSession:
        session = AgentSession(session_id=session_id) if session_id else AgentSession()
        if system_prompt:
            session.append_message(Message(role="system", content=system_prompt))
        return session

    def search_options_for(self, text: str) -> SearchOptions | None:
        return search_options_for(self.client.current_model, text)

    def abort_current_operation(self, session: AgentSession) -> bool:
        if session.cancellation is None:
            return False
        session.cancellation.cancel()
        logger.info("stream cancellation requested", extra={"session_id": session.session_id})
        return True

    async def process_user_message(self, session: AgentSession, text: str) -> ChatResponse:
        """Run rounds until the model stops calling tools or the round limit is hit.

        Raises:
            GrokApiError: the transport gave up; an error entry is recorded first.
        """
        self._start_turn(session, text)
        tools = self.tools.to_schemas()
        search_options = self.search_options_for(text)

        response: ChatResponse | None = None
        try:
            while session.tool_rounds < self.max_tool_rounds:
                response = await self.client.complete(session.messages, tools, None, search_options)
                session.append_message(build_assistant_message(response.content, response.tool_calls))
                session.record(ChatEntry(
                    type="assistant",
                    content=response.content or "",
                    tool_calls=list(response.tool_calls) or None,
                ))
                if not response.tool_calls:
                    return response

                session.tool_rounds += 1
                for tc in response.tool_calls:
                    await self._execute_tool(session, tc)
        except GrokApiError as exc:
            session.record(ChatEntry(type="assistant", content=f"\n\nAPI Error: {exc.info.message}"))
            raise

        logger.warning(
            f"tool round limit {self.max_tool_rounds} reached",
            extra={"session_id": session.session_id, "outcome": "max_rounds"},
        )
        session.record(ChatEntry(type="assistant", content=MAX_ROUNDS_NOTICE))
        return response

    async def process_user_message_stream(self, session: AgentSession, text: str) -> AsyncIterator[StreamingChunk]:
        """Stream one user turn; always ends with exactly one ``done`` chunk.

        Raises:
            RuntimeError: another stream is already in flight on this session.
        """
        if session.cancellation is not None:
            raise RuntimeError(f"session {session.session_id} already has a streaming call in flight")
        handle = CancellationHandle()
        session.cancellation = handle

        try:
            self._start_turn(session, text)
            input_tokens = estimate_tokens(session.messages)
            yield StreamingChunk(type="token_count", token_count=input_tokens)

            tools = self.tools.to_schemas()
            search_options = self.search_options_for(text)
            output_tokens = 0

            while session.tool_rounds < self.max_tool_rounds:
                if handle.cancelled:
                    for chunk in self._cancelled(session):
                        yield chunk
                    return

                content = ""
                accumulated: dict[str, list[str]] = {}
                stream = self.client.complete_stream(session.messages, tools, None, search_options)
                async with aclosing(stream) as events:
                    async for event in events:
                        if isinstance(event, StreamRestarted):
                            content = ""
                            accumulated.clear()
                            yield StreamingChunk(type="content", content=STREAM_RESTARTED_NOTICE)
                        elif isinstance(event, ContentDelta):
                            content += event.text
                            output_tokens += estimate_text_tokens(event.text)
                            yield StreamingChunk(type="content", content=event.text)
                            yield StreamingChunk(type="token_count", token_count=input_tokens + output_tokens)
                        elif isinstance(event, ToolCallDelta):
                            existing = accumulated.get(event.id)
                            if existing is None:
                                accumulated[event.id] = [event.name, event.arguments]
                            else:
                                existing[0] = existing[0] or event.name
                                existing[1] += event.arguments

                        # checked before pulling the next event; a pulled delta is always delivered
                        if handle.cancelled:
                            for chunk in self._cancelled(session):
                                yield chunk
                            return

                tool_calls = [
                    ToolCall(id=call_id, name=name, arguments=arguments)
                    for call_id, (name, arguments) in accumulated.items()
                ]
                if tool_calls:
                    yield StreamingChunk(type="tool_calls", tool_calls=tool_calls)

                session.append_message(build_assistant_message(content or None, tool_calls))
                session.record(ChatEntry(
                    type="assistant",
                    content=content,
                    tool_calls=tool_calls or None,
                    is_streaming=True,
                ))

                if not tool_calls:
                    yield StreamingChunk(type="done")
                    return

                session.tool_rounds += 1
                for index, tc in enumerate(tool_calls):
                    if handle.cancelled:
                        # every tool-call part keeps a matching result
                        for skipped in tool_calls[index:]:
                            session.append_message(build_tool_result_message(
                                skipped, ToolResult(success=False, error=SKIPPED_TOOL_ERROR)
                            ))
                        for chunk in self._cancelled(session):
                            yield chunk
                        return
                    result = await self._execute_tool(session, tc)
                    yield StreamingChunk(type="tool_result", tool_call=tc, tool_result=result)

                input_tokens = estimate_tokens(session.messages)
                output_tokens = 0
                yield StreamingChunk(type="token_count", token_count=input_tokens)

            session.record(ChatEntry(type="assistant", content=MAX_ROUNDS_NOTICE))
            yield StreamingChunk(type="content", content=MAX_ROUNDS_NOTICE)
            yield StreamingChunk(type="done")
        except Exception as exc:  # noqa: BLE001
            if handle.cancelled:
                for chunk in self._cancelled(session):
                    yield chunk
                return
            if isinstance(exc, GrokApiError):
                message = f"\n\nAPI Error: {exc.info.message}"
            else:
                logger.error(
                    "streaming turn failed",
                    exc_info=True,
                    extra={"session_id": session.session_id, "outcome": "error"},
                )
                message = f"\n\nSorry, I encountered an error: {exc}"
            session.record(ChatEntry(type="assistant", content=message))
            yield StreamingChunk(type="content", content=message)
            yield StreamingChunk(type="done")
        finally:
            if session.cancellation is handle:
                session.cancellation = None

    def _start_turn(self, session: AgentSession, text: str) -> None:
        session.record(ChatEntry(type="user", content=text))
        session.append_message(Message(role="user", content=text))
        session.tool_rounds = 0

    async def _execute_tool(self, session: AgentSession, tool_call: ToolCall) -> ToolResult:
        result = await self.tools.execute(tool_call)
        session.append_message(build_tool_result_message(tool_call, result))
        session.record(ChatEntry(
            type="tool_result",
            content=_tool_result_text(result),
            tool_call=tool_call,
            tool_result=result,
        ))
        return result

    def _cancelled(self, session: AgentSession) -> list[StreamingChunk]:
        metrics.streams_cancelled_total += 1
        logger.info("stream cancelled", extra={"session_id": session.session_id, "outcome": "cancelled"})
        return [
            StreamingChunk(type="content", content=CANCELLED_NOTICE),
            StreamingChunk(type="done"),
        ]
