"""
client.py — model transport

One logical request (buffered or streaming) against the model backend, with
classified errors, exponential backoff and provider-neutral results. The only
exception that leaves this module is GrokApiError.
"""
from __future__ import annotations

import asyncio
import os
import random
from contextlib import aclosing
from functools import partial
from typing import AsyncIterator, Awaitable, Callable

from tenacity import AsyncRetrying, RetryCallState, retry_if_exception, stop_after_attempt

from grok_runtime.agent.error_classifier import ApiErrorInfo, GrokApiError, classify_error
from grok_runtime.agent.messages import ChatResponse, Message, StreamEvent, StreamRestarted
from grok_runtime.agent.provider_router import build_provider
from grok_runtime.agent.providers.base import (
    ChatRequest,
    ProviderAdapter,
    SearchOptions,
    SearchParameters,
    ToolSchema,
)
from grok_runtime.agent.providers.openai_provider import XAI_BASE_URL
from grok_runtime.observability.logging import (
    get_runtime_logger,
    log_api_error,
    log_api_request,
    log_api_response,
)
from grok_runtime.observability.metrics import get_runtime_metrics

logger = get_runtime_logger("client")
metrics = get_runtime_metrics()

MAX_RETRIES = 3
BASE_DELAY_MS = 1000
MAX_JITTER_MS = 500
DEFAULT_MODEL = "grok-code-fast-1"
DEFAULT_MAX_TOKENS = 16384


def backoff_delay_ms(attempt: int, jitter: Callable[[], float] = random.random) -> float:
    return BASE_DELAY_MS * (2 ** attempt) + jitter() * MAX_JITTER_MS


def _max_tokens_from_env() -> int:
    try:
        value = int(os.getenv("GROK_MAX_TOKENS", ""))
    except ValueError:
        return DEFAULT_MAX_TOKENS
    return value if value > 0 else DEFAULT_MAX_TOKENS


class GrokClient:
    def __init__(
        self,
        api_key: str,
        model: str | None = None,
        base_url: str | None = None,
        *,
        provider: str = "xai",
        max_tokens: int | None = None,
        temperature: float = 0.7,
        adapter: ProviderAdapter | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        jitter: Callable[[], float] = random.random,
    ) -> None:
        self.base_url = base_url or os.getenv("GROK_BASE_URL") or None
        self.max_tokens = max_tokens or _max_tokens_from_env()
        self.temperature = temperature
        self.provider = adapter or build_provider(provider, api_key, self.base_url)
        self._model = model or DEFAULT_MODEL
        self._sleep = sleep
        self._jitter = jitter

    @property
    def current_model(self) -> str:
        return self._model

    def set_model(self, model: str) -> None:
        self._model = model

    @property
    def endpoint(self) -> str:
        return getattr(self.provider, "base_url", None) or self.base_url or XAI_BASE_URL

    async def complete(
        self,
        messages: list[Message],
        tools: list[ToolSchema] | None = None,
        model: str | None = None,
        search_options: SearchOptions | None = None,
    ) -> ChatResponse:
        request = self._build_request(messages, tools, model, search_options)
        endpoint = f"{self.endpoint}/chat (model={request.model})"

        async for attempt in self._retrying("complete"):
            with attempt:
                self._log_attempt(endpoint, request, attempt.retry_state.attempt_number - 1)
                try:
                    response = await self.provider.chat(request)
                except Exception as exc:  # noqa: BLE001
                    raise GrokApiError(self._record_failure(exc, endpoint)) from exc

        log_api_response(logger, 200, {
            "finish_reason": response.finish_reason,
            "has_tool_calls": bool(response.tool_calls),
        })
        return response

    async def complete_stream(
        self,
        messages: list[Message],
        tools: list[ToolSchema] | None = None,
        model: str | None = None,
        search_options: SearchOptions | None = None,
    ) -> AsyncIterator[StreamEvent]:
        """Yield stream events; a retry re-issues the whole request."""
        request = self._build_request(messages, tools, model, search_options)
        endpoint = f"{self.endpoint}/chat/stream (model={request.model})"

        delivered = False
        async for attempt in self._retrying("complete_stream"):
            with attempt:
                index = attempt.retry_state.attempt_number - 1
                if delivered:
                    delivered = False
                    yield StreamRestarted(attempt=index)

                self._log_attempt(endpoint, request, index)
                try:
                    async with aclosing(self.provider.chat_stream(request)) as stream:
                        async for event in stream:
                            delivered = True
                            yield event
                except Exception as exc:  # noqa: BLE001
                    raise GrokApiError(self._record_failure(exc, endpoint)) from exc

        log_api_response(logger, 200, {"stream": True})

    async def search(self, query: str, search_parameters: SearchParameters | None = None) -> ChatResponse:
        options = SearchOptions(search_parameters=search_parameters or SearchParameters(mode="on"))
        return await self.complete([Message(role="user", content=query)], [], None, options)

    def _build_request(
        self,
        messages: list[Message],
        tools: list[ToolSchema] | None,
        model: str | None,
        search_options: SearchOptions | None,
    ) -> ChatRequest:
        return ChatRequest(
            model=model or self._model,
            messages=list(messages),
            tools=list(tools or []),
            max_tokens=self.max_tokens,
            temperature=self.temperature,
            search_options=search_options,
        )

    def _log_attempt(self, endpoint: str, request: ChatRequest, attempt: int) -> None:
        metrics.model_calls_total += 1
        log_api_request(logger, "POST", endpoint, {
            "model": request.model,
            "message_count": len(request.messages),
            "has_tools": bool(request.tools),
            "attempt": attempt,
        })

    def _record_failure(self, exc: Exception, endpoint: str) -> ApiErrorInfo:
        info = classify_error(exc)
        metrics.model_failures_total += 1
        log_api_error(logger, "POST", endpoint, info.status if info.status is not None else info.code, str(exc))
        return info

    def _retrying(self, operation: str) -> AsyncRetrying:
        return AsyncRetrying(
            reraise=True,
            stop=stop_after_attempt(MAX_RETRIES + 1),
            wait=self._wait,
            retry=retry_if_exception(_is_retryable),
            sleep=self._sleep,
            before_sleep=partial(self._log_retry, operation),
        )

    def _wait(self, retry_state: RetryCallState) -> float:
        return backoff_delay_ms(retry_state.attempt_number - 1, self._jitter) / 1000

    def _log_retry(self, operation: str, retry_state: RetryCallState) -> None:
        delay_ms = round(retry_state.next_action.sleep * 1000)
        error = retry_state.outcome.exception()
        metrics.model_retries_total += 1
        logger.info(
            f"retrying {operation}() in {delay_ms}ms (attempt {retry_state.attempt_number}/{MAX_RETRIES})",
            extra={"attempt": retry_state.attempt_number, "delay_ms": delay_ms, "code": error.info.code},
        )


def _is_retryable(error: BaseException) -> bool:
    return isinstance(error, GrokApiError) and error.info.retryable
