from __future__ import annotations

import asyncio
import uuid
from dataclasses import dataclass, field
from typing import Callable, Dict

from grok_runtime.errors import RuntimeApiError
from grok_runtime.observability.logging import get_runtime_logger
from grok_runtime.observability.metrics import get_runtime_metrics

logger = get_runtime_logger("confirmations")
metrics = get_runtime_metrics()

CATEGORY_FLAGS = {
    "bash": "bash_commands",
    "file": "file_operations",
}


@dataclass(slots=True)
class ConfirmationRequest:
    operation: str
    filename: str
    content: str = ""
    request_id: str = field(default_factory=lambda: f"confirm_{uuid.uuid4().hex[:8]}")

    def to_dict(self) -> dict:
        return {
            "request_id": self.request_id,
            "operation": self.operation,
            "filename": self.filename,
            "content": self.content,
        }


@dataclass(slots=True)
class ConfirmationResult:
    confirmed: bool
    feedback: str | None = None


@dataclass(slots=True)
class SessionFlags:
    file_operations: bool = False
    bash_commands: bool = False
    all_operations: bool = False


class ConfirmationService:
    """Session-scoped confirmation gate for shell-execution-class tools."""

    def __init__(
        self,
        *,
        auto_approve: bool = False,
        timeout_seconds: float = 600,
        on_request: Callable[[ConfirmationRequest], None] | None = None,
    ) -> None:
        self.auto_approve = auto_approve
        self.timeout_seconds = timeout_seconds
        self.session_flags = SessionFlags()
        self._on_request = on_request
        self._waiters: Dict[str, tuple[ConfirmationRequest, str, asyncio.Future[ConfirmationResult]]] = {}

    def is_allowed(self, category: str) -> bool:
        if self.auto_approve or self.session_flags.all_operations:
            return True
        flag = CATEGORY_FLAGS.get(category)
        return bool(flag and getattr(self.session_flags, flag))

    async def request_confirmation(self, request: ConfirmationRequest, category: str) -> ConfirmationResult:
        if self.is_allowed(category):
            return ConfirmationResult(confirmed=True)

        loop = asyncio.get_running_loop()
        fut: asyncio.Future[ConfirmationResult] = loop.create_future()
        self._waiters[request.request_id] = (request, category, fut)
        metrics.confirmations_pending += 1
        if self._on_request is not None:
            self._on_request(request)
        try:
            return await asyncio.wait_for(fut, timeout=self.timeout_seconds)
        except asyncio.TimeoutError:
            logger.warning(
                "confirmation timed out",
                extra={"call_id": request.request_id, "outcome": "timeout"},
            )
            return ConfirmationResult(confirmed=False, feedback="Confirmation timed out")
        finally:
            self._waiters.pop(request.request_id, None)
            metrics.confirmations_pending = max(metrics.confirmations_pending - 1, 0)

    def pending(self) -> list[ConfirmationRequest]:
        return [request for request, _, _ in self._waiters.values()]

    def resolve(
        self,
        request_id: str,
        confirmed: bool,
        *,
        feedback: str | None = None,
        dont_ask_again: bool = False,
    ) -> None:
        entry = self._waiters.get(request_id)
        if entry is None or entry[2].done():
            raise RuntimeApiError(
                code="E_CONFIRMATION_NOT_FOUND",
                message="Confirmation request is not pending.",
                retryable=False,
                status_code=404,
                details={"request_id": request_id},
                cause="confirmation_missing",
            )
        _, category, waiter = entry
        if confirmed and dont_ask_again:
            flag = CATEGORY_FLAGS.get(category)
            if flag:
                setattr(self.session_flags, flag, True)
        waiter.set_result(ConfirmationResult(confirmed=confirmed, feedback=feedback))

    def reset_session(self) -> None:
        self.session_flags = SessionFlags()
