"""Per-request trace ids, carried through a context variable so log lines pick them up."""
from __future__ import annotations

import uuid
from contextlib import contextmanager
from contextvars import ContextVar
from typing import Iterator

TRACE_HEADER = "X-Trace-Id"
MAX_TRACE_ID_LENGTH = 128

_trace_id_var: ContextVar[str | None] = ContextVar("grok_trace_id", default=None)


def new_trace_id() -> str:
    return uuid.uuid4().hex


def trace_id_from_header(value: str | None) -> str:
    """Reuse a caller-supplied id when it is short and printable, otherwise mint one."""
    candidate = (value or "").strip()
    if candidate and len(candidate) <= MAX_TRACE_ID_LENGTH and candidate.isprintable():
        return candidate
    return new_trace_id()


def peek_current_trace_id() -> str | None:
    return _trace_id_var.get()


def current_trace_id() -> str:
    return _trace_id_var.get() or new_trace_id()


@contextmanager
def trace_scope(trace_id: str) -> Iterator[str]:
    token = _trace_id_var.set(trace_id)
    try:
        yield trace_id
    finally:
        _trace_id_var.reset(token)
