from __future__ import annotations

import json
from contextlib import aclosing

from fastapi import APIRouter, Depends
from sse_starlette.sse import EventSourceResponse

from grok_runtime.agent.messages import StreamingChunk
from grok_runtime.deps import get_session_service
from grok_runtime.errors import RuntimeApiError

router = APIRouter(prefix="/v1", tags=["sessions"])


def stream_as_sse(chunk: StreamingChunk) -> dict:
    return {"event": chunk.type, "data": json.dumps(chunk.to_dict(), ensure_ascii=False)}


@router.post("/sessions")
async def create_session(payload: dict | None = None, session_service=Depends(get_session_service)):
    model = str((payload or {}).get("model") or "").strip() or None
    hosted = session_service.create_session(model)
    return {"session_id": hosted.session_id, "model": hosted.model}


@router.get("/sessions/{session_id}/history")
async def session_history(session_id: str, session_service=Depends(get_session_service)):
    hosted = session_service.get(session_id)
    return {"session_id": session_id, "entries": [entry.to_dict() for entry in hosted.session.history()]}


@router.post("/sessions/{session_id}/messages")
async def send_message(session_id: str, payload: dict, session_service=Depends(get_session_service)):
    hosted = session_service.get(session_id)
    message = payload.get("message")
    if not isinstance(message, str) or not message.strip():
        raise RuntimeApiError(
            code="E_SCHEMA_INVALID",
            message="message is required",
            retryable=False,
            status_code=400,
            cause="message_missing",
        )
    hosted.begin_turn()

    if payload.get("stream"):
        async def event_generator():
            try:
                stream = hosted.agent.process_user_message_stream(hosted.session, message)
                async with aclosing(stream) as chunks:
                    async for chunk in chunks:
                        yield stream_as_sse(chunk)
            finally:
                hosted.end_turn()

        return EventSourceResponse(event_generator())

    start = len(hosted.session.chat_entries)
    try:
        response = await hosted.agent.process_user_message(hosted.session, message)
    finally:
        hosted.end_turn()
    return {
        "session_id": session_id,
        "content": response.content,
        "tool_calls": [tc.to_dict() for tc in response.tool_calls],
        "finish_reason": response.finish_reason,
        "entries": [entry.to_dict() for entry in hosted.session.chat_entries[start:]],
    }


@router.post("/sessions/{session_id}/cancel")
async def cancel_stream(session_id: str, session_service=Depends(get_session_service)):
    hosted = session_service.get(session_id)
    return {"cancelled": hosted.agent.abort_current_operation(hosted.session)}


@router.get("/sessions/{session_id}/confirmations")
async def pending_confirmations(session_id: str, session_service=Depends(get_session_service)):
    hosted = session_service.get(session_id)
    return {"confirmations": [request.to_dict() for request in hosted.confirmations.pending()]}
