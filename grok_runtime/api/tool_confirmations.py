from __future__ import annotations

from fastapi import APIRouter, Depends

from grok_runtime.deps import get_session_service
from grok_runtime.errors import RuntimeApiError
from grok_runtime.observability.logging import get_runtime_logger

router = APIRouter(prefix="/v1", tags=["tool-confirmations"])
logger = get_runtime_logger("confirmations")


@router.post("/tool-confirmations")
async def create_tool_confirmation(payload: dict, session_service=Depends(get_session_service)):
    request_id = str(payload.get("request_id") or "").strip()
    if not request_id or "confirmed" not in payload:
        raise RuntimeApiError(
            code="E_SCHEMA_INVALID",
            message="request_id and confirmed are required",
            retryable=False,
            status_code=400,
            cause="confirmation_payload_invalid",
        )
    confirmed = bool(payload["confirmed"])
    hosted = session_service.find_confirmation_owner(request_id)
    hosted.confirmations.resolve(
        request_id,
        confirmed,
        feedback=payload.get("feedback"),
        dont_ask_again=bool(payload.get("dont_ask_again", False)),
    )
    logger.info(
        "tool_confirmation",
        extra={
            "session_id": hosted.session_id,
            "call_id": request_id,
            "outcome": "approved" if confirmed else "denied",
        },
    )
    return {"ok": True}
