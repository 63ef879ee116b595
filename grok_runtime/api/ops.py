from __future__ import annotations

from fastapi import APIRouter, Depends

from grok_runtime.deps import get_session_service
from grok_runtime.observability.metrics import get_runtime_metrics

router = APIRouter(prefix="/v1", tags=["ops"])

RUNTIME_VERSION = "0.1.0"


@router.get("/health")
async def health(session_service=Depends(get_session_service)):
    return {
        "ok": True,
        "version": RUNTIME_VERSION,
        "sessions": len(session_service.list_sessions()),
        "remote_tools": len(session_service.remote.tool_schemas()) if session_service.remote else 0,
        "runtime_status": "ok",
    }


@router.get("/metrics")
async def metrics():
    return get_runtime_metrics().snapshot()
