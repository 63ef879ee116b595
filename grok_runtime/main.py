from __future__ import annotations

import time
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from grok_runtime.agent.error_classifier import GrokApiError
from grok_runtime.api import ops, sessions, tool_confirmations
from grok_runtime.config import load_settings
from grok_runtime.deps import set_dependencies
from grok_runtime.errors import RuntimeApiError, error_from_exception
from grok_runtime.observability.logging import get_runtime_logger
from grok_runtime.services.session_service import SessionService
from grok_runtime.tools.mcp_manager import McpManager, load_server_configs
from grok_runtime.trace import TRACE_HEADER, current_trace_id, trace_id_from_header, trace_scope

settings = load_settings()
logger = get_runtime_logger()


@asynccontextmanager
async def lifespan(app: FastAPI):
    remote: McpManager | None = None
    configs = load_server_configs(settings.mcp_config_path)
    if configs:
        remote = McpManager(configs)
        await remote.start()
    set_dependencies(SessionService(settings, remote=remote))
    logger.info(
        "runtime started",
        extra={"model": settings.model, "endpoint": settings.base_url or settings.provider},
    )
    try:
        yield
    finally:
        if remote is not None:
            await remote.close()


app = FastAPI(title="Grok Agent Runtime", version="0.1.0", lifespan=lifespan)
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


def _error_response(exc: Exception, trace_id: str, path: str) -> JSONResponse:
    status_code, payload = error_from_exception(exc, trace_id)
    if status_code >= 500:
        logger.error(
            "unhandled error",
            exc_info=exc,
            extra={"trace_id": trace_id, "path": path, "status": status_code},
        )
    response = JSONResponse(status_code=status_code, content=payload)
    response.headers[TRACE_HEADER] = trace_id
    return response


@app.middleware("http")
async def trace_middleware(request: Request, call_next):
    trace_id = trace_id_from_header(request.headers.get(TRACE_HEADER))
    request.state.trace_id = trace_id
    started = time.monotonic()
    with trace_scope(trace_id):
        try:
            response = await call_next(request)
        except Exception as exc:  # noqa: BLE001
            # unhandled route errors surface here
            response = _error_response(exc, trace_id, request.url.path)
        logger.info(
            "http_request",
            extra={
                "path": request.url.path,
                "method": request.method,
                "status": response.status_code,
                "duration_ms": int((time.monotonic() - started) * 1000),
                "outcome": "ok" if response.status_code < 400 else "error",
            },
        )
    response.headers[TRACE_HEADER] = trace_id
    return response


@app.exception_handler(RequestValidationError)
@app.exception_handler(RuntimeApiError)
@app.exception_handler(GrokApiError)
async def runtime_exception_handler(request: Request, exc: Exception):
    trace_id = str(getattr(request.state, "trace_id", None) or current_trace_id())
    return _error_response(exc, trace_id, request.url.path)


app.include_router(sessions.router)
app.include_router(tool_confirmations.router)
app.include_router(ops.router)


def run() -> None:
    import uvicorn

    uvicorn.run(app, host=settings.runtime_host, port=settings.runtime_port)


if __name__ == "__main__":
    run()
