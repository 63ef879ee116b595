from __future__ import annotations

from grok_runtime.services.session_service import SessionService

_session_service: SessionService | None = None


def set_dependencies(session_service: SessionService) -> None:
    global _session_service
    _session_service = session_service


def get_session_service() -> SessionService:
    if _session_service is None:
        raise RuntimeError("SessionService not initialized")
    return _session_service
