import asyncio

import pytest

from grok_runtime.errors import RuntimeApiError
from grok_runtime.services.confirmation_service import ConfirmationRequest, ConfirmationService


def _request() -> ConfirmationRequest:
    return ConfirmationRequest(operation="Run bash command", filename="ls")


def test_confirmation_wait_and_resolve():
    seen: list[ConfirmationRequest] = []
    service = ConfirmationService(on_request=seen.append)

    async def run():
        request = _request()
        task = asyncio.create_task(service.request_confirmation(request, "bash"))
        await asyncio.sleep(0.05)
        assert [r.request_id for r in service.pending()] == [request.request_id]
        service.resolve(request.request_id, True)
        return await task

    result = asyncio.run(run())
    assert result.confirmed is True
    assert len(seen) == 1
    assert service.pending() == []


def test_confirmation_denied_with_feedback():
    service = ConfirmationService()

    async def run():
        request = _request()
        task = asyncio.create_task(service.request_confirmation(request, "bash"))
        await asyncio.sleep(0.05)
        service.resolve(request.request_id, False, feedback="not on main")
        return await task

    result = asyncio.run(run())
    assert result.confirmed is False
    assert result.feedback == "not on main"


def test_confirmation_timeout_denies():
    service = ConfirmationService(timeout_seconds=0.05)
    result = asyncio.run(service.request_confirmation(_request(), "bash"))
    assert result.confirmed is False
    assert result.feedback == "Confirmation timed out"
    assert service.pending() == []


def test_dont_ask_again_approves_later_requests():
    service = ConfirmationService()

    async def run():
        request = _request()
        task = asyncio.create_task(service.request_confirmation(request, "bash"))
        await asyncio.sleep(0.05)
        service.resolve(request.request_id, True, dont_ask_again=True)
        await task
        return await service.request_confirmation(_request(), "bash")

    assert asyncio.run(run()).confirmed is True
    assert service.session_flags.bash_commands is True
    assert service.is_allowed("file") is False

    service.reset_session()
    assert service.is_allowed("bash") is False


def test_auto_approve_skips_waiting():
    service = ConfirmationService(auto_approve=True, timeout_seconds=0.01)
    assert asyncio.run(service.request_confirmation(_request(), "bash")).confirmed is True


def test_resolve_unknown_request_raises_error():
    service = ConfirmationService()
    with pytest.raises(RuntimeApiError) as exc:
        service.resolve("confirm_missing", True)
    assert exc.value.code == "E_CONFIRMATION_NOT_FOUND"
    assert exc.value.status_code == 404
