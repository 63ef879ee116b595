from __future__ import annotations

from dataclasses import dataclass
from typing import Callable

from grok_runtime.agent.builtin_tools import ToolSuite, build_tool_registry
from grok_runtime.agent.client import GrokClient
from grok_runtime.agent.loop import AgentSession, GrokAgent
from grok_runtime.agent.system_prompts import build_system_prompt, load_custom_instructions
from grok_runtime.agent.tool_registry import RemoteToolServer
from grok_runtime.config import Settings
from grok_runtime.errors import RuntimeApiError
from grok_runtime.observability.logging import get_runtime_logger
from grok_runtime.services.confirmation_service import ConfirmationService

logger = get_runtime_logger("sessions")

ClientFactory = Callable[[str], GrokClient]


@dataclass(slots=True)
class HostedSession:
    """Everything one conversation owns; tool collaborators are never shared."""

    agent: GrokAgent
    session: AgentSession
    suite: ToolSuite
    confirmations: ConfirmationService
    in_flight: bool = False

    def begin_turn(self) -> None:
        """Claim the session for one turn; a second concurrent turn is rejected with 409."""
        if self.in_flight or self.session.is_streaming:
            raise RuntimeApiError(
                code="E_STREAM_IN_FLIGHT",
                message="a call is already in flight for this session",
                retryable=True,
                status_code=409,
                details={"session_id": self.session_id},
                cause="stream_in_flight",
            )
        self.in_flight = True

    def end_turn(self) -> None:
        self.in_flight = False

    @property
    def session_id(self) -> str:
        return self.session.session_id

    @property
    def model(self) -> str:
        return self.agent.client.current_model


class SessionService:
    def __init__(
        self,
        settings: Settings,
        *,
        remote: RemoteToolServer | None = None,
        client_factory: ClientFactory | None = None,
    ) -> None:
        self.settings = settings
        self.remote = remote
        self._client_factory = client_factory or self._default_client
        self._sessions: dict[str, HostedSession] = {}

    def _default_client(self, model: str) -> GrokClient:
        if not self.settings.api_key:
            raise RuntimeApiError(
                code="E_API_KEY_MISSING",
                message="No API key found. Set GROK_API_KEY or add apiKey to ~/.grok/user-settings.json.",
                retryable=False,
                status_code=400,
                cause="api_key_missing",
            )
        return GrokClient(
            self.settings.api_key,
            model,
            self.settings.base_url,
            provider=self.settings.provider,
            max_tokens=self.settings.max_tokens,
        )

    def create_session(self, model: str | None = None) -> HostedSession:
        client = self._client_factory(model or self.settings.model)
        confirmations = ConfirmationService(
            auto_approve=self.settings.auto_approve,
            timeout_seconds=self.settings.confirmation_timeout,
        )
        cwd = str(self.settings.workspace_root)
        suite = ToolSuite.create(
            confirmations,
            current_directory=cwd,
            morph_api_key=self.settings.morph_api_key,
        )
        agent = GrokAgent(
            client,
            build_tool_registry(suite, self.remote),
            max_tool_rounds=self.settings.max_tool_rounds,
        )
        system_prompt = build_system_prompt(
            has_morph_editor=suite.morph is not None,
            current_directory=cwd,
            custom_instructions=load_custom_instructions(cwd),
        )
        hosted = HostedSession(
            agent=agent,
            session=agent.new_session(system_prompt),
            suite=suite,
            confirmations=confirmations,
        )
        self._sessions[hosted.session_id] = hosted
        logger.info(
            "session created",
            extra={"session_id": hosted.session_id, "model": hosted.model},
        )
        return hosted

    def get(self, session_id: str) -> HostedSession:
        hosted = self._sessions.get(session_id)
        if hosted is None:
            raise RuntimeApiError(
                code="E_SESSION_NOT_FOUND",
                message="session not found",
                retryable=False,
                status_code=404,
                details={"session_id": session_id},
                cause="session_not_found",
            )
        return hosted

    def list_sessions(self) -> list[HostedSession]:
        return list(self._sessions.values())

    def find_confirmation_owner(self, request_id: str) -> HostedSession:
        for hosted in self._sessions.values():
            if any(req.request_id == request_id for req in hosted.confirmations.pending()):
                return hosted
        raise RuntimeApiError(
            code="E_CONFIRMATION_NOT_FOUND",
            message="Confirmation request is not pending.",
            retryable=False,
            status_code=404,
            details={"request_id": request_id},
            cause="confirmation_missing",
        )
