from __future__ import annotations

from grok_runtime.agent.providers.anthropic_provider import AnthropicProvider
from grok_runtime.agent.providers.base import ProviderAdapter
from grok_runtime.agent.providers.openai_provider import OpenAIProvider

OPENAI_COMPATIBLE_PROVIDERS = {
    "xai",
    "grok",
    "openai",
    "custom",
}

OPENAI_BASE_URL = "https://api.openai.com/v1"


def build_provider(provider: str, api_key: str, base_url: str | None = None) -> ProviderAdapter:
    normalized = provider.strip().lower()
    if normalized == "openai" and not base_url:
        base_url = OPENAI_BASE_URL
    if normalized in OPENAI_COMPATIBLE_PROVIDERS:
        return OpenAIProvider(api_key=api_key, base_url=base_url)
    if normalized == "anthropic":
        return AnthropicProvider(api_key=api_key, base_url=base_url)
    raise ValueError(f"Unsupported provider: {provider}")
