"""Provider adapters for the AI gateway."""

from __future__ import annotations

import logging
from pathlib import Path

from agentrelay.config import find_api_key
from agentrelay.models import Settings

from .anthropic import AnthropicProvider
from .base import POLICY_FINISH_REASONS, ProviderAdapter, ProviderResponse, TokenUsage
from .openai_compat import OpenAICompatibleProvider

logger = logging.getLogger(__name__)

__all__ = [
    "POLICY_FINISH_REASONS",
    "AnthropicProvider",
    "OpenAICompatibleProvider",
    "ProviderAdapter",
    "ProviderResponse",
    "TokenUsage",
    "build_providers",
]


def build_providers(settings: Settings, config_path: Path | None = None) -> list[ProviderAdapter]:
    """Create adapters for every configured provider, in priority order.

    Providers without credentials are skipped.
    """
    providers: list[ProviderAdapter] = []
    for name in settings.provider_priority:
        api_key = find_api_key(name, config_path)
        if not api_key:
            logger.info(f"Provider {name} has no API key configured, skipping")
            continue
        model = settings.models.get(name)
        if name == "anthropic":
            providers.append(
                AnthropicProvider(
                    api_key=api_key,
                    model=model or "claude-sonnet-4-20250514",
                    timeout=settings.request_timeout,
                )
            )
        elif name == "openai":
            providers.append(
                OpenAICompatibleProvider(
                    api_key=api_key,
                    model=model or "gpt-4o-mini",
                    base_url=settings.openai_base_url,
                    timeout=settings.request_timeout,
                )
            )
        else:
            logger.warning(f"Unknown provider {name} in provider_priority, skipping")
    return providers
