"""AI service: usage limits, throttling and provider fallback in one call."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any

from agentrelay.models import Settings

from .errors import UsageLimitError
from .gateway import CallOptions, GatewayResponse, ProviderGateway
from .providers import build_providers
from .throttler import RequestThrottler
from .usage import CounterStore, UsageTracker

logger = logging.getLogger(__name__)


class AIService:
    """Gateway front end used by the step executor.

    ``call`` checks the caller's daily limits, waits for the caller's
    throttle slot, runs the gateway and records usage. It has the same
    signature as ``ProviderGateway.call`` so either can drive a step.
    """

    def __init__(
        self,
        gateway: ProviderGateway,
        throttler: RequestThrottler | None = None,
        usage: UsageTracker | None = None,
    ) -> None:
        self.gateway = gateway
        self.throttler = throttler or RequestThrottler()
        self.usage = usage or UsageTracker()

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        counter_store: CounterStore | None = None,
        config_path: Path | None = None,
    ) -> AIService:
        """Build the service with providers for every configured credential."""
        providers = build_providers(settings, config_path)
        return cls(
            gateway=ProviderGateway.from_settings(settings, providers),
            throttler=RequestThrottler(settings.throttle),
            usage=UsageTracker(counter_store, settings.usage_limits),
        )

    async def call(self, prompt: str, options: CallOptions | None = None) -> GatewayResponse:
        """Run one limited, throttled gateway call.

        Raises:
            UsageLimitError: If the caller is over a daily limit.
            AllProvidersFailedError: If every provider failed.
        """
        options = options or CallOptions()
        user_id = options.user_id or "anonymous"

        check = await self.usage.check_limits(user_id)
        if not check.allowed:
            raise UsageLimitError(check.reason or "limit reached", check.current, check.limit)

        response = await self.throttler.enqueue(user_id, self.gateway.call, prompt, options)

        await self.usage.record(
            user_id, response.provider, response.usage.total_tokens, response.cost_usd
        )
        return response

    def get_stats(self) -> dict[str, Any]:
        """Gateway stats plus throttler key count."""
        return {**self.gateway.get_stats(), "throttled_keys": self.throttler.active_keys}

    def start(self) -> None:
        """Start background maintenance. Requires a running event loop."""
        self.throttler.start()

    async def close(self) -> None:
        """Stop background maintenance and close provider clients."""
        await self.throttler.close()
        await self.gateway.close()
