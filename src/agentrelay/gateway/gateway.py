"""Ordered provider fallback with per-provider circuit breakers and retry."""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any

from agentrelay.models import CircuitBreakerConfig, RetryConfig, Settings

from .circuit_breaker import CircuitBreaker
from .errors import (
    AllProvidersFailedError,
    ErrorCategory,
    ProviderFailure,
    ProviderResponseError,
    classify_error,
)
from .providers.base import ProviderAdapter, ProviderResponse, TokenUsage
from .retry import RetryPolicy

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable, Sequence

logger = logging.getLogger(__name__)

MAX_TOKENS_CEILING = 8000
TOKENS_PER_COMPLEXITY = 2000


def max_tokens_for(complexity: int) -> int:
    """Token budget for a 1-4 complexity level."""
    level = max(1, min(4, complexity))
    return min(MAX_TOKENS_CEILING, TOKENS_PER_COMPLEXITY * level)


@dataclass
class CallOptions:
    """Per-call options for the gateway."""

    max_tokens: int | None = None
    temperature: float | None = None
    complexity: int = 2
    user_id: str = "anonymous"
    providers: list[str] | None = None  # Overrides the gateway priority for this call


@dataclass
class GatewayResponse:
    """Successful gateway call."""

    content: str
    provider: str
    usage: TokenUsage = field(default_factory=TokenUsage)
    model: str | None = None
    finish_reason: str | None = None
    cost_usd: float = 0.0
    failures: list[ProviderFailure] = field(default_factory=list)


@dataclass
class ProviderHealth:
    """Health bookkeeping for one provider."""

    healthy: bool = True
    last_check: datetime | None = None
    error_count: int = 0
    quota_exhausted: bool = False
    last_error: str | None = None

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "healthy": self.healthy,
            "last_check": self.last_check.isoformat() if self.last_check else None,
            "error_count": self.error_count,
            "quota_exhausted": self.quota_exhausted,
            "last_error": self.last_error,
        }


class ProviderGateway:
    """Tries providers in priority order until one answers.

    Each provider call runs through that provider's circuit breaker, which
    wraps the retry policy, which wraps the adapter. Empty or
    policy-rejected completions count as failures.
    """

    def __init__(
        self,
        providers: Sequence[ProviderAdapter],
        retry_config: RetryConfig | None = None,
        breaker_configs: dict[str, CircuitBreakerConfig] | None = None,
        temperature: float = 0.7,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        """Initialize the gateway.

        Args:
            providers: Adapters in default priority order.
            retry_config: Retry settings shared by all providers.
            breaker_configs: Breaker settings by provider name. Missing
                entries get 5/60s for the first provider, 3/30s for the rest.
            temperature: Default sampling temperature.
            sleep: Coroutine used for retry backoff.
            clock: Monotonic clock used by the breakers.
        """
        self._providers: dict[str, ProviderAdapter] = {p.name: p for p in providers}
        self._priority: list[str] = [p.name for p in providers]
        self._retry = RetryPolicy(retry_config, sleep=sleep)
        self.temperature = temperature

        breaker_configs = breaker_configs or {}
        self._breakers: dict[str, CircuitBreaker] = {}
        self._health: dict[str, ProviderHealth] = {}
        for position, name in enumerate(self._priority):
            config = breaker_configs.get(name) or Settings().breaker_config_for(position)
            self._breakers[name] = CircuitBreaker(
                name=name,
                failure_threshold=config.failure_threshold,
                reset_timeout=config.reset_timeout,
                monitoring_period=config.monitoring_period,
                clock=clock,
            )
            self._health[name] = ProviderHealth()

    @classmethod
    def from_settings(
        cls, settings: Settings, providers: Sequence[ProviderAdapter]
    ) -> ProviderGateway:
        """Build a gateway with breaker thresholds assigned by priority position."""
        return cls(
            providers,
            retry_config=settings.retry,
            breaker_configs={
                p.name: settings.breaker_config_for(i) for i, p in enumerate(providers)
            },
            temperature=settings.temperature,
        )

    @property
    def priority(self) -> list[str]:
        return list(self._priority)

    def breaker(self, provider: str) -> CircuitBreaker:
        return self._breakers[provider]

    def set_provider_priority(self, names: Sequence[str]) -> None:
        """Replace the provider order.

        Raises:
            ValueError: If a name is not a configured provider.
        """
        unknown = [n for n in names if n not in self._providers]
        if unknown:
            raise ValueError(f"Unknown providers: {', '.join(unknown)}")
        self._priority = list(names)
        logger.info(f"Provider priority set to {self._priority}")

    def reset_circuit_breakers(self) -> None:
        """Force every breaker CLOSED, e.g. after credentials were replaced."""
        for breaker in self._breakers.values():
            breaker.reset()
        for health in self._health.values():
            health.healthy = True
            health.quota_exhausted = False
            health.error_count = 0

    async def call(self, prompt: str, options: CallOptions | None = None) -> GatewayResponse:
        """Generate a completion from the first provider that succeeds.

        Args:
            prompt: Prompt text.
            options: Token budget, temperature and priority override.

        Returns:
            GatewayResponse from the successful provider.

        Raises:
            AllProvidersFailedError: If every provider failed or none is configured.
        """
        options = options or CallOptions()
        max_tokens = options.max_tokens or max_tokens_for(options.complexity)
        temperature = self.temperature if options.temperature is None else options.temperature
        order = options.providers or self._priority

        failures: list[ProviderFailure] = []
        for name in order:
            provider = self._providers.get(name)
            if provider is None:
                continue
            try:
                response = await self._breakers[name].execute(
                    self._retry.execute, self._invoke, provider, prompt, max_tokens, temperature
                )
            except Exception as e:
                classification = classify_error(e)
                failures.append(ProviderFailure(name, classification.category, str(e)))
                self._record_failure(name, classification.category, str(e))
                logger.warning(f"Provider {name} failed [{classification.category.value}]: {e}")
                continue

            self._record_success(name)
            return GatewayResponse(
                content=response.content,
                provider=name,
                usage=response.usage,
                model=response.model,
                finish_reason=response.finish_reason,
                cost_usd=response.cost_usd,
                failures=failures,
            )

        logger.error(f"All providers failed for prompt of {len(prompt)} chars")
        raise AllProvidersFailedError(failures)

    async def _invoke(
        self, provider: ProviderAdapter, prompt: str, max_tokens: int, temperature: float
    ) -> ProviderResponse:
        response = await provider.invoke(prompt, max_tokens, temperature)
        if response.policy_rejected:
            raise ProviderResponseError(
                message=f"Response blocked by provider policy ({response.finish_reason})",
                category=ErrorCategory.CLIENT_ERROR,
                retryable=False,
                provider=provider.name,
                finish_reason=response.finish_reason,
            )
        if not response.content or not response.content.strip():
            raise ProviderResponseError(
                message="Empty response from provider",
                provider=provider.name,
                finish_reason=response.finish_reason,
            )
        return response

    def _record_success(self, name: str) -> None:
        health = self._health[name]
        health.healthy = True
        health.quota_exhausted = False
        health.last_check = datetime.now(UTC)

    def _record_failure(self, name: str, category: ErrorCategory, message: str) -> None:
        health = self._health[name]
        health.last_check = datetime.now(UTC)
        health.last_error = message
        if category == ErrorCategory.CIRCUIT_OPEN:
            health.healthy = False
            return
        health.error_count += 1
        health.healthy = False
        if category == ErrorCategory.QUOTA_EXCEEDED:
            health.quota_exhausted = True

    def get_stats(self) -> dict[str, Any]:
        """Provider priority plus health and breaker state per provider."""
        return {
            "priority": self.priority,
            "providers": {
                name: {**self._health[name].to_dict(), "circuit": self._breakers[name].get_stats()}
                for name in self._providers
            },
        }

    async def close(self) -> None:
        """Close every provider's network client."""
        for provider in self._providers.values():
            await provider.close()
