"""AI provider gateway: classification, breakers, retry, throttling, usage."""

from .circuit_breaker import CircuitBreaker, CircuitState
from .errors import (
    AgentRelayError,
    AllProvidersFailedError,
    CircuitOpenError,
    ErrorCategory,
    ErrorClassification,
    ProviderError,
    ProviderFailure,
    ProviderResponseError,
    UsageLimitError,
    classify_error,
    describe_failure,
)
from .gateway import CallOptions, GatewayResponse, ProviderGateway, max_tokens_for
from .retry import RetryPolicy, calculate_backoff
from .service import AIService
from .throttler import RequestThrottler
from .usage import CounterStore, InMemoryCounterStore, LimitCheck, UsageCounters, UsageTracker

__all__ = [
    "AIService",
    "AgentRelayError",
    "AllProvidersFailedError",
    "CallOptions",
    "CircuitBreaker",
    "CircuitOpenError",
    "CircuitState",
    "CounterStore",
    "ErrorCategory",
    "ErrorClassification",
    "GatewayResponse",
    "InMemoryCounterStore",
    "LimitCheck",
    "ProviderError",
    "ProviderFailure",
    "ProviderGateway",
    "ProviderResponseError",
    "RequestThrottler",
    "RetryPolicy",
    "UsageCounters",
    "UsageLimitError",
    "UsageTracker",
    "calculate_backoff",
    "classify_error",
    "describe_failure",
    "max_tokens_for",
]
