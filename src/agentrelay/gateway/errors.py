"""Error classification and handling for AgentRelay provider calls."""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class ErrorCategory(str, Enum):
    """Classification of provider errors for retry and fallback decisions."""

    RATE_LIMIT = "RATE_LIMIT"  # Retry after a long pause
    QUOTA_EXCEEDED = "QUOTA_EXCEEDED"  # Don't retry: billing, daily limits
    AUTH_ERROR = "AUTH_ERROR"  # Don't retry: bad or missing key
    NETWORK_ERROR = "NETWORK_ERROR"  # Retry: timeouts, connection resets
    SERVER_ERROR = "SERVER_ERROR"  # Retry: 5xx
    CLIENT_ERROR = "CLIENT_ERROR"  # Don't retry: other 4xx, policy blocks
    CIRCUIT_OPEN = "CIRCUIT_OPEN"  # Provider skipped, breaker is open
    UNKNOWN_ERROR = "UNKNOWN_ERROR"  # Retry


@dataclass(frozen=True)
class ErrorClassification:
    """Outcome of classifying a single error."""

    category: ErrorCategory
    retryable: bool
    suggested_delay: float | None  # Seconds


@dataclass
class AgentRelayError(Exception):
    """Base error with classification and context."""

    message: str
    category: ErrorCategory = ErrorCategory.UNKNOWN_ERROR
    retryable: bool = True
    retry_after: float | None = None  # Seconds to wait before retry
    context: dict[str, Any] = field(default_factory=dict)

    def __str__(self) -> str:
        return f"[{self.category.value}] {self.message}"

    def __post_init__(self) -> None:
        super().__init__(self.message)


@dataclass
class ProviderError(AgentRelayError):
    """Error raised by a provider adapter.

    The category is left unset so the classifier can derive it from the
    status code and message.
    """

    provider: str | None = None
    status_code: int | None = None

    def __str__(self) -> str:
        prefix = f"{self.provider}: " if self.provider else ""
        status = f" (HTTP {self.status_code})" if self.status_code else ""
        return f"{prefix}{self.message}{status}"


@dataclass
class ProviderResponseError(AgentRelayError):
    """A provider answered, but with nothing usable (empty or blocked)."""

    provider: str | None = None
    finish_reason: str | None = None


@dataclass
class CircuitOpenError(AgentRelayError):
    """Raised when circuit breaker is open."""

    def __init__(self, message: str) -> None:
        super().__init__(
            message=message,
            category=ErrorCategory.CIRCUIT_OPEN,
            retryable=False,
        )


@dataclass
class ProviderFailure:
    """One provider's failure inside an aggregated gateway call."""

    provider: str
    category: ErrorCategory
    error: str

    def to_dict(self) -> dict[str, str]:
        """Convert to dictionary."""
        return {"provider": self.provider, "category": self.category.value, "error": self.error}


class AllProvidersFailedError(AgentRelayError):
    """Every provider in the priority list failed for one call."""

    def __init__(self, failures: list[ProviderFailure]) -> None:
        self.failures = failures
        summary = "; ".join(f"{f.provider} [{f.category.value}] {f.error}" for f in failures)
        super().__init__(
            message=f"All AI providers failed: {summary or 'no providers configured'}",
            category=failures[-1].category if failures else ErrorCategory.AUTH_ERROR,
            retryable=any(_RULES_RETRYABLE.get(f.category, True) for f in failures),
            context={"failures": [f.to_dict() for f in failures]},
        )


class UsageLimitError(AgentRelayError):
    """The caller exceeded a daily usage ceiling."""

    def __init__(
        self, reason: str, current: float | None = None, limit: float | None = None
    ) -> None:
        super().__init__(
            message=f"Usage limit exceeded: {reason}",
            category=ErrorCategory.QUOTA_EXCEEDED,
            retryable=False,
            context={"current": current, "limit": limit},
        )


_RULES_RETRYABLE: dict[ErrorCategory, bool] = {
    ErrorCategory.RATE_LIMIT: True,
    ErrorCategory.QUOTA_EXCEEDED: False,
    ErrorCategory.AUTH_ERROR: False,
    ErrorCategory.NETWORK_ERROR: True,
    ErrorCategory.SERVER_ERROR: True,
    ErrorCategory.CLIENT_ERROR: False,
    ErrorCategory.CIRCUIT_OPEN: False,
    ErrorCategory.UNKNOWN_ERROR: True,
}

_RATE_LIMIT_PHRASES = ("rate limit", "rate_limit", "ratelimit", "too many requests")
_QUOTA_PHRASES = (
    "quota",
    "billing",
    "insufficient_quota",
    "exceeded your current",
    "credit balance",
)
_AUTH_PHRASES = ("unauthorized", "invalid api key", "invalid x-api-key", "incorrect api key")
_NETWORK_PHRASES = (
    "timeout",
    "timed out",
    "network",
    "connection",
    "econnreset",
    "econnrefused",
    "socket hang up",
    "dns",
    "unreachable",
)


def _status_code(error: BaseException) -> int | None:
    """Extract an HTTP status code from a provider or SDK exception."""
    status = getattr(error, "status_code", None)
    if status is None:
        status = getattr(error, "status", None)
    if status is None:
        response = getattr(error, "response", None)
        status = getattr(response, "status_code", None)
    if isinstance(status, int):
        return status
    # Fall back to a code quoted in the message, e.g. "[429 Too Many Requests]"
    match = re.search(r"\b([45]\d\d)\b", str(error))
    return int(match.group(1)) if match else None


def classify_error(error: BaseException) -> ErrorClassification:
    """Classify a raw provider error.

    Rules are applied in priority order: rate limit, quota, auth, network,
    server, client, unknown. Errors that already carry a category other than
    UNKNOWN_ERROR keep it.

    Args:
        error: The exception raised by a provider call.

    Returns:
        ErrorClassification with category, retryability and suggested delay.
    """
    if (
        isinstance(error, AgentRelayError)
        and not isinstance(error, ProviderError)
        and error.category != ErrorCategory.UNKNOWN_ERROR
    ):
        return ErrorClassification(error.category, error.retryable, error.retry_after)

    status = _status_code(error)
    message = str(error).lower()

    if status == 429 or any(p in message for p in _RATE_LIMIT_PHRASES):
        return ErrorClassification(ErrorCategory.RATE_LIMIT, True, 60.0)

    if any(p in message for p in _QUOTA_PHRASES):
        return ErrorClassification(ErrorCategory.QUOTA_EXCEEDED, False, None)

    if status == 401 or any(p in message for p in _AUTH_PHRASES):
        return ErrorClassification(ErrorCategory.AUTH_ERROR, False, None)

    if isinstance(error, TimeoutError | ConnectionError) or any(
        p in message for p in _NETWORK_PHRASES
    ):
        return ErrorClassification(ErrorCategory.NETWORK_ERROR, True, 5.0)

    if status is not None and status >= 500:
        return ErrorClassification(ErrorCategory.SERVER_ERROR, True, 10.0)

    if status is not None and 400 <= status < 500:
        return ErrorClassification(ErrorCategory.CLIENT_ERROR, False, None)

    return ErrorClassification(ErrorCategory.UNKNOWN_ERROR, True, 5.0)


def is_retryable(category: ErrorCategory) -> bool:
    """Whether errors of this category are retried locally."""
    return _RULES_RETRYABLE.get(category, True)


_FAILURE_MESSAGES: dict[ErrorCategory, str] = {
    ErrorCategory.RATE_LIMIT: "The AI provider is rate limiting requests. Try again shortly.",
    ErrorCategory.QUOTA_EXCEEDED: "The AI usage quota has been reached. Check your plan or limits.",
    ErrorCategory.AUTH_ERROR: "The AI provider rejected the API key. Check your credentials.",
    ErrorCategory.NETWORK_ERROR: "The AI provider could not be reached or did not answer in time.",
    ErrorCategory.SERVER_ERROR: "The AI provider is having problems. Please try again later.",
    ErrorCategory.CLIENT_ERROR: "The AI provider refused the request.",
    ErrorCategory.CIRCUIT_OPEN: "The AI provider is temporarily disabled after repeated failures.",
    ErrorCategory.UNKNOWN_ERROR: "Something went wrong while generating this step.",
}


def describe_failure(category: ErrorCategory | str | None) -> str:
    """Plain-language message for a failure category."""
    if isinstance(category, str):
        try:
            category = ErrorCategory(category)
        except ValueError:
            return _FAILURE_MESSAGES[ErrorCategory.UNKNOWN_ERROR]
    if category is None:
        return _FAILURE_MESSAGES[ErrorCategory.UNKNOWN_ERROR]
    return _FAILURE_MESSAGES[category]
