"""Bounded exponential-backoff retry for a single provider call."""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING, Any, TypeVar

from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
)

from agentrelay.models import RetryConfig

from .errors import classify_error

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

logger = logging.getLogger(__name__)

T = TypeVar("T")


class RetryPolicy:
    """Retries a provider call on retryable errors.

    Non-retryable errors (see ``classify_error``) propagate immediately. The
    delay before retry ``n`` (0-indexed) is
    ``min(max_delay, base_delay * multiplier ** n)``.
    """

    def __init__(
        self,
        config: RetryConfig | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        """Initialize retry policy.

        Args:
            config: Retry configuration, defaults to ``RetryConfig()``.
            sleep: Coroutine used to wait between attempts.
        """
        self.config = config or RetryConfig()
        self._sleep = sleep

    def _log_retry(self, retry_state: RetryCallState) -> None:
        exc = retry_state.outcome.exception() if retry_state.outcome else None
        delay = retry_state.next_action.sleep if retry_state.next_action else 0
        logger.debug(
            f"Attempt {retry_state.attempt_number} failed ({exc}), retrying in {delay:.1f}s"
        )

    async def execute(
        self,
        func: Callable[..., Awaitable[T]],
        *args: Any,
        **kwargs: Any,
    ) -> T:
        """Call ``func`` with retry.

        Args:
            func: Async function to call.
            *args: Positional arguments for func.
            **kwargs: Keyword arguments for func.

        Returns:
            Result of the first successful call.

        Raises:
            Exception: The last error once retries are exhausted, or the
                first non-retryable error.
        """
        retryer = AsyncRetrying(
            stop=stop_after_attempt(self.config.max_retries + 1),
            wait=wait_exponential(
                multiplier=self.config.base_delay,
                exp_base=self.config.multiplier,
                max=self.config.max_delay,
            ),
            retry=retry_if_exception(lambda exc: classify_error(exc).retryable),
            before_sleep=self._log_retry,
            sleep=self._sleep,
            reraise=True,
        )

        async for attempt in retryer:
            with attempt:
                return await func(*args, **kwargs)

        raise RuntimeError("Retry loop exited without a result")  # pragma: no cover


def calculate_backoff(
    attempt: int,
    base_delay: float,
    max_delay: float,
    multiplier: float,
) -> float:
    """Calculate delay before the next retry.

    Args:
        attempt: Retry number (0-indexed).
        base_delay: Delay before the first retry, in seconds.
        max_delay: Upper bound in seconds.
        multiplier: Growth factor per retry.

    Returns:
        Delay in seconds.
    """
    return min(max_delay, base_delay * (multiplier**attempt))
