"""Circuit breaker guarding calls to a single AI provider."""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum
from typing import TYPE_CHECKING, Any, TypeVar

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

from .errors import CircuitOpenError

logger = logging.getLogger(__name__)

T = TypeVar("T")


class CircuitState(str, Enum):
    """State of a circuit breaker."""

    CLOSED = "CLOSED"  # Normal operation
    OPEN = "OPEN"  # Failing, reject requests
    HALF_OPEN = "HALF_OPEN"  # One trial call allowed


@dataclass
class CircuitBreaker:
    """Circuit breaker for one provider.

    The breaker counts consecutive failures and opens when the failure
    threshold is reached. While open, calls are rejected without invoking
    the wrapped function until ``reset_timeout`` seconds have passed; then a
    single trial call is let through (HALF_OPEN). A successful trial closes
    the circuit, a failed one opens it again.

    Fallback to other providers is the gateway's job, not the breaker's.

    Example:
        ```python
        breaker = CircuitBreaker("anthropic", failure_threshold=5, reset_timeout=60)
        response = await breaker.execute(provider.invoke, prompt, 4000, 0.7)
        ```
    """

    name: str
    failure_threshold: int = 5  # Consecutive failures before opening
    reset_timeout: float = 60.0  # Seconds before a trial call
    monitoring_period: float = 300.0  # Reported only
    clock: Callable[[], float] = field(default=time.monotonic, repr=False)

    state: CircuitState = field(default=CircuitState.CLOSED, init=False)
    failure_count: int = field(default=0, init=False)
    success_count: int = field(default=0, init=False)
    next_attempt_at: float | None = field(default=None, init=False)
    last_failure_time: datetime | None = field(default=None, init=False)
    _trial_in_flight: bool = field(default=False, init=False, repr=False)
    _lock: asyncio.Lock = field(default_factory=asyncio.Lock, init=False, repr=False)

    async def execute(
        self,
        func: Callable[..., Awaitable[T]],
        *args: Any,
        **kwargs: Any,
    ) -> T:
        """Execute function through circuit breaker.

        Args:
            func: Async function to call.
            *args: Positional arguments for func.
            **kwargs: Keyword arguments for func.

        Returns:
            Result of func.

        Raises:
            CircuitOpenError: If circuit is open (func is not called).
            Exception: Any exception from func, unchanged.
        """
        async with self._lock:
            if self.state == CircuitState.OPEN:
                if self.next_attempt_at is not None and self.clock() < self.next_attempt_at:
                    raise CircuitOpenError(
                        f"Circuit {self.name} is open. Retry after {self.time_until_retry():.0f}s"
                    )
                logger.info(f"Circuit {self.name}: transitioning to HALF_OPEN")
                self.state = CircuitState.HALF_OPEN
                self._trial_in_flight = False

            if self.state == CircuitState.HALF_OPEN:
                if self._trial_in_flight:
                    raise CircuitOpenError(
                        f"Circuit {self.name} is half-open, trial call already in flight"
                    )
                self._trial_in_flight = True

        try:
            result = await func(*args, **kwargs)
        except Exception:
            await self._on_failure()
            raise
        await self._on_success()
        return result

    async def _on_success(self) -> None:
        """Handle successful call."""
        async with self._lock:
            if self.state == CircuitState.HALF_OPEN:
                logger.info(f"Circuit {self.name}: recovery successful, transitioning to CLOSED")
                self.state = CircuitState.CLOSED
                self.next_attempt_at = None
            self._trial_in_flight = False
            self.failure_count = 0
            self.success_count += 1

    async def _on_failure(self) -> None:
        """Handle failed call."""
        async with self._lock:
            self.failure_count += 1
            self.last_failure_time = datetime.now(UTC)
            self._trial_in_flight = False

            if self.state == CircuitState.HALF_OPEN:
                logger.warning(f"Circuit {self.name}: recovery failed, transitioning to OPEN")
                self._open()
            elif self.state == CircuitState.CLOSED and self.failure_count >= self.failure_threshold:
                logger.warning(
                    f"Circuit {self.name}: failure threshold reached ({self.failure_count}), "
                    f"transitioning to OPEN"
                )
                self._open()

    def _open(self) -> None:
        self.state = CircuitState.OPEN
        self.next_attempt_at = self.clock() + self.reset_timeout

    def time_until_retry(self) -> float:
        """Seconds until the circuit can be tested."""
        if self.state != CircuitState.OPEN or self.next_attempt_at is None:
            return 0.0
        return max(0.0, self.next_attempt_at - self.clock())

    def reset(self) -> None:
        """Force the breaker CLOSED with zero counters."""
        self.state = CircuitState.CLOSED
        self.failure_count = 0
        self.success_count = 0
        self.next_attempt_at = None
        self.last_failure_time = None
        self._trial_in_flight = False

    def get_stats(self) -> dict[str, Any]:
        """Get circuit breaker statistics."""
        return {
            "name": self.name,
            "state": self.state.value,
            "failure_count": self.failure_count,
            "success_count": self.success_count,
            "failure_threshold": self.failure_threshold,
            "reset_timeout": self.reset_timeout,
            "monitoring_period": self.monitoring_period,
            "last_failure": self.last_failure_time.isoformat() if self.last_failure_time else None,
            "time_until_retry": self.time_until_retry(),
        }
