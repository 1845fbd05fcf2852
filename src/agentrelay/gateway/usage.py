"""Per-user daily usage counters and limit checks."""

from __future__ import annotations

import asyncio
import logging
from abc import ABC, abstractmethod
from dataclasses import asdict, dataclass
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any

from agentrelay.models import UsageLimits

if TYPE_CHECKING:
    from collections.abc import Callable

logger = logging.getLogger(__name__)

GLOBAL_KEY = "global"


def user_key(user_id: str) -> str:
    return f"user:{user_id}"


def provider_key(user_id: str, provider: str) -> str:
    return f"user:{user_id}:provider:{provider}"


@dataclass
class UsageCounters:
    """Counters for one key on one day."""

    requests: int = 0
    tokens: int = 0
    cost: float = 0.0

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return asdict(self)


@dataclass(frozen=True)
class LimitCheck:
    """Result of a limit check."""

    allowed: bool
    reason: str | None = None
    current: float | None = None
    limit: float | None = None


class CounterStore(ABC):
    """Key-value storage for usage counters.

    ``increment`` must be atomic per (key, day).
    """

    @abstractmethod
    async def get(self, key: str, day: str) -> UsageCounters | None:
        """Counters for ``key`` on ``day``, or None if nothing was recorded."""

    @abstractmethod
    async def increment(
        self, key: str, day: str, requests: int, tokens: int, cost: float
    ) -> UsageCounters:
        """Add to the counters for ``key`` on ``day`` and return the new totals."""

    @abstractmethod
    async def scan(self, prefix: str, day: str) -> dict[str, UsageCounters]:
        """All counters on ``day`` whose key starts with ``prefix``."""


class InMemoryCounterStore(CounterStore):
    """Process-local counter store."""

    def __init__(self) -> None:
        self._data: dict[tuple[str, str], UsageCounters] = {}
        self._lock = asyncio.Lock()

    async def get(self, key: str, day: str) -> UsageCounters | None:
        counters = self._data.get((key, day))
        return UsageCounters(**counters.to_dict()) if counters else None

    async def increment(
        self, key: str, day: str, requests: int, tokens: int, cost: float
    ) -> UsageCounters:
        async with self._lock:
            counters = self._data.setdefault((key, day), UsageCounters())
            counters.requests += requests
            counters.tokens += tokens
            counters.cost += cost
            return UsageCounters(**counters.to_dict())

    async def scan(self, prefix: str, day: str) -> dict[str, UsageCounters]:
        return {
            key: UsageCounters(**counters.to_dict())
            for (key, counter_day), counters in self._data.items()
            if counter_day == day and key.startswith(prefix)
        }


class UsageTracker:
    """Tracks requests, tokens and estimated cost per user per UTC day."""

    def __init__(
        self,
        store: CounterStore | None = None,
        limits: UsageLimits | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self.store = store or InMemoryCounterStore()
        self.limits = limits or UsageLimits()
        self._clock = clock or (lambda: datetime.now(UTC))

    def _today(self) -> str:
        return self._clock().astimezone(UTC).date().isoformat()

    async def check_limits(self, user_id: str) -> LimitCheck:
        """Decide whether ``user_id`` may make another call today.

        A user with no recorded usage is always allowed.
        """
        counters = await self.store.get(user_key(user_id), self._today())
        if counters is None:
            return LimitCheck(allowed=True)

        if counters.requests >= self.limits.daily_requests:
            logger.warning(f"User {user_id} hit daily request limit ({counters.requests})")
            return LimitCheck(
                allowed=False,
                reason="Daily request limit exceeded",
                current=counters.requests,
                limit=self.limits.daily_requests,
            )

        if counters.cost >= self.limits.daily_cost:
            logger.warning(f"User {user_id} hit daily cost limit (${counters.cost:.4f})")
            return LimitCheck(
                allowed=False,
                reason="Daily cost limit exceeded",
                current=counters.cost,
                limit=self.limits.daily_cost,
            )

        return LimitCheck(allowed=True)

    async def record(self, user_id: str, provider: str, tokens: int, cost: float) -> None:
        """Count one call for the user, the user's provider and the global total."""
        day = self._today()
        await self.store.increment(user_key(user_id), day, 1, tokens, cost)
        await self.store.increment(provider_key(user_id, provider), day, 1, tokens, cost)
        await self.store.increment(GLOBAL_KEY, day, 1, tokens, cost)

    async def get_user_stats(self, user_id: str) -> dict[str, Any]:
        """Today's counters for a user, with a per-provider breakdown."""
        day = self._today()
        total = await self.store.get(user_key(user_id), day) or UsageCounters()
        prefix = provider_key(user_id, "")
        providers = await self.store.scan(prefix, day)
        return {
            "user_id": user_id,
            "day": day,
            **total.to_dict(),
            "providers": {key[len(prefix) :]: c.to_dict() for key, c in providers.items()},
            "limits": self.limits.model_dump(),
        }

    async def get_global_stats(self) -> dict[str, Any]:
        """Today's process-wide counters."""
        day = self._today()
        total = await self.store.get(GLOBAL_KEY, day) or UsageCounters()
        return {"day": day, **total.to_dict()}
