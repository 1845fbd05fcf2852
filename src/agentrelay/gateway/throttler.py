"""Per-caller request spacing for AI calls."""

from __future__ import annotations

import asyncio
import contextlib
import logging
import time
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, TypeVar

from agentrelay.models import ThrottleConfig

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass
class _Slot:
    lock: asyncio.Lock = field(default_factory=asyncio.Lock)
    last_dispatch: float | None = None
    waiters: int = 0


class RequestThrottler:
    """Serializes calls per caller key with a minimum interval between them.

    Calls for the same key run one at a time in submission order, each
    starting at least ``min_interval`` seconds after the previous one was
    dispatched. Different keys never wait on each other.
    """

    def __init__(
        self,
        config: ThrottleConfig | None = None,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self.config = config or ThrottleConfig()
        self._clock = clock
        self._sleep = sleep
        self._slots: dict[str, _Slot] = {}
        self._sweeper: asyncio.Task[None] | None = None

    async def enqueue(
        self,
        key: str,
        func: Callable[..., Awaitable[T]],
        *args: Any,
        **kwargs: Any,
    ) -> T:
        """Run ``func`` once ``key``'s interval has elapsed.

        Args:
            key: Caller key, usually the user id.
            func: Async function to call.
            *args: Positional arguments for func.
            **kwargs: Keyword arguments for func.

        Returns:
            Result of func. Its exceptions propagate unchanged.
        """
        slot = self._slots.get(key)
        if slot is None:
            slot = self._slots[key] = _Slot()

        slot.waiters += 1
        try:
            async with slot.lock:
                if slot.last_dispatch is not None:
                    wait = self.config.min_interval - (self._clock() - slot.last_dispatch)
                    if wait > 0:
                        logger.debug(f"Throttling {key}: waiting {wait:.2f}s")
                        await self._sleep(wait)
                slot.last_dispatch = self._clock()
                return await func(*args, **kwargs)
        finally:
            slot.waiters -= 1

    def sweep(self) -> int:
        """Discard keys idle for longer than the retention window.

        Returns:
            Number of keys removed.
        """
        now = self._clock()
        stale = [
            key
            for key, slot in self._slots.items()
            if slot.waiters == 0
            and (slot.last_dispatch is None or now - slot.last_dispatch > self.config.retention)
        ]
        for key in stale:
            del self._slots[key]
        if stale:
            logger.debug(f"Throttler sweep removed {len(stale)} idle keys")
        return len(stale)

    @property
    def active_keys(self) -> int:
        return len(self._slots)

    async def _sweep_loop(self) -> None:
        while True:
            await asyncio.sleep(self.config.sweep_interval)
            self.sweep()

    def start(self) -> None:
        """Start the background sweep. Requires a running event loop."""
        if self._sweeper is None or self._sweeper.done():
            self._sweeper = asyncio.create_task(self._sweep_loop())

    async def close(self) -> None:
        """Stop the background sweep."""
        if self._sweeper is not None:
            self._sweeper.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._sweeper
            self._sweeper = None
