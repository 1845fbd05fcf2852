"""Tests for per-caller request throttling."""

from __future__ import annotations

import asyncio

import pytest
from conftest import FakeClock, FakeSleep

from agentrelay.gateway import RequestThrottler
from agentrelay.models import ThrottleConfig


@pytest.fixture
def throttler(clock: FakeClock, fake_sleep: FakeSleep) -> RequestThrottler:
    return RequestThrottler(ThrottleConfig(min_interval=2.0), clock=clock, sleep=fake_sleep)


class TestRequestThrottler:
    """Tests for RequestThrottler."""

    @pytest.mark.asyncio
    async def test_first_call_not_delayed(
        self, throttler: RequestThrottler, fake_sleep: FakeSleep
    ) -> None:
        """Test a key's first call runs immediately."""

        async def work() -> str:
            return "done"

        assert await throttler.enqueue("user1", work) == "done"
        assert fake_sleep.delays == []

    @pytest.mark.asyncio
    async def test_same_key_spaced_by_min_interval(
        self, throttler: RequestThrottler, clock: FakeClock
    ) -> None:
        """Test the second call for a key starts at least min_interval after the first."""
        started: list[float] = []

        async def work() -> None:
            started.append(clock())

        await throttler.enqueue("user1", work)
        clock.advance(0.5)
        await throttler.enqueue("user1", work)

        assert started[1] - started[0] >= 2.0

    @pytest.mark.asyncio
    async def test_no_wait_after_interval_elapsed(
        self, throttler: RequestThrottler, clock: FakeClock, fake_sleep: FakeSleep
    ) -> None:
        """Test no delay once the interval has already passed."""

        async def work() -> None:
            return None

        await throttler.enqueue("user1", work)
        clock.advance(5)
        await throttler.enqueue("user1", work)
        assert fake_sleep.delays == []

    @pytest.mark.asyncio
    async def test_other_keys_not_delayed(
        self, throttler: RequestThrottler, clock: FakeClock, fake_sleep: FakeSleep
    ) -> None:
        """Test a different key is not throttled by another key's calls."""
        started: dict[str, float] = {}

        async def work(key: str) -> None:
            started[key] = clock()

        await throttler.enqueue("user1", work, "user1")
        await throttler.enqueue("user2", work, "user2")

        assert started["user2"] == started["user1"]
        assert fake_sleep.delays == []

    @pytest.mark.asyncio
    async def test_same_key_runs_in_submission_order(self, clock: FakeClock) -> None:
        """Test concurrent calls for one key run one at a time, in order."""
        throttler = RequestThrottler(
            ThrottleConfig(min_interval=2.0), clock=clock, sleep=FakeSleep(clock)
        )
        order: list[int] = []
        running = 0
        overlap = False

        async def work(n: int) -> None:
            nonlocal running, overlap
            running += 1
            overlap = overlap or running > 1
            await asyncio.sleep(0)
            order.append(n)
            running -= 1

        await asyncio.gather(*(throttler.enqueue("user1", work, n) for n in range(4)))

        assert order == [0, 1, 2, 3]
        assert overlap is False

    @pytest.mark.asyncio
    async def test_errors_propagate(self, throttler: RequestThrottler) -> None:
        """Test the wrapped function's exception reaches the caller."""

        async def boom() -> None:
            raise RuntimeError("boom")

        with pytest.raises(RuntimeError, match="boom"):
            await throttler.enqueue("user1", boom)

    @pytest.mark.asyncio
    async def test_sweep_removes_idle_keys(self, clock: FakeClock) -> None:
        """Test keys idle past the retention window are dropped."""
        throttler = RequestThrottler(
            ThrottleConfig(min_interval=2.0, retention=300.0), clock=clock, sleep=FakeSleep()
        )

        async def work() -> None:
            return None

        await throttler.enqueue("old", work)
        clock.advance(200)
        await throttler.enqueue("recent", work)
        clock.advance(150)

        assert throttler.sweep() == 1
        assert throttler.active_keys == 1

    @pytest.mark.asyncio
    async def test_start_and_close(self, throttler: RequestThrottler) -> None:
        """Test the background sweep can be started and stopped."""
        throttler.start()
        await throttler.close()
        await throttler.close()
