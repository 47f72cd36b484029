from __future__ import annotations

import pytest

from contentintel.utils.rate_limiter import IntervalRateLimiter


class FakeTime:
    def __init__(self) -> None:
        self.now = 0.0
        self.sleeps: list[float] = []

    def clock(self) -> float:
        return self.now

    async def sleep(self, seconds: float) -> None:
        self.sleeps.append(round(seconds, 6))
        self.now += seconds


@pytest.mark.asyncio
async def test_successive_calls_are_spaced_by_interval() -> None:
    t = FakeTime()
    limiter = IntervalRateLimiter(0.2, clock=t.clock, sleep=t.sleep)

    await limiter.acquire("marketplace")
    await limiter.acquire("marketplace")
    await limiter.acquire("marketplace")

    assert t.sleeps == [0.2, 0.2]


@pytest.mark.asyncio
async def test_keys_are_independent_and_elapsed_time_counts() -> None:
    t = FakeTime()
    limiter = IntervalRateLimiter(0.2, clock=t.clock, sleep=t.sleep)

    await limiter.acquire("a")
    await limiter.acquire("b")
    t.now += 0.5
    await limiter.acquire("a")

    assert t.sleeps == []


@pytest.mark.asyncio
async def test_zero_interval_disables_limiting() -> None:
    t = FakeTime()
    limiter = IntervalRateLimiter(0, clock=t.clock, sleep=t.sleep)
    assert not limiter.enabled
    await limiter.acquire()
    await limiter.acquire()
    assert t.sleeps == []
