"""Async rate limiting utilities.

Enforces a minimum interval between calls sharing a key (an external API, a
domain). Clock and sleep are injectable so callers can be tested without real
wall-clock delay.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import Awaitable, Callable, Dict
from urllib.parse import urlparse

from .time import SecondsClock as Clock
from .time import monotonic_s

Sleeper = Callable[[float], Awaitable[None]]


@dataclass
class _KeyState:
    lock: asyncio.Lock
    next_allowed_at: float


class IntervalRateLimiter:
    """Per-key minimum-interval limiter (async).

    Args:
        min_interval_s: Minimum spacing between two slots for one key. If <= 0, no limiting is applied.
    """

    def __init__(self, min_interval_s: float, *, clock: Clock = monotonic_s, sleep: Sleeper = asyncio.sleep):
        self._interval = float(min_interval_s)
        self._clock = clock
        self._sleep = sleep
        self._states: Dict[str, _KeyState] = {}
        self._global_lock = asyncio.Lock()

    @classmethod
    def per_second(cls, requests_per_second: float, **kwargs) -> "IntervalRateLimiter":
        interval = 1.0 / requests_per_second if requests_per_second > 0 else 0.0
        return cls(interval, **kwargs)

    @property
    def enabled(self) -> bool:
        return self._interval > 0

    async def _get_state(self, key: str) -> _KeyState:
        async with self._global_lock:
            state = self._states.get(key)
            if state is None:
                state = _KeyState(lock=asyncio.Lock(), next_allowed_at=0.0)
                self._states[key] = state
            return state

    async def acquire(self, key: str = "default") -> None:
        """Wait until the next slot for `key` is available."""
        if not self.enabled:
            return

        state = await self._get_state(key)
        async with state.lock:
            now = self._clock()
            if state.next_allowed_at > now:
                await self._sleep(state.next_allowed_at - now)

            state.next_allowed_at = self._clock() + self._interval

    async def wait_for_slot(self, url: str) -> None:
        """Wait for a slot on the URL's domain."""
        domain = (urlparse(url).netloc or "").lower()
        if not domain:
            return
        await self.acquire(domain)
