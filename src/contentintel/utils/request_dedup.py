"""Single-flight request deduplication.

Concurrent callers sharing a key observe exactly one underlying operation.
The in-flight entry is dropped as soon as the operation settles, so this is
concurrency collapsing, not memoization.

The operation runs as its own task. A cancelled caller only stops waiting;
the operation itself is cancelled once nobody is waiting on it any more.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import Awaitable, Callable, Dict, TypeVar

from ..observability.logger import get_logger

logger = get_logger(__name__)

T = TypeVar("T")


@dataclass
class _Flight:
    task: asyncio.Future
    waiters: int = 0


class RequestDeduplicator:
    def __init__(self) -> None:
        self._pending: Dict[str, _Flight] = {}

    def in_flight(self, key: str) -> bool:
        return key in self._pending

    def __len__(self) -> int:
        return len(self._pending)

    async def run(self, key: str, operation: Callable[[], Awaitable[T]]) -> T:
        flight = self._pending.get(key)
        if flight is None:
            flight = _Flight(task=asyncio.ensure_future(operation()))
            self._pending[key] = flight
            flight.task.add_done_callback(lambda task: self._settle(key, flight))
        else:
            logger.debug("request_deduplicated", key=key, waiters=flight.waiters + 1)

        flight.waiters += 1
        try:
            return await asyncio.shield(flight.task)
        except asyncio.CancelledError:
            if flight.waiters == 1 and not flight.task.done():
                self._forget(key, flight)
                flight.task.cancel()
            raise
        finally:
            flight.waiters -= 1

    def _forget(self, key: str, flight: _Flight) -> None:
        if self._pending.get(key) is flight:
            del self._pending[key]

    def _settle(self, key: str, flight: _Flight) -> None:
        self._forget(key, flight)
        # mark a failure retrieved even when its last waiter already left
        if not flight.task.cancelled():
            flight.task.exception()

    def clear(self) -> None:
        """Forget in-flight entries. Running operations still resolve their current waiters."""
        self._pending.clear()
