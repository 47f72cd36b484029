"""Clocks for TTL bookkeeping and request pacing.

Wall-clock milliseconds stamp cache entries and scans; the monotonic clock
paces outbound requests. Both are passed around as plain callables so tests
can substitute fixed clocks.
"""

from __future__ import annotations

import time
from typing import Callable, Optional

MillisClock = Callable[[], int]
SecondsClock = Callable[[], float]


def current_time_ms() -> int:
    return int(time.time() * 1000)


def monotonic_s() -> float:
    return time.monotonic()


def expiry_ms(ttl_ms: Optional[int], now_ms: int) -> Optional[int]:
    """Absolute expiry for a TTL; None or a non-positive TTL never expires."""
    if ttl_ms is None or ttl_ms <= 0:
        return None
    return now_ms + ttl_ms


def is_expired(expires_at_ms: Optional[int], now_ms: int) -> bool:
    return expires_at_ms is not None and now_ms > expires_at_ms
