"""Content-fingerprint keyed result cache with optional TTL.

The cache is an optimization, never a correctness dependency: backend write
failures are logged and dropped, and a failed read is a miss.
"""

from __future__ import annotations

import copy
from dataclasses import dataclass
from typing import Any, Dict, Iterable, Optional, Protocol

from ..domain.errors import CacheWriteFailure
from ..observability.logger import get_logger
from ..utils.time import MillisClock, current_time_ms, expiry_ms, is_expired

logger = get_logger(__name__)


@dataclass(frozen=True)
class CacheEntry:
    key: str
    value: Any
    expires_at_ms: Optional[int] = None

    def is_expired(self, now_ms: int) -> bool:
        return is_expired(self.expires_at_ms, now_ms)


class CacheBackend(Protocol):
    def read(self, key: str) -> Optional[CacheEntry]: ...

    def write(self, entry: CacheEntry) -> None: ...

    def remove(self, key: str) -> None: ...

    def keys(self) -> Iterable[str]: ...


class MemoryCacheBackend:
    """Process-local backend. May be shared by several namespaced caches."""

    def __init__(self, max_entries: int | None = None):
        self._entries: Dict[str, CacheEntry] = {}
        self._max_entries = max_entries

    def read(self, key: str) -> Optional[CacheEntry]:
        return self._entries.get(key)

    def write(self, entry: CacheEntry) -> None:
        if self._max_entries is not None and entry.key not in self._entries and len(self._entries) >= self._max_entries:
            raise CacheWriteFailure("cache_quota_exceeded", detail=f"max_entries={self._max_entries}")
        self._entries[entry.key] = entry

    def remove(self, key: str) -> None:
        self._entries.pop(key, None)

    def keys(self) -> Iterable[str]:
        return list(self._entries.keys())


def fingerprint_key(title: str, content: str, *, version: str = "v3") -> str:
    """Identity (title) plus up-to-dateness (content length)."""
    return f"{version}_{title}_{len(content or '')}"


class ResultCache:
    def __init__(
        self,
        backend: CacheBackend | None = None,
        *,
        namespace: str = "amzwp_",
        default_ttl_ms: int | None = None,
        clock: MillisClock = current_time_ms,
    ):
        self._backend = backend if backend is not None else MemoryCacheBackend()
        self._namespace = namespace
        self._default_ttl_ms = default_ttl_ms
        self._clock = clock

    @property
    def namespace(self) -> str:
        return self._namespace

    def _k(self, key: str) -> str:
        return f"{self._namespace}{key}"

    def get(self, key: str) -> Any | None:
        full = self._k(key)
        try:
            entry = self._backend.read(full)
        except Exception as e:
            logger.debug("cache_get_failed", key=full, error=str(e))
            return None
        if entry is None:
            return None
        if entry.is_expired(self._clock()):
            self._safe_remove(full)
            return None
        return copy.deepcopy(entry.value)

    def set(self, key: str, value: Any, ttl_ms: int | None = None) -> None:
        full = self._k(key)
        ttl = ttl_ms if ttl_ms is not None else self._default_ttl_ms
        expires_at = expiry_ms(ttl, self._clock())
        try:
            self._backend.write(CacheEntry(key=full, value=copy.deepcopy(value), expires_at_ms=expires_at))
        except Exception as e:
            logger.debug("cache_set_failed", key=full, error=str(e))

    def delete(self, key: str) -> None:
        self._safe_remove(self._k(key))

    def clear(self) -> None:
        """Remove every entry under this namespace; other namespaces are untouched."""
        try:
            keys = [k for k in self._backend.keys() if k.startswith(self._namespace)]
        except Exception as e:
            logger.debug("cache_clear_failed", namespace=self._namespace, error=str(e))
            return
        for k in keys:
            self._safe_remove(k)
        logger.info("cache_cleared", namespace=self._namespace, removed=len(keys))

    def _safe_remove(self, full_key: str) -> None:
        try:
            self._backend.remove(full_key)
        except Exception as e:
            logger.debug("cache_delete_failed", key=full_key, error=str(e))
