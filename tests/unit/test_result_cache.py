from __future__ import annotations

from contentintel.storage.result_cache import MemoryCacheBackend, ResultCache, fingerprint_key


class FakeClock:
    def __init__(self, now: int = 1_000) -> None:
        self.now = now

    def __call__(self) -> int:
        return self.now


def test_fingerprint_key_uses_title_and_length() -> None:
    assert fingerprint_key("Best Mixers", "abcde") == "v3_Best Mixers_5"
    assert fingerprint_key("Best Mixers", "") == "v3_Best Mixers_0"


def test_entry_is_readable_up_to_expiry_and_absent_after() -> None:
    clock = FakeClock()
    cache = ResultCache(MemoryCacheBackend(), clock=clock)
    cache.set("k", {"v": 1}, ttl_ms=100)

    clock.now = 1_100
    assert cache.get("k") == {"v": 1}

    clock.now = 1_101
    assert cache.get("k") is None


def test_expired_read_removes_entry_from_backend() -> None:
    clock = FakeClock()
    backend = MemoryCacheBackend()
    cache = ResultCache(backend, clock=clock)
    cache.set("k", "v", ttl_ms=10)
    clock.now += 11
    assert cache.get("k") is None
    assert list(backend.keys()) == []


def test_entries_without_ttl_never_expire() -> None:
    clock = FakeClock()
    cache = ResultCache(MemoryCacheBackend(), clock=clock)
    cache.set("k", "v")
    clock.now += 10**9
    assert cache.get("k") == "v"


def test_values_are_copied_on_write_and_read() -> None:
    cache = ResultCache(MemoryCacheBackend())
    value = {"products": [1]}
    cache.set("k", value)
    value["products"].append(2)
    got = cache.get("k")
    assert got == {"products": [1]}
    got["products"].append(3)
    assert cache.get("k") == {"products": [1]}


def test_write_failure_is_swallowed() -> None:
    cache = ResultCache(MemoryCacheBackend(max_entries=1))
    cache.set("a", 1)
    cache.set("b", 2)
    assert cache.get("a") == 1
    assert cache.get("b") is None


def test_clear_only_touches_own_namespace() -> None:
    backend = MemoryCacheBackend()
    mine = ResultCache(backend, namespace="amzwp_")
    other = ResultCache(backend, namespace="other_")
    mine.set("k", 1)
    other.set("k", 2)

    mine.clear()

    assert mine.get("k") is None
    assert other.get("k") == 2


def test_delete_removes_single_key() -> None:
    cache = ResultCache(MemoryCacheBackend())
    cache.set("a", 1)
    cache.set("b", 2)
    cache.delete("a")
    assert cache.get("a") is None
    assert cache.get("b") == 2
