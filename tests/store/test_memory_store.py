"""Tests for InMemoryStore: atomic_update contract, TTL, scan."""
import time
from concurrent.futures import ThreadPoolExecutor

import pytest

from nightpass.store.memory import InMemoryStore


@pytest.fixture
def mem():
    return InMemoryStore()


class TestAtomicUpdate:
    def test_creates_and_returns_committed(self, mem):
        committed = mem.atomic_update("k", lambda cur: {"n": 1})
        assert committed == {"n": 1}
        assert mem.get("k") == {"n": 1}

    def test_none_deletes(self, mem):
        mem.set("k", {"n": 1})
        assert mem.atomic_update("k", lambda cur: None) is None
        assert mem.get("k") is None

    def test_exception_aborts_and_propagates(self, mem):
        mem.set("k", {"n": 1})

        def _boom(cur):
            cur["n"] = 99
            raise RuntimeError("nope")

        with pytest.raises(RuntimeError):
            mem.atomic_update("k", _boom)
        assert mem.get("k") == {"n": 1}

    def test_fn_gets_private_copy(self, mem):
        mem.set("k", {"items": [1]})
        seen = mem.get("k")
        seen["items"].append(2)
        assert mem.get("k") == {"items": [1]}

    def test_concurrent_increments_are_serialized(self, mem):
        def _inc(cur):
            return {"n": (cur or {"n": 0})["n"] + 1}

        with ThreadPoolExecutor(max_workers=16) as pool:
            list(pool.map(lambda _: mem.atomic_update("counter", _inc), range(200)))
        assert mem.get("counter") == {"n": 200}

    def test_callable_ttl_uses_committed_value(self, mem):
        seen = []

        def _ttl(value):
            seen.append(value)
            return 60_000

        mem.atomic_update("k", lambda cur: {"expires_at": 5}, ttl_ms=_ttl)
        assert seen == [{"expires_at": 5}]


class TestCreateIfAbsent:
    def test_only_first_wins(self, mem):
        assert mem.create_if_absent("k", {"owner": "a"}) is True
        assert mem.create_if_absent("k", {"owner": "b"}) is False
        assert mem.get("k") == {"owner": "a"}


class TestTTL:
    def test_entry_expires(self, mem):
        mem.set("k", {"v": 1}, ttl_ms=10)
        time.sleep(0.05)
        assert mem.get("k") is None

    def test_scan_prefix_sorted_and_skips_expired(self, mem):
        mem.set("a/2", {"v": 2})
        mem.set("a/1", {"v": 1})
        mem.set("b/1", {"v": 3})
        mem.set("a/3", {"v": 4}, ttl_ms=10)
        time.sleep(0.05)
        assert list(mem.scan("a/")) == [("a/1", {"v": 1}), ("a/2", {"v": 2})]


class TestLocks:
    def test_lock_pool_does_not_grow_with_keys(self, mem):
        for i in range(1000):
            mem.set(f"tokens/{i}", {"i": i})
            mem.remove(f"tokens/{i}")
        assert len(mem._locks) == 64

    def test_same_key_same_lock(self, mem):
        assert mem._lock_for("tokens/a") is mem._lock_for("tokens/a")
