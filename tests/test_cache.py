"""Tests for the domain age cache."""

import asyncio
import threading

import pytest

from phishradar.cache import CacheEntry, DomainAgeCache


class FakeClock:
    def __init__(self, now=1_000_000.0):
        self.now = now

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += seconds


@pytest.fixture
def clock():
    return FakeClock()


class TestTtl:
    """Freshness window."""

    def test_fresh_entry_is_returned(self, clock):
        cache = DomainAgeCache(ttl_seconds=3600, clock=clock)
        cache.set("Example.COM", 12)
        clock.advance(3599)
        assert cache.get("example.com") == 12

    def test_expired_entry_is_dropped(self, clock):
        cache = DomainAgeCache(ttl_seconds=3600, clock=clock)
        cache.set("example.com", 12)
        clock.advance(3600)
        assert cache.get("example.com") is None
        assert len(cache) == 0

    def test_zero_age_is_cached(self, clock):
        cache = DomainAgeCache(clock=clock)
        cache.set("fresh.xyz", 0)
        assert cache.get("fresh.xyz") == 0

    def test_sweep_removes_only_expired(self, clock):
        cache = DomainAgeCache(ttl_seconds=60, clock=clock)
        cache.set("old.com", 1)
        clock.advance(30)
        cache.set("new.com", 2)
        clock.advance(40)
        assert cache.sweep() == 1
        assert cache.get("new.com") == 2
        assert cache.get("old.com") is None

    def test_entry_expiry(self):
        entry = CacheEntry(5, observed_at=100.0)
        assert not entry.is_expired(60, now=150.0)
        assert entry.is_expired(60, now=160.0)


class TestBounds:
    """LRU eviction keeps the map bounded."""

    def test_single_shard_lru(self, clock):
        cache = DomainAgeCache(max_entries=2, shards=1, clock=clock)
        cache.set("a.com", 1)
        cache.set("b.com", 2)
        cache.get("a.com")
        cache.set("c.com", 3)
        assert cache.get("b.com") is None
        assert cache.get("a.com") == 1
        assert cache.get("c.com") == 3
        assert cache.stats()["evictions"] == 1

    def test_never_exceeds_capacity(self, clock):
        cache = DomainAgeCache(max_entries=64, shards=8, clock=clock)
        for i in range(1000):
            cache.set(f"host{i}.com", i)
        assert len(cache) <= 64

    def test_stats_count_hits_and_misses(self, clock):
        cache = DomainAgeCache(clock=clock)
        cache.set("a.com", 1)
        cache.get("a.com")
        cache.get("b.com")
        stats = cache.stats()
        assert stats["hits"] == 1
        assert stats["misses"] == 1
        assert stats["entries"] == 1

    def test_delete_and_clear(self, clock):
        cache = DomainAgeCache(clock=clock)
        cache.set("a.com", 1)
        cache.set("b.com", 2)
        cache.delete("a.com")
        assert cache.get("a.com") is None
        cache.clear()
        assert len(cache) == 0


class TestConcurrency:
    """Concurrent writers and readers."""

    def test_threads_do_not_corrupt_state(self):
        cache = DomainAgeCache(max_entries=10_000, shards=16)
        errors = []

        def worker(offset):
            try:
                for i in range(500):
                    host = f"h{offset}-{i}.com"
                    cache.set(host, i)
                    assert cache.get(host) == i
            except AssertionError as exc:
                errors.append(exc)

        threads = [threading.Thread(target=worker, args=(n,)) for n in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()
        assert not errors
        assert len(cache) == 4000


class TestReadThrough:
    """get_or_fetch against a WHOIS-like collaborator."""

    async def test_fetches_once_then_serves_cache(self, clock):
        cache = DomainAgeCache(clock=clock)
        calls = []

        async def fetch(host):
            calls.append(host)
            return 3

        assert await cache.get_or_fetch("new.xyz", fetch) == 3
        assert await cache.get_or_fetch("new.xyz", fetch) == 3
        assert calls == ["new.xyz"]

    async def test_absent_result_not_cached(self, clock):
        cache = DomainAgeCache(clock=clock)
        calls = []

        async def fetch(host):
            calls.append(host)
            return None

        assert await cache.get_or_fetch("unknown.xyz", fetch) is None
        assert await cache.get_or_fetch("unknown.xyz", fetch) is None
        assert len(calls) == 2

    async def test_failure_yields_none(self, clock):
        cache = DomainAgeCache(clock=clock)

        async def fetch(host):
            raise ConnectionError("rdap down")

        assert await cache.get_or_fetch("x.com", fetch) is None
        assert len(cache) == 0

    async def test_timeout_yields_none(self, clock):
        cache = DomainAgeCache(clock=clock)

        async def fetch(host):
            await asyncio.sleep(1)
            return 5

        assert await cache.get_or_fetch("slow.com", fetch, timeout=0.05) is None
