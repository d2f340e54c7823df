"""Process-wide domain age cache.

Maps a host to the domain age reported by the WHOIS collaborator together with
the time it was observed. Entries are fresh for a fixed TTL (60 minutes by
default) and the map is bounded: each shard is an LRU that evicts its least
recently used host when full.

The key space is split across independent shards, each with its own lock, so
lookups for unrelated hosts never contend on one global lock.
"""

from __future__ import annotations

import asyncio
import logging
import threading
import time
import zlib
from collections import OrderedDict
from typing import Awaitable, Callable, Optional

logger = logging.getLogger(__name__)


class CacheEntry:
    """A cached domain age with the time it was observed."""

    __slots__ = ("age_days", "observed_at")

    def __init__(self, age_days: int, observed_at: float):
        self.age_days = age_days
        self.observed_at = observed_at

    def is_expired(self, ttl_seconds: float, now: Optional[float] = None) -> bool:
        """Check if this entry is older than ``ttl_seconds``."""
        current = time.time() if now is None else now
        return current - self.observed_at >= ttl_seconds


class _Shard:
    __slots__ = ("lock", "entries")

    def __init__(self):
        self.lock = threading.Lock()
        self.entries: OrderedDict[str, CacheEntry] = OrderedDict()


class DomainAgeCache:
    """
    Sharded, bounded TTL cache of host -> domain age (days).

    Usage:
        cache = DomainAgeCache(ttl_seconds=3600, max_entries=10_000)

        cache.set("example.com", 12)
        age = cache.get("example.com")

        # Read-through to the WHOIS collaborator
        age = await cache.get_or_fetch("example.com", whois.age_in_days)
    """

    def __init__(
        self,
        ttl_seconds: float = 3600,
        max_entries: int = 10_000,
        shards: int = 16,
        clock: Callable[[], float] = time.time,
    ):
        self.ttl_seconds = ttl_seconds
        self.max_entries = max(1, max_entries)
        self._shards = [_Shard() for _ in range(max(1, shards))]
        self._per_shard = max(1, -(-self.max_entries // len(self._shards)))
        self._clock = clock
        self._hits = 0
        self._misses = 0
        self._evictions = 0
        self._stats_lock = threading.Lock()

    @staticmethod
    def _key(host: str) -> str:
        return (host or "").strip().lower().strip(".")

    def _shard_for(self, key: str) -> _Shard:
        return self._shards[zlib.crc32(key.encode("utf-8")) % len(self._shards)]

    def _count(self, field: str) -> None:
        with self._stats_lock:
            setattr(self, field, getattr(self, field) + 1)

    def get(self, host: str) -> Optional[int]:
        """Return the cached age for ``host`` if present and fresh."""
        key = self._key(host)
        if not key:
            return None
        shard = self._shard_for(key)
        with shard.lock:
            entry = shard.entries.get(key)
            if entry is None:
                hit = False
            elif entry.is_expired(self.ttl_seconds, self._clock()):
                del shard.entries[key]
                hit = False
            else:
                shard.entries.move_to_end(key)
                hit = True
        self._count("_hits" if hit else "_misses")
        return entry.age_days if hit else None

    def set(self, host: str, age_days: int) -> None:
        """Record ``age_days`` for ``host`` observed now."""
        key = self._key(host)
        if not key:
            return
        shard = self._shard_for(key)
        evicted = 0
        with shard.lock:
            shard.entries[key] = CacheEntry(int(age_days), self._clock())
            shard.entries.move_to_end(key)
            while len(shard.entries) > self._per_shard:
                shard.entries.popitem(last=False)
                evicted += 1
        for _ in range(evicted):
            self._count("_evictions")

    def delete(self, host: str) -> None:
        key = self._key(host)
        shard = self._shard_for(key)
        with shard.lock:
            shard.entries.pop(key, None)

    def clear(self) -> None:
        for shard in self._shards:
            with shard.lock:
                shard.entries.clear()

    def sweep(self) -> int:
        """Drop expired entries from every shard; returns the number removed."""
        removed = 0
        now = self._clock()
        for shard in self._shards:
            with shard.lock:
                stale = [k for k, e in shard.entries.items() if e.is_expired(self.ttl_seconds, now)]
                for key in stale:
                    del shard.entries[key]
                removed += len(stale)
        return removed

    async def get_or_fetch(
        self,
        host: str,
        fetch_fn: Callable[[str], Awaitable[Optional[int]]],
        timeout: Optional[float] = None,
    ) -> Optional[int]:
        """
        Get the age from cache or fetch it from the collaborator.

        Absent results and failures are not cached and yield None.
        """
        cached = self.get(host)
        if cached is not None:
            return cached

        try:
            if timeout:
                age = await asyncio.wait_for(fetch_fn(host), timeout=timeout)
            else:
                age = await fetch_fn(host)
        except asyncio.TimeoutError:
            logger.warning("Domain age lookup timed out for %s", host)
            return None
        except Exception as exc:
            logger.warning("Domain age lookup failed for %s: %s", host, exc)
            return None

        if age is not None:
            self.set(host, age)
        return age

    def __len__(self) -> int:
        total = 0
        for shard in self._shards:
            with shard.lock:
                total += len(shard.entries)
        return total

    def stats(self) -> dict:
        """Get cache statistics."""
        with self._stats_lock:
            return {
                "entries": len(self),
                "max_entries": self.max_entries,
                "shards": len(self._shards),
                "ttl_seconds": self.ttl_seconds,
                "hits": self._hits,
                "misses": self._misses,
                "evictions": self._evictions,
            }
