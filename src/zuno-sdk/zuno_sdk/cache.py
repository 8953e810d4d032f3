"""Async key/value cache with TTL, a garbage-collection horizon and request coalescing.

Keys are tuples such as ``("abi", "ERC721NFTExchange", 11155111)`` so that a
whole category can be dropped with ``invalidate(("abi",))``.
"""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, Hashable, Optional, Tuple, Union

logger = logging.getLogger(__name__)

CacheKey = Tuple[Hashable, ...]
KeyLike = Union[CacheKey, str]
Loader = Callable[[], Awaitable[Any]]


def _as_key(key: KeyLike) -> CacheKey:
    if isinstance(key, tuple):
        return key
    if isinstance(key, str):
        return (key,)
    return tuple(key)


@dataclass(frozen=True)
class CacheEntry:
    value: Any
    fetched_at: float
    ttl: float

    def is_stale(self, now: float) -> bool:
        return now >= self.fetched_at + self.ttl


class AsyncCache:
    """In-memory cache shared by cooperative tasks on one event loop.

    - ``ttl``: age after which an entry is stale and the next
      ``fetch_or_populate`` reloads it.
    - ``gc_time``: age after which an entry is dropped outright.
    - At most one loader runs per key; concurrent callers await the same load.
    - Loader failures reach every waiting caller and are never stored.
    """

    def __init__(
        self,
        ttl: float = 300.0,
        gc_time: float = 600.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if ttl <= 0 or gc_time <= 0:
            raise ValueError("ttl and gc_time must be positive.")
        self.default_ttl = float(ttl)
        self.gc_time = max(float(gc_time), float(ttl))
        self._clock = clock
        self._entries: Dict[CacheKey, CacheEntry] = {}
        self._inflight: Dict[CacheKey, "asyncio.Future[Any]"] = {}
        self.hits = 0
        self.misses = 0
        self.loads = 0
        self.coalesced = 0

    def _collectable(self, entry: CacheEntry, now: float) -> bool:
        return now >= entry.fetched_at + max(entry.ttl, self.gc_time)

    def _live_entry(self, key: CacheKey) -> Optional[CacheEntry]:
        entry = self._entries.get(key)
        if entry is None:
            return None
        now = self._clock()
        if self._collectable(entry, now):
            del self._entries[key]
            return None
        if entry.is_stale(now):
            return None
        return entry

    def peek(self, key: KeyLike) -> Optional[Any]:
        """Return the live value for ``key`` or None. Never loads."""
        entry = self._live_entry(_as_key(key))
        return entry.value if entry is not None else None

    def contains(self, key: KeyLike) -> bool:
        return self._live_entry(_as_key(key)) is not None

    def set(self, key: KeyLike, value: Any, ttl: Optional[float] = None) -> None:
        ttl = self.default_ttl if ttl is None else float(ttl)
        self._entries[_as_key(key)] = CacheEntry(value=value, fetched_at=self._clock(), ttl=ttl)

    async def fetch_or_populate(
        self, key: KeyLike, loader: Loader, ttl: Optional[float] = None
    ) -> Any:
        cache_key = _as_key(key)
        entry = self._live_entry(cache_key)
        if entry is not None:
            self.hits += 1
            logger.debug("cache hit %s", cache_key)
            return entry.value

        pending = self._inflight.get(cache_key)
        if pending is None:
            self.misses += 1
            ttl = self.default_ttl if ttl is None else float(ttl)
            pending = asyncio.ensure_future(self._load(cache_key, loader, ttl))
            pending.add_done_callback(_consume_exception)
            self._inflight[cache_key] = pending
        else:
            self.coalesced += 1
            logger.debug("cache load in flight for %s, waiting", cache_key)

        # A cancelled waiter must not cancel the load other callers share.
        return await asyncio.shield(pending)

    async def _load(self, key: CacheKey, loader: Loader, ttl: float) -> Any:
        self.loads += 1
        logger.debug("cache load %s", key)
        try:
            value = await loader()
        finally:
            if self._inflight.get(key) is asyncio.current_task():
                del self._inflight[key]
        self._entries[key] = CacheEntry(value=value, fetched_at=self._clock(), ttl=ttl)
        return value

    def invalidate(self, prefix: KeyLike) -> int:
        """Drop every entry whose key starts with ``prefix``. Returns the number removed.

        Loads already in flight are not cancelled; they still store their result.
        """
        key_prefix = _as_key(prefix)
        size = len(key_prefix)
        doomed = [key for key in self._entries if key[:size] == key_prefix]
        for key in doomed:
            del self._entries[key]
        for key in [key for key in self._inflight if key[:size] == key_prefix]:
            del self._inflight[key]
        logger.debug("invalidated %d cache entries under %s", len(doomed), key_prefix)
        return len(doomed)

    def clear(self) -> None:
        self._entries.clear()
        self._inflight.clear()

    def sweep(self) -> int:
        """Drop entries past the garbage-collection horizon."""
        now = self._clock()
        doomed = [key for key, entry in self._entries.items() if self._collectable(entry, now)]
        for key in doomed:
            del self._entries[key]
        return len(doomed)

    def __len__(self) -> int:
        return len(self._entries)

    def stats(self) -> Dict[str, Any]:
        total = self.hits + self.misses
        return {
            "size": len(self._entries),
            "in_flight": len(self._inflight),
            "hits": self.hits,
            "misses": self.misses,
            "loads": self.loads,
            "coalesced": self.coalesced,
            "hit_rate": self.hits / total if total else 0.0,
        }


def _consume_exception(future: "asyncio.Future[Any]") -> None:
    # Mark the exception retrieved when every waiter was cancelled.
    if not future.cancelled():
        future.exception()
