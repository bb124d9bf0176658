"""In-process TTL cache with in-flight request coalescing.

One instance per process, owned by the template catalog. Keys are logical
resource names ("templates:list", "template:<id>").

All mutation happens on the event loop between awaits, so no locking is
needed. The in-flight registry only collapses concurrent fetches of the
same key; unrelated keys never wait on each other.
"""

import asyncio
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any

import structlog

from gallery.core.metrics import cache_operations_total

logger = structlog.stdlib.get_logger(__name__)

LIST_KEY = "templates:list"


def template_key(template_id: str) -> str:
    return f"template:{template_id}"


@dataclass
class CacheEntry:
    value: Any
    expires_at: float


class TemplateCache:
    def __init__(self, clock: Callable[[], float] = time.monotonic):
        self._clock = clock
        self._entries: dict[str, CacheEntry] = {}
        self._in_flight: dict[str, asyncio.Future] = {}
        # Bumped by invalidate_all so fetches started earlier don't store stale data
        self._generation = 0

    def get(self, key: str) -> Any | None:
        """Return the cached value, or None if absent or expired."""
        entry = self._entries.get(key)
        if entry is None:
            return None
        if entry.expires_at <= self._clock():
            del self._entries[key]
            cache_operations_total.labels(operation="get", status="expired").inc()
            return None
        return entry.value

    def set(self, key: str, value: Any, ttl: float) -> None:
        self._entries[key] = CacheEntry(value=value, expires_at=self._clock() + ttl)

    def in_flight(self, key: str) -> bool:
        return key in self._in_flight

    async def get_or_fetch(
        self,
        key: str,
        ttl: float,
        producer: Callable[[], Awaitable[Any]],
    ) -> Any:
        """Return the cached value or run producer once for all concurrent callers."""
        cached = self.get(key)
        if cached is not None:
            cache_operations_total.labels(operation="get", status="hit").inc()
            return cached

        pending = self._in_flight.get(key)
        if pending is not None:
            cache_operations_total.labels(operation="get", status="coalesced").inc()
        else:
            cache_operations_total.labels(operation="get", status="miss").inc()
            pending = asyncio.ensure_future(
                self._fetch(key, ttl, producer, self._generation)
            )
            self._in_flight[key] = pending

        # Shielded: a caller giving up must not cancel the fetch other callers share
        return await asyncio.shield(pending)

    async def _fetch(
        self,
        key: str,
        ttl: float,
        producer: Callable[[], Awaitable[Any]],
        generation: int,
    ) -> Any:
        try:
            value = await producer()
            if generation == self._generation:
                self.set(key, value, ttl)
            else:
                logger.debug("cache_store_skipped_after_invalidation", key=key)
            return value
        finally:
            # A fetch started after an invalidation may own the marker by now
            if self._in_flight.get(key) is asyncio.current_task():
                del self._in_flight[key]

    def invalidate_all(self) -> None:
        """Drop every entry and detach pending fetches. Used after any write.

        Callers already waiting on a detached fetch still get its result;
        later callers start a fresh one.
        """
        dropped = len(self._entries)
        self._entries.clear()
        self._in_flight.clear()
        self._generation += 1
        cache_operations_total.labels(operation="invalidate", status="ok").inc()
        logger.info("template_cache_invalidated", dropped=dropped)
