"""Tests for the in-process template cache: TTL, coalescing and invalidation."""

import asyncio

import pytest

from gallery.services.template_cache import LIST_KEY, TemplateCache, template_key


class Producer:
    """Counts calls; optionally blocks until released."""

    def __init__(self, value="v", gate: asyncio.Event | None = None):
        self.value = value
        self.gate = gate
        self.calls = 0

    async def __call__(self):
        self.calls += 1
        if self.gate is not None:
            await self.gate.wait()
        return self.value


class TestExpiry:
    def test_value_available_until_ttl(self, cache, fake_clock):
        cache.set("k", "v", ttl=60)
        fake_clock.advance(59)
        assert cache.get("k") == "v"

    def test_value_expires_at_ttl(self, cache, fake_clock):
        cache.set("k", "v", ttl=60)
        fake_clock.advance(60)
        assert cache.get("k") is None

    async def test_expired_entry_is_refetched(self, cache, fake_clock):
        producer = Producer()
        await cache.get_or_fetch(LIST_KEY, 60, producer)
        await cache.get_or_fetch(LIST_KEY, 60, producer)
        assert producer.calls == 1

        fake_clock.advance(61)
        await cache.get_or_fetch(LIST_KEY, 60, producer)
        assert producer.calls == 2


class TestCoalescing:
    async def test_concurrent_callers_share_one_fetch(self, cache):
        gate = asyncio.Event()
        producer = Producer(value=["a"], gate=gate)

        tasks = [
            asyncio.create_task(cache.get_or_fetch(LIST_KEY, 60, producer))
            for _ in range(5)
        ]
        await asyncio.sleep(0)
        assert cache.in_flight(LIST_KEY)

        gate.set()
        results = await asyncio.gather(*tasks)

        assert producer.calls == 1
        assert results == [["a"]] * 5
        assert not cache.in_flight(LIST_KEY)

    async def test_different_keys_do_not_wait_on_each_other(self, cache):
        gate = asyncio.Event()
        slow = Producer(gate=gate)
        fast = Producer(value="fast")

        slow_task = asyncio.create_task(cache.get_or_fetch(template_key("a"), 60, slow))
        await asyncio.sleep(0)
        assert await cache.get_or_fetch(template_key("b"), 60, fast) == "fast"

        gate.set()
        await slow_task

    async def test_failure_clears_in_flight_and_is_not_cached(self, cache):
        async def failing():
            raise RuntimeError("storage down")

        with pytest.raises(RuntimeError, match="storage down"):
            await cache.get_or_fetch(LIST_KEY, 60, failing)

        assert not cache.in_flight(LIST_KEY)
        assert cache.get(LIST_KEY) is None

        producer = Producer(value="recovered")
        assert await cache.get_or_fetch(LIST_KEY, 60, producer) == "recovered"

    async def test_failure_reaches_every_waiter(self, cache):
        gate = asyncio.Event()

        async def failing():
            await gate.wait()
            raise RuntimeError("boom")

        tasks = [
            asyncio.create_task(cache.get_or_fetch(LIST_KEY, 60, failing))
            for _ in range(3)
        ]
        await asyncio.sleep(0)
        gate.set()
        results = await asyncio.gather(*tasks, return_exceptions=True)
        assert all(isinstance(r, RuntimeError) for r in results)


class TestInvalidation:
    def test_invalidate_all_drops_every_entry(self, cache):
        cache.set(LIST_KEY, ["a"], ttl=60)
        cache.set(template_key("a"), {"id": "a"}, ttl=60)

        cache.invalidate_all()

        assert cache.get(LIST_KEY) is None
        assert cache.get(template_key("a")) is None

    async def test_fetch_straddling_invalidation_is_not_stored(self, cache):
        gate = asyncio.Event()
        producer = Producer(value="stale", gate=gate)

        task = asyncio.create_task(cache.get_or_fetch(LIST_KEY, 60, producer))
        await asyncio.sleep(0)
        cache.invalidate_all()
        gate.set()

        # The caller still gets its answer, but it is not cached
        assert await task == "stale"
        assert cache.get(LIST_KEY) is None

    async def test_fetch_after_invalidation_does_not_join_older_fetch(self, cache):
        gate_old = asyncio.Event()
        gate_new = asyncio.Event()
        old = Producer(value="old", gate=gate_old)
        new = Producer(value="new", gate=gate_new)

        old_task = asyncio.create_task(cache.get_or_fetch(LIST_KEY, 60, old))
        await asyncio.sleep(0)
        cache.invalidate_all()
        new_task = asyncio.create_task(cache.get_or_fetch(LIST_KEY, 60, new))
        await asyncio.sleep(0)

        gate_old.set()
        assert await old_task == "old"
        # The older fetch finishing must not unregister the newer one
        assert cache.in_flight(LIST_KEY)

        gate_new.set()
        assert await new_task == "new"
        assert cache.get(LIST_KEY) == "new"
        assert not cache.in_flight(LIST_KEY)
        assert (old.calls, new.calls) == (1, 1)


def test_default_clock_is_monotonic():
    cache = TemplateCache()
    cache.set("k", 1, ttl=60)
    assert cache.get("k") == 1
