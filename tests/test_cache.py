import asyncio

from compmatch.cache import TTLCache


class FakeClock:
    def __init__(self):
        self.now = 100.0

    def __call__(self):
        return self.now


def test_entries_expire_after_ttl():
    clock = FakeClock()
    cache = TTLCache(ttl=60, clock=clock)

    async def run():
        await cache.set("k", [1, 2])
        hit = await cache.get("k")
        clock.now += 59
        still = await cache.get("k")
        clock.now += 1
        gone = await cache.get("k")
        return hit, still, gone

    hit, still, gone = asyncio.run(run())
    assert hit == [1, 2]
    assert still == [1, 2]
    assert gone is None
    assert len(cache) == 0


def test_oldest_entry_evicted_at_capacity():
    cache = TTLCache(ttl=60, max_entries=2, clock=FakeClock())

    async def run():
        await cache.set("a", 1)
        await cache.set("b", 2)
        await cache.set("c", 3)
        return [await cache.get(k) for k in ("a", "b", "c")]

    assert asyncio.run(run()) == [None, 2, 3]


def test_zero_ttl_disables_caching():
    cache = TTLCache(ttl=0, clock=FakeClock())

    async def run():
        await cache.set("a", 1)
        return await cache.get("a")

    assert asyncio.run(run()) is None
