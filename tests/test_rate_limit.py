import asyncio

import pytest

from compmatch.errors import DiscoveryFailure
from compmatch.rate_limit import RateLimiter, SearchQuota


class FakeClock:
    def __init__(self):
        self.now = 0.0
        self.slept = []

    def __call__(self):
        return self.now

    async def sleep(self, seconds):
        self.slept.append(round(seconds, 6))
        self.now += seconds


def test_concurrency_never_exceeds_limit():
    async def run():
        limiter = RateLimiter(max_concurrent=3, min_interval=0)

        async def job():
            async with limiter.admit():
                await asyncio.sleep(0.01)

        await asyncio.gather(*(job() for _ in range(10)))
        return limiter

    limiter = asyncio.run(run())
    assert limiter.peak_active == 3
    assert limiter.active == 0


def test_admissions_are_spaced_by_min_interval():
    clock = FakeClock()

    async def run():
        limiter = RateLimiter(max_concurrent=5, min_interval=1.0, clock=clock, sleep=clock.sleep)
        admitted = []

        async def job(i):
            async with limiter.admit():
                admitted.append(clock())

        await asyncio.gather(*(job(i) for i in range(4)))
        return admitted

    admitted = asyncio.run(run())
    assert admitted == [0.0, 1.0, 2.0, 3.0]
    assert clock.slept == [1.0, 1.0, 1.0]


def test_invalid_limit_rejected():
    with pytest.raises(ValueError):
        RateLimiter(max_concurrent=0)


def test_search_quota_counts_down_then_fails():
    quota = SearchQuota(2)
    quota.take()
    quota.take()
    assert quota.exhausted
    with pytest.raises(DiscoveryFailure):
        quota.take()
    assert quota.used == 2

    unlimited = SearchQuota(None)
    for _ in range(100):
        unlimited.take()
    assert not unlimited.exhausted
