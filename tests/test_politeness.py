import pytest

from ingest_crawler.crawler.politeness import PolitenessScheduler


class FakeClock:
    def __init__(self, now: float = 100.0):
        self.now = now

    def __call__(self) -> float:
        return self.now


@pytest.mark.asyncio
async def test_first_request_to_origin_never_waits(sleeps):
    scheduler = PolitenessScheduler(min_delay_ms=500, clock=FakeClock(), sleep=sleeps)

    assert await scheduler.wait_for('https://a.test') == 0
    assert sleeps.calls == []


@pytest.mark.asyncio
async def test_waits_out_remaining_minimum_delay(sleeps):
    clock = FakeClock()
    scheduler = PolitenessScheduler(min_delay_ms=500, clock=clock, sleep=sleeps)

    scheduler.record_request('https://a.test')
    clock.now += 0.2

    assert await scheduler.wait_for('https://a.test') == 300
    assert sleeps.calls == [pytest.approx(0.3)]


@pytest.mark.asyncio
async def test_robots_crawl_delay_wins_when_larger(sleeps):
    clock = FakeClock()
    scheduler = PolitenessScheduler(min_delay_ms=500, clock=clock, sleep=sleeps)

    scheduler.record_request('https://a.test')
    assert await scheduler.wait_for('https://a.test', crawl_delay_ms=2000) == 2000

    scheduler.record_request('https://a.test')
    assert await scheduler.wait_for('https://a.test', crawl_delay_ms=100) == 500


@pytest.mark.asyncio
async def test_origins_are_paced_independently(sleeps):
    clock = FakeClock()
    scheduler = PolitenessScheduler(min_delay_ms=1000, clock=clock, sleep=sleeps)

    scheduler.record_request('https://a.test')

    assert await scheduler.wait_for('https://b.test') == 0
    assert await scheduler.wait_for('https://a.test') == 1000


@pytest.mark.asyncio
async def test_no_wait_once_delay_has_elapsed(sleeps):
    clock = FakeClock()
    scheduler = PolitenessScheduler(min_delay_ms=500, clock=clock, sleep=sleeps)

    scheduler.record_request('https://a.test')
    clock.now += 1.0

    assert await scheduler.wait_for('https://a.test') == 0
    assert sleeps.calls == []


@pytest.mark.asyncio
async def test_zero_delay_never_waits(sleeps):
    scheduler = PolitenessScheduler(clock=FakeClock(), sleep=sleeps)
    scheduler.record_request('https://a.test')

    assert await scheduler.wait_for('https://a.test', crawl_delay_ms=0) == 0
