"""Tests for the leak scheduler."""

import asyncio

import pytest

from ratelab.app.limiters.scheduler import LeakScheduler


class Counter:
    def __init__(self):
        self.calls = 0

    async def tick(self):
        self.calls += 1


class TestLeakScheduler:

    def test_period_has_one_second_floor(self):
        assert LeakScheduler.period_ms(5) == pytest.approx(200.0)
        assert LeakScheduler.period_ms(0.2) == pytest.approx(1000.0)
        assert LeakScheduler(leak_per_second=4).interval == pytest.approx(0.25)

    @pytest.mark.asyncio
    async def test_start_is_idempotent_per_key(self):
        scheduler = LeakScheduler(leak_per_second=1)
        counter = Counter()
        try:
            assert scheduler.start("local", counter.tick) is True
            assert scheduler.start("local", counter.tick) is False
            assert scheduler.start("ratelimit:leaky-bucket:alice", counter.tick) is True
            assert sorted(scheduler.keys()) == ["local", "ratelimit:leaky-bucket:alice"]
        finally:
            await scheduler.stop_all()

        assert scheduler.keys() == []

    @pytest.mark.asyncio
    async def test_ticks_at_rate(self):
        scheduler = LeakScheduler(leak_per_second=100)
        counter = Counter()
        scheduler.start("local", counter.tick)
        try:
            await asyncio.sleep(0.1)
        finally:
            await scheduler.stop_all()

        assert counter.calls >= 3

    @pytest.mark.asyncio
    async def test_set_rate_replaces_running_tickers(self):
        scheduler = LeakScheduler(leak_per_second=1)
        counter = Counter()
        scheduler.start("local", counter.tick)
        old_task = scheduler._tasks["local"]
        try:
            await scheduler.set_rate(100)
            new_task = scheduler._tasks["local"]

            assert old_task.cancelled()
            assert new_task is not old_task
            assert scheduler.keys() == ["local"]

            await asyncio.sleep(0.1)
        finally:
            await scheduler.stop_all()

        assert counter.calls >= 3

    @pytest.mark.asyncio
    async def test_failing_tick_keeps_ticker_alive(self):
        scheduler = LeakScheduler(leak_per_second=100)
        calls = []

        async def flaky():
            calls.append(1)
            raise RuntimeError("store down")

        scheduler.start("local", flaky)
        try:
            await asyncio.sleep(0.1)
            assert scheduler.is_running("local")
        finally:
            await scheduler.stop_all()

        assert len(calls) >= 2

    @pytest.mark.asyncio
    async def test_stop_unknown_key_is_noop(self):
        scheduler = LeakScheduler()
        await scheduler.stop("missing")
        assert scheduler.keys() == []
