"""Tests for the leaky bucket limiter."""

import asyncio

import pytest

from ratelab.app.limiters.leaky_bucket import LeakyBucketLimiter
from ratelab.app.limiters.models import DecisionReason, DecisionStatus, LimiterConfig


class TestLeakyBucketLimiter:

    @pytest.fixture
    def published(self):
        return []

    @pytest.fixture
    def limiter(self, clock, published):
        return LeakyBucketLimiter(
            capacity=5,
            leak_per_second=2,
            max_queue_size=2,
            sink=published.append,
            clock=clock,
            autostart=False,
        )

    @pytest.mark.asyncio
    async def test_queue_full_after_max_size(self, limiter):
        results = [await limiter.enqueue(f"r{i}") for i in range(3)]

        assert [r.status for r in results] == [
            DecisionStatus.QUEUED,
            DecisionStatus.QUEUED,
            DecisionStatus.REJECTED,
        ]
        assert [r.count for r in results] == [1, 2, 2]
        assert results[2].reason == DecisionReason.QUEUE_FULL
        assert limiter.get_state().queue_size == 2

    @pytest.mark.asyncio
    async def test_leak_once_admits_in_fifo_order(self, limiter, published):
        await limiter.enqueue("first")
        await limiter.enqueue("second")

        first = await limiter.leak_once()
        second = await limiter.leak_once()

        assert first.request_id == "first"
        assert first.status == DecisionStatus.ALLOWED
        assert first.count == 1
        assert second.request_id == "second"
        assert second.count == 0
        assert published == [first, second]

    @pytest.mark.asyncio
    async def test_leak_once_on_empty_queue(self, limiter, published):
        assert await limiter.leak_once() is None
        assert published == []

    @pytest.mark.asyncio
    async def test_drain_frees_room(self, limiter):
        await limiter.enqueue("a")
        await limiter.enqueue("b")
        await limiter.leak_once()

        result = await limiter.enqueue("c")
        assert result.status == DecisionStatus.QUEUED
        assert result.count == 2

    @pytest.mark.asyncio
    async def test_update_config_changes_bound_and_rate(self, limiter):
        applied = await limiter.update_config(
            LimiterConfig.from_mapping({"maxQueueSize": 3, "leakPerSecond": 10, "limit": 7})
        )

        assert applied == {"max_queue_size": 3, "leak_per_second": 10}
        assert limiter.get_state().to_dict() == {
            "capacity": 5,
            "leakPerSecond": 10,
            "maxQueueSize": 3,
            "queueSize": 0,
        }
        assert limiter.scheduler.leak_per_second == 10

    @pytest.mark.asyncio
    async def test_autostart_drains_in_background(self, clock):
        published = []
        limiter = LeakyBucketLimiter(
            leak_per_second=100,
            max_queue_size=10,
            sink=published.append,
            clock=clock,
        )
        try:
            for i in range(3):
                await limiter.enqueue(f"r{i}")
            assert limiter.scheduler.is_running(LeakyBucketLimiter.LOCAL_QUEUE_KEY)

            for _ in range(50):
                if len(published) == 3:
                    break
                await asyncio.sleep(0.01)
        finally:
            await limiter.stop()

        assert [r.request_id for r in published] == ["r0", "r1", "r2"]
        assert all(r.status == DecisionStatus.ALLOWED for r in published)
        assert not limiter.scheduler.is_running(LeakyBucketLimiter.LOCAL_QUEUE_KEY)

    @pytest.mark.asyncio
    async def test_admission_without_sink_is_still_returned(self, clock):
        limiter = LeakyBucketLimiter(max_queue_size=1, clock=clock, autostart=False)
        await limiter.enqueue("solo")
        result = await limiter.leak_once()
        assert result.request_id == "solo"
