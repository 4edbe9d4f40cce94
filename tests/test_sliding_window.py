"""Tests for the sliding window log limiter."""

import pytest

from ratelab.app.limiters.models import DecisionReason, DecisionStatus, LimiterConfig
from ratelab.app.limiters.sliding_window import SlidingWindowLimiter


class TestSlidingWindowLimiter:

    @pytest.fixture
    def limiter(self, clock):
        return SlidingWindowLimiter(limit=3, window_ms=1000, clock=clock)

    @pytest.mark.asyncio
    async def test_limit_holds_across_fixed_boundaries(self, limiter, clock):
        """A burst straddling a would-be window boundary is still bounded."""
        clock.advance(900)
        for i in range(3):
            assert (await limiter.decide(f"a{i}")).status == DecisionStatus.ALLOWED

        clock.advance(200)
        result = await limiter.decide("b0")
        assert result.status == DecisionStatus.REJECTED
        assert result.reason == DecisionReason.LIMIT_EXCEEDED
        assert result.count == 3

    @pytest.mark.asyncio
    async def test_entries_exactly_window_old_are_kept(self, limiter, clock):
        for i in range(3):
            await limiter.decide(f"r{i}")

        clock.advance(1000)
        assert (await limiter.decide("edge")).status == DecisionStatus.REJECTED

        clock.advance(1)
        result = await limiter.decide("after")
        assert result.status == DecisionStatus.ALLOWED
        assert result.count == 1

    @pytest.mark.asyncio
    async def test_eviction_is_gradual(self, limiter, clock):
        await limiter.decide("r0")
        clock.advance(400)
        await limiter.decide("r1")
        await limiter.decide("r2")

        clock.advance(601)
        result = await limiter.decide("r3")

        assert result.status == DecisionStatus.ALLOWED
        assert result.count == 3
        timestamps = limiter.timestamps()
        assert list(timestamps) == sorted(timestamps)
        assert all(clock.now - ts <= 1000 for ts in timestamps)

    @pytest.mark.asyncio
    async def test_rejections_are_not_recorded(self, limiter):
        for i in range(10):
            await limiter.decide(f"r{i}")
        assert len(limiter.timestamps()) == 3

    @pytest.mark.asyncio
    async def test_update_config_merges(self, limiter):
        await limiter.update_config(LimiterConfig.from_mapping({"limit": 5}))
        assert limiter.get_state().to_dict() == {"limit": 5, "windowMs": 1000, "count": 0}
