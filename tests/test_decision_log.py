"""Tests for the decision log sink and its event stream."""

import asyncio
import json

import pytest

from ratelab.app.api.logs import decision_events
from ratelab.app.limiters.models import DecisionResult, DecisionStatus
from ratelab.app.services.decision_log import DecisionLog


def _result(n: int, status: DecisionStatus = DecisionStatus.ALLOWED) -> DecisionResult:
    return DecisionResult.at(f"r{n}", status, 1_700_000_000_000 + n, count=n)


class TestDecisionLog:

    def test_keeps_most_recent_entries(self):
        log = DecisionLog(max_entries=3)
        for n in range(5):
            log.publish(_result(n))

        assert len(log) == 3
        assert [r.request_id for r in log.entries()] == ["r2", "r3", "r4"]

    def test_entries_limit(self):
        log = DecisionLog(max_entries=10)
        for n in range(4):
            log.publish(_result(n))

        assert [r.request_id for r in log.entries(2)] == ["r2", "r3"]
        assert log.entries(0) == []
        assert len(log.entries(50)) == 4

    def test_entries_returns_copy(self, decision_log):
        decision_log.publish(_result(1))
        entries = decision_log.entries()
        entries.clear()
        assert len(decision_log) == 1

    @pytest.mark.asyncio
    async def test_subscribers_receive_published_results(self, decision_log):
        queue = decision_log.subscribe()
        decision_log.publish(_result(1))
        decision_log.publish(_result(2, DecisionStatus.REJECTED))

        assert queue.get_nowait().request_id == "r1"
        assert queue.get_nowait().status == DecisionStatus.REJECTED

        decision_log.unsubscribe(queue)
        decision_log.publish(_result(3))
        assert queue.empty()
        assert decision_log.subscriber_count == 0

    @pytest.mark.asyncio
    async def test_slow_subscriber_drops_oldest(self):
        log = DecisionLog(max_entries=10, subscriber_queue_size=2)
        queue = log.subscribe()
        for n in range(4):
            log.publish(_result(n))

        assert [queue.get_nowait().request_id for _ in range(2)] == ["r2", "r3"]
        assert len(log) == 4


class TestDecisionEvents:

    @pytest.mark.asyncio
    async def test_yields_sse_frames_and_unsubscribes(self, decision_log):
        queue = decision_log.subscribe()
        decision_log.publish(_result(7))
        disconnected = False

        async def is_disconnected():
            return disconnected

        stream = decision_events(decision_log, queue, is_disconnected, keepalive=0.01)
        frame = await stream.__anext__()

        assert frame.startswith("event: decision\ndata: ")
        payload = json.loads(frame.split("data: ", 1)[1])
        assert payload["requestId"] == "r7"
        assert payload["count"] == 7

        assert await stream.__anext__() == ": keep-alive\n\n"

        disconnected = True
        with pytest.raises(StopAsyncIteration):
            await stream.__anext__()
        assert decision_log.subscriber_count == 0

    @pytest.mark.asyncio
    async def test_closing_stream_unsubscribes(self, decision_log):
        queue = decision_log.subscribe()

        async def is_disconnected():
            return False

        stream = decision_events(decision_log, queue, is_disconnected, keepalive=0.01)
        await stream.__anext__()
        await stream.aclose()
        await asyncio.sleep(0)

        assert decision_log.subscriber_count == 0
