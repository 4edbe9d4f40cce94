"""Shared fixtures for ratelab tests."""

import pytest

from ratelab.app.services.decision_log import DecisionLog


class FakeClock:
    """Manually advanced epoch-millisecond clock."""

    def __init__(self, start: float = 1_700_000_000_000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, ms: float) -> None:
        self.now += ms


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def decision_log():
    return DecisionLog(max_entries=100, subscriber_queue_size=10)
