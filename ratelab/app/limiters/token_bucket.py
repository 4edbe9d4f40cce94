"""Token bucket limiter.

Tokens are a continuous quantity refilled lazily from elapsed wall-clock
time on every decision; no background ticking is needed. Only the
reported count is floored.
"""

import math
from typing import Any, Dict, Optional

from ratelab.app.limiters.base import Clock, LocalLimiter
from ratelab.app.limiters.models import (
    Algorithm,
    DecisionReason,
    DecisionResult,
    DecisionStatus,
    TokenBucketState,
)


class TokenBucketLimiter(LocalLimiter):
    """In-memory token bucket with lazy refill."""

    algorithm = Algorithm.TOKEN_BUCKET
    config_fields = ("capacity", "refill_per_second")

    def __init__(
        self,
        capacity: int = 10,
        refill_per_second: float = 5.0,
        clock: Optional[Clock] = None,
    ):
        super().__init__(clock)
        self.capacity = capacity
        self.refill_per_second = refill_per_second
        self.tokens = float(capacity)
        self.last_refill = self._now()

    def _refill(self, now: float) -> None:
        elapsed_ms = now - self.last_refill
        if elapsed_ms <= 0:
            return
        added = elapsed_ms * self.refill_per_second / 1000.0
        self.tokens = min(float(self.capacity), self.tokens + added)
        self.last_refill = now

    async def decide(self, request_id: str, tokens: int = 1) -> DecisionResult:
        """Consume ``tokens`` (default one) if available."""
        async with self._lock:
            now = self._now()
            self._refill(now)

            if self.tokens >= tokens:
                self.tokens -= tokens
                return DecisionResult.at(
                    request_id,
                    DecisionStatus.ALLOWED,
                    now,
                    count=math.floor(self.tokens),
                )

            return DecisionResult.at(
                request_id,
                DecisionStatus.REJECTED,
                now,
                count=math.floor(self.tokens),
                reason=DecisionReason.NO_TOKENS,
            )

    def get_state(self) -> TokenBucketState:
        return TokenBucketState(
            capacity=self.capacity,
            tokens=self.tokens,
            refill_per_second=self.refill_per_second,
            last_refill=self.last_refill,
        )

    def _apply_config(self, values: Dict[str, Any]) -> None:
        # A lowered capacity is enforced by the next refill's clamp only.
        if "capacity" in values:
            self.capacity = values["capacity"]
        if "refill_per_second" in values:
            self.refill_per_second = values["refill_per_second"]
