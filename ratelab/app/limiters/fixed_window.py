"""Fixed window limiter.

Counts admissions in non-overlapping windows. The window resets lazily:
the first decision that observes an expired window starts a new one, so
no timer is needed. Bursts straddling a boundary can reach twice the limit.
"""

from typing import Any, Dict, Optional

from ratelab.app.limiters.base import Clock, LocalLimiter
from ratelab.app.limiters.models import (
    Algorithm,
    DecisionReason,
    DecisionResult,
    DecisionStatus,
    FixedWindowState,
)


class FixedWindowLimiter(LocalLimiter):
    """In-memory fixed window counter."""

    algorithm = Algorithm.FIXED_WINDOW
    config_fields = ("limit", "window_ms")

    def __init__(
        self,
        limit: int = 10,
        window_ms: int = 1000,
        clock: Optional[Clock] = None,
    ):
        super().__init__(clock)
        self.limit = limit
        self.window_ms = window_ms
        self.count = 0
        self.window_start = self._now()

    async def decide(self, request_id: str) -> DecisionResult:
        """Admit or reject one request in the current window."""
        async with self._lock:
            now = self._now()
            if now - self.window_start >= self.window_ms:
                self.window_start = now
                self.count = 0

            if self.count < self.limit:
                self.count += 1
                return DecisionResult.at(
                    request_id, DecisionStatus.ALLOWED, now, count=self.count
                )

            return DecisionResult.at(
                request_id,
                DecisionStatus.REJECTED,
                now,
                count=self.count,
                reason=DecisionReason.LIMIT_EXCEEDED,
            )

    def get_state(self) -> FixedWindowState:
        return FixedWindowState(
            limit=self.limit,
            window_ms=self.window_ms,
            count=self.count,
            window_start=self.window_start,
        )

    def _apply_config(self, values: Dict[str, Any]) -> None:
        # count and window_start are kept: a lowered limit keeps rejecting
        # until the next reset, a raised one admits more in this window.
        if "limit" in values:
            self.limit = values["limit"]
        if "window_ms" in values:
            self.window_ms = values["window_ms"]
