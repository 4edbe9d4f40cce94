"""Sliding window log limiter.

Keeps the admission timestamps of the trailing window, oldest first, so
the number admitted within any ``window_ms`` interval never exceeds
``limit``. Each timestamp is appended once and evicted once.
"""

from collections import deque
from typing import Any, Deque, Dict, Optional

from ratelab.app.limiters.base import Clock, LocalLimiter
from ratelab.app.limiters.models import (
    Algorithm,
    DecisionReason,
    DecisionResult,
    DecisionStatus,
    SlidingWindowState,
)


class SlidingWindowLimiter(LocalLimiter):
    """In-memory sliding window log."""

    algorithm = Algorithm.SLIDING_WINDOW
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
        self._timestamps: Deque[float] = deque()

    def _evict(self, now: float) -> None:
        # Strictly older than the window; an entry exactly window_ms old stays.
        while self._timestamps and now - self._timestamps[0] > self.window_ms:
            self._timestamps.popleft()

    async def decide(self, request_id: str) -> DecisionResult:
        """Admit or reject one request against the trailing window."""
        async with self._lock:
            now = self._now()
            self._evict(now)

            if len(self._timestamps) < self.limit:
                self._timestamps.append(now)
                return DecisionResult.at(
                    request_id,
                    DecisionStatus.ALLOWED,
                    now,
                    count=len(self._timestamps),
                )

            return DecisionResult.at(
                request_id,
                DecisionStatus.REJECTED,
                now,
                count=len(self._timestamps),
                reason=DecisionReason.LIMIT_EXCEEDED,
            )

    def timestamps(self) -> tuple:
        """Retained admission timestamps, oldest first."""
        return tuple(self._timestamps)

    def get_state(self) -> SlidingWindowState:
        return SlidingWindowState(
            limit=self.limit,
            window_ms=self.window_ms,
            count=len(self._timestamps),
        )

    def _apply_config(self, values: Dict[str, Any]) -> None:
        if "limit" in values:
            self.limit = values["limit"]
        if "window_ms" in values:
            self.window_ms = values["window_ms"]
