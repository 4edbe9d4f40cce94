"""Common contract for the in-process limiters."""

import asyncio
from abc import ABC, abstractmethod
from typing import Any, Callable, Dict, Optional

from ratelab.app.limiters.models import Algorithm, LimiterConfig, now_ms

Clock = Callable[[], float]


class LocalLimiter(ABC):
    """Abstract base class for local (single-process) limiters.

    Each instance owns its state exclusively. Every read-modify-write of that
    state runs under ``self._lock`` so interleaved coroutines (including the
    leak scheduler) never observe a torn update.
    """

    algorithm: Algorithm
    # Config fields this limiter consults; others are ignored on update
    config_fields: tuple = ()

    def __init__(self, clock: Optional[Clock] = None) -> None:
        self._clock: Clock = clock or now_ms
        self._lock = asyncio.Lock()

    def _now(self) -> float:
        return self._clock()

    @abstractmethod
    def get_state(self) -> Any:
        """Return a read-only snapshot of the limiter state."""
        pass

    @abstractmethod
    def _apply_config(self, values: Dict[str, Any]) -> None:
        """Merge already-filtered config values into live state."""
        pass

    async def update_config(self, config: LimiterConfig) -> Dict[str, Any]:
        """Merge a partial config; absent fields are left untouched.

        Returns:
            The fields that were applied
        """
        values = {
            name: value
            for name, value in config.provided_fields().items()
            if name in self.config_fields
        }
        if values:
            async with self._lock:
                self._apply_config(values)
        return values
