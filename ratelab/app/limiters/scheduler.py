"""Leak scheduler: cancelable recurring drain ticks for a leaky bucket.

One scheduler belongs to one leaky-bucket instance and runs one ticker per
queue key (the in-process queue, plus any shared-store queues of the same
bucket). Starting a key twice never creates a second ticker, and a rate
change replaces the running tickers instead of stacking new ones.
"""

import asyncio
from typing import Any, Awaitable, Callable, Dict, Optional

from ratelab.app.core.logging import get_logger, get_log_context

logger = get_logger(__name__)

Tick = Callable[[], Awaitable[Any]]


class LeakScheduler:
    """Keyed asyncio tickers sharing one leak rate.

    Usage:
        scheduler = LeakScheduler(leak_per_second=5)
        scheduler.start("local", limiter.leak_once)

        # Rate change: running tickers are replaced with the new period
        await scheduler.set_rate(10)

        # Teardown
        await scheduler.stop_all()
    """

    def __init__(self, leak_per_second: float = 5.0):
        self._leak_per_second = leak_per_second
        self._ticks: Dict[str, Tick] = {}
        self._tasks: Dict[str, asyncio.Task] = {}

    @staticmethod
    def period_ms(leak_per_second: float) -> float:
        """Tick period in milliseconds; rates below one per second tick once a second."""
        return 1000.0 / max(1.0, leak_per_second)

    @property
    def leak_per_second(self) -> float:
        return self._leak_per_second

    @property
    def interval(self) -> float:
        """Current tick period in seconds."""
        return self.period_ms(self._leak_per_second) / 1000.0

    def keys(self) -> list[str]:
        return [key for key, task in self._tasks.items() if not task.done()]

    def is_running(self, key: str) -> bool:
        task = self._tasks.get(key)
        return task is not None and not task.done()

    def start(self, key: str, tick: Tick) -> bool:
        """Start the ticker for ``key`` unless one is already running.

        Must be called from a running event loop.

        Returns:
            True if a new ticker was started
        """
        if self.is_running(key):
            if self._tasks[key].get_loop() is asyncio.get_running_loop():
                return False
            # Left over from an event loop that has since gone away
            self._tasks.pop(key)
        self._ticks[key] = tick
        self._tasks[key] = self._spawn(key, tick)
        logger.debug(
            f"Started leak ticker '{key}' every {self.interval * 1000:.1f}ms",
            extra=get_log_context(algorithm="leaky-bucket"),
        )
        return True

    async def stop(self, key: str) -> None:
        """Cancel the ticker for ``key`` if present."""
        self._ticks.pop(key, None)
        task = self._tasks.pop(key, None)
        await self._cancel(task)

    async def stop_all(self) -> None:
        """Cancel every ticker owned by this scheduler."""
        for key in list(self._tasks):
            await self.stop(key)

    async def set_rate(self, leak_per_second: float) -> None:
        """Change the leak rate and replace running tickers with the new period."""
        self._leak_per_second = leak_per_second
        for key in list(self._tasks):
            task = self._tasks.pop(key)
            await self._cancel(task)
            tick = self._ticks.get(key)
            if tick is not None:
                self._tasks[key] = self._spawn(key, tick)
        logger.info(f"Leak rate set to {leak_per_second}/s ({len(self._tasks)} tickers)")

    def _spawn(self, key: str, tick: Tick) -> asyncio.Task:
        return asyncio.create_task(self._run(key, tick, self.interval), name=f"leak:{key}")

    @staticmethod
    async def _cancel(task: Optional[asyncio.Task]) -> None:
        if task is None or task.done():
            return
        if task.get_loop() is not asyncio.get_running_loop():
            # Owned by an event loop that has gone away
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass

    async def _run(self, key: str, tick: Tick, interval: float) -> None:
        """Tick on a fixed cadence; deadlines advance so the drain rate does not drift."""
        loop = asyncio.get_running_loop()
        next_at = loop.time() + interval
        while True:
            await asyncio.sleep(max(0.0, next_at - loop.time()))
            next_at += interval
            try:
                await tick()
            except Exception as e:
                # A failed tick only idles this period; the ticker keeps running.
                logger.warning(
                    f"Leak tick for '{key}' failed: {e}",
                    extra=get_log_context(algorithm="leaky-bucket"),
                )
