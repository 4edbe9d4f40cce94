"""Leaky bucket limiter.

Requests are queued and leave the queue at a fixed rate. ``enqueue`` only
reports ``queued`` or ``queue_full``; the eventual admission is produced
by the leak scheduler and published to the decision sink, never returned
to the original caller.
"""

from typing import Any, Callable, Dict, Optional

from ratelab.app.limiters.base import Clock, LocalLimiter
from ratelab.app.limiters.models import (
    Algorithm,
    DecisionReason,
    DecisionResult,
    DecisionStatus,
    LeakyBucketState,
    LimiterConfig,
)
from ratelab.app.limiters.queue import BoundedQueue, QueueTicket
from ratelab.app.limiters.scheduler import LeakScheduler

DecisionSink = Callable[[DecisionResult], None]


class LeakyBucketLimiter(LocalLimiter):
    """In-memory leaky bucket backed by a bounded FIFO queue."""

    algorithm = Algorithm.LEAKY_BUCKET
    config_fields = ("capacity", "leak_per_second", "max_queue_size")

    LOCAL_QUEUE_KEY = "local"

    def __init__(
        self,
        capacity: int = 50,
        leak_per_second: float = 5.0,
        max_queue_size: int = 100,
        sink: Optional[DecisionSink] = None,
        clock: Optional[Clock] = None,
        autostart: bool = True,
    ):
        """Initialize the leaky bucket.

        Args:
            capacity: Advisory bucket size (the queue bound is max_queue_size)
            leak_per_second: Drain rate of the queue
            max_queue_size: Maximum number of waiting requests
            sink: Receives the ``allowed`` result of every drained request
            clock: Epoch-millisecond clock
            autostart: Start the drain ticker on the first enqueue
        """
        super().__init__(clock)
        self.capacity = capacity
        self.leak_per_second = leak_per_second
        self.queue = BoundedQueue(max_queue_size)
        self.scheduler = LeakScheduler(leak_per_second)
        self._sink = sink
        self._autostart = autostart

    def set_sink(self, sink: Optional[DecisionSink]) -> None:
        self._sink = sink

    def publish(self, result: DecisionResult) -> None:
        """Hand a scheduler-originated result to the sink."""
        if self._sink is not None:
            self._sink(result)

    def start(self) -> bool:
        """Start the local drain ticker (idempotent)."""
        return self.scheduler.start(self.LOCAL_QUEUE_KEY, self.leak_once)

    async def stop(self) -> None:
        """Stop every drain ticker of this bucket."""
        await self.scheduler.stop_all()

    async def enqueue(self, request_id: str) -> DecisionResult:
        """Queue a request, or reject it when the queue is full."""
        if self._autostart:
            self.start()
        async with self._lock:
            now = self._now()
            if not self.queue.enqueue(QueueTicket(request_id=request_id, enqueued_at=now)):
                return DecisionResult.at(
                    request_id,
                    DecisionStatus.REJECTED,
                    now,
                    count=len(self.queue),
                    reason=DecisionReason.QUEUE_FULL,
                )
            return DecisionResult.at(
                request_id, DecisionStatus.QUEUED, now, count=len(self.queue)
            )

    async def leak_once(self) -> Optional[DecisionResult]:
        """Drain at most one ticket and publish its admission."""
        async with self._lock:
            ticket = self.queue.dequeue()
            depth = len(self.queue)
            now = self._now()
        if ticket is None:
            return None
        result = DecisionResult.at(
            ticket.request_id, DecisionStatus.ALLOWED, now, count=depth
        )
        self.publish(result)
        return result

    def get_state(self) -> LeakyBucketState:
        return LeakyBucketState(
            capacity=self.capacity,
            leak_per_second=self.leak_per_second,
            max_queue_size=self.queue.max_size,
            queue_size=len(self.queue),
        )

    def _apply_config(self, values: Dict[str, Any]) -> None:
        if "capacity" in values:
            self.capacity = values["capacity"]
        if "leak_per_second" in values:
            self.leak_per_second = values["leak_per_second"]
        if "max_queue_size" in values:
            self.queue.set_max_size(values["max_queue_size"])

    async def update_config(self, config: LimiterConfig) -> Dict[str, Any]:
        values = await super().update_config(config)
        if "leak_per_second" in values:
            await self.scheduler.set_rate(values["leak_per_second"])
        return values
