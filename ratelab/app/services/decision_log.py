"""Decision log: the sink every admission result is published to.

Keeps the most recent N results for polling consumers and fans each
result out to push subscribers. Log order is publish order, so a leaky
bucket admission appears after its ``queued`` entry.
"""

import asyncio
from collections import deque
from typing import Deque, List, Optional, Set

from ratelab.app.core.logging import get_logger
from ratelab.app.limiters.models import DecisionResult

logger = get_logger(__name__)


class DecisionLog:
    """Append-only, size-bounded decision log with subscribers.

    A subscriber that falls behind loses its oldest undelivered events;
    publishers never block.
    """

    def __init__(self, max_entries: int = 2000, subscriber_queue_size: int = 1000):
        self._entries: Deque[DecisionResult] = deque(maxlen=max_entries)
        self._subscriber_queue_size = subscriber_queue_size
        self._subscribers: Set[asyncio.Queue] = set()

    def __len__(self) -> int:
        return len(self._entries)

    def publish(self, result: DecisionResult) -> None:
        """Append a result and notify subscribers."""
        self._entries.append(result)
        logger.debug(
            f"Decision {result.status.value} for {result.request_id}",
            extra={
                "request_id": result.request_id,
                "status": result.status.value,
                "reason": result.reason.value if result.reason else None,
            },
        )
        for queue in list(self._subscribers):
            if queue.full():
                queue.get_nowait()
            queue.put_nowait(result)

    def entries(self, limit: Optional[int] = None) -> List[DecisionResult]:
        """Return a copy of the log, oldest first; ``limit`` keeps the newest N."""
        items = list(self._entries)
        if limit is not None and limit >= 0:
            items = items[-limit:] if limit else []
        return items

    def subscribe(self) -> asyncio.Queue:
        """Register a push consumer; results published from now on are delivered."""
        queue: asyncio.Queue = asyncio.Queue(maxsize=self._subscriber_queue_size)
        self._subscribers.add(queue)
        return queue

    def unsubscribe(self, queue: asyncio.Queue) -> None:
        self._subscribers.discard(queue)

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)
