"""Bounded FIFO admission queue used by the leaky bucket."""

from collections import deque
from dataclasses import dataclass
from typing import Deque, Optional


@dataclass(frozen=True)
class QueueTicket:
    """A queued admission request."""
    request_id: str
    enqueued_at: float  # epoch milliseconds


class BoundedQueue:
    """FIFO queue with a soft maximum size.

    Enqueue fails without mutation once the queue holds ``max_size`` items.
    Lowering the bound never evicts; it only blocks enqueues until the
    queue drains below the new bound.

    Not synchronised on its own: the owning limiter serialises access.
    """

    def __init__(self, max_size: int = 1000):
        self._items: Deque[QueueTicket] = deque()
        self._max_size = max_size

    @property
    def max_size(self) -> int:
        return self._max_size

    def __len__(self) -> int:
        return len(self._items)

    def is_full(self) -> bool:
        return len(self._items) >= self._max_size

    def enqueue(self, ticket: QueueTicket) -> bool:
        """Append a ticket; return False if the queue is full."""
        if self.is_full():
            return False
        self._items.append(ticket)
        return True

    def dequeue(self) -> Optional[QueueTicket]:
        """Remove and return the oldest ticket, or None when empty."""
        if not self._items:
            return None
        return self._items.popleft()

    def peek(self) -> Optional[QueueTicket]:
        return self._items[0] if self._items else None

    def clear(self) -> None:
        self._items.clear()

    def set_max_size(self, max_size: int) -> None:
        self._max_size = max_size
