"""Tests for the bounded FIFO queue."""

from ratelab.app.limiters.queue import BoundedQueue, QueueTicket


def _ticket(n: int) -> QueueTicket:
    return QueueTicket(request_id=f"r{n}", enqueued_at=float(n))


class TestBoundedQueue:

    def test_fifo_order(self):
        queue = BoundedQueue(max_size=5)
        for n in range(3):
            assert queue.enqueue(_ticket(n)) is True

        assert [queue.dequeue().request_id for _ in range(3)] == ["r0", "r1", "r2"]
        assert queue.dequeue() is None

    def test_enqueue_fails_when_full_without_mutation(self):
        queue = BoundedQueue(max_size=2)
        queue.enqueue(_ticket(1))
        queue.enqueue(_ticket(2))

        assert queue.is_full()
        assert queue.enqueue(_ticket(3)) is False
        assert len(queue) == 2
        assert queue.peek().request_id == "r1"

    def test_zero_size_queue_rejects_everything(self):
        queue = BoundedQueue(max_size=0)
        assert queue.enqueue(_ticket(1)) is False
        assert len(queue) == 0

    def test_lowering_max_size_does_not_evict(self):
        queue = BoundedQueue(max_size=4)
        for n in range(4):
            queue.enqueue(_ticket(n))

        queue.set_max_size(2)

        assert len(queue) == 4
        assert queue.enqueue(_ticket(9)) is False
        queue.dequeue()
        queue.dequeue()
        queue.dequeue()
        assert queue.enqueue(_ticket(9)) is True

    def test_clear(self):
        queue = BoundedQueue(max_size=3)
        queue.enqueue(_ticket(1))
        queue.clear()
        assert len(queue) == 0
        assert queue.peek() is None
