"""In-process admission limiters.

Fixed window, sliding window, token bucket and leaky bucket engines, the
bounded queue and leak scheduler they use, and the decision models they
produce.
"""

from ratelab.app.limiters.models import (
    Algorithm,
    ConfigUpdateResult,
    DecisionReason,
    DecisionResult,
    DecisionStatus,
    FixedWindowState,
    LeakyBucketState,
    LimiterConfig,
    SlidingWindowState,
    TokenBucketState,
)
from ratelab.app.limiters.queue import BoundedQueue, QueueTicket
from ratelab.app.limiters.base import LocalLimiter
from ratelab.app.limiters.scheduler import LeakScheduler
from ratelab.app.limiters.fixed_window import FixedWindowLimiter
from ratelab.app.limiters.sliding_window import SlidingWindowLimiter
from ratelab.app.limiters.token_bucket import TokenBucketLimiter
from ratelab.app.limiters.leaky_bucket import LeakyBucketLimiter

__all__ = [
    # Models
    "Algorithm",
    "ConfigUpdateResult",
    "DecisionReason",
    "DecisionResult",
    "DecisionStatus",
    "FixedWindowState",
    "LeakyBucketState",
    "LimiterConfig",
    "SlidingWindowState",
    "TokenBucketState",
    # Building blocks
    "BoundedQueue",
    "QueueTicket",
    "LocalLimiter",
    "LeakScheduler",
    # Limiters
    "FixedWindowLimiter",
    "SlidingWindowLimiter",
    "TokenBucketLimiter",
    "LeakyBucketLimiter",
]
