"""Shared-store (Redis) variants of the four limiters.

Every variant keeps the observable contract of its local counterpart but
stores state in Redis under a per-client key, so several processes enforce
one limit. Limits and rates are read from the local limiters, so a single
config update governs both modes. Any store failure or timeout falls back
to the local limiter for that call; callers never see a store error.

Redis key format:
- {prefix}:fixed-window:{client_id}   - window counter (expires with the window)
- {prefix}:sliding-window:{client_id} - sorted set of admission timestamps
- {prefix}:token-bucket:{client_id}   - hash {tokens, last}
- {prefix}:leaky-bucket:{client_id}   - list used as the FIFO queue
"""

import asyncio
import math
import secrets
from functools import partial
from typing import Any, Awaitable, Callable, Optional

import redis.asyncio as aioredis

from ratelab.app.core.config import settings
from ratelab.app.core.logging import get_logger, get_log_context
from ratelab.app.exceptions import StoreUnavailableError
from ratelab.app.limiters.fixed_window import FixedWindowLimiter
from ratelab.app.limiters.leaky_bucket import LeakyBucketLimiter
from ratelab.app.limiters.models import (
    Algorithm,
    DecisionReason,
    DecisionResult,
    DecisionStatus,
    now_ms,
)
from ratelab.app.limiters.sliding_window import SlidingWindowLimiter
from ratelab.app.limiters.token_bucket import TokenBucketLimiter

from .redis_lua import FIXED_WINDOW_SCRIPT, SLIDING_WINDOW_SCRIPT, TOKEN_BUCKET_SCRIPT

logger = get_logger(__name__)


def _to_str(value: Any) -> str:
    return value.decode() if isinstance(value, bytes) else str(value)


class SharedStoreService:
    """Redis-backed limiters with per-call local fallback.

    Provides:
    - Atomic fixed window and token bucket via Lua scripts
    - Sliding window via a sorted-set Lua script
    - Leaky bucket via a Redis list drained by the bucket's leak scheduler
    - Bounded store calls (timeout) with fallback to the local limiter
    """

    def __init__(
        self,
        fixed_window: FixedWindowLimiter,
        sliding_window: SlidingWindowLimiter,
        token_bucket: TokenBucketLimiter,
        leaky_bucket: LeakyBucketLimiter,
        redis_client: Optional[Any] = None,
        redis_url: Optional[str] = None,
        key_prefix: Optional[str] = None,
        default_client_id: Optional[str] = None,
        timeout: Optional[float] = None,
        sliding_window_expiry_padding_ms: Optional[int] = None,
        token_bucket_key_ttl_ms: Optional[int] = None,
        clock: Optional[Callable[[], float]] = None,
    ) -> None:
        self._fixed = fixed_window
        self._sliding = sliding_window
        self._token = token_bucket
        self._leaky = leaky_bucket
        self._redis = redis_client
        self._redis_url = redis_url or settings.redis_url
        self._key_prefix = key_prefix or settings.rate_limit_key_prefix
        self._default_client_id = default_client_id or settings.default_client_id
        self._timeout = timeout or settings.store_timeout_seconds
        self._sliding_padding_ms = (
            settings.sliding_window_expiry_padding_ms
            if sliding_window_expiry_padding_ms is None
            else sliding_window_expiry_padding_ms
        )
        self._token_key_ttl_ms = token_bucket_key_ttl_ms or settings.token_bucket_key_ttl_ms
        self._clock = clock or now_ms

    def _get_redis(self) -> Any:
        """Get or create the Redis client."""
        if self._redis is None:
            self._redis = aioredis.from_url(
                self._redis_url,
                socket_timeout=self._timeout,
                socket_connect_timeout=self._timeout,
            )
        return self._redis

    def make_key(self, algorithm: Algorithm, client_id: Optional[str] = None) -> str:
        """Build the store key; unkeyed callers share the default client bucket."""
        return f"{self._key_prefix}:{algorithm.value}:{client_id or self._default_client_id}"

    async def _guarded(self, operation: str, call: Awaitable[Any]) -> Any:
        """Run one store operation with a deadline, normalising every failure."""
        try:
            return await asyncio.wait_for(call, timeout=self._timeout)
        except Exception as e:
            raise StoreUnavailableError(operation, e) from e

    def _log_fallback(self, algorithm: Algorithm, request_id: str, client_id: Optional[str], error: Exception) -> None:
        logger.warning(
            f"Shared store unavailable for {algorithm.value}: {error}. Falling back to local limiter.",
            extra=get_log_context(
                request_id=request_id,
                client_id=client_id,
                algorithm=algorithm.value,
                backend="local",
            ),
        )

    # ---------- Fixed window ----------

    async def fixed_window(self, request_id: str, client_id: Optional[str] = None) -> DecisionResult:
        """Shared fixed window decision."""
        try:
            return await self._guarded(
                "fixed_window", self._fixed_window_in_store(request_id, client_id)
            )
        except StoreUnavailableError as e:
            self._log_fallback(Algorithm.FIXED_WINDOW, request_id, client_id, e)
            return await self._fixed.decide(request_id)

    async def _fixed_window_in_store(self, request_id: str, client_id: Optional[str]) -> DecisionResult:
        redis = self._get_redis()
        key = self.make_key(Algorithm.FIXED_WINDOW, client_id)
        limit = self._fixed.limit
        value = int(await redis.eval(FIXED_WINDOW_SCRIPT, 1, key, int(self._fixed.window_ms)))
        now = self._clock()
        if value <= limit:
            return DecisionResult.at(request_id, DecisionStatus.ALLOWED, now, count=value)
        return DecisionResult.at(
            request_id,
            DecisionStatus.REJECTED,
            now,
            count=value,
            reason=DecisionReason.LIMIT_EXCEEDED,
        )

    # ---------- Sliding window ----------

    async def sliding_window(self, request_id: str, client_id: Optional[str] = None) -> DecisionResult:
        """Shared sliding window decision."""
        try:
            return await self._guarded(
                "sliding_window", self._sliding_window_in_store(request_id, client_id)
            )
        except StoreUnavailableError as e:
            self._log_fallback(Algorithm.SLIDING_WINDOW, request_id, client_id, e)
            return await self._sliding.decide(request_id)

    async def _sliding_window_in_store(self, request_id: str, client_id: Optional[str]) -> DecisionResult:
        redis = self._get_redis()
        key = self.make_key(Algorithm.SLIDING_WINDOW, client_id)
        limit = self._sliding.limit
        window_ms = self._sliding.window_ms
        now = self._clock()
        # Tag members so admissions in the same millisecond do not collide
        member = f"{int(now)}-{secrets.token_hex(4)}"

        count = int(await redis.eval(
            SLIDING_WINDOW_SCRIPT,
            1,  # Number of keys
            key,  # KEYS[1]
            now,  # ARGV[1]
            member,  # ARGV[2]
            f"({now - window_ms}",  # ARGV[3]
            limit,  # ARGV[4]
            int(window_ms + self._sliding_padding_ms),  # ARGV[5]
        ))

        if count <= limit:
            return DecisionResult.at(request_id, DecisionStatus.ALLOWED, now, count=count)

        # The script already removed the rejected member
        return DecisionResult.at(
            request_id,
            DecisionStatus.REJECTED,
            now,
            count=count - 1,
            reason=DecisionReason.LIMIT_EXCEEDED,
        )

    # ---------- Token bucket ----------

    async def token_bucket(self, request_id: str, client_id: Optional[str] = None) -> DecisionResult:
        """Shared token bucket decision."""
        try:
            return await self._guarded(
                "token_bucket", self._token_bucket_in_store(request_id, client_id)
            )
        except StoreUnavailableError as e:
            self._log_fallback(Algorithm.TOKEN_BUCKET, request_id, client_id, e)
            return await self._token.decide(request_id)

    async def _token_bucket_in_store(
        self, request_id: str, client_id: Optional[str], requested: int = 1
    ) -> DecisionResult:
        redis = self._get_redis()
        key = self.make_key(Algorithm.TOKEN_BUCKET, client_id)
        now = self._clock()
        result = await redis.eval(
            TOKEN_BUCKET_SCRIPT,
            1,  # Number of keys
            key,  # KEYS[1]
            self._token.capacity,  # ARGV[1]
            self._token.refill_per_second / 1000.0,  # ARGV[2]
            int(now),  # ARGV[3]
            requested,  # ARGV[4]
            self._token_key_ttl_ms,  # ARGV[5]
        )
        allowed = int(result[0]) == 1
        tokens = float(_to_str(result[1]))
        if allowed:
            return DecisionResult.at(
                request_id, DecisionStatus.ALLOWED, now, count=math.floor(tokens)
            )
        return DecisionResult.at(
            request_id,
            DecisionStatus.REJECTED,
            now,
            count=math.floor(tokens),
            reason=DecisionReason.NO_TOKENS,
        )

    # ---------- Leaky bucket ----------

    async def leaky_bucket_enqueue(self, request_id: str, client_id: Optional[str] = None) -> DecisionResult:
        """Queue a request in the shared list; a drain worker admits it later."""
        queue_key = self.make_key(Algorithm.LEAKY_BUCKET, client_id)
        try:
            result = await self._guarded(
                "leaky_bucket_enqueue", self._leaky_enqueue_in_store(request_id, queue_key)
            )
        except StoreUnavailableError as e:
            self._log_fallback(Algorithm.LEAKY_BUCKET, request_id, client_id, e)
            return await self._leaky.enqueue(request_id)
        self.start_leak_worker(queue_key)
        return result

    async def _leaky_enqueue_in_store(self, request_id: str, queue_key: str) -> DecisionResult:
        redis = self._get_redis()
        max_queue_size = self._leaky.queue.max_size
        length = int(await redis.llen(queue_key))
        now = self._clock()
        if length >= max_queue_size:
            return DecisionResult.at(
                request_id,
                DecisionStatus.REJECTED,
                now,
                count=length,
                reason=DecisionReason.QUEUE_FULL,
            )
        # LLEN and RPUSH are separate calls: concurrent producers in other
        # processes can push past max_queue_size between them.
        depth = int(await redis.rpush(queue_key, request_id))
        return DecisionResult.at(request_id, DecisionStatus.QUEUED, now, count=depth)

    def start_leak_worker(self, queue_key: str) -> bool:
        """Start draining ``queue_key`` on the bucket's scheduler (idempotent)."""
        return self._leaky.scheduler.start(queue_key, partial(self.leak_from_store, queue_key))

    async def stop_leak_worker(self, queue_key: str) -> None:
        await self._leaky.scheduler.stop(queue_key)

    async def leak_from_store(self, queue_key: str) -> Optional[DecisionResult]:
        """Pop the oldest queued request and publish its admission."""
        item = await self._guarded("leaky_bucket_pop", self._lpop(queue_key))
        if item is None:
            return None
        result = DecisionResult.at(_to_str(item), DecisionStatus.ALLOWED, self._clock())
        self._leaky.publish(result)
        return result

    async def _lpop(self, queue_key: str) -> Any:
        return await self._get_redis().lpop(queue_key)

    # ---------- Lifecycle ----------

    async def ping(self) -> bool:
        """Check store connectivity without raising."""
        try:
            return bool(await self._guarded("ping", self._ping()))
        except StoreUnavailableError as e:
            logger.warning(f"Shared store ping failed: {e}")
            return False

    async def _ping(self) -> Any:
        # Client creation stays inside the guard: a bad URL fails here
        return await self._get_redis().ping()

    async def close(self) -> None:
        """Stop store drain workers and close the Redis connection."""
        for key in self._leaky.scheduler.keys():
            if key != LeakyBucketLimiter.LOCAL_QUEUE_KEY:
                await self.stop_leak_worker(key)
        if self._redis is not None:
            try:
                await self._redis.aclose()
            except Exception as e:
                logger.warning(f"Error closing Redis connection: {e}")
            self._redis = None
