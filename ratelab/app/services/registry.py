"""Limiter registry: one instance per algorithm, routed by name.

The registry is the request-path entry point. It picks the shared-store
variant when one is configured, publishes every produced decision to the
decision log exactly once, and applies config updates to live limiters.
"""

from typing import Any, Callable, Dict, Mapping, Optional, Union

from pydantic.alias_generators import to_camel

from ratelab.app.core.config import Settings, settings as default_settings
from ratelab.app.core.logging import get_logger, get_log_context
from ratelab.app.limiters.base import LocalLimiter
from ratelab.app.limiters.fixed_window import FixedWindowLimiter
from ratelab.app.limiters.leaky_bucket import LeakyBucketLimiter
from ratelab.app.limiters.models import (
    Algorithm,
    ConfigUpdateResult,
    DecisionReason,
    DecisionResult,
    DecisionStatus,
    LimiterConfig,
    now_ms,
)
from ratelab.app.limiters.sliding_window import SlidingWindowLimiter
from ratelab.app.limiters.token_bucket import TokenBucketLimiter
from ratelab.app.services.decision_log import DecisionLog
from ratelab.app.services.shared_store import SharedStoreService

logger = get_logger(__name__)

# camelCase wire names -> model field names
_FIELD_NAMES = {to_camel(name): name for name in LimiterConfig.model_fields}


def _field_name(key: str) -> str:
    return _FIELD_NAMES.get(key, key)


class LimiterRegistry:
    """Owns the four limiters and dispatches decisions and config by name."""

    def __init__(
        self,
        fixed_window: FixedWindowLimiter,
        sliding_window: SlidingWindowLimiter,
        token_bucket: TokenBucketLimiter,
        leaky_bucket: LeakyBucketLimiter,
        decision_log: DecisionLog,
        shared_store: Optional[SharedStoreService] = None,
        clock: Optional[Callable[[], float]] = None,
    ) -> None:
        self._limiters: Dict[Algorithm, LocalLimiter] = {
            Algorithm.FIXED_WINDOW: fixed_window,
            Algorithm.SLIDING_WINDOW: sliding_window,
            Algorithm.TOKEN_BUCKET: token_bucket,
            Algorithm.LEAKY_BUCKET: leaky_bucket,
        }
        self.decision_log = decision_log
        self.shared_store = shared_store
        self._clock = clock or now_ms
        # Scheduler-originated admissions go straight to the log
        leaky_bucket.set_sink(decision_log.publish)

    @classmethod
    def from_settings(
        cls,
        app_settings: Optional[Settings] = None,
        decision_log: Optional[DecisionLog] = None,
        redis_client: Optional[Any] = None,
        clock: Optional[Callable[[], float]] = None,
    ) -> "LimiterRegistry":
        """Build a registry with limiters configured from settings."""
        cfg = app_settings or default_settings
        decision_log = decision_log or DecisionLog(
            max_entries=cfg.decision_log_max_entries,
            subscriber_queue_size=cfg.decision_log_subscriber_queue_size,
        )
        fixed = FixedWindowLimiter(cfg.fixed_window_limit, cfg.fixed_window_ms, clock=clock)
        sliding = SlidingWindowLimiter(cfg.sliding_window_limit, cfg.sliding_window_ms, clock=clock)
        token = TokenBucketLimiter(
            cfg.token_bucket_capacity, cfg.token_bucket_refill_per_second, clock=clock
        )
        leaky = LeakyBucketLimiter(
            cfg.leaky_bucket_capacity,
            cfg.leaky_bucket_leak_per_second,
            cfg.leaky_bucket_max_queue_size,
            clock=clock,
        )

        shared_store = None
        if cfg.redis_enabled or redis_client is not None:
            shared_store = SharedStoreService(
                fixed,
                sliding,
                token,
                leaky,
                redis_client=redis_client,
                redis_url=cfg.redis_url,
                key_prefix=cfg.rate_limit_key_prefix,
                default_client_id=cfg.default_client_id,
                timeout=cfg.store_timeout_seconds,
                sliding_window_expiry_padding_ms=cfg.sliding_window_expiry_padding_ms,
                token_bucket_key_ttl_ms=cfg.token_bucket_key_ttl_ms,
                clock=clock,
            )
            logger.info("Using Redis shared-store limiters with local fallback")
        else:
            logger.debug("Using in-memory limiters")

        return cls(fixed, sliding, token, leaky, decision_log, shared_store, clock=clock)

    @property
    def fixed_window(self) -> FixedWindowLimiter:
        return self._limiters[Algorithm.FIXED_WINDOW]

    @property
    def sliding_window(self) -> SlidingWindowLimiter:
        return self._limiters[Algorithm.SLIDING_WINDOW]

    @property
    def token_bucket(self) -> TokenBucketLimiter:
        return self._limiters[Algorithm.TOKEN_BUCKET]

    @property
    def leaky_bucket(self) -> LeakyBucketLimiter:
        return self._limiters[Algorithm.LEAKY_BUCKET]

    def limiter(self, algorithm: Union[str, Algorithm]) -> Optional[LocalLimiter]:
        algo = Algorithm.parse(algorithm)
        return self._limiters.get(algo) if algo else None

    async def admit(
        self,
        algorithm: Union[str, Algorithm],
        request_id: str,
        client_id: Optional[str] = None,
    ) -> DecisionResult:
        """Route one request to its limiter and publish the decision.

        An unknown algorithm yields an ``ignored`` result instead of an error.
        """
        algo = Algorithm.parse(algorithm)
        if algo is None:
            logger.warning(
                f"Ignoring request for unknown algorithm '{algorithm}'",
                extra=get_log_context(request_id=request_id, client_id=client_id),
            )
            result = DecisionResult.at(
                request_id,
                DecisionStatus.IGNORED,
                self._clock(),
                reason=DecisionReason.UNKNOWN_ALGORITHM,
            )
        elif self.shared_store is not None:
            result = await self._admit_shared(algo, request_id, client_id)
        else:
            result = await self._admit_local(algo, request_id)

        self.decision_log.publish(result)
        return result

    async def _admit_local(self, algo: Algorithm, request_id: str) -> DecisionResult:
        if algo is Algorithm.LEAKY_BUCKET:
            return await self.leaky_bucket.enqueue(request_id)
        return await self._limiters[algo].decide(request_id)

    async def _admit_shared(
        self, algo: Algorithm, request_id: str, client_id: Optional[str]
    ) -> DecisionResult:
        store = self.shared_store
        if algo is Algorithm.FIXED_WINDOW:
            return await store.fixed_window(request_id, client_id)
        if algo is Algorithm.SLIDING_WINDOW:
            return await store.sliding_window(request_id, client_id)
        if algo is Algorithm.TOKEN_BUCKET:
            return await store.token_bucket(request_id, client_id)
        return await store.leaky_bucket_enqueue(request_id, client_id)

    def get_state(self, algorithm: Union[str, Algorithm]) -> Any:
        """Snapshot of one local limiter, or None for an unknown name."""
        limiter = self.limiter(algorithm)
        return limiter.get_state() if limiter else None

    def get_all_states(self) -> Dict[str, Dict[str, Any]]:
        return {algo.value: limiter.get_state().to_dict() for algo, limiter in self._limiters.items()}

    async def update_config(
        self,
        algorithm: Union[str, Algorithm],
        raw: Union[Mapping[str, Any], LimiterConfig],
    ) -> ConfigUpdateResult:
        """Merge a partial config into a live limiter.

        Unknown algorithms are accepted but reported as not applied.
        """
        name = algorithm.value if isinstance(algorithm, Algorithm) else str(algorithm)
        if isinstance(raw, LimiterConfig):
            config = raw
            provided = list(raw.provided_fields())
        else:
            config = LimiterConfig.from_mapping(raw)
            provided = [_field_name(key) for key in raw]

        limiter = self.limiter(algorithm)
        if limiter is None:
            logger.warning(f"Config update for unknown algorithm '{name}' ignored")
            return ConfigUpdateResult(
                algorithm=name,
                applied=False,
                ignored_fields=tuple(provided),
                reason="unknown_algorithm",
            )

        applied = await limiter.update_config(config)
        ignored = tuple(field for field in provided if field not in applied)
        logger.info(
            f"Config updated for {name}: {applied}",
            extra=get_log_context(algorithm=name, ignored_fields=list(ignored) or None),
        )
        return ConfigUpdateResult(
            algorithm=name,
            applied=True,
            updated_fields=tuple(applied),
            ignored_fields=ignored,
        )

    def start(self) -> None:
        """Start background drain tickers. Requires a running event loop."""
        self.leaky_bucket.start()

    async def stop(self) -> None:
        """Stop tickers and release the shared store."""
        if self.shared_store is not None:
            await self.shared_store.close()
        await self.leaky_bucket.stop()
