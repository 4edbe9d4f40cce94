"""Data models for admission decisions, limiter config and state snapshots."""

import math
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Mapping, Optional

from pydantic import BaseModel, ConfigDict, field_validator
from pydantic.alias_generators import to_camel

from ratelab.app.core.logging import get_logger

logger = get_logger(__name__)


def now_ms() -> float:
    """Wall-clock time in epoch milliseconds."""
    return time.time() * 1000.0


def ms_to_datetime(value_ms: float) -> datetime:
    """Convert epoch milliseconds to an aware UTC datetime."""
    return datetime.fromtimestamp(value_ms / 1000.0, tz=timezone.utc)


class Algorithm(str, Enum):
    """Supported admission algorithms, valued by their public names."""
    FIXED_WINDOW = "fixed-window"
    SLIDING_WINDOW = "sliding-window"
    TOKEN_BUCKET = "token-bucket"
    LEAKY_BUCKET = "leaky-bucket"

    @classmethod
    def parse(cls, name: str) -> Optional["Algorithm"]:
        """Return the matching algorithm, or None for an unknown name."""
        try:
            return cls(name)
        except ValueError:
            return None


class DecisionStatus(str, Enum):
    ALLOWED = "allowed"
    REJECTED = "rejected"
    QUEUED = "queued"
    IGNORED = "ignored"


class DecisionReason(str, Enum):
    """Stable machine-readable reason codes."""
    LIMIT_EXCEEDED = "limit_exceeded"
    NO_TOKENS = "no_tokens"
    QUEUE_FULL = "queue_full"
    UNKNOWN_ALGORITHM = "unknown_algorithm"


@dataclass(frozen=True)
class DecisionResult:
    """Outcome of one admission decision.

    Attributes:
        request_id: Caller-visible request identifier
        status: allowed, rejected, queued or ignored
        timestamp: When the decision was made (UTC)
        count: Algorithm-specific occupancy (window count, tokens left, queue depth)
        reason: Reason code for non-admissions
    """
    request_id: str
    status: DecisionStatus
    timestamp: datetime
    count: Optional[int] = None
    reason: Optional[DecisionReason] = None

    @classmethod
    def at(
        cls,
        request_id: str,
        status: DecisionStatus,
        when_ms: float,
        count: Optional[int] = None,
        reason: Optional[DecisionReason] = None,
    ) -> "DecisionResult":
        """Build a result stamped with an epoch-millisecond instant."""
        return cls(
            request_id=request_id,
            status=status,
            timestamp=ms_to_datetime(when_ms),
            count=count,
            reason=reason,
        )

    def to_dict(self) -> Dict[str, Any]:
        """Convert to the wire representation, omitting absent fields."""
        data: Dict[str, Any] = {
            "requestId": self.request_id,
            "status": self.status.value,
            "timestamp": self.timestamp.isoformat(),
        }
        if self.count is not None:
            data["count"] = self.count
        if self.reason is not None:
            data["reason"] = self.reason.value
        return data


def _coerce_number(
    name: str,
    value: Any,
    *,
    integer: bool,
    allow_zero: bool = True,
) -> Optional[float]:
    """Return a usable numeric config value, or None when malformed."""
    if value is None:
        return None
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        logger.warning(f"Ignoring non-numeric config value {name}={value!r}")
        return None
    if isinstance(value, float) and not math.isfinite(value):
        logger.warning(f"Ignoring non-finite config value {name}={value!r}")
        return None
    if integer and isinstance(value, float):
        if not value.is_integer():
            logger.warning(f"Ignoring fractional config value {name}={value!r}")
            return None
        value = int(value)
    if value < 0 or (value == 0 and not allow_zero):
        logger.warning(f"Ignoring out-of-range config value {name}={value!r}")
        return None
    return value


class LimiterConfig(BaseModel):
    """Sparse config update; only fields relevant to the target are read.

    Parsing never fails on bad values: a malformed field is dropped so the
    limiter keeps its previous value.
    """

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
        frozen=True,
    )

    limit: Optional[int] = None
    window_ms: Optional[int] = None
    capacity: Optional[int] = None
    refill_per_second: Optional[float] = None
    leak_per_second: Optional[float] = None
    max_queue_size: Optional[int] = None

    @field_validator("limit", "capacity", "max_queue_size", mode="before")
    @classmethod
    def _tolerant_count(cls, v: Any, info) -> Optional[int]:
        return _coerce_number(info.field_name, v, integer=True)

    @field_validator("window_ms", mode="before")
    @classmethod
    def _tolerant_window(cls, v: Any, info) -> Optional[int]:
        return _coerce_number(info.field_name, v, integer=True, allow_zero=False)

    @field_validator("refill_per_second", "leak_per_second", mode="before")
    @classmethod
    def _tolerant_rate(cls, v: Any, info) -> Optional[float]:
        return _coerce_number(info.field_name, v, integer=False, allow_zero=False)

    @classmethod
    def from_mapping(cls, raw: Mapping[str, Any]) -> "LimiterConfig":
        """Parse a raw (camelCase or snake_case) mapping leniently."""
        return cls.model_validate(dict(raw))

    def provided_fields(self) -> Dict[str, Any]:
        """Fields that survived parsing, keyed by their snake_case names."""
        return {
            name: value
            for name, value in self.model_dump().items()
            if value is not None
        }


@dataclass(frozen=True)
class FixedWindowState:
    limit: int
    window_ms: int
    count: int
    window_start: float

    def to_dict(self) -> Dict[str, Any]:
        return {
            "limit": self.limit,
            "windowMs": self.window_ms,
            "count": self.count,
            "windowStart": self.window_start,
        }


@dataclass(frozen=True)
class SlidingWindowState:
    limit: int
    window_ms: int
    count: int

    def to_dict(self) -> Dict[str, Any]:
        return {"limit": self.limit, "windowMs": self.window_ms, "count": self.count}


@dataclass(frozen=True)
class TokenBucketState:
    capacity: int
    tokens: float
    refill_per_second: float
    last_refill: float

    def to_dict(self) -> Dict[str, Any]:
        return {
            "capacity": self.capacity,
            "tokens": self.tokens,
            "refillPerSecond": self.refill_per_second,
            "lastRefill": self.last_refill,
        }


@dataclass(frozen=True)
class LeakyBucketState:
    capacity: int
    leak_per_second: float
    max_queue_size: int
    queue_size: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "capacity": self.capacity,
            "leakPerSecond": self.leak_per_second,
            "maxQueueSize": self.max_queue_size,
            "queueSize": self.queue_size,
        }


@dataclass(frozen=True)
class ConfigUpdateResult:
    """Outcome of a registry config update.

    Attributes:
        algorithm: Algorithm name as requested
        applied: False when the algorithm is unknown
        updated_fields: Fields merged into the live limiter
        ignored_fields: Provided fields that were malformed or irrelevant
        reason: Set when nothing was applied
    """
    algorithm: str
    applied: bool
    updated_fields: tuple = field(default_factory=tuple)
    ignored_fields: tuple = field(default_factory=tuple)
    reason: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "algorithm": self.algorithm,
            "applied": self.applied,
            "updatedFields": list(self.updated_fields),
            "ignoredFields": list(self.ignored_fields),
            "reason": self.reason,
        }
