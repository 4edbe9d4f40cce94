import json
import re
from typing import Annotated, Any

from pydantic import field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict


def _parse_cors_origins(raw: Any) -> list[str]:
    if raw is None:
        return []
    if isinstance(raw, list):
        items = [str(v).strip() for v in raw]
        return [v for v in items if v]

    raw = str(raw).strip()
    if not raw or raw == "[]":
        return []
    if raw == "*":
        return ["*"]

    # Prefer JSON, but tolerate comma or whitespace separated values so a
    # misconfigured deployment still starts.
    if raw.startswith(("[", '"', "'")):
        try:
            parsed = json.loads(raw)
        except json.JSONDecodeError:
            parsed = None
        if isinstance(parsed, list):
            items = [str(v).strip() for v in parsed]
            return [v for v in items if v]
        if isinstance(parsed, str):
            raw = parsed.strip()

    origins: list[str] = []
    for part in re.split(r"[,\s]+", raw):
        if not part:
            continue
        if part == "*":
            return ["*"]
        if part not in origins:
            origins.append(part)
    return origins


class Settings(BaseSettings):
    """Application settings loaded from environment variables.

    All settings can be configured via environment variables or .env file.
    """

    # Debug mode - enables detailed error responses
    debug: bool = False

    # Logging settings
    log_level: str = "INFO"
    log_format: str = "text"  # text | structured | json

    # Shared store (Redis) settings
    redis_enabled: bool = False
    redis_url: str = "redis://localhost:6379/0"
    store_timeout_seconds: float = 0.5  # Upper bound for a single store call
    rate_limit_key_prefix: str = "ratelimit"
    default_client_id: str = "demo"  # Unkeyed callers share this bucket
    sliding_window_expiry_padding_ms: int = 1000
    token_bucket_key_ttl_ms: int = 86_400_000  # Keep bucket state for a day

    # Decision log settings
    decision_log_max_entries: int = 2000
    decision_log_subscriber_queue_size: int = 1000

    # Fixed window defaults
    fixed_window_limit: int = 10
    fixed_window_ms: int = 1000

    # Sliding window defaults
    sliding_window_limit: int = 10
    sliding_window_ms: int = 1000

    # Token bucket defaults
    token_bucket_capacity: int = 10
    token_bucket_refill_per_second: float = 5.0

    # Leaky bucket defaults
    leaky_bucket_capacity: int = 50
    leaky_bucket_leak_per_second: float = 5.0
    leaky_bucket_max_queue_size: int = 100

    # CORS settings
    cors_origins: Annotated[list[str], NoDecode] = ["*"]

    @field_validator("cors_origins", mode="before")
    @classmethod
    def decode_cors_origins(cls, v: Any) -> list[str]:
        return _parse_cors_origins(v)

    @field_validator(
        "fixed_window_ms",
        "sliding_window_ms",
        "token_bucket_capacity",
        "leaky_bucket_capacity",
        "decision_log_max_entries",
        "decision_log_subscriber_queue_size",
    )
    @classmethod
    def validate_positive_int(cls, v: int) -> int:
        """Validate sizes and windows are at least 1."""
        if v < 1:
            raise ValueError("value must be at least 1")
        return v

    @field_validator(
        "fixed_window_limit",
        "sliding_window_limit",
        "leaky_bucket_max_queue_size",
        "sliding_window_expiry_padding_ms",
    )
    @classmethod
    def validate_non_negative(cls, v: int) -> int:
        """Validate limits are not negative."""
        if v < 0:
            raise ValueError("value must not be negative")
        return v

    @field_validator(
        "store_timeout_seconds",
        "token_bucket_refill_per_second",
        "leaky_bucket_leak_per_second",
    )
    @classmethod
    def validate_positive_float(cls, v: float) -> float:
        """Validate rates and timeouts are positive."""
        if v <= 0:
            raise ValueError("value must be positive")
        return v

    @field_validator("token_bucket_key_ttl_ms")
    @classmethod
    def validate_key_ttl(cls, v: int) -> int:
        """Validate bucket key TTL outlives a few refill cycles."""
        if v < 1000:
            raise ValueError("token_bucket_key_ttl_ms should be at least 1000")
        return v

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")


# Global settings instance
settings = Settings()
