"""Shared-store rate limiting using Redis for multi-instance deployments.

This package provides atomic limiter operations using Redis Lua scripts,
with fallback to the in-process limiters when Redis is unavailable.
"""

from .redis_lua import FIXED_WINDOW_SCRIPT, SLIDING_WINDOW_SCRIPT, TOKEN_BUCKET_SCRIPT
from .service import SharedStoreService

__all__ = [
    "FIXED_WINDOW_SCRIPT",
    "SLIDING_WINDOW_SCRIPT",
    "TOKEN_BUCKET_SCRIPT",
    "SharedStoreService",
]
