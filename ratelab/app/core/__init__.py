"""Core utilities for the rate limiter service."""

from ratelab.app.core.config import settings
from ratelab.app.core.logging import get_logger, setup_logging

__all__ = [
    "settings",
    "get_logger",
    "setup_logging",
]
