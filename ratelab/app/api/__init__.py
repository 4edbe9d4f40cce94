"""API endpoints package for the rate limiter service."""

from ratelab.app.api.config import router as config_router
from ratelab.app.api.limiters import router as limiters_router
from ratelab.app.api.logs import router as logs_router

__all__ = [
    "config_router",
    "limiters_router",
    "logs_router",
]
