"""Services package for the rate limiter.

This package provides:
- The limiter registry (request routing and config surface)
- Redis shared-store limiters with local fallback
- The decision log sink
- A traffic simulator for exercising the HTTP endpoints
"""

from ratelab.app.services.decision_log import DecisionLog
from ratelab.app.services.shared_store import SharedStoreService
from ratelab.app.services.registry import LimiterRegistry
from ratelab.app.services.simulator import SimulationConfig, SimulationReport, TrafficSimulator

__all__ = [
    "DecisionLog",
    "SharedStoreService",
    "LimiterRegistry",
    "SimulationConfig",
    "SimulationReport",
    "TrafficSimulator",
]
