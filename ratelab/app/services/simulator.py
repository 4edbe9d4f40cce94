"""Traffic simulator: drive one limiter endpoint with a burst plus steady load.

The simulator talks HTTP to a running service (or to an in-process app via
an ``httpx.ASGITransport``) and tallies the decision statuses it gets back.
"""

from __future__ import annotations

import asyncio
import time
from collections import Counter
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

import httpx

from ratelab.app.core.logging import get_logger, get_log_context
from ratelab.app.limiters.models import Algorithm

logger = get_logger(__name__)


@dataclass
class SimulationConfig:
    """Load shape for one run."""

    algorithm: str = Algorithm.FIXED_WINDOW.value
    burst: int = 20
    rps: float = 10.0
    duration_seconds: float = 5.0
    client_id: Optional[str] = None
    request_timeout: float = 5.0
    base_url: str = "http://localhost:8000"

    def __post_init__(self):
        if self.burst < 0:
            raise ValueError("burst must be >= 0")
        if self.rps < 0:
            raise ValueError("rps must be >= 0")
        if self.duration_seconds < 0:
            raise ValueError("duration_seconds must be >= 0")


@dataclass
class SimulationReport:
    """Status tally of one run."""

    algorithm: str
    sent: int = 0
    statuses: Counter = field(default_factory=Counter)
    elapsed_seconds: float = 0.0

    def record(self, status: str) -> None:
        self.sent += 1
        self.statuses[status] += 1

    def to_dict(self) -> Dict[str, Any]:
        return {
            "algorithm": self.algorithm,
            "sent": self.sent,
            "statuses": dict(self.statuses),
            "elapsedSeconds": round(self.elapsed_seconds, 3),
        }


class TrafficSimulator:
    """Send a burst followed by steady traffic to ``/api/{algorithm}``.

    Usage:
        config = SimulationConfig(algorithm="token-bucket", burst=15, rps=5, duration_seconds=3)
        report = await TrafficSimulator(config).run()
        print(report.to_dict())
    """

    def __init__(
        self,
        config: SimulationConfig,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.config = config
        self._transport = transport
        self._sequence = 0

    def _next_request_id(self) -> str:
        self._sequence += 1
        return f"sim_{self._sequence:05d}"

    async def send_one(self, client: httpx.AsyncClient) -> str:
        """Send one admission request and return its decision status.

        Transport failures and non-JSON answers are tallied as ``error``.
        """
        payload: Dict[str, Any] = {"requestId": self._next_request_id()}
        if self.config.client_id:
            payload["clientId"] = self.config.client_id
        try:
            response = await client.post(f"/api/{self.config.algorithm}", json=payload)
        except httpx.HTTPError as e:
            logger.warning(
                f"Simulated request failed: {e}",
                extra=get_log_context(request_id=payload["requestId"], algorithm=self.config.algorithm),
            )
            return "error"
        if response.status_code == 404:
            return "ignored"
        if response.status_code != 200:
            return "error"
        try:
            return str(response.json().get("status", "error"))
        except ValueError:
            return "error"

    async def run(self) -> SimulationReport:
        """Run the burst, then the steady phase, and return the tally."""
        cfg = self.config
        report = SimulationReport(algorithm=cfg.algorithm)
        started = time.monotonic()

        async with httpx.AsyncClient(
            base_url=cfg.base_url,
            transport=self._transport,
            timeout=cfg.request_timeout,
        ) as client:
            if cfg.burst:
                statuses: List[str] = await asyncio.gather(
                    *(self.send_one(client) for _ in range(cfg.burst))
                )
                for status in statuses:
                    report.record(status)

            steady = int(cfg.rps * cfg.duration_seconds)
            if steady:
                interval = 1.0 / cfg.rps
                loop = asyncio.get_running_loop()
                next_at = loop.time()
                for _ in range(steady):
                    await asyncio.sleep(max(0.0, next_at - loop.time()))
                    next_at += interval
                    report.record(await self.send_one(client))

        report.elapsed_seconds = time.monotonic() - started
        logger.info(
            f"Simulation finished: {report.sent} requests, {dict(report.statuses)}",
            extra=get_log_context(algorithm=cfg.algorithm),
        )
        return report
