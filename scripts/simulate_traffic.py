#!/usr/bin/env python3
"""Send burst + steady traffic to a running ratelab service.

Usage:
    python scripts/simulate_traffic.py --algorithm token-bucket --burst 15 --rps 5 --duration 3
    python scripts/simulate_traffic.py --algorithm leaky-bucket --client-id alice --url http://localhost:8000
"""

import argparse
import asyncio
import json

from ratelab.app.core.logging import setup_logging
from ratelab.app.limiters.models import Algorithm
from ratelab.app.services.simulator import SimulationConfig, TrafficSimulator


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="ratelab traffic simulator")
    parser.add_argument(
        "--algorithm",
        default=Algorithm.FIXED_WINDOW.value,
        choices=[algo.value for algo in Algorithm],
        help="Limiter endpoint to drive",
    )
    parser.add_argument("--burst", type=int, default=20, help="Requests sent at once before the steady phase")
    parser.add_argument("--rps", type=float, default=10.0, help="Steady-phase requests per second")
    parser.add_argument("--duration", type=float, default=5.0, help="Steady-phase length in seconds")
    parser.add_argument("--client-id", default=None, help="Client id for shared-store keys")
    parser.add_argument("--url", default="http://localhost:8000", help="Service base URL")
    return parser.parse_args()


async def main() -> None:
    args = parse_args()
    setup_logging()
    config = SimulationConfig(
        algorithm=args.algorithm,
        burst=args.burst,
        rps=args.rps,
        duration_seconds=args.duration,
        client_id=args.client_id,
        base_url=args.url,
    )
    report = await TrafficSimulator(config).run()
    print(json.dumps(report.to_dict(), indent=2))


if __name__ == "__main__":
    asyncio.run(main())
