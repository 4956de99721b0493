"""Protean Engine runner for the StationFlow domains.

Starts, in one process:
- an Engine per domain, processing events asynchronously (fan-out dispatch,
  status reporting, projections)
- the kitchen and barista station workers, each on its own subscription
- a periodic sweep that republishes unpublished tickets and re-drives
  unacknowledged status reports

Usage:
    python src/server.py                          # Everything
    python src/server.py --domain coordination    # Only the coordination engine
    python src/server.py --no-workers             # Engines without station workers
"""

import argparse
import asyncio

from protean.server.engine import Engine
from shared.tickets import StationKind

from coordination.utils.logging import configure_logging, get_logger

logger = get_logger(__name__)

DOMAIN_NAMES = ["coordination", "stations"]


def _get_domain(name):
    """Import and initialize a domain by name."""
    if name == "coordination":
        from coordination.domain import coordination

        coordination.init()
        return coordination
    elif name == "stations":
        from stations.domain import stations

        stations.init()
        return stations
    else:
        raise ValueError(f"Unknown domain: {name}")


def start_workers():
    from stations.worker import StationWorker

    workers = [StationWorker(station) for station in StationKind]
    for worker in workers:
        worker.start()
    return workers


def sweep_once():
    """Republish unpublished tickets, then re-drive unacknowledged status reports.

    Blocks while retrying; run it off the event loop.
    """
    from coordination.domain import coordination
    from coordination.order.fan_out import RepublishPendingTickets
    from stations.domain import stations
    from stations.ticket.reporting import RetryPendingReports

    with coordination.domain_context():
        republished = coordination.process(RepublishPendingTickets(), asynchronous=False)
    with stations.domain_context():
        reported = stations.process(RetryPendingReports(), asynchronous=False)
    return republished, reported


async def sweep(interval: float):
    """Periodically retry fan-out and status reports that did not go through."""
    while True:
        await asyncio.sleep(interval)
        try:
            await asyncio.to_thread(sweep_once)
        except Exception:
            logger.exception("Retry sweep failed")


async def run(domain_names, with_workers: bool, sweep_interval: float):
    engines = []
    for name in domain_names:
        domain = _get_domain(name)
        engines.append(Engine(domain))

    workers = start_workers() if with_workers else []
    tasks = [engine.run() for engine in engines]
    if sweep_interval > 0 and set(domain_names) == set(DOMAIN_NAMES):
        tasks.append(sweep(sweep_interval))

    try:
        await asyncio.gather(*tasks)
    finally:
        for worker in workers:
            worker.stop()
        if "coordination" in domain_names:
            from coordination.order.fan_out import reset_fan_out_pool

            reset_fan_out_pool()


def main():
    configure_logging()

    parser = argparse.ArgumentParser(description="StationFlow Engine runner")
    parser.add_argument(
        "--domain",
        choices=DOMAIN_NAMES,
        help="Run a single domain engine (default: run all)",
    )
    parser.add_argument(
        "--no-workers",
        action="store_true",
        help="Do not start the kitchen and barista workers",
    )
    parser.add_argument(
        "--sweep-interval",
        type=float,
        default=60.0,
        help="Seconds between retry sweeps (0 disables)",
    )
    args = parser.parse_args()

    domain_names = [args.domain] if args.domain else DOMAIN_NAMES
    with_workers = not args.no_workers and "stations" in domain_names

    asyncio.run(run(domain_names, with_workers, args.sweep_interval))


if __name__ == "__main__":
    main()
