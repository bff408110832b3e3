"""Protean Engine runner for the ordering domain.

Starts the background workers:
- Engine: outbox processing and stream subscriptions (projectors) when
  event processing is asynchronous
- Cashback release loop: periodically settles scheduler-managed cashback
  whose eligibility time has passed

Usage:
    python src/server.py                    # Run engine and release loop
    python src/server.py --no-engine        # Run only the release loop
    python src/server.py --interval 60      # Release every minute
"""

import argparse
import asyncio
import os

import structlog
from protean.server.engine import Engine

logger = structlog.get_logger(__name__)

DEFAULT_RELEASE_INTERVAL_SECONDS = 300


def _get_domain():
    """Import and initialize the ordering domain."""
    from ordering.domain import ordering

    ordering.init()
    return ordering


def release_cashback_once(domain) -> dict:
    from ordering.ledger.operations import ReleaseEligibleCashback

    with domain.domain_context():
        return domain.process(ReleaseEligibleCashback(), asynchronous=False)


async def release_cashback_forever(domain, interval: float) -> None:
    """Run the cashback release on a fixed interval until cancelled."""
    while True:
        try:
            result = release_cashback_once(domain)
            logger.info("Cashback release run finished", **result)
        except Exception as exc:
            logger.error("Cashback release run failed", error=str(exc))
        await asyncio.sleep(interval)


async def run(with_engine: bool, interval: float):
    domain = _get_domain()
    tasks = [release_cashback_forever(domain, interval)]
    if with_engine:
        tasks.append(Engine(domain).run())

    await asyncio.gather(*tasks)


def main():
    from ordering.utils.logging import configure_logging

    parser = argparse.ArgumentParser(description="Ordering engine runner")
    parser.add_argument(
        "--no-engine",
        action="store_true",
        help="Skip the Protean Engine and run only the cashback release loop",
    )
    parser.add_argument(
        "--interval",
        type=float,
        default=float(os.environ.get("CASHBACK_RELEASE_INTERVAL_SECONDS", DEFAULT_RELEASE_INTERVAL_SECONDS)),
        help="Seconds between cashback release runs",
    )
    args = parser.parse_args()

    configure_logging()
    asyncio.run(run(with_engine=not args.no_engine, interval=args.interval))


if __name__ == "__main__":
    main()
