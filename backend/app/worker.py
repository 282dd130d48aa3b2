"""
Timer loop that runs a sync cycle every SYNC_INTERVAL_SECONDS (default 5
minutes).

Usage:
    python -m app.worker           # run forever
    python -m app.worker --once    # run a single cycle and exit

A cycle never overlaps the next one: the sleep starts after the cycle
returns. If a cycle raises, the loop waits RETRY_DELAY_SECONDS and tries
again.
"""

import argparse
import logging
import os
import sys
import time
from typing import Callable, Optional

from dotenv import load_dotenv

load_dotenv()

from app.services.account_registry import AccountRegistry
from app.services.sync import AccountSyncer

logger = logging.getLogger(__name__)

SYNC_INTERVAL_SECONDS = int(os.getenv("SYNC_INTERVAL_SECONDS", "300"))
RETRY_DELAY_SECONDS = 60


def run_forever(
    syncer: AccountSyncer,
    interval: int = SYNC_INTERVAL_SECONDS,
    retry_delay: int = RETRY_DELAY_SECONDS,
    max_cycles: Optional[int] = None,
    sleep: Callable[[float], None] = time.sleep,
) -> int:
    """
    Run sync cycles back to back with a pause between them.

    max_cycles bounds the loop (None runs forever). Returns the number of
    cycles started.
    """
    logger.info(f"Starting sync worker - running every {interval}s")
    cycle_count = 0

    while max_cycles is None or cycle_count < max_cycles:
        cycle_count += 1
        logger.info(f"=== CYCLE {cycle_count} ===")

        try:
            syncer.run_cycle()
            logger.info(f"Next cycle in {interval}s")
            sleep(interval)
        except Exception:
            logger.exception(f"Cycle failed, retrying in {retry_delay}s")
            sleep(retry_delay)

    return cycle_count


def main(argv=None) -> int:
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )

    parser = argparse.ArgumentParser(description="Bank alert ledger sync worker")
    parser.add_argument("--once", action="store_true", help="run a single cycle and exit")
    args = parser.parse_args(argv)

    syncer = AccountSyncer(registry=AccountRegistry())

    if args.once:
        result = syncer.run_cycle()
        return 0 if result.success else 1

    run_forever(syncer)
    return 0


if __name__ == "__main__":
    sys.exit(main())
