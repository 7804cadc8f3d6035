"""Utility script to process pending deliveries without starting the API."""

from __future__ import annotations

import argparse
import logging

from sqlalchemy.exc import SQLAlchemyError

from carenotify.config import get_settings
from carenotify.infrastructure.database import engine, initialize_database
from carenotify.infrastructure.notifications import notification_manager
from carenotify.interfaces.api.dependencies import build_services


def parse_args() -> argparse.Namespace:
    """Parse command line arguments for the queue drain."""

    parser = argparse.ArgumentParser(
        description="Process queued notification deliveries once and exit.",
    )
    parser.add_argument(
        "--batch-size",
        type=int,
        default=None,
        help="Items leased per batch (default: WORKER_BATCH_SIZE)",
    )
    parser.add_argument(
        "--max-batches",
        type=int,
        default=1,
        help="Stop after this many batches (default: 1)",
    )
    parser.add_argument(
        "--stats",
        action="store_true",
        help="Print queue statistics and exit without processing anything.",
    )
    return parser.parse_args()


def main() -> None:
    """Drain due queue items using the configured channel senders."""

    args = parse_args()
    settings = get_settings()
    logging.basicConfig(level=settings.log_level)

    initialize_database()
    services = build_services(settings, engine, notification_manager)
    try:
        if args.stats:
            print(services.queue.stats())
            return

        recovered = services.queue.recover_stale_leases()
        processed = 0
        for _ in range(max(args.max_batches, 1)):
            count = services.pool.run_once(args.batch_size, worker_id="drain-script")
            processed += count
            if not count:
                break
    except SQLAlchemyError as exc:
        raise SystemExit(f"Could not read the delivery queue: {exc}") from exc
    finally:
        services.manager.shutdown()

    print(
        "Queue drained:\n"
        f"  Reclaimed leases: {recovered}\n"
        f"  Items processed: {processed}\n"
        f"  Remaining queued: {services.queue.stats()['queued']}"
    )


if __name__ == "__main__":
    main()
