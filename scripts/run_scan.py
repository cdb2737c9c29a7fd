#!/usr/bin/env python3
# =============================================================================
# scripts/run_scan.py - Local Scan Orchestration Loop
# =============================================================================
# Runs scan invocations back to back in this process, feeding each returned
# checkpoint into the next call until the scan completes. Useful for a one-off
# backfill without Redis/Celery.
#
# Usage:
#   poetry run python scripts/run_scan.py --mode catch_up
#   poetry run python scripts/run_scan.py --mode incremental --last-id <uuid>
#   poetry run python scripts/run_scan.py --mode incremental --max-invocations 3
# =============================================================================

import argparse
import asyncio
import os
import sys
from collections import Counter

# Add project root to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from dotenv import load_dotenv

load_dotenv()

from app.config import settings  # noqa: E402
from core.models.batch import ZERO_ID, BatchCheckpoint, ScanMode  # noqa: E402
from core.services.address_processor import AddressProcessor  # noqa: E402
from core.services.batch_coordinator import BatchCoordinator  # noqa: E402
from core.services.geocoder import Geocoder  # noqa: E402
from lib.supabase_client import AddressStore  # noqa: E402
from lib.utils import ApplicationError  # noqa: E402


def parse_args(argv: list[str]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Run geocoding scans until complete")
    parser.add_argument("--mode", default="catch_up", choices=[m.value for m in ScanMode])
    parser.add_argument("--last-id", default=ZERO_ID, help="Resume after this profile_id")
    parser.add_argument("--max-invocations", type=int, default=None, help="Stop after this many invocations")
    parser.add_argument(
        "--pause",
        type=float,
        default=float(settings.BATCH_CONTINUATION_DELAY_SECONDS),
        help="Seconds to wait between invocations",
    )
    return parser.parse_args(argv)


async def run(args: argparse.Namespace) -> int:
    checkpoint = BatchCheckpoint(last_processed_id=args.last_id, mode=ScanMode(args.mode))
    totals: Counter = Counter()
    invocations = 0

    store = await AddressStore.connect()
    async with Geocoder.from_settings() as geocoder:
        coordinator = BatchCoordinator.from_settings(store, AddressProcessor(store, geocoder))

        while True:
            invocations += 1
            result = await coordinator.run_scan(checkpoint)
            totals.update(r.status.value for r in result.results)
            checkpoint = result.checkpoint

            print(
                f"[{invocations}] processed {result.processed_count} "
                f"(total matching: {result.total_count}), "
                f"last id {checkpoint.last_processed_id}"
            )

            if result.is_complete:
                print("Scan complete")
                break
            if args.max_invocations is not None and invocations >= args.max_invocations:
                print(f"Stopping after {invocations} invocations; resume with --last-id {checkpoint.last_processed_id}")
                break

            await asyncio.sleep(args.pause)

    print()
    print("Results:")
    for status, count in sorted(totals.items()):
        print(f"  {status}: {count}")
    return 0


def main() -> int:
    args = parse_args(sys.argv[1:])
    try:
        return asyncio.run(run(args))
    except ApplicationError as e:
        print(f"Scan failed: {e}")
        return 1


if __name__ == "__main__":
    sys.exit(main())
