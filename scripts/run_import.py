#!/usr/bin/env python3
"""CLI script to reconcile pending wholesaler records with the catalog store."""

import argparse
import asyncio
import sys
from pathlib import Path

# Add src to path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

import structlog

from catalog_sync.config import get_settings
from catalog_sync.logging_config import configure_logging
from catalog_sync.runtime import open_runtime

logger = structlog.get_logger()


class InlineTickScheduler:
    """Tick requests are ignored; this script drives the queue itself."""

    def schedule_tick(self, delay_seconds: int) -> None:
        logger.debug("Tick requested", delay_seconds=delay_seconds)


async def main(args: argparse.Namespace) -> None:
    """Main import function."""
    settings = get_settings()
    configure_logging(settings)

    async with open_runtime(settings, InlineTickScheduler()) as runtime:
        if args.reset_failed:
            reset = await runtime.records.reset_to_pending()
            logger.info("Reset failed records", count=reset)

        logger.info("Raw record statistics", **await runtime.records.statistics())
        if args.stats:
            return

        for batch in range(1, args.batches + 1):
            result = await runtime.engine.import_batch(args.batch_size)
            logger.info(
                "Batch imported",
                batch=batch,
                created=result.created,
                updated=result.updated,
                skipped=result.skipped,
                failed=len(result.failed_ids),
            )
            for error in result.errors:
                logger.warning("Import error", error=error)
            if result.processed + result.skipped + len(result.failed_ids) < args.batch_size:
                break

        exhausted = await runtime.records.fail_exhausted(settings.record_max_attempts)
        logger.info("Import finished", exhausted=exhausted, **await runtime.records.statistics())


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Import pending wholesaler records")
    parser.add_argument("--batch-size", type=int, default=50)
    parser.add_argument("--batches", type=int, default=1)
    parser.add_argument("--reset-failed", action="store_true", help="Reset Failed records first")
    parser.add_argument("--stats", action="store_true", help="Only print record statistics")
    asyncio.run(main(parser.parse_args()))
