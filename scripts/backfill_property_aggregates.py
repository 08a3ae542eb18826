"""
Backfill Property Aggregates Script

Recomputes violation rollups (total, open, types, repeat offender, last
enforcement date) for every property, one batch at a time, resuming from
each batch's next offset until the table is exhausted.

Usage:
    python scripts/backfill_property_aggregates.py [--batch-size 100] [--start-offset 0]
        [--city Phoenix] [--state AZ] [--dry-run] [--api-url http://localhost:8000]
"""
import sys
from pathlib import Path

# Add project root to Python path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

import argparse

from config.settings import settings
from src.leadintake.client.api_client import UploadsAPIClient
from src.leadintake.db import get_db_session
from src.leadintake.pipelines.aggregation import AggregationService, BackfillRequest
from src.leadintake.utils.logger import setup_logging, get_logger

logger = get_logger(__name__)


def run_batch_local(request: BackfillRequest) -> dict:
    with get_db_session() as session:
        result = AggregationService().backfill(session, request)
    return {
        'processed': result.processed,
        'updated': result.updated,
        'skipped': result.skipped,
        'errors': result.errors,
        'progress': result.progress,
        'samples': result.samples,
        'nextOffset': result.next_offset,
    }


def backfill_aggregates(
    batch_size: int,
    start_offset: int = 0,
    city: str = None,
    state: str = None,
    dry_run: bool = False,
    api_url: str = None,
) -> dict:
    """
    Loop over backfill batches until no properties remain.

    Args:
        batch_size: Properties per batch
        start_offset: Offset to resume from
        city: Optional city filter
        state: Optional state filter
        dry_run: Compute without writing; print sample diffs
        api_url: Run batches through the maintenance endpoint instead of
            the database directly

    Returns:
        Totals across all batches
    """
    client = UploadsAPIClient(api_url) if api_url else None
    totals = {'batches': 0, 'processed': 0, 'updated': 0, 'skipped': 0, 'errors': 0}
    offset = start_offset

    logger.info(
        "backfill_aggregates_started",
        batch_size=batch_size,
        start_offset=start_offset,
        city=city,
        state=state,
        dry_run=dry_run,
        via_api=bool(client),
    )

    while offset is not None:
        if client:
            result = client.backfill(batch_size, offset, city, state, dry_run)
        else:
            result = run_batch_local(BackfillRequest(batch_size, offset, city, state, dry_run))

        totals['batches'] += 1
        for key in ('processed', 'updated', 'skipped', 'errors'):
            totals[key] += result.get(key, 0)

        progress = result.get('progress', {})
        print(
            f"Batch {totals['batches']}: processed={result['processed']} updated={result['updated']} "
            f"skipped={result['skipped']} errors={result['errors']} "
            f"({progress.get('current', 0)}/{progress.get('total', 0)}, {progress.get('percentage', 0)}%)"
        )
        for sample in result.get('samples') or []:
            print(f"  {sample['property_id']} {sample['address']}: {sample['before']} -> {sample['after']}")

        if dry_run:
            # Dry runs write nothing, so one batch shows what would change
            break
        offset = result.get('nextOffset')

    logger.info("backfill_aggregates_complete", **totals)
    return totals


def main():
    parser = argparse.ArgumentParser(description="Recompute property violation aggregates")
    parser.add_argument("--batch-size", type=int, default=settings.backfill_batch_size)
    parser.add_argument("--start-offset", type=int, default=0)
    parser.add_argument("--city", help="Only properties in this city")
    parser.add_argument("--state", help="Only properties in this state")
    parser.add_argument("--dry-run", action="store_true", help="Show changes without writing")
    parser.add_argument("--api-url", help="Run through the API instead of the database")
    args = parser.parse_args()

    setup_logging()
    totals = backfill_aggregates(
        batch_size=args.batch_size,
        start_offset=args.start_offset,
        city=args.city,
        state=args.state,
        dry_run=args.dry_run,
        api_url=args.api_url,
    )

    print(f"\nDone: {totals['batches']} batches, {totals['updated']} updated, "
          f"{totals['skipped']} skipped, {totals['errors']} errors")
    return 1 if totals['errors'] else 0


if __name__ == "__main__":
    sys.exit(main())
