"""
HubSpot Backfill Job.

Reconciles users that have no linked HubSpot contact, oldest first, with
remote calls paced under HubSpot's rate limit.

Run as: python -m wealthiq.workers.hubspot_backfill_job --limit 50

Configuration:
- DATABASE_URL: Database to read users from
- HUBSPOT_API_KEY: Private app token
- HUBSPOT_MIN_REQUEST_INTERVAL_SECONDS: Spacing between calls (default: 0.1)
"""

import argparse
import logging
import sys
from typing import Optional, Sequence

from wealthiq.config.settings import get_settings
from wealthiq.database.session import session_scope
from wealthiq.integrations.hubspot.client import get_hubspot_client
from wealthiq.services.hubspot_backfill import HubSpotBackfillRunner

logger = logging.getLogger(__name__)


def main(argv: Optional[Sequence[str]] = None) -> int:
    """Main entry point for the backfill CLI."""
    settings = get_settings()

    parser = argparse.ArgumentParser(description="Backfill HubSpot contacts for unlinked users")
    parser.add_argument(
        "--limit",
        type=int,
        default=settings.backfill_default_limit,
        help=f"Maximum users to process (default: {settings.backfill_default_limit})",
    )
    args = parser.parse_args(argv)

    if args.limit < 1:
        parser.error("--limit must be at least 1")

    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    try:
        with get_hubspot_client(settings) as client, session_scope() as session:
            runner = HubSpotBackfillRunner(
                session,
                client,
                min_request_interval=settings.hubspot_min_request_interval_seconds,
                lock_ttl_seconds=settings.sync_lock_ttl_seconds,
            )
            summary = runner.run(limit=args.limit)
    except Exception as e:
        logger.error("HubSpot backfill crashed", extra={"error": str(e)}, exc_info=True)
        return 1

    print(
        f"Processed {summary.processed} users: {summary.synced} synced, "
        f"{summary.errors} errors ({summary.success_rate})"
    )
    for item in summary.results:
        if item.status == "error":
            print(f"  {item.user_id} <{item.email}>: {item.error}")

    return 0 if summary.errors == 0 else 2


if __name__ == "__main__":
    sys.exit(main())
