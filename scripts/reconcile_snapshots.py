#!/usr/bin/env python
"""
Snapshot Reconciliation Job

Replays the ledger of every product and rewrites any cached stock snapshot
that drifted from it. Meant to run from cron or after a
SnapshotReconciliationError was logged.

Usage:
    python scripts/reconcile_snapshots.py
    python scripts/reconcile_snapshots.py --dry-run --active-only
"""

import argparse
import asyncio
import sys
from pathlib import Path

import structlog

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from stockledger.config.logging import configure_logging
from stockledger.database.connection import close_database, get_db, init_database
from stockledger.inventory.identity import SYSTEM_ACTOR
from stockledger.inventory.service import StockService

logger = structlog.get_logger(__name__)


async def reconcile_snapshots(dry_run: bool = False, active_only: bool = False) -> dict:
    """Replay every product and return drift counts."""
    await init_database()
    try:
        async with get_db() as db:
            reports = await StockService(db).reconcile_all(
                SYSTEM_ACTOR,
                include_inactive=not active_only,
                repair=not dry_run,
            )
    finally:
        await close_database()

    drifted = [r for r in reports if not r.consistent]
    for report in drifted:
        logger.warning(
            "Product snapshot drift",
            product_id=str(report.product_id),
            drift=report.drift,
            repaired=report.repaired,
        )

    summary = {
        "products": len(reports),
        "drifted": len(drifted),
        "repaired": sum(1 for r in reports if r.repaired),
        "dry_run": dry_run,
    }
    logger.info("Snapshot reconciliation complete", **summary)
    return summary


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Rebuild stock snapshots from the movement ledger")
    parser.add_argument("--dry-run", action="store_true", help="Report drift without writing")
    parser.add_argument("--active-only", action="store_true", help="Skip soft-deleted products")
    args = parser.parse_args()

    configure_logging()
    result = asyncio.run(reconcile_snapshots(dry_run=args.dry_run, active_only=args.active_only))
    sys.exit(1 if result["drifted"] and args.dry_run else 0)
