#!/usr/bin/env python3
"""
Portfolio Segment Backfill

Recomputes portfolio segment rows (both scopes) from stored page metrics,
and optionally the 1/7/28-day sub-segment windows, for one run or for every
run of a site. Safe to re-run: rows are upserted on their natural key.

Usage:
    # Database from the environment (or .env):
    export DATABASE_URL=postgresql://...

    # Every run of the default site:
    python scripts/backfill_portfolio.py

    # One run, windows too:
    python scripts/backfill_portfolio.py --run-id run-2025-12-07 --windows
"""

import argparse
import logging
import sys
from datetime import datetime
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from dotenv import load_dotenv

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)


def run_backfill(run_id: str = None, site_url: str = None, windows: bool = False) -> int:
    """Backfill and print a summary. Returns the number of failed runs."""
    load_dotenv()

    from src.database import (
        backfill_portfolio_segments,
        backfill_subsegment_windows,
        get_db_context,
        init_db,
    )
    from src.utils.config import get_settings

    site_url = site_url or (None if run_id else get_settings().SITE_URL)
    start_time = datetime.now()
    init_db()

    with get_db_context() as db:
        results = backfill_portfolio_segments(db, run_id=run_id, site_url=site_url)

        window_rows = 0
        if windows:
            for result in results:
                if not result.success:
                    continue
                window_result = backfill_subsegment_windows(
                    db, result.run_id, result.details.get("site_url", site_url)
                )
                window_rows += window_result.rows

    failed = [r for r in results if not r.success]
    duration = (datetime.now() - start_time).total_seconds()

    print("\n" + "=" * 70)
    print("PORTFOLIO BACKFILL COMPLETE")
    print("=" * 70)
    print(f"Runs:         {len(results)} ({len(failed)} failed)")
    print(f"Segment rows: {sum(r.rows for r in results)}")
    if windows:
        print(f"Window rows:  {window_rows}")
    print(f"Duration:     {duration:.1f} seconds")
    for result in failed:
        print(f"  ✗ {result.run_id}: {result.error}")
    print("=" * 70 + "\n")

    return len(failed)


def main():
    """Main entry point."""
    parser = argparse.ArgumentParser(
        description="Recompute portfolio segment rollups from stored page metrics"
    )
    parser.add_argument(
        "--run-id",
        default=None,
        help="Backfill a single run (default: every run of the site)"
    )
    parser.add_argument(
        "--site-url",
        default=None,
        help="GSC property (default: SITE_URL)"
    )
    parser.add_argument(
        "--windows",
        action="store_true",
        help="Also recompute the 1/7/28-day sub-segment windows"
    )

    args = parser.parse_args()
    failed = run_backfill(run_id=args.run_id, site_url=args.site_url, windows=args.windows)
    sys.exit(1 if failed else 0)


if __name__ == "__main__":
    main()
