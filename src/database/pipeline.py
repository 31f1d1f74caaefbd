"""
Database-Integrated Pipelines

Recompute stored rollups from stored inputs:
1. Portfolio segment rows per run (both scopes, calibrated)
2. Dashboard sub-segment windows per run
3. Persisting a keyword ranking run

Each run is recomputed wholesale and upserted, so re-running is safe.

Usage:
    from src.database import get_db_context
    from src.database.pipeline import backfill_portfolio_segments

    with get_db_context() as db:
        results = backfill_portfolio_segments(db, site_url="https://www.example.com")
"""

import logging
from dataclasses import dataclass, field
from datetime import date
from typing import Any, Dict, List, Optional

from sqlalchemy.orm import Session

from src.portfolio import (
    Scope,
    build_portfolio_segment_rows,
    build_subsegment_window_rows,
    tracked_patterns,
)
from src.portfolio.windows import WINDOW_DAYS, window_start

from .repository import (
    get_active_task_urls,
    get_latest_keyword_rankings,
    get_page_metrics,
    get_page_timeseries,
    get_portfolio_segment_rows,
    get_site_timeseries,
    list_run_ids,
    save_ranking_ai_data,
    upsert_keyword_rankings,
    upsert_portfolio_segment_rows,
    upsert_subsegment_windows,
)

logger = logging.getLogger(__name__)


@dataclass
class BackfillResult:
    run_id: str
    success: bool
    rows: int = 0
    error: Optional[str] = None
    details: Dict[str, Any] = field(default_factory=dict)


# =============================================================================
# PORTFOLIO SEGMENTS
# =============================================================================

def backfill_run_segments(
    db: Session,
    run_id: str,
    patterns: Optional[List[str]] = None,
) -> BackfillResult:
    """Recompute and upsert both scopes of one run's segment rows."""
    pages = get_page_metrics(db, run_id)
    if not pages:
        logger.warning(f"No page metrics for run {run_id}, skipping")
        return BackfillResult(run_id=run_id, success=False, error="No page metrics found")

    first = pages[0]
    site_url = first.site_url
    daily = get_site_timeseries(db, site_url, first.date_start, first.date_end)
    keywords = get_latest_keyword_rankings(db, site_url)

    rows = build_portfolio_segment_rows(
        run_id=run_id,
        site_url=site_url,
        pages=[
            {
                "page_url": p.page_url,
                "clicks_28d": p.clicks_28d,
                "impressions_28d": p.impressions_28d,
                "position_28d": p.position_28d,
            }
            for p in pages
        ],
        daily_series=daily,
        tracked_patterns=patterns if patterns is not None else tracked_patterns(get_active_task_urls(db)),
        keywords=keywords,
        date_start=first.date_start,
        date_end=first.date_end,
    )
    written = upsert_portfolio_segment_rows(db, rows)
    return BackfillResult(
        run_id=run_id,
        success=True,
        rows=written,
        details={"site_url": site_url, "pages": len(pages), "calibrated": bool(daily)},
    )


def backfill_portfolio_segments(
    db: Session,
    run_id: Optional[str] = None,
    site_url: Optional[str] = None,
) -> List[BackfillResult]:
    """
    Recompute segment rows for one run, or every run of a site.

    Tracked patterns are read once and shared across runs.
    """
    run_ids = [run_id] if run_id else list_run_ids(db, site_url)
    patterns = tracked_patterns(get_active_task_urls(db))
    logger.info(f"Backfilling portfolio segments for {len(run_ids)} runs ({len(patterns)} tracked patterns)")

    results = []
    for current in run_ids:
        result = backfill_run_segments(db, current, patterns)
        results.append(result)
        if result.success:
            logger.info(f"Run {current}: upserted {result.rows} segment rows")
    return results


# =============================================================================
# SUB-SEGMENT WINDOWS
# =============================================================================

def backfill_subsegment_windows(
    db: Session,
    run_id: str,
    site_url: str,
    date_end: Optional[date] = None,
    scope: str = Scope.ALL_PAGES.value,
) -> BackfillResult:
    """Recompute and upsert the 1/7/28-day windows for one run."""
    site_start = window_start(date_end, max(WINDOW_DAYS)) if date_end else None
    site_rows = get_site_timeseries(db, site_url, site_start, date_end)
    if not site_rows:
        return BackfillResult(run_id=run_id, success=True, details={"message": "No gsc_timeseries data found"})

    end = date_end or site_rows[-1]["date"]
    page_rows = get_page_timeseries(db, site_url, window_start(end, max(WINDOW_DAYS)), end)
    segment_rows = get_portfolio_segment_rows(db, run_id, site_url, scope)

    rows = build_subsegment_window_rows(
        run_id=run_id,
        site_url=site_url,
        site_rows=site_rows,
        page_rows=page_rows,
        segment_rows=segment_rows,
        date_end=end,
        scope=scope,
    )
    written = upsert_subsegment_windows(db, rows)
    return BackfillResult(run_id=run_id, success=True, rows=written, details={"date_end": end.isoformat()})


# =============================================================================
# KEYWORD RANKING PERSISTENCE
# =============================================================================

def save_keyword_ranking_run(
    db: Session,
    property_url: str,
    audit_date: date,
    rows: List[Dict[str, Any]],
    summary: Dict[str, Any],
    run_timestamp: Optional[str] = None,
) -> int:
    """Keyword rows plus the summary on the day's audit row."""
    written = upsert_keyword_rankings(db, property_url, audit_date, rows)
    save_ranking_ai_data(db, property_url, audit_date, {
        "summary": summary,
        "combinedRows": rows,
        "lastRunTimestamp": run_timestamp,
    })
    return written
