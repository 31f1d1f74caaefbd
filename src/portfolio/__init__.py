"""
Portfolio Segment Aggregation

Per-segment rollups of a run's page metrics for trend reporting:

1. **Segment rows** - site / money / landing / event / product / academy /
   blog / other / all_tracked, for the calibrated ``all_pages`` scope and the
   raw ``active_cycles_only`` scope.
2. **Window rows** - 1/7/28-day trailing rollups of the money sub-segments
   and the remainder of the site.

Example Usage:
    from src.portfolio import build_portfolio_segment_rows, tracked_patterns

    rows = build_portfolio_segment_rows(
        run_id="run-2025-12-07",
        site_url="https://www.alanranger.com",
        pages=page_rows,
        daily_series=gsc_daily_rows,
        tracked_patterns=tracked_patterns(task_urls),
    )
"""

from .segments import (
    PortfolioSegment,
    Scope,
    ACTIVE_TASK_STATUSES,
    primary_segment,
    page_segments,
    tracked_patterns,
    is_tracked,
)
from .citations import CitationCounts, attribute_ai_citations
from .aggregator import (
    PageMetrics,
    CalibrationScale,
    SegmentTotals,
    PortfolioSegmentRow,
    compute_calibration,
    aggregate_segment,
    build_portfolio_segment_rows,
)
from .windows import (
    WINDOW_DAYS,
    SubsegmentWindowRow,
    build_subsegment_window_rows,
)

__all__ = [
    # Segments
    "PortfolioSegment",
    "Scope",
    "ACTIVE_TASK_STATUSES",
    "primary_segment",
    "page_segments",
    "tracked_patterns",
    "is_tracked",

    # Citations
    "CitationCounts",
    "attribute_ai_citations",

    # Aggregation
    "PageMetrics",
    "CalibrationScale",
    "SegmentTotals",
    "PortfolioSegmentRow",
    "compute_calibration",
    "aggregate_segment",
    "build_portfolio_segment_rows",

    # Windows
    "WINDOW_DAYS",
    "SubsegmentWindowRow",
    "build_subsegment_window_rows",
]
