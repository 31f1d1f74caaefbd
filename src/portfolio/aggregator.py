"""
Portfolio Segment Aggregator

Rolls one run's page-level 28-day metrics up into named segments for two
scopes.

Formula:
    scale_clicks      = overview_clicks / raw_clicks_all       (1 when either is 0)
    scale_impressions = overview_impressions / raw_impressions_all

    all_pages:          every page, totals × scale
    active_cycles_only: tracked pages only, raw totals

    ctr          = clicks / impressions
    avg_position = Σ(position × impressions) / Σ impressions
                   over pages with impressions > 0 and a position

Overview totals come from the trusted daily series (``gsc_timeseries``),
which matches the GSC headline numbers; per-page rows are sampled and
capped so they usually sum to less.
"""

import logging
from dataclasses import dataclass, asdict
from datetime import date
from typing import Dict, Any, Iterable, List, Optional

from src.models import to_number
from .citations import CitationCounts, attribute_ai_citations
from .segments import PortfolioSegment, Scope, is_tracked, page_segments

logger = logging.getLogger(__name__)

ROW_ERRORS = (TypeError, ValueError, AttributeError)

SEGMENT_ORDER = (
    PortfolioSegment.SITE,
    PortfolioSegment.MONEY,
    PortfolioSegment.LANDING,
    PortfolioSegment.EVENT,
    PortfolioSegment.PRODUCT,
    PortfolioSegment.ACADEMY,
    PortfolioSegment.BLOG,
    PortfolioSegment.OTHER,
    PortfolioSegment.ALL_TRACKED,
)


# ============================================================================
# DATA STRUCTURES
# ============================================================================

@dataclass
class PageMetrics:
    """One page's metrics over the run window."""
    page_url: str
    clicks: float = 0.0
    impressions: float = 0.0
    position: Optional[float] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "PageMetrics":
        url = data.get("page_url") or data.get("url") or data.get("page")
        if not isinstance(url, str):
            raise ValueError(f"page row has no URL: {data!r}")
        clicks = data.get("clicks_28d", data.get("clicks"))
        impressions = data.get("impressions_28d", data.get("impressions"))
        position = data.get("position_28d", data.get("position"))
        return cls(
            page_url=url,
            clicks=to_number(clicks),
            impressions=to_number(impressions),
            position=to_number(position) or None,
        )


@dataclass
class CalibrationScale:
    clicks: float = 1.0
    impressions: float = 1.0


@dataclass
class SegmentTotals:
    pages_count: int = 0
    clicks: float = 0.0
    impressions: float = 0.0
    avg_position: Optional[float] = None


@dataclass
class PortfolioSegmentRow:
    """A persisted per-segment rollup; unique per (run, site, segment, scope)."""
    run_id: str
    site_url: str
    segment: str
    scope: str
    date_start: Optional[date]
    date_end: Optional[date]
    pages_count: int
    clicks_28d: float
    impressions_28d: float
    ctr_28d: float
    position_28d: Optional[float]
    ai_citations_28d: int = 0
    ai_overview_present_count: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


# ============================================================================
# CALIBRATION
# ============================================================================

def _as_page(page: Any) -> PageMetrics:
    return page if isinstance(page, PageMetrics) else PageMetrics.from_dict(page)


def compute_calibration(
    daily_series: Iterable[Dict[str, Any]],
    pages: List[PageMetrics],
) -> CalibrationScale:
    """
    Scale factors from raw page totals to the trusted overview totals.

    Each scale stays 1 unless both its overview and raw totals are positive.
    """
    series = list(daily_series or [])
    scale = CalibrationScale()
    if not series:
        logger.info("No daily series for calibration, scales stay at 1")
        return scale

    overview_clicks = sum(to_number(r.get("clicks")) for r in series)
    overview_impressions = sum(to_number(r.get("impressions")) for r in series)
    raw_clicks = sum(p.clicks for p in pages)
    raw_impressions = sum(p.impressions for p in pages)

    if overview_clicks > 0 and raw_clicks > 0:
        scale.clicks = overview_clicks / raw_clicks
    if overview_impressions > 0 and raw_impressions > 0:
        scale.impressions = overview_impressions / raw_impressions

    logger.info(
        f"Calibration scales: clicks={scale.clicks:.4f}, "
        f"impressions={scale.impressions:.4f} "
        f"(overview_impressions={overview_impressions:.0f}, raw_impressions={raw_impressions:.0f})"
    )
    return scale


# ============================================================================
# AGGREGATION
# ============================================================================

def aggregate_segment(pages: List[PageMetrics]) -> SegmentTotals:
    """Raw totals and impression-weighted position for a set of pages."""
    clicks = sum(p.clicks for p in pages)
    impressions = sum(p.impressions for p in pages)

    weighted = 0.0
    weight = 0.0
    for page in pages:
        if page.position and page.impressions > 0:
            weighted += page.position * page.impressions
            weight += page.impressions

    return SegmentTotals(
        pages_count=len(pages),
        clicks=clicks,
        impressions=impressions,
        avg_position=weighted / weight if weight > 0 else None,
    )


def group_pages(
    pages: Iterable[Any],
    patterns: List[str],
) -> Dict[PortfolioSegment, List[PageMetrics]]:
    """Assign pages to segments; unparsable rows are logged and skipped."""
    groups: Dict[PortfolioSegment, List[PageMetrics]] = {s: [] for s in SEGMENT_ORDER}
    for raw in pages or []:
        try:
            page = _as_page(raw)
            segments = page_segments(page.page_url)
            tracked = is_tracked(page.page_url, patterns)
        except ROW_ERRORS as e:
            logger.warning(f"Skipping page row {raw!r}: {e}")
            continue
        for segment in segments:
            groups[segment].append(page)
        if tracked:
            groups[PortfolioSegment.ALL_TRACKED].append(page)
    return groups


def _segment_row(
    base: Dict[str, Any],
    segment: PortfolioSegment,
    totals: SegmentTotals,
    scale: CalibrationScale,
    citations: Optional[CitationCounts],
) -> PortfolioSegmentRow:
    clicks = totals.clicks * scale.clicks
    impressions = totals.impressions * scale.impressions
    return PortfolioSegmentRow(
        segment=segment.value,
        pages_count=totals.pages_count,
        clicks_28d=clicks,
        impressions_28d=impressions,
        ctr_28d=clicks / impressions if impressions > 0 else 0.0,
        position_28d=totals.avg_position,
        ai_citations_28d=citations.citations if citations else 0,
        ai_overview_present_count=citations.overview_count if citations else 0,
        **base,
    )


def build_portfolio_segment_rows(
    run_id: str,
    site_url: str,
    pages: Iterable[Any],
    daily_series: Optional[Iterable[Dict[str, Any]]] = None,
    tracked_patterns: Optional[List[str]] = None,
    keywords: Optional[Iterable[Dict[str, Any]]] = None,
    date_start: Optional[date] = None,
    date_end: Optional[date] = None,
) -> List[PortfolioSegmentRow]:
    """
    Segment rows for both scopes of one run.

    Args:
        run_id: Audit run identifier
        site_url: GSC property
        pages: Page rows (``page_url``, ``clicks_28d``, ``impressions_28d``,
            ``position_28d``; plain ``clicks``/``impressions``/``position``
            are accepted too)
        daily_series: Trusted daily site rows inside the run window
        tracked_patterns: Patterns from active optimisation tasks
        keywords: Keyword ranking rows carrying AI citation fields
        date_start: Window start
        date_end: Window end

    Returns:
        One row per segment for ``all_pages`` then ``active_cycles_only``
    """
    patterns = list(tracked_patterns or [])
    page_list: List[PageMetrics] = []
    for raw in pages or []:
        try:
            page_list.append(_as_page(raw))
        except ROW_ERRORS as e:
            logger.warning(f"Skipping page row {raw!r}: {e}")

    scale = compute_calibration(daily_series or [], page_list)
    citations = attribute_ai_citations(keywords or [], patterns)

    tracked_pages = [p for p in page_list if is_tracked(p.page_url, patterns)]
    scopes = (
        (Scope.ALL_PAGES, page_list, scale),
        (Scope.ACTIVE_CYCLES_ONLY, tracked_pages, CalibrationScale()),
    )

    rows: List[PortfolioSegmentRow] = []
    for scope, scope_pages, scope_scale in scopes:
        base = {
            "run_id": run_id,
            "site_url": site_url,
            "scope": scope.value,
            "date_start": date_start,
            "date_end": date_end,
        }
        groups = group_pages(scope_pages, patterns)
        for segment in SEGMENT_ORDER:
            totals = aggregate_segment(groups[segment])
            rows.append(_segment_row(base, segment, totals, scope_scale, citations.get(segment)))

    logger.info(
        f"Built {len(rows)} portfolio segment rows for run {run_id} "
        f"({len(page_list)} pages, {len(tracked_pages)} tracked)"
    )
    return rows
