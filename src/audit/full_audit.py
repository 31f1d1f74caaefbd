"""
Full Audit Orchestration

One audit run for a property:

1. Collect    GSC totals, query × page rows and page rows; backlinks (best-effort)
2. Money      opportunity table, priority grid, behaviour and segment summary
3. Pillars    visibility, authority, content/schema, local, brand overlay
4. Readiness  0.4 content/schema + 0.35 visibility + 0.25 authority

Schema audit, local signals and site reviews come from the caller.
"""

import logging
from dataclasses import dataclass, asdict, field
from datetime import date, datetime, timedelta, timezone
from typing import Any, Dict, List, Optional

from src.collector import (
    DataForSEOClient,
    DataForSEOError,
    GSCClient,
    build_search_data,
    fetch_page_rows,
)
from src.models import PageRow, SearchData
from src.scoring import (
    MoneyPageMetric,
    MoneyPagesBehaviour,
    MoneyPagesMetrics,
    MoneyPagesSummary,
    PillarScores,
    SegmentSummary,
    build_money_page_metrics,
    build_money_pages_summary,
    build_money_segment_summary,
    calculate_pillar_scores,
    calculate_snippet_readiness,
    compute_money_pages_behaviour,
    compute_money_pages_metrics,
    compute_site_aggregate,
)
from src.segment import MoneySubSegment
from src.utils.urls import extract_domain

logger = logging.getLogger(__name__)

DEFAULT_WINDOW_DAYS = 28
# Search Console data lags by about two days
GSC_DELAY_DAYS = 2

SEGMENT_SUMMARY_KEYS = {
    "landing_pages": MoneySubSegment.LANDING,
    "event_pages": MoneySubSegment.EVENT,
    "product_pages": MoneySubSegment.PRODUCT,
}

_UNSET = object()


@dataclass
class AuditResult:
    """Everything one audit run produces."""
    property_url: str
    audit_date: date
    date_start: date
    date_end: date
    scores: PillarScores
    snippet_readiness: int
    search_totals: Dict[str, Any] = field(default_factory=dict)
    money_pages: Optional[MoneyPagesMetrics] = None
    money_pages_summary: Optional[MoneyPagesSummary] = None
    money_pages_behaviour: Optional[MoneyPagesBehaviour] = None
    money_page_priority: List[MoneyPageMetric] = field(default_factory=list)
    money_segment_summary: Dict[str, SegmentSummary] = field(default_factory=dict)
    backlink_metrics: Optional[Dict[str, Any]] = None
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def default_window(
    end_date: Optional[date] = None,
    days: int = DEFAULT_WINDOW_DAYS,
) -> tuple:
    """(start, end) of a trailing window; the end defaults to today minus the GSC delay."""
    end = end_date or (date.today() - timedelta(days=GSC_DELAY_DAYS))
    return end - timedelta(days=days - 1), end


def money_behaviour_by_segment(
    query_pages: List[Any],
    priority: List[MoneyPageMetric],
) -> Dict[str, float]:
    """Behaviour score over money-page queries for each sub-segment group."""
    groups = {"all_money": priority}
    for key, sub_segment in SEGMENT_SUMMARY_KEYS.items():
        groups[key] = [p for p in priority if p.sub_segment is sub_segment]

    scores = {}
    for key, pages in groups.items():
        behaviour = compute_money_pages_behaviour(query_pages, pages)
        scores[key] = behaviour.score if behaviour else 0.0
    return scores


def assemble_audit(
    property_url: str,
    search_data: SearchData,
    page_rows: List[PageRow],
    date_start: date,
    date_end: date,
    schema_audit: Optional[Dict[str, Any]] = None,
    local_signals: Optional[Dict[str, Any]] = None,
    site_reviews: Optional[Dict[str, Any]] = None,
    backlink_metrics: Optional[Dict[str, Any]] = None,
    page_metadata: Optional[Dict[str, Dict[str, Any]]] = None,
    review_snapshot: Any = _UNSET,
    audit_date: Optional[date] = None,
) -> AuditResult:
    """
    Score collected inputs into an AuditResult. Pure; no I/O.
    """
    site = compute_site_aggregate(page_rows)
    money_metrics = compute_money_pages_metrics(
        page_rows,
        site_aggregate=site,
        page_metadata=page_metadata,
        schema_audit=schema_audit,
    )
    money_rows = [
        PageRow(
            url=r.url,
            clicks=r.clicks,
            impressions=r.impressions,
            ctr=r.ctr,
            avg_position=r.avg_position,
            title=r.title,
        )
        for r in money_metrics.rows
    ]
    priority = build_money_page_metrics(money_rows, schema_audit=schema_audit)

    behaviour = compute_money_pages_behaviour(search_data.query_pages, money_metrics.rows)
    segment_summary = build_money_segment_summary(
        priority, money_behaviour_by_segment(search_data.query_pages, priority)
    )

    pillar_kwargs: Dict[str, Any] = {}
    if review_snapshot is not _UNSET:
        pillar_kwargs["review_snapshot"] = review_snapshot
    scores = calculate_pillar_scores(
        search_data,
        schema_audit=schema_audit,
        local_signals=local_signals,
        site_reviews=site_reviews,
        backlink_metrics=backlink_metrics,
        **pillar_kwargs,
    )

    result = AuditResult(
        property_url=property_url,
        audit_date=audit_date or date.today(),
        date_start=date_start,
        date_end=date_end,
        scores=scores,
        snippet_readiness=calculate_snippet_readiness(scores),
        search_totals={
            "total_clicks": search_data.total_clicks,
            "total_impressions": search_data.total_impressions,
            "ctr": search_data.ctr,
            "average_position": search_data.average_position,
        },
        money_pages=money_metrics,
        money_pages_summary=build_money_pages_summary(money_metrics, behaviour),
        money_pages_behaviour=behaviour,
        money_page_priority=priority,
        money_segment_summary=segment_summary,
        backlink_metrics=backlink_metrics,
    )

    logger.info(
        f"Audit for {property_url}: {len(money_metrics.rows)} money pages, "
        f"snippet readiness {result.snippet_readiness}"
    )
    return result


async def fetch_backlink_metrics(
    client: Optional[DataForSEOClient],
    property_url: str,
) -> Optional[Dict[str, Any]]:
    """Backlink summary for the property's domain; None when unavailable."""
    if client is None:
        return None
    try:
        return await client.get_backlink_summary(extract_domain(property_url))
    except DataForSEOError as e:
        logger.warning(f"Backlink summary unavailable for {property_url}: {e}")
        return None


async def run_full_audit(
    property_url: str,
    gsc: GSCClient,
    dataforseo: Optional[DataForSEOClient] = None,
    date_start: Optional[date] = None,
    date_end: Optional[date] = None,
    schema_audit: Optional[Dict[str, Any]] = None,
    local_signals: Optional[Dict[str, Any]] = None,
    site_reviews: Optional[Dict[str, Any]] = None,
    page_metadata: Optional[Dict[str, Dict[str, Any]]] = None,
) -> AuditResult:
    """
    Collect GSC and backlink data for a property and score it.

    Args:
        property_url: GSC property
        gsc: Open Search Console client
        dataforseo: Open DataForSEO client; backlinks are skipped without one
        date_start: Window start (defaults to a 28-day window)
        date_end: Window end (defaults to today minus the GSC delay)
        schema_audit: Schema audit result
        local_signals: Local signals result
        site_reviews: Live site-review figures
        page_metadata: Titles and meta descriptions keyed by URL

    Raises:
        GSCError: When Search Console cannot be queried
    """
    if date_start is None or date_end is None:
        date_start, date_end = default_window(date_end)

    logger.info(f"Running full audit for {property_url} ({date_start} to {date_end})")

    search_data = await build_search_data(gsc, property_url, date_start, date_end)
    page_rows = await fetch_page_rows(gsc, property_url, date_start, date_end)
    backlinks = await fetch_backlink_metrics(dataforseo, property_url)

    return assemble_audit(
        property_url,
        search_data,
        page_rows,
        date_start,
        date_end,
        schema_audit=schema_audit,
        local_signals=local_signals,
        site_reviews=site_reviews,
        backlink_metrics=backlinks,
        page_metadata=page_metadata,
    )
