"""
Dashboard sub-segment windows.

Trailing 1/7/28-day rollups for the money sub-segments and the rest of
the site, ending at the run's end date.

Formula:
    window start = end − (days − 1)

    site                   = Σ trusted daily rows in the window
    landing/event/product  = Σ daily page rows of money pages, by sub-segment
    other                  = max(0, site − money)
    other position         = max(0, (site.pos_weighted − money.pos_weighted) / other impressions)

Page counts are taken from the run's 28-day segment rows.
"""

import logging
import math
from dataclasses import dataclass, asdict
from datetime import date, timedelta
from typing import Dict, Any, Iterable, List, Optional, Union

from src.segment import MoneySubSegment, classify_money_sub_segment
from .segments import PortfolioSegment, Scope

logger = logging.getLogger(__name__)

WINDOW_DAYS = (1, 7, 28)
ROW_ERRORS = (TypeError, ValueError, AttributeError)


# ============================================================================
# DATA STRUCTURES
# ============================================================================

@dataclass
class WindowTotals:
    clicks: float = 0.0
    impressions: float = 0.0
    pos_weighted: float = 0.0
    pos_impressions: float = 0.0

    def add(self, clicks: float, impressions: float, position: Optional[float]) -> None:
        self.clicks += clicks
        self.impressions += impressions
        if position is not None and impressions > 0:
            self.pos_weighted += position * impressions
            self.pos_impressions += impressions

    @property
    def avg_position(self) -> Optional[float]:
        return self.pos_weighted / self.pos_impressions if self.pos_impressions > 0 else None


@dataclass
class SubsegmentWindowRow:
    """Persisted row; unique per (run, site, scope, window_days, segment)."""
    run_id: str
    site_url: str
    scope: str
    window_days: int
    date_start: date
    date_end: date
    segment: str
    pages_count: int
    clicks: float
    impressions: float
    ctr: float
    avg_position: Optional[float]

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


# ============================================================================
# HELPERS
# ============================================================================

def to_date(value: Union[str, date, None]) -> Optional[date]:
    """Date from a date, datetime or ISO string (first 10 chars)."""
    if value is None:
        return None
    if isinstance(value, date):
        return value if type(value) is date else value.date()
    return date.fromisoformat(str(value)[:10])


def _row_date(row: Dict[str, Any]) -> Optional[date]:
    """Row date, or None (logged) when it cannot be parsed."""
    try:
        return to_date(row.get("date"))
    except ROW_ERRORS as e:
        logger.warning(f"Skipping timeseries row with unreadable date {row!r}: {e}")
        return None


def window_start(end: date, days: int) -> date:
    return end - timedelta(days=days - 1)


def _finite(value: Any) -> Optional[float]:
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    return number if math.isfinite(number) else None


def _metrics(row: Dict[str, Any]):
    return (
        _finite(row.get("clicks")) or 0.0,
        _finite(row.get("impressions")) or 0.0,
        _finite(row.get("position")),
    )


def aggregate_site_window(
    site_rows: Iterable[Dict[str, Any]],
    start: date,
    end: date,
) -> WindowTotals:
    totals = WindowTotals()
    for row in site_rows:
        try:
            day = to_date(row.get("date"))
            if day is None or day < start or day > end:
                continue
            totals.add(*_metrics(row))
        except ROW_ERRORS as e:
            logger.warning(f"Skipping site timeseries row {row!r}: {e}")
    return totals


def aggregate_money_window(
    page_rows: Iterable[Dict[str, Any]],
    start: date,
    end: date,
) -> Dict[MoneySubSegment, WindowTotals]:
    """Money page rows by sub-segment; non-money pages are ignored."""
    out = {sub: WindowTotals() for sub in MoneySubSegment}
    for row in page_rows:
        try:
            day = to_date(row.get("date"))
            if day is None or day < start or day > end:
                continue
            sub_segment = classify_money_sub_segment(row.get("page_url"))
            if sub_segment is None:
                continue
            out[sub_segment].add(*_metrics(row))
        except ROW_ERRORS as e:
            logger.warning(f"Skipping page timeseries row {row!r}: {e}")
    return out


def pages_count_by_segment(segment_rows: Iterable[Any]) -> Dict[str, int]:
    """
    Page counts for site/landing/event/product from 28-day segment rows;
    ``other`` is what remains of ``site``.
    """
    counts = {"site": 0, "landing": 0, "event": 0, "product": 0}
    for row in segment_rows or []:
        data = row if isinstance(row, dict) else row.to_dict()
        segment = data.get("segment")
        if segment in counts:
            counts[segment] = int(data.get("pages_count") or 0)
    counts["other"] = max(0, counts["site"] - counts["landing"] - counts["event"] - counts["product"])
    return counts


# ============================================================================
# WINDOW ROWS
# ============================================================================

def build_subsegment_window_rows(
    run_id: str,
    site_url: str,
    site_rows: List[Dict[str, Any]],
    page_rows: List[Dict[str, Any]],
    segment_rows: Optional[Iterable[Any]] = None,
    date_end: Union[str, date, None] = None,
    scope: Union[Scope, str] = Scope.ALL_PAGES,
    windows: Iterable[int] = WINDOW_DAYS,
) -> List[SubsegmentWindowRow]:
    """
    Landing/event/product/other rows for each trailing window.

    The end date defaults to the latest day in ``site_rows``. Returns an
    empty list when there is no site series to anchor on.
    """
    end = to_date(date_end)
    if end is None:
        days = [d for d in map(_row_date, site_rows) if d is not None]
        if not days:
            logger.info(f"No site timeseries for {site_url}, no window rows built")
            return []
        end = max(days)

    scope_value = scope.value if isinstance(scope, Scope) else str(scope)
    counts = pages_count_by_segment(segment_rows)
    rows: List[SubsegmentWindowRow] = []

    for days in windows:
        start = window_start(end, days)
        site = aggregate_site_window(site_rows, start, end)
        money = aggregate_money_window(page_rows, start, end)

        money_clicks = sum(t.clicks for t in money.values())
        money_impressions = sum(t.impressions for t in money.values())
        money_pos_weighted = sum(t.pos_weighted for t in money.values())

        other_clicks = max(0.0, site.clicks - money_clicks)
        other_impressions = max(0.0, site.impressions - money_impressions)
        other_position = (
            max(0.0, (site.pos_weighted - money_pos_weighted) / other_impressions)
            if other_impressions > 0 else None
        )

        values = [
            (sub.value, money[sub].clicks, money[sub].impressions,
             money[sub].pos_weighted / money[sub].impressions if money[sub].impressions > 0 else None)
            for sub in (MoneySubSegment.LANDING, MoneySubSegment.EVENT, MoneySubSegment.PRODUCT)
        ]
        values.append((PortfolioSegment.OTHER.value, other_clicks, other_impressions, other_position))

        for segment, clicks, impressions, position in values:
            rows.append(SubsegmentWindowRow(
                run_id=run_id,
                site_url=site_url,
                scope=scope_value,
                window_days=days,
                date_start=start,
                date_end=end,
                segment=segment,
                pages_count=counts.get(segment, 0),
                clicks=clicks,
                impressions=impressions,
                ctr=clicks / impressions if impressions > 0 else 0.0,
                avg_position=position,
            ))

    logger.info(f"Built {len(rows)} sub-segment window rows for run {run_id} ending {end}")
    return rows
