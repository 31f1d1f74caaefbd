"""
AI-Visibility Audit Engine - Data Models

Shared row models used across the system. Rows arrive from GSC as
``{"keys": [...], "clicks", "impressions", "ctr", "position"}`` and from
the store or API callers as flat dicts with either snake_case or
camelCase field names; both are accepted here.
"""

import math
from dataclasses import dataclass, asdict, field
from typing import Dict, Any, List, Optional


def to_number(value: Any, default: float = 0.0) -> float:
    try:
        result = float(value)
    except (TypeError, ValueError):
        return default
    return result if math.isfinite(result) else default


def _position(value: Any) -> Optional[float]:
    pos = to_number(value, 0.0)
    return pos if pos > 0 else None


def normalise_ctr(ctr: Any, clicks: float = 0, impressions: float = 0) -> float:
    """
    CTR as a ratio in [0, 1].

    Percent values (anything above 1) are divided by 100. A missing CTR
    is derived from clicks / impressions.
    """
    if ctr is None:
        return clicks / impressions if impressions > 0 else 0.0
    value = to_number(ctr)
    if value > 1:
        value = value / 100
    return max(0.0, min(1.0, value))


def _first(data: Dict[str, Any], *names: str) -> Any:
    for name in names:
        if data.get(name) is not None:
            return data[name]
    return None


@dataclass
class PageRow:
    """Aggregated search metrics for one page over a reporting window."""
    url: str
    clicks: int = 0
    impressions: int = 0
    ctr: float = 0.0
    avg_position: Optional[float] = None
    title: Optional[str] = None
    meta_description: Optional[str] = None

    @classmethod
    def from_gsc_row(cls, row: Dict[str, Any]) -> "PageRow":
        """Build from a GSC search-analytics row with dimensions=["page"]."""
        keys = row.get("keys") or [""]
        clicks = int(to_number(row.get("clicks")))
        impressions = int(to_number(row.get("impressions")))
        return cls(
            url=str(keys[0]),
            clicks=clicks,
            impressions=impressions,
            ctr=normalise_ctr(row.get("ctr"), clicks, impressions),
            avg_position=_position(row.get("position")),
        )

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "PageRow":
        clicks = int(to_number(data.get("clicks")))
        impressions = int(to_number(data.get("impressions")))
        return cls(
            url=str(_first(data, "url", "page", "page_url") or ""),
            clicks=clicks,
            impressions=impressions,
            ctr=normalise_ctr(data.get("ctr"), clicks, impressions),
            avg_position=_position(_first(data, "avg_position", "avgPosition", "position")),
            title=_first(data, "title"),
            meta_description=_first(data, "meta_description", "metaDescription"),
        )

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class QueryRow:
    """Search metrics for one query (optionally scoped to one page)."""
    query: str
    clicks: int = 0
    impressions: int = 0
    ctr: float = 0.0
    avg_position: Optional[float] = None
    page: Optional[str] = None

    @classmethod
    def from_gsc_row(cls, row: Dict[str, Any]) -> "QueryRow":
        """Build from a GSC row with dimensions ["query"] or ["query", "page"]."""
        keys = row.get("keys") or [""]
        clicks = int(to_number(row.get("clicks")))
        impressions = int(to_number(row.get("impressions")))
        return cls(
            query=str(keys[0]),
            page=str(keys[1]) if len(keys) > 1 else None,
            clicks=clicks,
            impressions=impressions,
            ctr=normalise_ctr(row.get("ctr"), clicks, impressions),
            avg_position=_position(row.get("position")),
        )

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "QueryRow":
        clicks = int(to_number(data.get("clicks")))
        impressions = int(to_number(data.get("impressions")))
        return cls(
            query=str(_first(data, "query", "keyword") or ""),
            page=_first(data, "page", "url"),
            clicks=clicks,
            impressions=impressions,
            ctr=normalise_ctr(data.get("ctr"), clicks, impressions),
            avg_position=_position(_first(data, "avg_position", "avgPosition", "position")),
        )

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def as_page_row(row: Any) -> PageRow:
    """Accept a PageRow, a GSC row or a flat dict."""
    if isinstance(row, PageRow):
        return row
    if isinstance(row, dict) and "keys" in row:
        return PageRow.from_gsc_row(row)
    return PageRow.from_dict(row)


def as_query_row(row: Any) -> QueryRow:
    """Accept a QueryRow, a GSC row or a flat dict."""
    if isinstance(row, QueryRow):
        return row
    if isinstance(row, dict) and "keys" in row:
        return QueryRow.from_gsc_row(row)
    return QueryRow.from_dict(row)


@dataclass
class SearchData:
    """
    Site-level search inputs for one audit window.

    ``query_pages`` (query × page rows) drive the segment-aware scores;
    ``top_queries`` is the fallback when page-level rows are unavailable.
    """
    average_position: Optional[float] = None
    ctr: float = 0.0
    total_clicks: int = 0
    total_impressions: int = 0
    top_queries: List[QueryRow] = field(default_factory=list)
    query_pages: List[QueryRow] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "SearchData":
        clicks = int(to_number(_first(data, "total_clicks", "totalClicks")))
        impressions = int(to_number(_first(data, "total_impressions", "totalImpressions")))
        return cls(
            average_position=_position(_first(data, "average_position", "averagePosition")),
            ctr=normalise_ctr(data.get("ctr"), clicks, impressions),
            total_clicks=clicks,
            total_impressions=impressions,
            top_queries=[as_query_row(r) for r in _first(data, "top_queries", "topQueries") or []],
            query_pages=[as_query_row(r) for r in _first(data, "query_pages", "queryPages") or []],
        )


__all__ = [
    "PageRow",
    "SearchData",
    "QueryRow",
    "as_page_row",
    "as_query_row",
    "normalise_ctr",
    "to_number",
]
