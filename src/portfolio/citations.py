"""
AI citation attribution.

Each keyword row carries the site's AI-overview citations as a stored
count (``ai_alan_citations_count``) and a list of cited URLs
(``ai_alan_citations``, strings or ``{"url": ...}`` objects). Cited URLs
are attributed to the portfolio segments they classify into, so one
keyword can count towards several segments.

The ``site`` total uses the stored count rather than summing the URL
list; the list is deduplicated and truncated upstream, so the site total
can exceed the sum of the per-segment counts.
"""

import logging
from dataclasses import dataclass
from typing import Dict, Any, Iterable, List, Optional

from src.models import to_number
from .segments import PortfolioSegment, is_tracked, page_segments

logger = logging.getLogger(__name__)


@dataclass
class CitationCounts:
    citations: int = 0
    overview_count: int = 0


def cited_urls(keyword: Dict[str, Any]) -> List[str]:
    """Cited URLs from a keyword row, skipping malformed entries."""
    raw = keyword.get("ai_alan_citations") or []
    if not isinstance(raw, list):
        return []
    urls = []
    for item in raw:
        if isinstance(item, str) and item:
            urls.append(item)
        elif isinstance(item, dict) and isinstance(item.get("url"), str):
            urls.append(item["url"])
    return urls


def has_ai_overview(keyword: Dict[str, Any]) -> bool:
    return bool(keyword.get("has_ai_overview") or keyword.get("ai_overview_present_any"))


def url_segments(url: str, patterns: Optional[List[str]] = None) -> List[PortfolioSegment]:
    """Segments a cited URL counts towards (``site`` excluded)."""
    segments = [s for s in page_segments(url) if s is not PortfolioSegment.SITE]
    if patterns and is_tracked(url, patterns):
        segments.append(PortfolioSegment.ALL_TRACKED)
    return segments


def attribute_ai_citations(
    keywords: Iterable[Dict[str, Any]],
    tracked_patterns: Optional[List[str]] = None,
) -> Dict[PortfolioSegment, CitationCounts]:
    """
    Citation and AI-overview counts per segment.

    A segment's overview count is the number of overview keywords with at
    least one citation in that segment.
    """
    counts: Dict[PortfolioSegment, CitationCounts] = {s: CitationCounts() for s in PortfolioSegment}
    site = counts[PortfolioSegment.SITE]

    for keyword in keywords or []:
        if not isinstance(keyword, dict):
            logger.warning(f"Skipping keyword row of type {type(keyword).__name__}")
            continue

        overview = has_ai_overview(keyword)
        site.citations += int(to_number(keyword.get("ai_alan_citations_count")))
        if overview:
            site.overview_count += 1

        touched = set()
        for url in cited_urls(keyword):
            for segment in url_segments(url, tracked_patterns):
                counts[segment].citations += 1
                touched.add(segment)

        if overview:
            for segment in touched:
                counts[segment].overview_count += 1

    return counts
