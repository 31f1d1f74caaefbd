"""
Keyword Ranking & AI Citation Collector

For each tracked keyword:
1. Organic SERP → the site's best rank, URL and title plus SERP features
2. AI-mode SERP → AI overview presence and which cited URLs are the site's
3. Combined row → keyword segment (auto-classified) and summary counts

Organic lookups go out in batches of 20 keywords, AI-mode lookups in
batches of 10 (one request per keyword), each with two batches in flight.
"""

import logging
import math
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional
from urllib.parse import urlsplit

from src.segment import classify_keyword_segment
from src.utils.urls import extract_domain
from .batching import run_batches
from .client import DataForSEOClient, DataForSEOError, parse_task_items

logger = logging.getLogger(__name__)

AI_OVERVIEW_TYPES = ("ai_overview", "ai_overview_element")
SAMPLE_CITATIONS = 10


def normalize_keyword(value: Any) -> str:
    return str(value or "").strip().lower()


def _rank_of(item: Dict[str, Any]) -> float:
    for key in ("rank_group", "rank_absolute"):
        if item.get(key) is not None:
            return item[key]
    return math.inf


def _is_site_item(item: Dict[str, Any], site_domain: str) -> bool:
    domain = str(item.get("domain") or "").lower()
    url = str(item.get("url") or "").lower()
    return site_domain in domain or site_domain in url


# ============================================================================
# ORGANIC SERP
# ============================================================================

def parse_organic_task(
    task: Dict[str, Any],
    site_domain: str,
    fallback_keyword: str = "unknown",
) -> Dict[str, Any]:
    """Best site ranking and SERP features from one organic task."""
    data = task.get("data") or {}
    keyword = data.get("keyword") or fallback_keyword
    items = parse_task_items(task)

    organic = [i for i in items if "organic" in str(i.get("type") or "").lower()]
    site_items = [i for i in organic if _is_site_item(i, site_domain)]

    best = min(site_items, key=_rank_of) if site_items else None
    types = {i.get("type") for i in items}

    return {
        "keyword": keyword,
        "best_rank_group": best.get("rank_group") if best else None,
        "best_rank_absolute": best.get("rank_absolute") if best else None,
        "best_url": (best.get("url") or None) if best else None,
        "best_title": (best.get("title") or None) if best else None,
        "has_ai_overview": any(t in types for t in AI_OVERVIEW_TYPES),
        "serp_features": {
            "local_pack": "local_pack" in types,
            "featured_snippet": "featured_snippet" in types or "answer_box" in types,
            "people_also_ask": "people_also_ask" in types,
        },
    }


async def fetch_serp_rows(
    client: DataForSEOClient,
    keywords: List[str],
    site_domain: str,
    batch_size: int = 20,
    concurrency: int = 2,
    location_name: str = "United Kingdom",
    language_code: str = "en",
    depth: int = 50,
) -> List[Dict[str, Any]]:
    async def handle(batch: List[str]) -> List[Dict[str, Any]]:
        tasks = await client.get_organic_serp(
            batch, location_name=location_name, language_code=language_code, depth=depth
        )
        return [
            parse_organic_task(task, site_domain, batch[i] if i < len(batch) else "unknown")
            for i, task in enumerate(tasks)
        ]

    return await run_batches(keywords, batch_size, handle, concurrency)


# ============================================================================
# AI MODE
# ============================================================================

def extract_ai_citations(task: Dict[str, Any], site_domain: str) -> Dict[str, Any]:
    """
    AI overview presence and citations from one AI-mode task.

    References come from the overview's ``references``; when there are
    none, links inside the overview's elements are used. Citations are
    deduplicated by URL.
    """
    items = parse_task_items(task)
    overview = next((i for i in items if i.get("type") in AI_OVERVIEW_TYPES), None)

    refs: List[Dict[str, Any]] = []
    if overview:
        refs = [r for r in overview.get("references") or [] if isinstance(r, dict)]
        if not refs:
            for element in overview.get("items") or []:
                for link in (element or {}).get("links") or []:
                    refs.append({
                        "source": link.get("title"),
                        "domain": link.get("domain"),
                        "url": link.get("url"),
                        "title": link.get("title"),
                    })

    by_url: Dict[str, Dict[str, Any]] = {}
    for ref in refs:
        url = ref.get("url")
        if not url or url in by_url:
            continue
        domain = ref.get("domain")
        if not domain:
            try:
                domain = urlsplit(url).hostname
            except ValueError:
                domain = None
        by_url[url] = {
            "source": ref.get("source"),
            "title": ref.get("title"),
            "url": url,
            "domain": domain,
        }

    citations = list(by_url.values())
    site_citations = [
        c for c in citations
        if site_domain in (c["domain"] or c["url"]).lower()
    ]
    return {
        "has_ai_overview": overview is not None,
        "total_citations": len(citations),
        "alanranger_citations_count": len(site_citations),
        "alanranger_citations": site_citations,
        "sample_citations": citations[:SAMPLE_CITATIONS],
    }


def _empty_ai_row(keyword: str, error: str) -> Dict[str, Any]:
    return {
        "query": keyword,
        "has_ai_overview": False,
        "total_citations": 0,
        "alanranger_citations_count": 0,
        "alanranger_citations": [],
        "sample_citations": [],
        "error": error,
    }


async def fetch_ai_row(
    client: DataForSEOClient,
    keyword: str,
    site_domain: str,
    location_name: str = "United Kingdom",
) -> Dict[str, Any]:
    """AI-mode metrics for one keyword; upstream failures become an error row."""
    try:
        task = await client.get_ai_mode_serp(keyword, location_name=location_name)
    except DataForSEOError as e:
        logger.warning(f"AI mode lookup failed for '{keyword}': {e}")
        return _empty_ai_row(keyword, str(e))

    if not task.get("result"):
        return _empty_ai_row(keyword, "No result items")
    return {"query": keyword, **extract_ai_citations(task, site_domain)}


async def fetch_ai_rows(
    client: DataForSEOClient,
    keywords: List[str],
    site_domain: str,
    batch_size: int = 10,
    concurrency: int = 2,
    location_name: str = "United Kingdom",
) -> List[Dict[str, Any]]:
    async def handle(batch: List[str]) -> List[Dict[str, Any]]:
        return [
            await fetch_ai_row(client, keyword, site_domain, location_name)
            for keyword in batch
        ]

    return await run_batches(keywords, batch_size, handle, concurrency)


# ============================================================================
# COMBINED ROWS
# ============================================================================

def build_combined_rows(
    serp_rows: List[Dict[str, Any]],
    ai_rows: List[Dict[str, Any]],
) -> List[Dict[str, Any]]:
    """One keyword row per SERP row, joined to its AI-mode row by keyword."""
    ai_by_keyword = {normalize_keyword(r.get("query")): r for r in ai_rows}
    combined = []

    for row in serp_rows:
        keyword = row.get("keyword") or ""
        ai = ai_by_keyword.get(normalize_keyword(keyword), {})
        classification = classify_keyword_segment(
            keyword,
            page_type=row.get("page_type") or row.get("pageType"),
            ranking_url=row.get("best_url"),
        )
        has_overview = bool(row.get("has_ai_overview") or ai.get("has_ai_overview"))

        combined.append({
            "keyword": keyword,
            "segment": classification.segment.value,
            "segment_source": "auto",
            "segment_confidence": classification.confidence,
            "segment_reason": classification.reason,
            "best_rank_group": row.get("best_rank_group"),
            "best_rank_absolute": row.get("best_rank_absolute"),
            "best_url": row.get("best_url"),
            "best_title": row.get("best_title"),
            "has_ai_overview": has_overview,
            "ai_total_citations": ai.get("total_citations", 0),
            "ai_alan_citations_count": ai.get("alanranger_citations_count", 0),
            "ai_alan_citations": ai.get("alanranger_citations", []),
            "ai_sample_citations": ai.get("sample_citations", []),
            "serp_features": row.get("serp_features"),
            "ai_overview_present_any": row.get("ai_overview_present_any", row.get("has_ai_overview", False)),
            "local_pack_present_any": row.get("local_pack_present_any", False),
            "paa_present_any": row.get("paa_present_any", False),
            "featured_snippet_present_any": row.get("featured_snippet_present_any", False),
            "search_volume": row.get("search_volume"),
            "search_volume_trend": row.get("search_volume_trend"),
        })

    return combined


def build_summary(rows: List[Dict[str, Any]]) -> Dict[str, int]:
    ranked = [r for r in rows if r.get("best_rank_group") is not None]
    return {
        "total_keywords": len(rows),
        "keywords_with_rank": len(ranked),
        "keywords_with_ai_overview": sum(1 for r in rows if r.get("has_ai_overview")),
        "keywords_where_alanranger_cited": sum(1 for r in rows if (r.get("ai_alan_citations_count") or 0) > 0),
        "keywords_top_3": sum(1 for r in ranked if r["best_rank_group"] <= 3),
        "keywords_top_10": sum(1 for r in ranked if r["best_rank_group"] <= 10),
    }


@dataclass
class KeywordRankingRun:
    rows: List[Dict[str, Any]] = field(default_factory=list)
    summary: Dict[str, int] = field(default_factory=dict)


async def collect_keyword_rankings(
    client: DataForSEOClient,
    keywords: List[str],
    site_url: str,
    settings: Optional[Any] = None,
) -> KeywordRankingRun:
    """
    Organic + AI-mode lookups for every keyword, combined and summarised.

    Args:
        client: Open DataForSEO client
        keywords: Tracked keywords
        site_url: Site whose rankings and citations are counted
        settings: Settings supplying batch sizes, concurrency and locale
    """
    keywords = [k for k in (str(k).strip() for k in keywords or []) if k]
    if not keywords:
        return KeywordRankingRun(summary=build_summary([]))

    site_domain = extract_domain(site_url)
    batch_serp = getattr(settings, "SERP_BATCH_SIZE", 20)
    batch_ai = getattr(settings, "AI_BATCH_SIZE", 10)
    concurrency = getattr(settings, "RANKING_CONCURRENCY", 2)
    location = getattr(settings, "SERP_LOCATION_NAME", "United Kingdom")
    language = getattr(settings, "SERP_LANGUAGE_CODE", "en")
    depth = getattr(settings, "SERP_DEPTH", 50)

    logger.info(f"Collecting rankings for {len(keywords)} keywords on {site_domain}")
    serp_rows = await fetch_serp_rows(
        client, keywords, site_domain, batch_serp, concurrency, location, language, depth
    )
    ai_rows = await fetch_ai_rows(client, keywords, site_domain, batch_ai, concurrency, location)

    rows = build_combined_rows(serp_rows, ai_rows)
    summary = build_summary(rows)
    logger.info(
        f"Rankings complete: {summary['keywords_with_rank']}/{summary['total_keywords']} ranked, "
        f"{summary['keywords_where_alanranger_cited']} cited in AI overviews"
    )
    return KeywordRankingRun(rows=rows, summary=summary)
