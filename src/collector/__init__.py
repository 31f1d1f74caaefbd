"""
AI-Visibility Audit Engine - Data Collection Package

Collectors for the upstream search data:
- Search Console: page, query × page and daily series via the Search Analytics API
- DataForSEO: organic SERP rankings, AI-mode citations, backlink summary
- Batching: bounded fan-out for the rate-limited SERP endpoints
"""

from .client import (
    DataForSEOClient,
    DataForSEOError,
    RetryConfig,
    ResultShape,
    UnrecognizedResponseShape,
    parse_result_items,
    parse_task_items,
)
from .gsc import (
    GSCClient,
    GSCError,
    fetch_page_rows,
    fetch_query_page_rows,
    fetch_daily_timeseries,
    build_search_data,
)
from .batching import split_into_batches, run_batches
from .rankings import (
    KeywordRankingRun,
    build_combined_rows,
    build_summary,
    collect_keyword_rankings,
    extract_ai_citations,
    parse_organic_task,
)

__all__ = [
    # DataForSEO
    "DataForSEOClient",
    "DataForSEOError",
    "RetryConfig",
    "ResultShape",
    "UnrecognizedResponseShape",
    "parse_result_items",
    "parse_task_items",

    # Search Console
    "GSCClient",
    "GSCError",
    "fetch_page_rows",
    "fetch_query_page_rows",
    "fetch_daily_timeseries",
    "build_search_data",

    # Batching
    "split_into_batches",
    "run_batches",

    # Rankings
    "KeywordRankingRun",
    "build_combined_rows",
    "build_summary",
    "collect_keyword_rankings",
    "extract_ai_citations",
    "parse_organic_task",
]
