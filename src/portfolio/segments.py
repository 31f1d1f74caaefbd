"""
Portfolio segment membership.

A page belongs to ``site`` plus exactly one of blog / academy / a money
sub-segment / other. Money sub-segment pages also roll up into ``money``.
``all_tracked`` membership depends on the active optimisation tasks and
is decided separately.
"""

from enum import Enum
from typing import Iterable, List, Optional

from src.segment import classify_money_sub_segment
from src.utils.urls import (
    normalise_path,
    normalize_task_url,
    path_matches_pattern,
    tracked_path_key,
)


class PortfolioSegment(str, Enum):
    SITE = "site"
    MONEY = "money"
    ACADEMY = "academy"
    LANDING = "landing"
    EVENT = "event"
    PRODUCT = "product"
    BLOG = "blog"
    OTHER = "other"
    ALL_TRACKED = "all_tracked"


class Scope(str, Enum):
    """Calibrated whole-site rollup vs uncalibrated tracked-page rollup."""
    ALL_PAGES = "all_pages"
    ACTIVE_CYCLES_ONLY = "active_cycles_only"


BLOG_MARKER = "/blog-on-photography/"
ACADEMY_PATH = "/free-online-photography-course"

# Statuses of optimisation tasks whose URLs count as tracked
ACTIVE_TASK_STATUSES = ("in_progress", "monitoring", "planned")


def primary_segment(url: Optional[str]) -> PortfolioSegment:
    """Blog, then academy, then money sub-segment, else other."""
    path = normalise_path(url)
    if BLOG_MARKER in path:
        return PortfolioSegment.BLOG
    if path == ACADEMY_PATH:
        return PortfolioSegment.ACADEMY
    sub_segment = classify_money_sub_segment(path)
    if sub_segment is not None:
        return PortfolioSegment(sub_segment.value)
    return PortfolioSegment.OTHER


MONEY_SEGMENTS = frozenset({
    PortfolioSegment.LANDING,
    PortfolioSegment.EVENT,
    PortfolioSegment.PRODUCT,
})


def page_segments(url: Optional[str]) -> List[PortfolioSegment]:
    """Every segment a page contributes to, excluding ``all_tracked``."""
    primary = primary_segment(url)
    segments = [PortfolioSegment.SITE, primary]
    if primary in MONEY_SEGMENTS:
        segments.append(PortfolioSegment.MONEY)
    return segments


def tracked_patterns(task_urls: Iterable[Optional[str]]) -> List[str]:
    """Match patterns for the target URLs of active optimisation tasks."""
    return [normalize_task_url(url) for url in task_urls if url]


def is_tracked(url: Optional[str], patterns: List[str]) -> bool:
    """Whether a page falls under any tracked pattern (no patterns → False)."""
    if not patterns:
        return False
    path = tracked_path_key(url)
    return any(path_matches_pattern(path, pattern) for pattern in patterns)
