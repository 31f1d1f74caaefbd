"""
Pillar Score Calculator

Top-level aggregator for one audit run. Produces the five pillars plus
their supporting sub-scores:

1. **Visibility** (0-100)
   100 − ((clamp(avg position, 1, 40) − 1) / 39) × 90

2. **Authority** (0-100), per segment variant (all / non_education / money)
   0.4 × Behaviour + 0.2 × Ranking + 0.2 × Backlinks + 0.2 × Reviews

3. **Content/Schema** (0-100)
   0.3 × Foundation + 0.35 × Rich results + 0.2 × Coverage + 0.15 × Diversity

4. **Local Entity / Service Area** (0-100)
   From local signals when available, otherwise derived from visibility
   and CTR.

5. **Brand Overlay** (0-100), see brand.py

Every input except search data is optional; missing inputs fall back to
documented neutral values. The calculator performs no I/O.
"""

import logging
from dataclasses import dataclass, field, asdict
from typing import Dict, Any, List, Optional, Set, Union

from src.models import SearchData
from .behaviour import SegmentedScores, compute_segmented_scores
from .brand import BrandOverlay, score_brand_overlay
from .helpers import clamp, clamp_score, normalise_position, round_half_up
from .reviews import (
    ReviewSnapshot,
    compute_backlink_score,
    compute_review_score,
    resolve_site_reviews,
    snapshot_from_settings,
)

logger = logging.getLogger(__name__)


# ============================================================================
# CONSTANTS
# ============================================================================

VISIBILITY_DEFAULT_POSITION = 40

AUTHORITY_WEIGHTS = {
    "behaviour": 0.4,
    "ranking": 0.2,
    "backlinks": 0.2,
    "reviews": 0.2,
}

FOUNDATION_TYPES = ("Organization", "Person", "WebSite", "BreadcrumbList")

RICH_RESULT_TYPES = (
    "Article",
    "Event",
    "FAQPage",
    "Product",
    "LocalBusiness",
    "Course",
    "Review",
    "HowTo",
    "VideoObject",
    "ImageObject",
    "ItemList",
)

DIVERSITY_TARGET = 15

SERVICE_AREA_FULL_COUNT = 8
SERVICE_AREA_POINTS = 12.5

KNOWLEDGE_PANEL_BONUS = 10
LOCATION_BONUS = 5

SNIPPET_WEIGHTS = {
    "content_schema": 0.4,
    "visibility": 0.35,
    "authority": 0.25,
}


# ============================================================================
# RESULT TYPES
# ============================================================================

@dataclass(frozen=True)
class AuthorityBreakdown:
    behaviour: int
    ranking: int
    backlinks: int
    reviews: int
    total: int


@dataclass(frozen=True)
class AuthorityScore:
    score: int
    by_segment: Dict[str, AuthorityBreakdown]


@dataclass(frozen=True)
class PillarScores:
    """Composite pillar record for one audit run."""
    visibility: int
    authority: AuthorityScore
    content_schema: int
    local_entity: int
    service_area: int
    brand_overlay: BrandOverlay
    coverage_score: float
    diversity_score: float
    review_score: int = 0
    backlink_score: int = 0
    site_reviews: Optional[ReviewSnapshot] = None

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class ContentSchemaScore:
    score: int = 0
    foundation_score: float = 0.0
    rich_result_score: float = 0.0
    coverage_score: float = 0.0
    diversity_score: float = 0.0
    detected_types: List[str] = field(default_factory=list)


# ============================================================================
# VISIBILITY
# ============================================================================

def compute_visibility(position: Optional[float]) -> int:
    """Visibility from average position: 1 → 100, 40 → 10."""
    pos = position or VISIBILITY_DEFAULT_POSITION
    return clamp_score(normalise_position(pos, 1, VISIBILITY_DEFAULT_POSITION))


# ============================================================================
# AUTHORITY
# ============================================================================

def compute_authority_breakdown(
    behaviour: float,
    ranking: float,
    backlinks: float,
    reviews: float,
) -> AuthorityBreakdown:
    total = clamp_score(
        AUTHORITY_WEIGHTS["behaviour"] * behaviour
        + AUTHORITY_WEIGHTS["ranking"] * ranking
        + AUTHORITY_WEIGHTS["backlinks"] * backlinks
        + AUTHORITY_WEIGHTS["reviews"] * reviews
    )
    return AuthorityBreakdown(
        behaviour=clamp_score(behaviour),
        ranking=clamp_score(ranking),
        backlinks=clamp_score(backlinks),
        reviews=clamp_score(reviews),
        total=total,
    )


def compute_authority(
    behaviour: SegmentedScores,
    ranking: SegmentedScores,
    backlink_score: float,
    review_score: float,
) -> AuthorityScore:
    """Authority for each segment variant; headline score is the "all" variant."""
    by_segment = {
        name: compute_authority_breakdown(
            getattr(behaviour, name),
            getattr(ranking, name),
            backlink_score,
            review_score,
        )
        for name in ("all", "non_education", "money")
    }
    return AuthorityScore(score=by_segment["all"].total, by_segment=by_segment)


# ============================================================================
# LOCAL ENTITY & SERVICE AREA
# ============================================================================

def _local_data(local_signals: Optional[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
    if local_signals and local_signals.get("status") == "ok" and local_signals.get("data"):
        return local_signals["data"]
    return None


def _review_data(local_signals: Optional[Dict[str, Any]]) -> Dict[str, Any]:
    """GBP fields: the payload's data whatever its status, or a bare signals dict."""
    if not local_signals:
        return {}
    if local_signals.get("data"):
        return local_signals["data"]
    return local_signals if "status" not in local_signals else {}


def compute_local_entity(
    local_signals: Optional[Dict[str, Any]],
    ctr: float,
    visibility: float,
) -> int:
    """
    NAP consistency plus knowledge-panel and location bonuses.

    Without local signals:
        60 + 0.3 × (visibility − 50) + 0.2 × (ctr_score − 50)
    where ctr_score = min(ctr / 10%, 1) × 100.
    """
    data = _local_data(local_signals)
    if data is not None:
        score = data.get("napConsistencyScore") or 0
        if data.get("knowledgePanelDetected"):
            score = min(100, score + KNOWLEDGE_PANEL_BONUS)
        if data.get("locations"):
            score = min(100, score + LOCATION_BONUS)
        return clamp_score(score)

    ctr_score = min((ctr or 0) / 0.10, 1) * 100
    return clamp_score(60 + 0.3 * (visibility - 50) + 0.2 * (ctr_score - 50))


def compute_service_area(local_signals: Optional[Dict[str, Any]], local_entity: float) -> int:
    """
    12.5 points per service area (8+ areas = 100), scaled by NAP
    consistency when that is below 100. Falls back to local entity − 5.
    """
    data = _local_data(local_signals)
    if data is None:
        return clamp_score(local_entity - 5)

    count = len(data.get("serviceAreas") or [])
    if count == 0:
        score = 0.0
    elif count >= SERVICE_AREA_FULL_COUNT:
        score = 100.0
    else:
        score = min(100.0, count * SERVICE_AREA_POINTS)

    nap = data.get("napConsistencyScore")
    if nap is not None and nap < 100:
        score = round_half_up(score * (nap / 100))
    return clamp_score(score)


# ============================================================================
# CONTENT / SCHEMA
# ============================================================================

def collect_schema_types(schema_data: Dict[str, Any]) -> Set[str]:
    """
    Distinct schema types seen on the site.

    Prefers ``allDetectedTypes``; otherwise the true keys of
    ``foundation`` and ``richEligible``; otherwise ``schemaTypes``.
    """
    detected = schema_data.get("allDetectedTypes")
    if isinstance(detected, list):
        return {t for t in detected if t}

    foundation = schema_data.get("foundation")
    if isinstance(foundation, dict):
        types = {t for t, present in foundation.items() if present is True}
        rich = schema_data.get("richEligible")
        if isinstance(rich, dict):
            types.update(t for t, eligible in rich.items() if eligible is True)
        return types

    types = set()
    for item in schema_data.get("schemaTypes") or []:
        if isinstance(item, str):
            types.add(item)
        elif isinstance(item, dict) and item.get("type"):
            types.add(item["type"])
    return types


def compute_content_schema(schema_audit: Optional[Dict[str, Any]]) -> ContentSchemaScore:
    """Content/Schema pillar; all zero unless the audit finished with status "ok"."""
    if not (schema_audit and schema_audit.get("status") == "ok" and schema_audit.get("data")):
        return ContentSchemaScore()

    data = schema_audit["data"]
    types = collect_schema_types(data)

    foundation = sum(1 for t in FOUNDATION_TYPES if t in types) / len(FOUNDATION_TYPES) * 100

    rich_eligible = data.get("richEligible") if isinstance(data.get("richEligible"), dict) else {}
    rich = sum(1 for t in RICH_RESULT_TYPES if rich_eligible.get(t) is True) / len(RICH_RESULT_TYPES) * 100

    if data.get("coverage"):
        coverage = float(data["coverage"])
    elif data.get("totalPages") and data.get("pagesWithSchema"):
        coverage = data["pagesWithSchema"] / data["totalPages"] * 100
    else:
        coverage = 0.0

    diversity = min(len(types) / DIVERSITY_TARGET * 100, 100)

    return ContentSchemaScore(
        score=clamp_score(0.3 * foundation + 0.35 * rich + 0.2 * coverage + 0.15 * diversity),
        foundation_score=foundation,
        rich_result_score=rich,
        coverage_score=coverage,
        diversity_score=diversity,
        detected_types=sorted(types),
    )


# ============================================================================
# TOP-LEVEL CALCULATION
# ============================================================================

_UNSET = object()


def calculate_pillar_scores(
    search_data: Union[SearchData, Dict[str, Any]],
    schema_audit: Optional[Dict[str, Any]] = None,
    local_signals: Optional[Dict[str, Any]] = None,
    site_reviews: Optional[Dict[str, Any]] = None,
    backlink_metrics: Optional[Dict[str, Any]] = None,
    review_snapshot: Any = _UNSET,
) -> PillarScores:
    """
    Calculate every pillar for one audit run.

    Args:
        search_data: SearchData (or its dict form)
        schema_audit: {"status", "data": {...}} from the schema audit
        local_signals: {"status", "data": {...}} from the local-signals check
        site_reviews: Live site-review figures, overriding the snapshot
        backlink_metrics: {"referringDomains", "totalBacklinks", "followRatio"}
        review_snapshot: Site-review snapshot; defaults to the configured
            Trustpilot snapshot. Pass None to score without one.

    Returns:
        PillarScores
    """
    data = search_data if isinstance(search_data, SearchData) else SearchData.from_dict(search_data)

    visibility = compute_visibility(data.average_position)

    rows = data.query_pages or data.top_queries
    segmented = compute_segmented_scores(rows)

    local = _review_data(local_signals)
    snapshot = snapshot_from_settings() if review_snapshot is _UNSET else review_snapshot
    reviews = resolve_site_reviews(site_reviews, snapshot)

    review_score = compute_review_score(
        gbp_rating=local.get("gbpRating"),
        gbp_count=local.get("gbpReviewCount"),
        site_rating=reviews.site_rating if reviews else None,
        site_count=reviews.site_review_count if reviews else None,
    )
    backlink_score = compute_backlink_score(backlink_metrics)

    authority = compute_authority(
        segmented["behaviour"], segmented["ranking"], backlink_score, review_score
    )

    local_entity = compute_local_entity(local_signals, data.ctr, visibility)
    service_area = compute_service_area(local_signals, local_entity)
    content = compute_content_schema(schema_audit)
    brand_overlay = score_brand_overlay(rows, review_score, local_entity)

    logger.info(
        f"Pillar scores: visibility={visibility} authority={authority.score} "
        f"content_schema={content.score} local_entity={local_entity} "
        f"brand={brand_overlay.score} ({brand_overlay.label})"
    )

    return PillarScores(
        visibility=visibility,
        authority=authority,
        content_schema=content.score,
        local_entity=local_entity,
        service_area=service_area,
        brand_overlay=brand_overlay,
        coverage_score=content.coverage_score,
        diversity_score=content.diversity_score,
        review_score=review_score,
        backlink_score=backlink_score,
        site_reviews=reviews,
    )


def calculate_snippet_readiness(scores: PillarScores) -> int:
    """0.4 × Content/Schema + 0.35 × Visibility + 0.25 × Authority."""
    readiness = (
        SNIPPET_WEIGHTS["content_schema"] * scores.content_schema
        + SNIPPET_WEIGHTS["visibility"] * scores.visibility
        + SNIPPET_WEIGHTS["authority"] * scores.authority.score
    )
    return clamp_score(clamp(readiness, 0, 100))
