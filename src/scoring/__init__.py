"""
Scoring Module for the AI-Visibility Audit Engine

This module provides the audit's pillar calculations:

1. **Visibility** (0-100)
   Linear in average position: position 1 → 100, position 40 → 10.

2. **Authority** (0-100)
   0.4 Behaviour + 0.2 Ranking + 0.2 Backlinks + 0.2 Reviews, computed for
   all pages, non-education pages and money pages.

3. **Content/Schema** (0-100)
   Foundation types, rich-result eligibility, coverage and diversity.

4. **Local Entity / Service Area** (0-100)
   NAP consistency and service-area listings, with heuristic fallbacks.

5. **Brand Overlay** (0-100)
   Branded-search share/CTR/position blended with reviews and entity.

Plus the money-page analyzer (opportunity categories and the
impact × difficulty priority grid).

Example Usage:
    from src.scoring import calculate_pillar_scores, calculate_snippet_readiness

    scores = calculate_pillar_scores(
        {"averagePosition": 8.2, "ctr": 0.031, "queryPages": rows},
        schema_audit=schema_audit,
        local_signals=local_signals,
    )
    print(f"Authority: {scores.authority.score}")
    print(f"Snippet readiness: {calculate_snippet_readiness(scores)}")
"""

# Helper utilities and constants
from .helpers import (
    clamp,
    clamp_score,
    round_half_up,
    normalise_pct,
    normalise_position,
    expected_ctr_for_position,
    is_ranking_row,
    weighted_average_position,
)

# Behaviour & ranking
from .behaviour import (
    SegmentedScores,
    compute_behaviour_score,
    compute_ranking_score,
    compute_segmented_scores,
)

# Reviews & backlinks
from .reviews import (
    ReviewSnapshot,
    snapshot_from_settings,
    resolve_site_reviews,
    compute_review_score,
    compute_backlink_score,
)

# Brand overlay
from .brand import (
    BrandMetrics,
    BrandOverlay,
    calculate_brand_metrics,
    compute_brand_overlay,
    score_brand_overlay,
    is_brand_query,
)

# Money pages
from .money_pages import (
    OpportunityCategory,
    OpportunityResult,
    Level,
    SiteAggregate,
    MoneyPageRow,
    MoneyPagesMetrics,
    MoneyPageMetric,
    MoneyPagesBehaviour,
    MoneyPagesSummary,
    SegmentSummary,
    classify_opportunity,
    compute_site_aggregate,
    compute_money_pages_metrics,
    build_money_page_metrics,
    build_money_segment_summary,
    build_money_pages_summary,
    compute_money_pages_behaviour,
    compute_difficulty_level,
    derive_priority_level,
)

# Pillars
from .pillars import (
    AuthorityBreakdown,
    AuthorityScore,
    PillarScores,
    ContentSchemaScore,
    compute_visibility,
    compute_authority,
    compute_local_entity,
    compute_service_area,
    compute_content_schema,
    calculate_pillar_scores,
    calculate_snippet_readiness,
)

__all__ = [
    # Helpers
    "clamp",
    "clamp_score",
    "round_half_up",
    "normalise_pct",
    "normalise_position",
    "expected_ctr_for_position",
    "is_ranking_row",
    "weighted_average_position",

    # Behaviour & ranking
    "SegmentedScores",
    "compute_behaviour_score",
    "compute_ranking_score",
    "compute_segmented_scores",

    # Reviews & backlinks
    "ReviewSnapshot",
    "snapshot_from_settings",
    "resolve_site_reviews",
    "compute_review_score",
    "compute_backlink_score",

    # Brand
    "BrandMetrics",
    "BrandOverlay",
    "calculate_brand_metrics",
    "compute_brand_overlay",
    "score_brand_overlay",
    "is_brand_query",

    # Money pages
    "OpportunityCategory",
    "OpportunityResult",
    "Level",
    "SiteAggregate",
    "MoneyPageRow",
    "MoneyPagesMetrics",
    "MoneyPageMetric",
    "MoneyPagesBehaviour",
    "MoneyPagesSummary",
    "SegmentSummary",
    "classify_opportunity",
    "compute_site_aggregate",
    "compute_money_pages_metrics",
    "build_money_page_metrics",
    "build_money_segment_summary",
    "build_money_pages_summary",
    "compute_money_pages_behaviour",
    "compute_difficulty_level",
    "derive_priority_level",

    # Pillars
    "AuthorityBreakdown",
    "AuthorityScore",
    "PillarScores",
    "ContentSchemaScore",
    "compute_visibility",
    "compute_authority",
    "compute_local_entity",
    "compute_service_area",
    "compute_content_schema",
    "calculate_pillar_scores",
    "calculate_snippet_readiness",
]
