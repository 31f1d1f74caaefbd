"""
Brand Overlay Scorer

How strongly the brand shows up in search, blended with reputation and
entity signals.

Formula:
    share_score    = min(brand share / 30%, 1) × 100
    ctr_score      = min(brand CTR / 40%, 1) × 100
    position_score = 100 → 10 linear over positions 1 → 10 (0 when unknown)

    brand_search = 0.4 × share_score + 0.3 × ctr_score + 0.3 × position_score
    score        = round(0.4 × brand_search + 0.3 × review + 0.3 × entity)

Labels: < 40 Weak, < 70 Developing, otherwise Strong.
"""

import logging
from dataclasses import dataclass, field, asdict
from typing import Dict, Any, Iterable, List, Optional

from src.models import as_query_row
from src.segment import contains_brand_term
from .helpers import is_ranking_row, normalise_position, round_half_up, safe_ratio

logger = logging.getLogger(__name__)

SHARE_TARGET = 0.30
CTR_TARGET = 0.40
BRAND_BEST_POSITION = 1
BRAND_WORST_POSITION = 10

WEAK_BELOW = 40
DEVELOPING_BELOW = 70

NOTE_LOW_SHARE = "Low share of branded searches in GSC."
NOTE_LOW_CTR = "Branded CTR is below 25%."
NOTE_NOT_TOP5 = "Branded queries do not consistently rank in top-5."
NOTE_REVIEWS = "Review rating / volume is still maturing."
NOTE_ENTITY = "Knowledge-panel / entity coverage could be stronger."


@dataclass
class BrandMetrics:
    """Branded-query share, CTR and impression-weighted position."""
    brand_query_share: float = 0.0
    brand_ctr: float = 0.0
    brand_avg_position: Optional[float] = None


@dataclass
class BrandOverlay:
    """Brand overlay pillar."""
    score: int
    label: str
    brand_query_share: float
    brand_ctr: float
    brand_avg_position: Optional[float]
    review_score: float
    entity_score: float
    notes: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def is_brand_query(query: Any) -> bool:
    return isinstance(query, str) and contains_brand_term(query)


def calculate_brand_metrics(queries: Iterable[Any]) -> BrandMetrics:
    """
    Brand metrics over ranking queries (0 < position <= 20, impressions > 0).
    """
    ranking = []
    for raw in queries or []:
        row = as_query_row(raw)
        if is_ranking_row(row.avg_position, row.impressions):
            ranking.append(row)

    if not ranking:
        return BrandMetrics()

    brand = [q for q in ranking if is_brand_query(q.query)]
    total_impressions = sum(q.impressions for q in ranking)
    brand_impressions = sum(q.impressions for q in brand)
    brand_clicks = sum(q.clicks for q in brand)

    return BrandMetrics(
        brand_query_share=safe_ratio(brand_impressions, total_impressions),
        brand_ctr=safe_ratio(brand_clicks, brand_impressions),
        brand_avg_position=(
            sum(q.avg_position * q.impressions for q in brand) / brand_impressions
            if brand_impressions > 0 else None
        ),
    )


def brand_position_score(position: Optional[float]) -> float:
    if position is None:
        return 0.0
    return normalise_position(position, BRAND_BEST_POSITION, BRAND_WORST_POSITION)


def brand_label(score: float) -> str:
    if score < WEAK_BELOW:
        return "Weak"
    if score < DEVELOPING_BELOW:
        return "Developing"
    return "Strong"


def compute_brand_overlay(
    brand_query_share: float = 0.0,
    brand_ctr: float = 0.0,
    brand_avg_position: Optional[float] = None,
    review_score: float = 0.0,
    entity_score: float = 0.0,
) -> BrandOverlay:
    """Combine brand search metrics with review and entity scores."""
    share_score = min(brand_query_share / SHARE_TARGET, 1) * 100
    ctr_score = min(brand_ctr / CTR_TARGET, 1) * 100
    position_score = brand_position_score(brand_avg_position)

    brand_search = 0.4 * share_score + 0.3 * ctr_score + 0.3 * position_score
    combined = 0.4 * brand_search + 0.3 * review_score + 0.3 * entity_score

    notes = []
    if brand_query_share < 0.10:
        notes.append(NOTE_LOW_SHARE)
    if brand_ctr < 0.25:
        notes.append(NOTE_LOW_CTR)
    if brand_avg_position is None or brand_avg_position > 5:
        notes.append(NOTE_NOT_TOP5)
    if review_score < 70:
        notes.append(NOTE_REVIEWS)
    if entity_score < 70:
        notes.append(NOTE_ENTITY)

    return BrandOverlay(
        score=round_half_up(combined),
        label=brand_label(combined),
        brand_query_share=brand_query_share,
        brand_ctr=brand_ctr,
        brand_avg_position=brand_avg_position,
        review_score=review_score,
        entity_score=entity_score,
        notes=notes,
    )


def score_brand_overlay(
    queries: Iterable[Any],
    review_score: float,
    entity_score: float,
) -> BrandOverlay:
    """Metrics + overlay in one step."""
    metrics = calculate_brand_metrics(queries)
    return compute_brand_overlay(
        brand_query_share=metrics.brand_query_share,
        brand_ctr=metrics.brand_ctr,
        brand_avg_position=metrics.brand_avg_position,
        review_score=review_score,
        entity_score=entity_score,
    )
