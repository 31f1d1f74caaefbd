"""
Behaviour & Ranking Scores

Both scores only look at "ranking" rows (0 < position <= 20 with
impressions) and fall back to a neutral 50 when there are none.

Formula:
    Behaviour = 0.5 × pct(CTR, 5%) + 0.5 × pct(top-10 CTR, 10%)
    Ranking   = 0.5 × position_score(weighted avg pos, 1..20)
              + 0.5 × top-10 impression share × 100

Top-10 CTR falls back to overall CTR when no ranking row sits in the
top 10. Segment variants (all / non_education / money) classify each
row by its landing page.
"""

import logging
from dataclasses import dataclass, asdict
from typing import Dict, Iterable, List, Any

from src.models import QueryRow, as_query_row
from src.segment import PageSegment, classify_page_segment
from .helpers import (
    is_ranking_row,
    normalise_pct,
    normalise_position,
    safe_ratio,
    clamp,
)

logger = logging.getLogger(__name__)

NEUTRAL_SCORE = 50.0

BEHAVIOUR_CTR_TARGET = 0.05
BEHAVIOUR_TOP10_CTR_TARGET = 0.10
TOP10_MAX_POSITION = 10


@dataclass
class SegmentedScores:
    """One raw (unrounded) score per page-segment variant."""
    all: float = NEUTRAL_SCORE
    non_education: float = NEUTRAL_SCORE
    money: float = NEUTRAL_SCORE

    def to_dict(self) -> Dict[str, float]:
        return asdict(self)


def ranking_rows(rows: Iterable[Any]) -> List[QueryRow]:
    """Rows with 0 < position <= 20 and impressions > 0."""
    result = []
    for row in rows:
        q = as_query_row(row)
        if is_ranking_row(q.avg_position, q.impressions):
            result.append(q)
    return result


def compute_behaviour_score(rows: Iterable[Any]) -> float:
    """CTR-based behaviour score over ranking rows (neutral 50 when empty)."""
    ranking = ranking_rows(rows)
    if not ranking:
        return NEUTRAL_SCORE

    clicks = sum(q.clicks for q in ranking)
    impressions = sum(q.impressions for q in ranking)
    ctr_all = safe_ratio(clicks, impressions)

    top10 = [q for q in ranking if q.avg_position <= TOP10_MAX_POSITION]
    top10_impressions = sum(q.impressions for q in top10)
    ctr_top10 = (
        sum(q.clicks for q in top10) / top10_impressions
        if top10_impressions > 0 else ctr_all
    )

    return (
        0.5 * normalise_pct(ctr_all, BEHAVIOUR_CTR_TARGET)
        + 0.5 * normalise_pct(ctr_top10, BEHAVIOUR_TOP10_CTR_TARGET)
    )


def compute_ranking_score(rows: Iterable[Any]) -> float:
    """Position/top-10-share ranking score over ranking rows (neutral 50 when empty)."""
    ranking = ranking_rows(rows)
    if not ranking:
        return NEUTRAL_SCORE

    impressions = sum(q.impressions for q in ranking)
    avg_position = safe_ratio(sum(q.avg_position * q.impressions for q in ranking), impressions)
    position_score = normalise_position(clamp(avg_position, 1, 20), 1, 20)

    top10_impressions = sum(q.impressions for q in ranking if q.avg_position <= TOP10_MAX_POSITION)
    top10_share = safe_ratio(top10_impressions, impressions)

    return 0.5 * position_score + 0.5 * top10_share * 100


def split_rows_by_segment(rows: Iterable[Any]) -> Dict[str, List[QueryRow]]:
    """Partition query-page rows into the all / non_education / money variants."""
    variants: Dict[str, List[QueryRow]] = {"all": [], "non_education": [], "money": []}
    for row in rows:
        q = as_query_row(row)
        segment = classify_page_segment(q.page or "/")
        variants["all"].append(q)
        if segment is not PageSegment.EDUCATION:
            variants["non_education"].append(q)
        if segment is PageSegment.MONEY:
            variants["money"].append(q)
    return variants


def compute_segmented_scores(rows: Iterable[Any]) -> Dict[str, SegmentedScores]:
    """
    Behaviour and ranking scores for each segment variant.

    Returns:
        {"behaviour": SegmentedScores, "ranking": SegmentedScores}
    """
    variants = split_rows_by_segment(rows)
    behaviour = SegmentedScores(**{
        name: compute_behaviour_score(subset) for name, subset in variants.items()
    })
    ranking = SegmentedScores(**{
        name: compute_ranking_score(subset) for name, subset in variants.items()
    })
    logger.debug(
        f"Segmented scores: behaviour={behaviour.to_dict()} ranking={ranking.to_dict()}"
    )
    return {"behaviour": behaviour, "ranking": ranking}
