"""
Scoring Helper Functions and Constants

Clamping/normalisation primitives, the expected-CTR step function and the
ranking-row filter shared by all pillar, brand and money-page scorers.
"""

import math
from typing import Iterable, Optional, Tuple, Any


# ============================================================================
# NORMALISATION
# ============================================================================

def clamp(value: float, low: float, high: float) -> float:
    return max(low, min(high, value))


def round_half_up(value: float) -> int:
    """Half-up rounding: 78.5 → 79."""
    return int(math.floor(value + 0.5))


def clamp_score(value: Any) -> int:
    """
    Round to an int score in [0, 100].

    Non-numeric and non-finite values score 0.
    """
    try:
        number = float(value)
    except (TypeError, ValueError):
        return 0
    if not math.isfinite(number):
        return 0
    return int(clamp(round_half_up(number), 0, 100))


def normalise_pct(value: Optional[float], maximum: float) -> float:
    """Map value/maximum into [0, 100]; a non-positive maximum maps to 0."""
    if value is None or maximum <= 0:
        return 0.0
    return clamp(value / maximum, 0.0, 1.0) * 100


def normalise_position(position: float, best: float, worst: float) -> float:
    """
    Linear position score: ``best`` → 100, ``worst`` → 10.

    Positions outside the range are clamped first.
    """
    if worst <= best:
        return 100.0
    pos = clamp(position, best, worst)
    t = (pos - best) / (worst - best)
    return 100 - t * 90


def safe_ratio(numerator: float, denominator: float) -> float:
    return numerator / denominator if denominator > 0 else 0.0


# ============================================================================
# CTR BENCHMARK (step function used for lost-click estimates)
# ============================================================================

EXPECTED_CTR_STEPS: Tuple[Tuple[float, float], ...] = (
    (3, 0.10),
    (6, 0.07),
    (10, 0.05),
    (20, 0.03),
)

EXPECTED_CTR_FLOOR = 0.02


def expected_ctr_for_position(position: Optional[float]) -> float:
    """
    Benchmark CTR for an average position.

    Unknown or non-positive positions get the top-band benchmark.
    """
    try:
        pos = float(position)
    except (TypeError, ValueError):
        return EXPECTED_CTR_STEPS[0][1]
    if not math.isfinite(pos) or pos <= 0:
        return EXPECTED_CTR_STEPS[0][1]
    for upper, ctr in EXPECTED_CTR_STEPS:
        if pos <= upper:
            return ctr
    return EXPECTED_CTR_FLOOR


# ============================================================================
# ROW FILTERS & AGGREGATES
# ============================================================================

RANKING_MAX_POSITION = 20


def is_ranking_row(position: Optional[float], impressions: float) -> bool:
    """A row counts as ranking when 0 < position <= 20 and it has impressions."""
    return (
        position is not None
        and 0 < position <= RANKING_MAX_POSITION
        and impressions > 0
    )


def weighted_average_position(pairs: Iterable[Tuple[Optional[float], float]]) -> Optional[float]:
    """
    Impression-weighted mean position over (position, impressions) pairs.

    Pairs without a position or without impressions are ignored; returns
    None when nothing qualifies.
    """
    weighted = 0.0
    total = 0.0
    for position, impressions in pairs:
        if not position or not impressions or impressions <= 0:
            continue
        weighted += position * impressions
        total += impressions
    return weighted / total if total > 0 else None
