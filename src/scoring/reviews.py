"""
Review & Backlink Scores

Off-site inputs to the Authority pillar.

Reviews:
    Each source scores (rating / 5) × 100. Google Business Profile and the
    site-review snapshot (Trustpilot) are averaged when both are present,
    either one is used alone, and 50 is the neutral default.

Backlinks:
    0.5 × min(referring domains, 100)
  + 0.3 × min(total backlinks / 10, 100)
  + 0.2 × min(follow ratio × 100, 100)
    0 when no backlink data is available.

The Trustpilot figures are a curated snapshot rather than a live feed.
They come from settings (TRUSTPILOT_RATING, TRUSTPILOT_REVIEW_COUNT,
TRUSTPILOT_SNAPSHOT_DATE); refresh them when the public rating moves by
0.1 or more, or at least quarterly.
"""

import logging
import math
from dataclasses import dataclass, asdict
from typing import Dict, Any, Optional

from src.utils.config import Settings, get_settings
from .helpers import clamp_score

logger = logging.getLogger(__name__)

NEUTRAL_REVIEW_SCORE = 50

SNAPSHOT_NOTES = (
    "Fixed Trustpilot snapshot for Authority score calculation. "
    "Update when Trustpilot metrics change significantly."
)


@dataclass(frozen=True)
class ReviewSnapshot:
    """Site-review figures used by the review score."""
    site_rating: Optional[float]
    site_review_count: Optional[int]
    last_updated: Optional[str] = None
    notes: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def snapshot_from_settings(settings: Optional[Settings] = None) -> Optional[ReviewSnapshot]:
    """
    Configured Trustpilot snapshot, or None when no rating is configured.
    """
    settings = settings or get_settings()
    if settings.TRUSTPILOT_RATING is None and settings.TRUSTPILOT_REVIEW_COUNT is None:
        return None
    snapshot_date = settings.TRUSTPILOT_SNAPSHOT_DATE
    return ReviewSnapshot(
        site_rating=settings.TRUSTPILOT_RATING,
        site_review_count=settings.TRUSTPILOT_REVIEW_COUNT,
        last_updated=snapshot_date.isoformat() if snapshot_date else None,
        notes=SNAPSHOT_NOTES,
    )


def _finite(value: Any) -> Optional[float]:
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    return number if math.isfinite(number) else None


def resolve_site_reviews(
    site_reviews: Optional[Dict[str, Any]],
    snapshot: Optional[ReviewSnapshot],
) -> Optional[ReviewSnapshot]:
    """
    Live site reviews win over the snapshot when both rating and count
    are finite numbers.
    """
    if site_reviews:
        rating = _finite(site_reviews.get("siteRating", site_reviews.get("site_rating")))
        count = _finite(site_reviews.get("siteReviewCount", site_reviews.get("site_review_count")))
        if rating is not None and count is not None:
            return ReviewSnapshot(
                site_rating=rating,
                site_review_count=int(count),
                last_updated=site_reviews.get("lastUpdated") or (snapshot.last_updated if snapshot else None),
                notes=site_reviews.get("notes") or (snapshot.notes if snapshot else None),
            )
        logger.warning("Site reviews missing a numeric rating/count; using configured snapshot")

    if snapshot is not None:
        logger.info(f"Using site-review snapshot dated {snapshot.last_updated}")
    return snapshot


def _has_reviews(rating: Optional[float], count: Optional[float]) -> bool:
    return (rating is not None and rating > 0) or (count is not None and count > 0)


def compute_review_score(
    gbp_rating: Optional[float] = None,
    gbp_count: Optional[float] = None,
    site_rating: Optional[float] = None,
    site_count: Optional[float] = None,
) -> int:
    """Combined review score (neutral 50 when neither source has reviews)."""
    has_gbp = _has_reviews(gbp_rating, gbp_count)
    has_site = _has_reviews(site_rating, site_count)

    if not has_gbp and not has_site:
        return NEUTRAL_REVIEW_SCORE

    gbp_score = clamp_score((gbp_rating or 0) / 5 * 100) if has_gbp else None
    site_score = clamp_score((site_rating or 0) / 5 * 100) if has_site else None

    if gbp_score is not None and site_score is not None:
        return clamp_score((gbp_score + site_score) / 2)
    return gbp_score if gbp_score is not None else site_score


def compute_backlink_score(metrics: Optional[Dict[str, Any]]) -> int:
    """Backlink score from {referringDomains, totalBacklinks, followRatio}."""
    if not metrics:
        return 0

    referring_domains = _finite(metrics.get("referringDomains", metrics.get("referring_domains"))) or 0
    total_backlinks = _finite(metrics.get("totalBacklinks", metrics.get("total_backlinks"))) or 0
    follow_ratio = _finite(metrics.get("followRatio", metrics.get("follow_ratio"))) or 0

    if not referring_domains and not total_backlinks:
        return 0

    return clamp_score(
        0.5 * min(100, referring_domains)
        + 0.3 * min(100, total_backlinks / 10)
        + 0.2 * min(100, follow_ratio * 100)
    )
