"""
Page Segment Classifier

Assigns every site URL one business segment:

    override → education → fine-art gallery (system) → money exact →
    money keyword → support exact → system

Money pages are further split into landing / event / product
sub-segments. Classification is a pure function of the URL (plus an
optional operator override); ``title`` is accepted for call-site
compatibility and does not influence the result.
"""

import logging
from enum import Enum
from typing import Optional

from src.utils.urls import normalise_path

logger = logging.getLogger(__name__)


class PageSegment(str, Enum):
    """Business segment of a site page."""
    EDUCATION = "education"
    MONEY = "money"
    SUPPORT = "support"
    SYSTEM = "system"


class MoneySubSegment(str, Enum):
    """Sub-segment of a money page."""
    LANDING = "landing"
    EVENT = "event"
    PRODUCT = "product"


# ============================================================================
# CLASSIFICATION TABLES
# ============================================================================

OVERRIDE_VOCABULARY = {
    "education": PageSegment.EDUCATION,
    "educational": PageSegment.EDUCATION,
    "money": PageSegment.MONEY,
    "commercial": PageSegment.MONEY,
    "support": PageSegment.SUPPORT,
    "system": PageSegment.SYSTEM,
}

EDUCATION_PREFIX = "/blog-on-photography/"

EDUCATION_EXACT = frozenset({
    "/blog-on-photography",
    "/free-online-photography-course",
    "/outdoor-photography-exposure-calculator",
    "/free-photography-tips",
    "/photography-news-blog",
})

# Print galleries are browsing pages, not offers
FINE_ART_EXACT = frozenset({
    "/fine-art-prints",
    "/photography-services-near-me/fine-art-photography-prints-unframed",
    "/photography-services-near-me/framed-fine-art-photography-prints",
    "/photography-services-near-me/fine-art-photography-prints-canvas",
})

FINE_ART_MARKERS = ("fine-art-prints", "fine-art-photography-prints")

MONEY_EXACT = frozenset({
    "/photography-workshops",
    "/photography-workshops-near-me",
    "/photography-workshops-uk",
    "/landscape-photography-workshops",
    "/outdoor-photography-workshops",
    "/photographic-workshops-near-me",
    "/photographic-workshops-uk",
    "/photography-courses-coventry",
    "/course-finder-photography-classes-near-me",
    "/photography-tuition-services",
    "/photography-services-near-me",
    "/photography-shop-services",
    "/rps-courses-mentoring-distinctions",
    "/hire-a-professional-photographer-in-coventry",
    "/professional-commercial-photographer-coventry",
    "/professional-photographer-near-me",
    "/coventry-photographer",
    "/photographer-in-coventry",
    "/photography-mentoring-programme",
    "/photography-academy-membership",
    "/photography-academy",
    "/photography-session-vouchers",
    "/photography-gift-vouchers",
    "/photography-presents-for-photographers",
    "/batsford-arboretum-photography",
    "/bluebell-woods-near-me",
})

MONEY_KEYWORDS = (
    "workshop",
    "workshops",
    "lesson",
    "lessons",
    "course",
    "courses",
    "course-finder",
    "class",
    "classes",
    "training",
    "tuition",
    "mentoring",
    "academy",
    "gift-voucher",
    "gift-vouchers",
    "presents-for-photographers",
    "session-vouchers",
    "photography-services-near-me",
    "photography-services",
    "photography-shop",
    "1-2-1",
    "hire-a-professional-photographer",
    "prints",
    "print-preparation-service",
    "special-offers",
)

SUPPORT_EXACT = frozenset({
    "/",
    "/about-alan-ranger",
    "/testimonials-customer-reviews",
    "/awards-and-qualifications",
    "/gallery-image-portfolios",
    "/help-site-map",
    "/help-portrait-uk-coventry",
    "/photography-equipment-recommendations",
    "/newsletter-signup-form",
    "/which-photography-style-is-right-for-you",
    "/contact-us",
})

EVENT_MARKERS = ("/beginners-photography-lessons", "/photographic-workshops-near-me")
PRODUCT_MARKERS = ("/photo-workshops-uk", "/photography-services-near-me")


# ============================================================================
# CLASSIFIERS
# ============================================================================

def _override_segment(kind_override: Optional[str]) -> Optional[PageSegment]:
    if not isinstance(kind_override, str):
        return None
    return OVERRIDE_VOCABULARY.get(kind_override.strip().lower())


def is_education_path(path: str) -> bool:
    return path.startswith(EDUCATION_PREFIX) or path in EDUCATION_EXACT


def is_fine_art_gallery(path: str) -> bool:
    return path in FINE_ART_EXACT or any(marker in path for marker in FINE_ART_MARKERS)


def classify_page_segment(
    url_or_path: Optional[str],
    title: Optional[str] = None,
    kind_override: Optional[str] = None,
) -> PageSegment:
    """
    Classify a page URL into its business segment.

    Args:
        url_or_path: Absolute URL or bare path
        title: Page title (unused)
        kind_override: Operator override; recognised values win outright

    Returns:
        PageSegment (never raises)
    """
    override = _override_segment(kind_override)
    if override is not None:
        return override

    path = normalise_path(url_or_path)

    if is_education_path(path):
        return PageSegment.EDUCATION
    if is_fine_art_gallery(path):
        return PageSegment.SYSTEM
    if path in MONEY_EXACT:
        return PageSegment.MONEY
    if any(keyword in path for keyword in MONEY_KEYWORDS):
        return PageSegment.MONEY
    if path in SUPPORT_EXACT:
        return PageSegment.SUPPORT
    return PageSegment.SYSTEM


def classify_money_sub_segment(
    url_or_path: Optional[str],
    kind_override: Optional[str] = None,
) -> Optional[MoneySubSegment]:
    """
    Sub-segment of a money page, or None when the page is not money.
    """
    if classify_page_segment(url_or_path, kind_override=kind_override) is not PageSegment.MONEY:
        return None

    path = normalise_path(url_or_path)
    if any(marker in path for marker in EVENT_MARKERS):
        return MoneySubSegment.EVENT
    if any(marker in path for marker in PRODUCT_MARKERS):
        return MoneySubSegment.PRODUCT
    return MoneySubSegment.LANDING


def is_money_page(url_or_path: Optional[str]) -> bool:
    return classify_page_segment(url_or_path) is PageSegment.MONEY
