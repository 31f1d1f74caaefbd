"""
Keyword Segment Classifier

Intent classification for tracked keywords. Priority:

    brand (0.95) → money (0.85) → education (0.80) → other (0.50)

Page type is a weak hint: "GBP" lifts money to 0.90, "Blog" lifts
education to 0.85. The first term in table order that matches is named
in the reason trace.
"""

import re
from dataclasses import dataclass, asdict
from enum import Enum
from typing import Dict, Any, Optional, Sequence


class KeywordSegment(str, Enum):
    """Intent segment of a search keyword."""
    BRAND = "brand"
    MONEY = "money"
    EDUCATION = "education"
    OTHER = "other"


@dataclass(frozen=True)
class KeywordClassification:
    """Classifier output with its rule trace."""
    segment: KeywordSegment
    confidence: float
    reason: str

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["segment"] = self.segment.value
        return data


# ============================================================================
# TERM TABLES
# ============================================================================

BRAND_TERMS = (
    "alan ranger",
    "alanranger",
    "alan ranger photography",
    "photography academy",
    "alan ranger academy",
)

MONEY_TERMS = (
    "lesson",
    "lessons",
    "class",
    "classes",
    "course",
    "courses",
    "training",
    "workshop",
    "workshops",
    "mentoring",
    "mentor",
    "1-2-1",
    "1:1",
    "private",
    "hire",
    "service",
    "services",
    "photographer",
    "booking",
    "book",
    "price",
    "cost",
    "voucher",
    "gift",
)

LOCAL_MODIFIERS = (
    "near me",
    "in coventry",
    "coventry",
    "birmingham",
    "warwick",
    "leamington",
    "solihull",
    "rugby",
)

EDUCATION_TERMS = (
    "how to",
    "what is",
    "guide",
    "tutorial",
    "tips",
    "settings",
    "meaning",
    "vs",
    "difference",
    "examples",
    "best way to",
)

TECHNIQUE_TOPICS = (
    "aperture",
    "shutter speed",
    "iso",
    "depth of field",
    "histogram",
    "dynamic range",
    "composition",
)

# UK outward/inward codes: "CV1", "B1 1AA", "CV1 1AA"
POSTCODE_PATTERN = re.compile(r"\b([A-Z]{1,2}\d{1,2}\s?\d?[A-Z]{0,2})\b", re.IGNORECASE)

BRAND_CONFIDENCE = 0.95
MONEY_CONFIDENCE = 0.85
MONEY_GBP_CONFIDENCE = 0.90
EDUCATION_CONFIDENCE = 0.80
EDUCATION_BLOG_CONFIDENCE = 0.85
OTHER_CONFIDENCE = 0.5


def first_match(text: str, terms: Sequence[str]) -> Optional[str]:
    """First term (in table order) contained in ``text``."""
    for term in terms:
        if term in text:
            return term
    return None


def contains_brand_term(text: str) -> bool:
    return first_match(text.lower(), BRAND_TERMS) is not None


def classify_keyword_segment(
    keyword: Any,
    page_type: Optional[str] = None,
    ranking_url: Optional[str] = None,
) -> KeywordClassification:
    """
    Classify a keyword into brand / money / education / other.

    Args:
        keyword: Search keyword; anything other than a non-blank string
            classifies as other with zero confidence
        page_type: Optional page-type hint ("GBP", "Blog")
        ranking_url: Accepted for call-site compatibility; not used

    Returns:
        KeywordClassification
    """
    if not isinstance(keyword, str) or not keyword.strip():
        return KeywordClassification(KeywordSegment.OTHER, 0.0, "Invalid or missing keyword")

    text = keyword.strip().lower()

    brand = first_match(text, BRAND_TERMS)
    if brand:
        return KeywordClassification(
            KeywordSegment.BRAND, BRAND_CONFIDENCE, f"brand: contains '{brand}'"
        )

    money = first_match(text, MONEY_TERMS)
    local = first_match(text, LOCAL_MODIFIERS)
    postcode = POSTCODE_PATTERN.search(text) is not None
    if money or local or postcode:
        if money:
            reason = f"money: contains '{money}'"
        elif local:
            reason = f"money: contains local modifier '{local}'"
        else:
            reason = "money: contains postcode pattern"

        confidence = MONEY_CONFIDENCE
        if page_type == "GBP":
            confidence = MONEY_GBP_CONFIDENCE
            reason += " + GBP page type"
        return KeywordClassification(KeywordSegment.MONEY, confidence, reason)

    education = first_match(text, EDUCATION_TERMS)
    topic = first_match(text, TECHNIQUE_TOPICS)
    if education or topic:
        if education:
            reason = f"education: contains '{education}'"
        else:
            reason = f"education: contains technique/topic '{topic}'"

        confidence = EDUCATION_CONFIDENCE
        if page_type == "Blog":
            confidence = EDUCATION_BLOG_CONFIDENCE
            reason += " + Blog page type"
        return KeywordClassification(KeywordSegment.EDUCATION, confidence, reason)

    return KeywordClassification(
        KeywordSegment.OTHER, OTHER_CONFIDENCE, "other: no matching intent signals"
    )
