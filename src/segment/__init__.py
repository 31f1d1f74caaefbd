"""
Segment Classification

Two independent, table-driven classifiers:

1. **Page segments** - education / money / support / system for site URLs,
   with landing / event / product sub-segments for money pages.
2. **Keyword segments** - brand / money / education / other for search
   keywords, with a confidence and a rule trace.

Example Usage:
    from src.segment import classify_page_segment, classify_keyword_segment

    classify_page_segment("/photography-workshops")        # PageSegment.MONEY
    classify_keyword_segment("alan ranger workshops").segment  # KeywordSegment.BRAND
"""

from .page import (
    PageSegment,
    MoneySubSegment,
    classify_page_segment,
    classify_money_sub_segment,
    is_money_page,
    is_education_path,
)
from .keyword import (
    KeywordSegment,
    KeywordClassification,
    classify_keyword_segment,
    contains_brand_term,
    BRAND_TERMS,
)

__all__ = [
    # Page segments
    "PageSegment",
    "MoneySubSegment",
    "classify_page_segment",
    "classify_money_sub_segment",
    "is_money_page",
    "is_education_path",

    # Keyword segments
    "KeywordSegment",
    "KeywordClassification",
    "classify_keyword_segment",
    "contains_brand_term",
    "BRAND_TERMS",
]
