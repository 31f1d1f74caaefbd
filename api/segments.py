"""
Segment Classification API

Stateless endpoints over the page and keyword classifiers.
"""

import logging
from typing import Any, Optional

from fastapi import APIRouter
from pydantic import BaseModel, Field

from src.segment import (
    classify_keyword_segment,
    classify_money_sub_segment,
    classify_page_segment,
)
from src.utils.urls import normalise_path

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/segments", tags=["Segments"])


# =============================================================================
# REQUEST/RESPONSE MODELS
# =============================================================================

class PageSegmentRequest(BaseModel):
    url: Optional[str] = Field(default=None, description="Absolute URL or bare path")
    title: Optional[str] = None
    kind_override: Optional[str] = Field(
        default=None,
        description="Operator override: education, money, support or system",
    )


class PageSegmentResponse(BaseModel):
    path: str
    segment: str
    sub_segment: Optional[str] = None


class KeywordSegmentRequest(BaseModel):
    keyword: Any = None
    page_type: Optional[str] = Field(default=None, description="Weak hint: GBP or Blog")
    ranking_url: Optional[str] = None


class KeywordSegmentResponse(BaseModel):
    keyword: Any = None
    segment: str
    confidence: float
    reason: str


# =============================================================================
# ENDPOINTS
# =============================================================================

@router.post("/page", response_model=PageSegmentResponse)
def classify_page(request: PageSegmentRequest):
    """Classify a page URL into its segment (and money sub-segment)."""
    segment = classify_page_segment(request.url, request.title, request.kind_override)
    sub_segment = classify_money_sub_segment(request.url, request.kind_override)
    return PageSegmentResponse(
        path=normalise_path(request.url),
        segment=segment.value,
        sub_segment=sub_segment.value if sub_segment else None,
    )


@router.post("/keyword", response_model=KeywordSegmentResponse)
def classify_keyword(request: KeywordSegmentRequest):
    """Classify a keyword into brand / money / education / other."""
    result = classify_keyword_segment(request.keyword, request.page_type, request.ranking_url)
    return KeywordSegmentResponse(
        keyword=request.keyword,
        segment=result.segment.value,
        confidence=result.confidence,
        reason=result.reason,
    )
