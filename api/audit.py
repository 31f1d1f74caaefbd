"""
Audit API

Endpoints:
- POST /api/audit/run     collect + score one property and store the result
- GET  /api/audit/latest  most recent stored audit for a property
"""

import asyncio
import logging
from datetime import date, datetime
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from src.audit import run_full_audit
from src.collector import DataForSEOClient, DataForSEOError, GSCClient, GSCError
from src.database import get_db, get_latest_audit, to_jsonable, upsert_audit_result
from src.utils.config import Settings

from api.deps import require_admin_key, settings_dependency

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/audit", tags=["Audit"])


# =============================================================================
# REQUEST/RESPONSE MODELS
# =============================================================================

class AuditRunRequest(BaseModel):
    """
    Request to run a full audit.

    Schema audit, local signals and site reviews are produced by other
    jobs and passed through as-is.
    """
    property_url: Optional[str] = Field(default=None, description="GSC property; defaults to SITE_URL")
    date_start: Optional[date] = None
    date_end: Optional[date] = None
    schema_audit: Optional[Dict[str, Any]] = None
    local_signals: Optional[Dict[str, Any]] = None
    site_reviews: Optional[Dict[str, Any]] = None
    page_metadata: Optional[Dict[str, Dict[str, Any]]] = None
    save: bool = True


class AuditSummaryResponse(BaseModel):
    """Stored audit row."""
    property_url: str
    audit_date: date
    visibility_score: Optional[int] = None
    authority_score: Optional[int] = None
    content_schema_score: Optional[int] = None
    local_entity_score: Optional[int] = None
    service_area_score: Optional[int] = None
    brand_score: Optional[int] = None
    snippet_readiness: Optional[int] = None
    scores: Optional[Dict[str, Any]] = None
    search_totals: Optional[Dict[str, Any]] = None
    money_pages_summary: Optional[Dict[str, Any]] = None
    money_segment_summary: Optional[Dict[str, Any]] = None
    backlink_metrics: Optional[Dict[str, Any]] = None
    ranking_ai_data: Optional[Dict[str, Any]] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


# =============================================================================
# ENDPOINTS
# =============================================================================

@router.post("/run", dependencies=[Depends(require_admin_key)])
async def run_audit(
    request: AuditRunRequest,
    db: Session = Depends(get_db),
    settings: Settings = Depends(settings_dependency),
):
    """
    Run a full audit synchronously, bounded by ANALYSIS_TIMEOUT.

    Backlinks are included when DataForSEO credentials are configured.
    """
    property_url = request.property_url or settings.SITE_URL

    try:
        gsc = GSCClient.from_settings(settings)
    except GSCError as e:
        raise HTTPException(status_code=503, detail=str(e))

    dataforseo = None
    if settings.DATAFORSEO_LOGIN and settings.DATAFORSEO_PASSWORD:
        dataforseo = DataForSEOClient.from_settings(settings)

    try:
        result = await asyncio.wait_for(
            run_full_audit(
                property_url,
                gsc,
                dataforseo=dataforseo,
                date_start=request.date_start,
                date_end=request.date_end,
                schema_audit=request.schema_audit,
                local_signals=request.local_signals,
                site_reviews=request.site_reviews,
                page_metadata=request.page_metadata,
            ),
            timeout=settings.ANALYSIS_TIMEOUT,
        )
    except asyncio.TimeoutError:
        logger.error(f"Audit for {property_url} exceeded {settings.ANALYSIS_TIMEOUT}s")
        raise HTTPException(status_code=504, detail="Audit timed out")
    except (GSCError, DataForSEOError) as e:
        logger.error(f"Audit for {property_url} failed upstream: {e}")
        raise HTTPException(status_code=502, detail=str(e))
    finally:
        await gsc.close()
        if dataforseo is not None:
            await dataforseo.close()

    if request.save:
        upsert_audit_result(db, result)
        db.commit()

    return to_jsonable(result)


@router.get("/latest", response_model=AuditSummaryResponse)
def latest_audit(
    property_url: Optional[str] = Query(None),
    db: Session = Depends(get_db),
    settings: Settings = Depends(settings_dependency),
):
    """Most recent stored audit for a property."""
    url = property_url or settings.SITE_URL
    audit = get_latest_audit(db, url)
    if audit is None:
        raise HTTPException(status_code=404, detail=f"No audit found for {url}")
    return audit
