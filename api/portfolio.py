"""
Portfolio API

Recompute and read the per-segment rollups used by the trend dashboard.
"""

import logging
from dataclasses import asdict
from datetime import date
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from src.database import (
    backfill_portfolio_segments,
    backfill_subsegment_windows,
    get_db,
    get_portfolio_segment_rows,
    list_run_ids,
)
from src.portfolio import Scope
from src.utils.config import Settings

from api.deps import require_admin_key, settings_dependency

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/portfolio", tags=["Portfolio"])


# =============================================================================
# REQUEST/RESPONSE MODELS
# =============================================================================

class BackfillSegmentsRequest(BaseModel):
    run_id: Optional[str] = Field(default=None, description="One run; every run of the site when omitted")
    site_url: Optional[str] = None


class BackfillWindowsRequest(BaseModel):
    run_id: str
    site_url: Optional[str] = None
    date_end: Optional[date] = None
    scope: Scope = Scope.ALL_PAGES


class BackfillRunResponse(BaseModel):
    run_id: str
    success: bool
    rows: int = 0
    error: Optional[str] = None
    details: Dict[str, Any] = {}


class BackfillSegmentsResponse(BaseModel):
    runs: int
    succeeded: int
    rows: int
    results: List[BackfillRunResponse]


class SegmentMetricsResponse(BaseModel):
    run_id: str
    site_url: Optional[str] = None
    scope: Optional[str] = None
    rows: List[Dict[str, Any]]


# =============================================================================
# ENDPOINTS
# =============================================================================

@router.post(
    "/backfill-segments",
    response_model=BackfillSegmentsResponse,
    dependencies=[Depends(require_admin_key)],
)
def backfill_segments(
    request: BackfillSegmentsRequest,
    db: Session = Depends(get_db),
    settings: Settings = Depends(settings_dependency),
):
    """Recompute segment rows (both scopes) for one run or all runs of a site."""
    site_url = request.site_url or (None if request.run_id else settings.SITE_URL)
    results = backfill_portfolio_segments(db, run_id=request.run_id, site_url=site_url)
    db.commit()

    return BackfillSegmentsResponse(
        runs=len(results),
        succeeded=sum(1 for r in results if r.success),
        rows=sum(r.rows for r in results),
        results=[BackfillRunResponse(**asdict(r)) for r in results],
    )


@router.post(
    "/backfill-windows",
    response_model=BackfillRunResponse,
    dependencies=[Depends(require_admin_key)],
)
def backfill_windows(
    request: BackfillWindowsRequest,
    db: Session = Depends(get_db),
    settings: Settings = Depends(settings_dependency),
):
    """Recompute the 1/7/28-day sub-segment windows for one run."""
    result = backfill_subsegment_windows(
        db,
        request.run_id,
        request.site_url or settings.SITE_URL,
        date_end=request.date_end,
        scope=request.scope.value,
    )
    db.commit()
    return BackfillRunResponse(**asdict(result))


@router.get("/segment-metrics", response_model=SegmentMetricsResponse)
def segment_metrics(
    run_id: Optional[str] = Query(None, description="Defaults to the latest run"),
    site_url: Optional[str] = Query(None),
    scope: Optional[Scope] = Query(None),
    db: Session = Depends(get_db),
    settings: Settings = Depends(settings_dependency),
):
    """Stored segment rows for a run."""
    site = site_url or settings.SITE_URL
    if run_id is None:
        runs = list_run_ids(db, site)
        if not runs:
            raise HTTPException(status_code=404, detail=f"No runs found for {site}")
        run_id = runs[-1]

    rows = get_portfolio_segment_rows(db, run_id, site, scope.value if scope else None)
    return SegmentMetricsResponse(
        run_id=run_id,
        site_url=site,
        scope=scope.value if scope else None,
        rows=rows,
    )
