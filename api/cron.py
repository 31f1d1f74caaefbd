"""
Cron API

Scheduled jobs, guarded by CRON_SECRET.
"""

import asyncio
import logging
from datetime import date, datetime, timezone
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel
from sqlalchemy.orm import Session

from src.collector import DataForSEOClient, DataForSEOError, collect_keyword_rankings
from src.database import get_db, get_latest_keyword_rankings, save_keyword_ranking_run
from src.utils.config import Settings

from api.deps import require_cron_secret, settings_dependency

logger = logging.getLogger(__name__)
router = APIRouter(
    prefix="/api/cron",
    tags=["Cron"],
    dependencies=[Depends(require_cron_secret)],
)


class CronResponse(BaseModel):
    status: str
    message: str
    summary: Optional[Dict[str, Any]] = None
    generated_at: datetime


@router.get("/keyword-ranking-ai", response_model=CronResponse)
async def keyword_ranking_ai(
    keywords: Optional[str] = Query(None, description="Comma-separated; defaults to the tracked set"),
    property_url: Optional[str] = Query(None),
    db: Session = Depends(get_db),
    settings: Settings = Depends(settings_dependency),
):
    """
    Organic rank + AI-mode citations for every tracked keyword.

    The tracked set is the keyword list of the most recent stored run.
    """
    now = datetime.now(timezone.utc)
    site_url = property_url or settings.SITE_URL

    if keywords:
        keyword_list = [k.strip() for k in keywords.split(",") if k.strip()]
    else:
        keyword_list = [row["keyword"] for row in get_latest_keyword_rankings(db, site_url)]

    if not keyword_list:
        return CronResponse(status="skipped", message="No keywords found.", generated_at=now)

    try:
        client = DataForSEOClient.from_settings(settings)
    except DataForSEOError as e:
        raise HTTPException(status_code=503, detail=str(e))

    try:
        run = await asyncio.wait_for(
            collect_keyword_rankings(client, keyword_list, site_url, settings),
            timeout=settings.ANALYSIS_TIMEOUT,
        )
    except asyncio.TimeoutError:
        logger.error(f"Keyword ranking run exceeded {settings.ANALYSIS_TIMEOUT}s")
        raise HTTPException(status_code=504, detail="Keyword ranking run timed out")
    except DataForSEOError as e:
        logger.error(f"Keyword ranking run failed upstream: {e}")
        raise HTTPException(status_code=502, detail=str(e))
    finally:
        await client.close()

    save_keyword_ranking_run(
        db,
        site_url,
        date.today(),
        run.rows,
        run.summary,
        run_timestamp=now.isoformat(),
    )
    db.commit()

    return CronResponse(
        status="ok",
        message="Keyword ranking & AI audit complete.",
        summary=run.summary,
        generated_at=now,
    )
