"""
AI-Visibility Audit API

FastAPI application serving:
1. Segment classification (pages and keywords)
2. Full audit runs and the latest stored audit
3. Portfolio segment backfills and reads
4. The scheduled keyword ranking / AI citation job
"""

import logging
import sys

from fastapi import FastAPI

from src import __version__
from src.database import check_db_connection, init_db
from src.utils.config import get_settings

from api import audit, cron, portfolio, segments

# Configure logging to stdout (the platform treats stderr as errors)
logging.basicConfig(
    level=get_settings().LOG_LEVEL.upper(),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    stream=sys.stdout,
    force=True,
)
logger = logging.getLogger(__name__)

# Quiet down chatty loggers
logging.getLogger("httpx").setLevel(logging.WARNING)
logging.getLogger("httpcore").setLevel(logging.WARNING)

app = FastAPI(
    title="AI-Visibility Audit Engine",
    description="Search visibility, authority and AI-citation scoring from GSC and DataForSEO",
    version=__version__,
)

app.include_router(segments.router)
app.include_router(audit.router)
app.include_router(portfolio.router)
app.include_router(cron.router)


# ============================================================================
# STARTUP - Initialize Database
# ============================================================================

@app.on_event("startup")
async def startup_event():
    """Create tables on startup."""
    logger.info("Initializing database...")
    init_db()
    if check_db_connection():
        logger.info("Database connection verified")
    else:
        logger.warning("Database connection check failed - continuing anyway")


# ============================================================================
# HEALTH
# ============================================================================

@app.get("/")
async def root():
    return {"service": "ai-visibility-audit", "version": __version__}


@app.get("/api/health")
async def health():
    settings = get_settings()
    return {
        "status": "healthy",
        "environment": settings.ENVIRONMENT,
        "database": check_db_connection(),
        "gsc_configured": bool(settings.GSC_REFRESH_TOKEN),
        "dataforseo_configured": bool(settings.DATAFORSEO_LOGIN and settings.DATAFORSEO_PASSWORD),
    }
