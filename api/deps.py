"""
Shared router dependencies: settings, database session and header guards.
"""

import logging
from typing import Optional

from fastapi import Depends, Header, HTTPException, Query

from src.utils.config import Settings, get_settings

logger = logging.getLogger(__name__)


def settings_dependency() -> Settings:
    return get_settings()


def require_cron_secret(
    x_cron_secret: Optional[str] = Header(None),
    secret: Optional[str] = Query(None),
    settings: Settings = Depends(settings_dependency),
) -> None:
    """
    Cron endpoints require CRON_SECRET via the ``x-cron-secret`` header
    (or ``?secret=`` for schedulers that cannot set headers).

    When no secret is configured the guard is open.
    """
    if not settings.CRON_SECRET:
        return
    if settings.CRON_SECRET not in (x_cron_secret, secret):
        logger.warning("Rejected cron request with missing or wrong secret")
        raise HTTPException(status_code=401, detail="Invalid cron secret")


def require_admin_key(
    x_admin_key: Optional[str] = Header(None),
    settings: Settings = Depends(settings_dependency),
) -> None:
    """Write endpoints require ADMIN_KEY via ``x-admin-key`` when one is configured."""
    if not settings.ADMIN_KEY:
        return
    if x_admin_key != settings.ADMIN_KEY:
        logger.warning("Rejected admin request with missing or wrong key")
        raise HTTPException(status_code=401, detail="Invalid admin key")
