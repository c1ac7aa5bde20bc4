"""
Background housekeeping started from the application lifespan.

Expired job view records only matter for deduplication, so they are
deleted on a fixed interval to keep the table small.
"""

import asyncio
import logging
from typing import Optional

from api.services.jobs import purge_expired_job_views
from core.config import settings
from core.errors import DependencyFailure
from database.engine import AsyncSessionLocal

logger = logging.getLogger(__name__)


async def purge_job_views(session_factory=AsyncSessionLocal, ttl_seconds: Optional[int] = None) -> int:
    """Run one purge in its own session and return the number of deleted rows."""
    async with session_factory() as db:
        result = await purge_expired_job_views(
            db, ttl_seconds or settings.job_view_ttl_seconds
        )
    return result["deleted"]


async def run_view_purge_loop(interval_seconds: int, session_factory=AsyncSessionLocal) -> None:
    """Purge now and then every ``interval_seconds`` until cancelled."""
    logger.info(f"Job view purge scheduled every {interval_seconds}s")
    while True:
        try:
            await purge_job_views(session_factory)
        except DependencyFailure:
            # Already logged; the next interval runs again
            logger.warning("Job view purge skipped")
        await asyncio.sleep(interval_seconds)
