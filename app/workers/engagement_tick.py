"""
Engagement Tick Task.

Runs the engagement scheduler for all clients. Beat fires it hourly; a tick
that overlaps a slow previous one is safe because users are locked one at a
time.
"""

import asyncio
import logging

from app.database import get_db_context
from app.redis import RedisClient
from app.services.engagement_service import EngagementService
from app.workers.celery_app import celery_app

logger = logging.getLogger(__name__)


@celery_app.task(bind=True, max_retries=3)
def run_engagement_tick(self):
    """
    Celery task to run one engagement tick.
    """
    try:
        report = asyncio.run(_run_engagement_tick())
        return {"status": "success", **report}
    except Exception as e:
        logger.error(f"Engagement tick failed: {e}", exc_info=True)
        raise self.retry(exc=e, countdown=60)


async def _run_engagement_tick() -> dict:
    redis = RedisClient.get_client()
    try:
        async with get_db_context() as db:
            service = EngagementService(db, redis=redis)
            report = await service.run_tick()
            return report.model_dump()
    finally:
        await RedisClient.close()


if __name__ == "__main__":
    asyncio.run(_run_engagement_tick())
