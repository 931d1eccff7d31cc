"""
Results Outbox Task.

Re-submits practice results that are still sitting in the local outbox.
"""

import asyncio
import logging

from app.services.results_client import ResultsClient
from app.workers.celery_app import celery_app

logger = logging.getLogger(__name__)


@celery_app.task(bind=True, max_retries=3)
def replay_results_outbox(self):
    try:
        delivered = asyncio.run(ResultsClient().replay())
        return {"status": "success", "delivered": delivered}
    except Exception as e:
        logger.error(f"Results outbox replay failed: {e}", exc_info=True)
        raise self.retry(exc=e, countdown=120)
