"""
Admin Engagement Endpoints.
Reminder/digest/escalation settings, delivery stats and a manual tick.
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends
from redis.asyncio.client import Redis
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps import verify_admin_key
from app.database import get_db
from app.redis import get_redis
from app.schemas.engagement import EngagementSettings
from app.services.engagement_service import EngagementService
from app.services.settings_service import SettingsService

router = APIRouter()
logger = logging.getLogger(__name__)


@router.get("/engagement-settings")
async def get_engagement_settings(
    db: AsyncSession = Depends(get_db),
    _: str = Depends(verify_admin_key),
):
    engagement_settings = await SettingsService(db).get_engagement_settings()
    return {
        "status": "success",
        "settings": engagement_settings.model_dump(mode="json", by_alias=True),
    }


@router.post("/engagement-settings")
async def save_engagement_settings(
    request: EngagementSettings,
    db: AsyncSession = Depends(get_db),
    _: str = Depends(verify_admin_key),
):
    """
    Replace the engagement settings.
    Invalid settings (e.g. non-increasing escalation days) are rejected with 422.
    """
    saved = await SettingsService(db).save_engagement_settings(request)
    return {
        "status": "success",
        "settings": saved.model_dump(mode="json", by_alias=True),
    }


@router.get("/engagement-stats")
async def get_engagement_stats(
    db: AsyncSession = Depends(get_db),
    _: str = Depends(verify_admin_key),
):
    stats = await EngagementService(db).get_stats()
    return {"status": "success", **stats.model_dump(by_alias=True)}


@router.post("/engagement/run-tick")
async def run_engagement_tick(
    db: AsyncSession = Depends(get_db),
    redis: Optional[Redis] = Depends(get_redis),
    _: str = Depends(verify_admin_key),
):
    """Run one scheduler tick now instead of waiting for beat."""
    report = await EngagementService(db, redis=redis).run_tick()
    logger.info(f"Manual engagement tick: {report.model_dump()}")
    return {"status": "success", **report.model_dump()}
