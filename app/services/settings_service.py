"""
Settings Service - load/save the admin-edited EngagementSettings.
"""

import logging

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.engagement import EngagementSettingsRecord
from app.schemas.engagement import EngagementSettings

logger = logging.getLogger(__name__)

SETTINGS_ROW_ID = 1


class SettingsService:
    """Single-row settings store. Falls back to defaults until an admin saves."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_engagement_settings(self) -> EngagementSettings:
        result = await self.db.execute(
            select(EngagementSettingsRecord).where(EngagementSettingsRecord.id == SETTINGS_ROW_ID)
        )
        record = result.scalar_one_or_none()
        if record is None:
            return EngagementSettings()
        return EngagementSettings.model_validate(record.data)

    async def save_engagement_settings(self, new_settings: EngagementSettings) -> EngagementSettings:
        data = new_settings.model_dump(mode="json")

        record = await self.db.get(EngagementSettingsRecord, SETTINGS_ROW_ID)
        if record is None:
            record = EngagementSettingsRecord(id=SETTINGS_ROW_ID, data=data)
            self.db.add(record)
        else:
            record.data = data

        await self.db.flush()
        logger.info(
            f"Engagement settings saved: reminders={new_settings.reminder_enabled} "
            f"digest={new_settings.weekly_digest_enabled} escalation={new_settings.escalation_enabled}"
        )
        return new_settings
