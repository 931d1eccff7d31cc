"""
Activity Service - tracked-action log and per-user engagement state.
"""

import logging
from datetime import datetime, timedelta, timezone
from typing import Dict, Optional

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.fsm.states import TrackedModule
from app.models.engagement import ActivityEvent, EngagementState
from app.services.engagement_scheduler import record_activity
from app.timeutils import ensure_utc

logger = logging.getLogger(__name__)


class ActivityService:
    """Reads and writes what the scheduler needs to know about each user."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_last_activity(self, user_id: int) -> Optional[datetime]:
        state = await self.get_engagement_state(user_id)
        return ensure_utc(state.last_activity_at) if state else None

    async def get_engagement_state(
        self, user_id: int, for_update: bool = False
    ) -> Optional[EngagementState]:
        stmt = select(EngagementState).where(EngagementState.user_id == user_id)
        if for_update:
            stmt = stmt.with_for_update().execution_options(populate_existing=True)
        result = await self.db.execute(stmt)
        return result.scalar_one_or_none()

    async def save_engagement_state(self, state: EngagementState) -> EngagementState:
        self.db.add(state)
        await self.db.flush()
        return state

    async def record_activity(
        self,
        user_id: int,
        module: TrackedModule,
        now: Optional[datetime] = None,
    ) -> EngagementState:
        """
        Log a tracked action and reset the user's inactivity clock.
        Creates the engagement state on first activity.
        """
        now = now or datetime.now(timezone.utc)

        self.db.add(ActivityEvent(user_id=user_id, module=module.value, created_at=now))

        state = await self.get_engagement_state(user_id, for_update=True)
        if state is None:
            state = EngagementState(user_id=user_id, escalation_stage=0)
            logger.info(f"Engagement tracking started for user {user_id}")

        record_activity(state, now)
        return await self.save_engagement_state(state)

    async def weekly_counts(self, user_id: int, now: Optional[datetime] = None) -> Dict[str, int]:
        """Per-module action counts over the 7 days before `now`, keyed by digest variable."""
        now = now or datetime.now(timezone.utc)
        since = now - timedelta(days=7)

        result = await self.db.execute(
            select(ActivityEvent.module, func.count(ActivityEvent.id))
            .where(ActivityEvent.user_id == user_id)
            .where(ActivityEvent.created_at >= since)
            .where(ActivityEvent.created_at <= now)
            .group_by(ActivityEvent.module)
        )
        raw = {module: count for module, count in result.all()}

        return {module.digest_variable: raw.get(module.value, 0) for module in TrackedModule}
