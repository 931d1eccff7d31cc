"""
Engagement Service - one scheduler tick across all clients.

Per user: lock, evaluate, persist the decision (state + PENDING notice log),
commit, then deliver. Delivery failures never roll back the state, and an
error for one user never stops the batch.
"""

import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from redis.asyncio.client import Redis
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import settings as app_settings
from app.fsm.states import (
    DeliveryChannel,
    NoticeKind,
    NoticeStatus,
    UserRole,
    UserStatus,
)
from app.models.engagement import EngagementState
from app.models.notice_log import NoticeLog, build_idempotency_key
from app.models.user import User
from app.redis import user_lock
from app.schemas.engagement import EngagementSettings, EngagementStats, Notice, TickReport
from app.services.activity_service import ActivityService
from app.services.engagement_scheduler import days_since, evaluate
from app.services.notifier import Notifier
from app.services.settings_service import SettingsService
from app.timeutils import ensure_utc

logger = logging.getLogger(__name__)

CHANNELS = (DeliveryChannel.EMAIL, DeliveryChannel.PUSH)

FALLBACK_THERAPIST_NAME = "your therapist"


class EngagementService:
    """Runs scheduler ticks and reports engagement stats for the admin page."""

    def __init__(
        self,
        db: AsyncSession,
        notifier: Optional[Notifier] = None,
        redis: Optional[Redis] = None,
    ):
        self.db = db
        self.notifier = notifier
        self.redis = redis
        self.activity = ActivityService(db)
        self.settings_service = SettingsService(db)

    async def _candidate_user_ids(self) -> List[int]:
        result = await self.db.execute(
            select(User.id)
            .join(EngagementState, EngagementState.user_id == User.id)
            .where(User.role == UserRole.CLIENT.value)
            .where(User.status == UserStatus.ACTIVE.value)
            .order_by(User.id)
        )
        return list(result.scalars().all())

    async def run_tick(
        self,
        now: Optional[datetime] = None,
        engagement_settings: Optional[EngagementSettings] = None,
    ) -> TickReport:
        now = ensure_utc(now or datetime.now(timezone.utc))
        engagement_settings = engagement_settings or await self.settings_service.get_engagement_settings()
        notifier = self.notifier or Notifier(self.db, engagement_settings.templates())

        report = TickReport()
        user_ids = await self._candidate_user_ids()
        logger.info(f"Engagement tick at {now.isoformat()}: {len(user_ids)} candidate clients")

        for user_id in user_ids:
            try:
                async with user_lock(self.redis, user_id) as acquired:
                    if not acquired:
                        logger.info(f"User {user_id} locked by another worker, skipping")
                        report.skipped += 1
                        continue
                    await self._process_user(user_id, engagement_settings, notifier, now, report)
                report.processed += 1
            except Exception as e:
                await self.db.rollback()
                report.failed += 1
                logger.error(f"Engagement tick failed for user {user_id}: {e}", exc_info=True)
                continue

        logger.info(
            f"Engagement tick complete: processed={report.processed} reminders={report.reminders} "
            f"digests={report.digests} escalations={report.escalations} "
            f"failed={report.failed} delivery_failures={report.delivery_failures}"
        )
        return report

    async def _process_user(
        self,
        user_id: int,
        engagement_settings: EngagementSettings,
        notifier: Notifier,
        now: datetime,
        report: TickReport,
    ) -> None:
        state = await self.activity.get_engagement_state(user_id, for_update=True)
        if state is None:
            return

        notice = evaluate(state, engagement_settings, now)
        if notice is None:
            await self.db.commit()
            return

        logs = []
        for channel in CHANNELS:
            log = NoticeLog(
                user_id=user_id,
                kind=notice.kind,
                stage=notice.stage,
                channel=channel,
                status=NoticeStatus.PENDING,
                idempotency_key=build_idempotency_key(notice.kind, notice.stage, channel, user_id, now),
            )
            self.db.add(log)
            logs.append(log)

        await self.activity.save_engagement_state(state)
        # The decision is durable from here on, whatever happens to delivery
        await self.db.commit()
        report.count(notice)
        logger.info(f"Decided {notice.template_key} for user {user_id} ({notice.days_since_activity} days inactive)")

        user = await self.db.get(User, user_id)
        variables = await self.build_variables(user, notice, now)

        for log in logs:
            result = await notifier.send(user, log.channel, notice.template_key, variables)
            if result.delivered:
                log.status = NoticeStatus.SENT
                log.delivered_at = datetime.now(timezone.utc)
            else:
                log.status = NoticeStatus.FAILED
                log.error = result.error
                report.delivery_failures += 1
                logger.warning(
                    f"Delivery of {notice.template_key} to user {user_id} via {log.channel.value} "
                    f"failed after {result.attempts} attempts: {result.error}"
                )

        await self.db.commit()

    async def build_variables(self, user: User, notice: Notice, now: datetime) -> Dict[str, Any]:
        variables: Dict[str, Any] = {
            "clientName": user.name,
            "therapistName": await self._therapist_name(user),
            "daysSinceLastActivity": notice.days_since_activity,
            "dashboardLink": f"{app_settings.app_url.rstrip('/')}/dashboard",
        }
        if notice.kind == NoticeKind.DIGEST:
            variables.update(await self.activity.weekly_counts(user.id, now))
        return variables

    async def _therapist_name(self, user: User) -> str:
        if not user.therapist_id:
            return FALLBACK_THERAPIST_NAME
        therapist = await self.db.get(User, user.therapist_id)
        return therapist.name if therapist else FALLBACK_THERAPIST_NAME

    async def get_stats(
        self,
        now: Optional[datetime] = None,
        engagement_settings: Optional[EngagementSettings] = None,
    ) -> EngagementStats:
        """Totals for the admin engagement page."""
        now = ensure_utc(now or datetime.now(timezone.utc))
        engagement_settings = engagement_settings or await self.settings_service.get_engagement_settings()

        sent_counts = await self.db.execute(
            select(NoticeLog.channel, func.count(NoticeLog.id))
            .where(NoticeLog.status == NoticeStatus.SENT)
            .group_by(NoticeLog.channel)
        )
        by_channel = {channel: count for channel, count in sent_counts.all()}

        last_run = await self.db.execute(select(func.max(NoticeLog.created_at)))
        last_run_time = last_run.scalar_one_or_none()

        states = await self.db.execute(
            select(EngagementState.last_activity_at)
            .join(User, User.id == EngagementState.user_id)
            .where(User.role == UserRole.CLIENT.value)
            .where(User.status == UserStatus.ACTIVE.value)
        )
        active = inactive = 0
        for (last_activity_at,) in states.all():
            if last_activity_at is None:
                continue
            if days_since(last_activity_at, now) >= engagement_settings.reminder_days:
                inactive += 1
            else:
                active += 1

        return EngagementStats(
            last_run_time=ensure_utc(last_run_time).isoformat() if last_run_time else None,
            total_emails_sent=by_channel.get(DeliveryChannel.EMAIL, 0),
            total_notifications_sent=by_channel.get(DeliveryChannel.PUSH, 0),
            active_clients=active,
            inactive_clients=inactive,
        )
