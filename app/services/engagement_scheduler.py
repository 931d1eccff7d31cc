"""
Engagement Scheduler - decides which reminder, digest or escalation is due.

`evaluate` is a pure function of (state, settings, now): it returns at most
one Notice and advances the state fields so the same notice is not decided
twice. Persistence and delivery live in EngagementService.
"""

import logging
from datetime import datetime, timedelta
from typing import Optional, Protocol

from app.fsm.states import NoticeKind
from app.schemas.engagement import EngagementSettings, Notice
from app.timeutils import ensure_utc, js_weekday, local_now

logger = logging.getLogger(__name__)

ONE_DAY = timedelta(days=1)


class EngagementStateLike(Protocol):
    last_activity_at: Optional[datetime]
    reminder_sent_at: Optional[datetime]
    digest_sent_at: Optional[datetime]
    escalation_stage: int


def days_since(last_activity_at: datetime, now: datetime) -> int:
    return (ensure_utc(now) - ensure_utc(last_activity_at)) // ONE_DAY


def crossed_stage(days_inactive: int, escalation_days: list) -> int:
    """Highest 1-based stage whose threshold has been reached (0 if none)."""
    stage = 0
    for index, threshold in enumerate(escalation_days, start=1):
        if days_inactive >= threshold:
            stage = index
    return stage


def _reminder_already_sent(
    state: EngagementStateLike,
    settings: EngagementSettings,
    now: datetime,
) -> bool:
    sent_at = ensure_utc(state.reminder_sent_at)
    if sent_at is None:
        return False
    # A reminder from before the latest activity belongs to an older lapse
    if sent_at < ensure_utc(state.last_activity_at):
        return False
    return now - sent_at < timedelta(days=settings.reminder_days)


def _digest_due(state: EngagementStateLike, settings: EngagementSettings, now: datetime) -> bool:
    local = local_now(now, settings.timezone)
    if js_weekday(local) != settings.weekly_digest_day:
        return False
    if local.time() < settings.digest_clock:
        return False

    sent_at = ensure_utc(state.digest_sent_at)
    if sent_at is None:
        return True
    start_of_today = local.replace(hour=0, minute=0, second=0, microsecond=0)
    return sent_at < start_of_today


def evaluate(
    state: EngagementStateLike,
    settings: EngagementSettings,
    now: datetime,
) -> Optional[Notice]:
    """
    Decide the single notification due for this user at `now`.

    Order: escalation, then reminder, then weekly digest. Only the highest
    newly crossed escalation stage fires, even when the scheduler missed
    several thresholds.
    """
    now = ensure_utc(now)
    last_activity = ensure_utc(state.last_activity_at)
    days_inactive = days_since(last_activity, now) if last_activity else None
    current_stage = state.escalation_stage or 0

    if settings.escalation_enabled and days_inactive is not None:
        stage = crossed_stage(days_inactive, settings.escalation_days)
        if stage > current_stage:
            state.escalation_stage = stage
            return Notice(NoticeKind.ESCALATION, days_inactive, stage=stage)

    if (
        settings.reminder_enabled
        and days_inactive is not None
        and days_inactive >= settings.reminder_days
        and local_now(now, settings.timezone).time() >= settings.reminder_clock
        and not _reminder_already_sent(state, settings, now)
    ):
        state.reminder_sent_at = now
        return Notice(NoticeKind.REMINDER, days_inactive)

    if settings.weekly_digest_enabled and _digest_due(state, settings, now):
        state.digest_sent_at = now
        return Notice(NoticeKind.DIGEST, days_inactive or 0)

    return None


def record_activity(state: EngagementStateLike, now: datetime) -> None:
    """Fresh activity: the only way an escalation ladder resets."""
    state.last_activity_at = ensure_utc(now)
    state.escalation_stage = 0
