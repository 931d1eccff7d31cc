"""
Gamification Service - applies a finished practice session to the user's
game profile.

Owns the streak and achievement rules. The profile update is a
compare-and-swap on `version`; a lost race re-reads and reapplies the
session's delta. A session id that was already stored is never applied twice.
"""

import logging
from datetime import date, datetime, timezone
from typing import List, Optional
from zoneinfo import ZoneInfo

from sqlalchemy import func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import settings
from app.exceptions import NotFoundError, PersistenceConflict
from app.fsm.states import (
    AssignmentStatus,
    POINTS_PER_LEVEL,
    PRACTICE_COUNT_ACHIEVEMENTS,
    STREAK_ACHIEVEMENTS,
    Achievement,
    TrackedModule,
    level_for_score,
)
from app.models.game_profile import GameProfile
from app.models.practice import PracticeResult, ReframeAssignment, ThoughtRecord
from app.schemas.practice import GameUpdates, ResultSubmission
from app.services.activity_service import ActivityService
from app.timeutils import ensure_utc

logger = logging.getLogger(__name__)

MAX_CONFLICT_RETRIES = 3


def next_streak(current: int, last_practice: Optional[date], today: date) -> int:
    """Same day keeps the streak, the next day extends it, a gap restarts it."""
    if last_practice is None:
        return 1
    gap = (today - last_practice).days
    if gap <= 0:
        return max(current, 1)
    if gap == 1:
        return current + 1
    return 1


def unlocked_achievements(
    existing: List[str],
    streak: int,
    practice_count: int,
    perfect: bool,
) -> List[str]:
    """Achievements earned by this session that the user did not have yet, in unlock order."""
    earned: List[Achievement] = [a for threshold, a in STREAK_ACHIEVEMENTS if streak >= threshold]
    earned += [a for threshold, a in PRACTICE_COUNT_ACHIEVEMENTS if practice_count >= threshold]
    if perfect:
        earned.append(Achievement.PERFECT_SCORE)
    return [a.value for a in earned if a.value not in existing]


class GamificationService:
    """Results-submission side of the Reframe Coach."""

    def __init__(self, db: AsyncSession, tz_name: Optional[str] = None):
        self.db = db
        self.tz = ZoneInfo(tz_name or settings.default_timezone)

    async def get_or_create_profile(self, user_id: int) -> GameProfile:
        result = await self.db.execute(
            select(GameProfile)
            .where(GameProfile.user_id == user_id)
            .execution_options(populate_existing=True)
        )
        profile = result.scalar_one_or_none()
        if profile:
            return profile

        profile = GameProfile(
            user_id=user_id,
            total_score=0,
            practice_streak=0,
            achievements=[],
            version=0,
        )
        self.db.add(profile)
        await self.db.flush()
        logger.info(f"Created game profile for user {user_id}")
        return profile

    async def find_result(self, session_id: str) -> Optional[PracticeResult]:
        result = await self.db.execute(
            select(PracticeResult).where(PracticeResult.session_id == session_id)
        )
        return result.scalar_one_or_none()

    async def apply_practice_result(
        self,
        user_id: int,
        submission: ResultSubmission,
        now: Optional[datetime] = None,
    ) -> GameUpdates:
        """
        Store the result and update the profile in one transaction.

        Returns the original GameUpdates with duplicate=True when the session
        was already applied.
        """
        now = ensure_utc(now or datetime.now(timezone.utc))

        existing = await self.find_result(submission.session_id)
        if existing is not None:
            return self._duplicate_updates(existing, user_id)

        assignment = await self._check_references(user_id, submission)

        result = await self._store_result(user_id, submission, now)
        if result is None:
            # Lost the insert race to an identical submission
            existing = await self.find_result(submission.session_id)
            return self._duplicate_updates(existing, user_id)

        if assignment is not None:
            assignment.status = AssignmentStatus.COMPLETED.value
            assignment.completed_at = now

        await ActivityService(self.db).record_activity(user_id, TrackedModule.PRACTICE, now)

        for attempt in range(1, MAX_CONFLICT_RETRIES + 1):
            try:
                updates = await self._update_profile(user_id, submission, now)
                break
            except PersistenceConflict as e:
                logger.warning(
                    f"Game profile conflict for user {user_id} (attempt {attempt}/{MAX_CONFLICT_RETRIES}): {e.message}"
                )
                if attempt == MAX_CONFLICT_RETRIES:
                    raise

        result.game_updates = updates.model_dump(mode="json")
        await self.db.flush()

        logger.info(
            f"Practice result {submission.session_id} applied for user {user_id}: "
            f"+{submission.score} -> {updates.new_total_score}, level {updates.new_level}, "
            f"new achievements {updates.new_achievements}"
        )
        return updates

    def _duplicate_updates(self, existing: Optional[PracticeResult], user_id: int) -> GameUpdates:
        if existing is None or existing.user_id != user_id:
            raise NotFoundError("Practice session belongs to a different user")
        logger.warning(f"Ignoring duplicate practice submission {existing.session_id}")
        updates = GameUpdates.model_validate(existing.game_updates or {
            "new_total_score": 0, "new_level": 1, "prev_level": 1, "new_streak": 0,
        })
        return updates.model_copy(update={"duplicate": True})

    async def _store_result(
        self, user_id: int, submission: ResultSubmission, now: datetime
    ) -> Optional[PracticeResult]:
        result = PracticeResult(
            session_id=submission.session_id,
            user_id=user_id,
            assignment_id=submission.assignment_id,
            thought_record_id=submission.thought_record_id,
            score=submission.score,
            correct_answers=submission.correct_answers,
            total_questions=submission.total_questions,
            time_spent=submission.time_spent,
            scenario_data=[s.model_dump(mode="json", by_alias=True) for s in submission.scenario_data],
            user_choices=[c.model_dump(mode="json", by_alias=True) for c in submission.user_choices],
            created_at=now,
        )
        self.db.add(result)
        try:
            await self.db.flush()
        except IntegrityError:
            await self.db.rollback()
            if await self.find_result(submission.session_id) is None:
                raise
            return None
        return result

    async def _check_references(
        self, user_id: int, submission: ResultSubmission
    ) -> Optional[ReframeAssignment]:
        """The assignment and thought record a result points at must be the caller's."""
        assignment = None
        if submission.assignment_id is not None:
            assignment = await self.db.get(ReframeAssignment, submission.assignment_id)
            if assignment is None or assignment.assigned_to != user_id:
                raise NotFoundError(f"Assignment {submission.assignment_id} not found")

        if submission.thought_record_id is not None:
            record = await self.db.get(ThoughtRecord, submission.thought_record_id)
            if record is None or record.user_id != user_id:
                raise NotFoundError(f"Thought record {submission.thought_record_id} not found")

        return assignment

    async def _practice_count(self, user_id: int) -> int:
        result = await self.db.execute(
            select(func.count(PracticeResult.id)).where(PracticeResult.user_id == user_id)
        )
        return result.scalar_one()

    async def _update_profile(
        self, user_id: int, submission: ResultSubmission, now: datetime
    ) -> GameUpdates:
        profile = await self.get_or_create_profile(user_id)
        prev_level = profile.level
        today = now.astimezone(self.tz).date()
        last = ensure_utc(profile.last_practice_at)
        last_day = last.astimezone(self.tz).date() if last else None

        new_total = profile.total_score + submission.score
        new_streak = next_streak(profile.practice_streak, last_day, today)
        current = list(profile.achievements or [])
        new_achievements = unlocked_achievements(
            current,
            streak=new_streak,
            practice_count=await self._practice_count(user_id),
            perfect=submission.is_perfect,
        )

        rows = await self._compare_and_swap(
            profile,
            total_score=new_total,
            practice_streak=new_streak,
            last_practice_at=now,
            achievements=current + new_achievements,
        )
        if rows != 1:
            raise PersistenceConflict(f"profile {profile.id} changed since version {profile.version}")

        new_level = level_for_score(new_total)
        return GameUpdates(
            new_total_score=new_total,
            new_level=new_level,
            prev_level=prev_level,
            new_streak=new_streak,
            new_achievements=new_achievements,
            leveled_up=new_level > prev_level,
        )

    async def _compare_and_swap(self, profile: GameProfile, **values) -> int:
        result = await self.db.execute(
            update(GameProfile)
            .where(GameProfile.id == profile.id)
            .where(GameProfile.version == profile.version)
            .values(version=profile.version + 1, updated_at=datetime.now(timezone.utc), **values)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount

    async def get_profile_stats(self, user_id: int) -> dict:
        """Profile plus aggregate practice history for the profile endpoint."""
        profile = await self.get_or_create_profile(user_id)
        result = await self.db.execute(
            select(
                func.count(PracticeResult.id),
                func.avg(PracticeResult.score),
                func.coalesce(func.sum(PracticeResult.correct_answers), 0),
                func.coalesce(func.sum(PracticeResult.total_questions), 0),
            ).where(PracticeResult.user_id == user_id)
        )
        total_practices, avg_score, total_correct, total_questions = result.one()
        accuracy_rate = round(total_correct / total_questions * 100) if total_questions else 0

        return {
            "profile": {
                "userId": profile.user_id,
                "totalScore": profile.total_score,
                "level": profile.level,
                "practiceStreak": profile.practice_streak,
                "lastPracticeAt": (
                    ensure_utc(profile.last_practice_at).isoformat() if profile.last_practice_at else None
                ),
                "achievements": list(profile.achievements or []),
                "pointsToNextLevel": POINTS_PER_LEVEL - profile.total_score % POINTS_PER_LEVEL,
            },
            "stats": {
                "totalPractices": total_practices,
                "avgScore": float(avg_score) if avg_score is not None else 0.0,
                "totalCorrect": total_correct,
                "totalQuestions": total_questions,
                "accuracyRate": accuracy_rate,
            },
        }
