"""Models package for database models."""

from app.models.user import User
from app.models.engagement import ActivityEvent, EngagementState, EngagementSettingsRecord
from app.models.notice_log import NoticeLog
from app.models.notification import Notification
from app.models.practice import ThoughtRecord, ReframeAssignment, PracticeResult
from app.models.game_profile import GameProfile

__all__ = [
    "User",
    "ActivityEvent",
    "EngagementState",
    "EngagementSettingsRecord",
    "NoticeLog",
    "Notification",
    "ThoughtRecord",
    "ReframeAssignment",
    "PracticeResult",
    "GameProfile",
]
