"""
State and enum definitions shared by the scheduler, the practice engine and
the models.
"""

from enum import Enum


class UserRole(str, Enum):
    CLIENT = "client"
    THERAPIST = "therapist"
    ADMIN = "admin"


class UserStatus(str, Enum):
    ACTIVE = "active"
    INACTIVE = "inactive"


class TrackedModule(str, Enum):
    """
    Actions that count as activity.
    Recording any of these resets inactivity escalation.
    """

    EMOTION = "emotion"
    JOURNAL = "journal"
    THOUGHT_RECORD = "thought_record"
    GOAL = "goal"
    PRACTICE = "practice"

    @property
    def digest_variable(self) -> str:
        """Template variable holding this module's weekly count."""
        names = {
            TrackedModule.EMOTION: "emotionsThisWeek",
            TrackedModule.JOURNAL: "journalEntriesThisWeek",
            TrackedModule.THOUGHT_RECORD: "thoughtRecordsThisWeek",
            TrackedModule.GOAL: "goalsWorkedOn",
            TrackedModule.PRACTICE: "practicesThisWeek",
        }
        return names[self]


class NoticeKind(str, Enum):
    """What the engagement scheduler decided to send."""

    REMINDER = "REMINDER"
    DIGEST = "DIGEST"
    ESCALATION = "ESCALATION"


class DeliveryChannel(str, Enum):
    EMAIL = "email"
    PUSH = "push"


class NoticeStatus(str, Enum):
    PENDING = "PENDING"
    SENT = "SENT"
    FAILED = "FAILED"


class AssignmentStatus(str, Enum):
    ASSIGNED = "assigned"
    COMPLETED = "completed"


class Achievement(str, Enum):
    """
    Practice achievements.
    Each unlocks once when its threshold is crossed and is never removed.
    """

    STREAK_3 = "streak_3"
    STREAK_7 = "streak_7"
    STREAK_14 = "streak_14"
    PRACTICE_5 = "practice_5"
    PRACTICE_20 = "practice_20"
    PRACTICE_50 = "practice_50"
    PERFECT_SCORE = "perfect_score"

    @property
    def display_name(self) -> str:
        names = {
            Achievement.STREAK_3: "3-Day Streak",
            Achievement.STREAK_7: "7-Day Streak",
            Achievement.STREAK_14: "14-Day Streak",
            Achievement.PRACTICE_5: "5 Practices",
            Achievement.PRACTICE_20: "20 Practices",
            Achievement.PRACTICE_50: "50 Practices",
            Achievement.PERFECT_SCORE: "Perfect Score",
        }
        return names[self]


# (threshold, achievement) pairs, checked in order
STREAK_ACHIEVEMENTS = [
    (3, Achievement.STREAK_3),
    (7, Achievement.STREAK_7),
    (14, Achievement.STREAK_14),
]

PRACTICE_COUNT_ACHIEVEMENTS = [
    (5, Achievement.PRACTICE_5),
    (20, Achievement.PRACTICE_20),
    (50, Achievement.PRACTICE_50),
]

POINTS_PER_LEVEL = 500


def level_for_score(total_score: int) -> int:
    """Level is always derived from the score, never stored."""
    return total_score // POINTS_PER_LEVEL + 1
