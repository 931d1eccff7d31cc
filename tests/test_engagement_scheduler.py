"""
Tests for the engagement scheduler decision function.
"""

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Optional

import pytest
from pydantic import ValidationError

from app.fsm.states import NoticeKind
from app.schemas.engagement import EngagementSettings
from app.services.engagement_scheduler import (
    crossed_stage,
    days_since,
    evaluate,
    record_activity,
)


@dataclass
class State:
    last_activity_at: Optional[datetime] = None
    reminder_sent_at: Optional[datetime] = None
    digest_sent_at: Optional[datetime] = None
    escalation_stage: int = 0


def at(day: int, hour: int, minute: int = 0) -> datetime:
    # 2026-03-01 is a Sunday
    return datetime(2026, 3, day, hour, minute, tzinfo=timezone.utc)


def reminder_only(**overrides) -> EngagementSettings:
    values = dict(
        timezone="UTC",
        reminder_enabled=True,
        reminder_days=3,
        reminder_time="09:00",
        weekly_digest_enabled=False,
        escalation_enabled=False,
    )
    values.update(overrides)
    return EngagementSettings(**values)


def escalation_only(**overrides) -> EngagementSettings:
    values = dict(
        timezone="UTC",
        reminder_enabled=False,
        weekly_digest_enabled=False,
        escalation_enabled=True,
        escalation_days=[7, 14, 30],
    )
    values.update(overrides)
    return EngagementSettings(**values)


class TestHelpers:
    def test_days_since_floors(self):
        assert days_since(at(1, 9), at(5, 8, 59)) == 3
        assert days_since(at(1, 9), at(5, 9)) == 4

    def test_days_since_accepts_naive_as_utc(self):
        assert days_since(at(1, 9).replace(tzinfo=None), at(3, 9)) == 2

    def test_crossed_stage(self):
        assert crossed_stage(6, [7, 14, 30]) == 0
        assert crossed_stage(7, [7, 14, 30]) == 1
        assert crossed_stage(29, [7, 14, 30]) == 2
        assert crossed_stage(45, [7, 14, 30]) == 3


class TestReminder:
    """Inactivity reminder decisions."""

    def test_reminder_sent_once_per_lapse(self):
        """Four days inactive: reminder at 09:05, nothing an hour later."""
        settings = reminder_only()
        state = State(last_activity_at=at(5, 9) - timedelta(days=4))

        notice = evaluate(state, settings, at(5, 9, 5))
        assert notice is not None
        assert notice.kind == NoticeKind.REMINDER
        assert notice.days_since_activity == 4
        assert state.reminder_sent_at == at(5, 9, 5)

        assert evaluate(state, settings, at(5, 10, 5)) is None

    def test_not_before_reminder_time(self):
        settings = reminder_only(reminder_time="09:00")
        state = State(last_activity_at=at(1, 8))

        assert evaluate(state, settings, at(5, 8, 59)) is None
        assert state.reminder_sent_at is None

    def test_not_before_reminder_days(self):
        state = State(last_activity_at=at(3, 10))
        assert evaluate(state, reminder_only(), at(5, 9, 30)) is None

    def test_repeats_after_another_full_period(self):
        settings = reminder_only()
        state = State(last_activity_at=at(1, 8), reminder_sent_at=at(4, 9))

        assert evaluate(state, settings, at(6, 9)) is None
        notice = evaluate(state, settings, at(7, 9))
        assert notice.kind == NoticeKind.REMINDER

    def test_reminder_from_previous_lapse_does_not_block(self):
        settings = reminder_only()
        state = State(last_activity_at=at(2, 8), reminder_sent_at=at(1, 9))

        notice = evaluate(state, settings, at(5, 9))
        assert notice.kind == NoticeKind.REMINDER

    def test_reminder_time_uses_configured_timezone(self):
        settings = reminder_only(timezone="America/Chicago")
        state = State(last_activity_at=at(1, 8))

        # 13:30 UTC is 07:30 in Chicago (CST, UTC-6)
        assert evaluate(state, settings, at(6, 13, 30)) is None
        assert evaluate(state, settings, at(6, 15, 30)).kind == NoticeKind.REMINDER

    def test_no_activity_means_no_reminder(self):
        assert evaluate(State(), reminder_only(), at(5, 12)) is None

    def test_disabled(self):
        state = State(last_activity_at=at(1, 8))
        assert evaluate(state, reminder_only(reminder_enabled=False), at(10, 12)) is None


class TestEscalation:
    """Multi-stage escalation ladder."""

    def test_stages_fire_in_order_once(self):
        settings = escalation_only()
        state = State(last_activity_at=at(1, 0))

        assert evaluate(state, settings, at(7, 12)) is None

        first = evaluate(state, settings, at(8, 1))
        assert (first.kind, first.stage) == (NoticeKind.ESCALATION, 1)
        assert evaluate(state, settings, at(9, 1)) is None

        second = evaluate(state, settings, at(15, 1))
        assert second.stage == 2
        assert state.escalation_stage == 2

    def test_only_highest_newly_crossed_stage_fires(self):
        settings = escalation_only()
        state = State(last_activity_at=at(1, 0))

        notice = evaluate(state, settings, at(1, 0) + timedelta(days=20))
        assert notice.stage == 2
        assert state.escalation_stage == 2
        assert evaluate(state, settings, at(1, 0) + timedelta(days=21)) is None

    def test_stage_never_decreases_without_activity(self):
        settings = escalation_only()
        state = State(last_activity_at=at(1, 0), escalation_stage=3)

        for day in range(2, 28):
            assert evaluate(state, settings, at(day, 12)) is None
            assert state.escalation_stage == 3

    def test_activity_resets_ladder(self):
        settings = escalation_only()
        state = State(last_activity_at=at(1, 0), escalation_stage=2)

        record_activity(state, at(20, 10))
        assert state.escalation_stage == 0
        assert state.last_activity_at == at(20, 10)

        notice = evaluate(state, settings, at(27, 11))
        assert notice.stage == 1

    def test_escalation_wins_over_reminder(self):
        settings = escalation_only(reminder_enabled=True, reminder_days=3)
        state = State(last_activity_at=at(1, 0))

        notice = evaluate(state, settings, at(9, 12))
        assert notice.kind == NoticeKind.ESCALATION
        assert state.reminder_sent_at is None

        # Next tick the reminder is still due
        assert evaluate(state, settings, at(9, 13)).kind == NoticeKind.REMINDER


class TestWeeklyDigest:
    """Weekly digest timing (0 = Sunday)."""

    def digest_settings(self, **overrides) -> EngagementSettings:
        values = dict(
            timezone="UTC",
            reminder_enabled=False,
            escalation_enabled=False,
            weekly_digest_enabled=True,
            weekly_digest_day=0,
            weekly_digest_time="08:00",
        )
        values.update(overrides)
        return EngagementSettings(**values)

    def test_sent_on_configured_day_after_time(self):
        settings = self.digest_settings()
        state = State(last_activity_at=at(7, 12))

        assert evaluate(state, settings, at(8, 7, 59)) is None
        notice = evaluate(state, settings, at(8, 8, 0))
        assert notice.kind == NoticeKind.DIGEST
        assert notice.template_key == "weekly_digest"

    def test_once_per_day(self):
        settings = self.digest_settings()
        state = State()

        assert evaluate(state, settings, at(8, 9)).kind == NoticeKind.DIGEST
        assert evaluate(state, settings, at(8, 10)) is None
        assert evaluate(state, settings, at(15, 9)).kind == NoticeKind.DIGEST

    def test_other_weekdays_skipped(self):
        settings = self.digest_settings(weekly_digest_day=3)
        state = State()

        assert evaluate(state, settings, at(8, 9)) is None
        # 2026-03-04 is a Wednesday
        assert evaluate(state, settings, at(4, 9)).kind == NoticeKind.DIGEST


class TestEngagementSettingsValidation:
    def test_defaults_are_valid(self):
        settings = EngagementSettings()
        assert settings.reminder_days == 3
        assert settings.escalation_days == [7, 14, 30]
        assert set(settings.templates()) == {
            "reminder", "weekly_digest", "escalation_1", "escalation_2", "escalation_3",
        }

    def test_accepts_camel_case(self):
        settings = EngagementSettings.model_validate(
            {"reminderDays": 5, "weeklyDigestDay": 2, "reminderTime": "18:30"}
        )
        assert settings.reminder_days == 5
        assert settings.reminder_clock.hour == 18

    @pytest.mark.parametrize("days", [[7, 7, 30], [14, 7, 30], [0, 7, 30]])
    def test_escalation_days_must_increase(self, days):
        with pytest.raises(ValidationError):
            EngagementSettings(escalation_days=days)

    def test_one_template_per_stage(self):
        with pytest.raises(ValidationError):
            EngagementSettings(escalation_days=[7, 14], escalation_templates=["only one"])

    @pytest.mark.parametrize("value", ["9:00", "24:00", "09:60", "nine"])
    def test_rejects_bad_times(self, value):
        with pytest.raises(ValidationError):
            EngagementSettings(reminder_time=value)

    def test_digest_day_range(self):
        with pytest.raises(ValidationError):
            EngagementSettings(weekly_digest_day=7)

    @pytest.mark.parametrize("value", ["Mars/Olympus", "Not/A_Zone"])
    def test_rejects_unknown_timezone(self, value):
        with pytest.raises(ValidationError):
            EngagementSettings(timezone=value)

    def test_accepts_iana_timezone(self):
        settings = EngagementSettings.model_validate({"timezone": "Asia/Kolkata"})
        assert settings.timezone == "Asia/Kolkata"
