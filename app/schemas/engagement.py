"""
Engagement settings and scheduler decisions.

EngagementSettings is edited by admins and stored as JSON; it is validated
here so the scheduler never sees an inconsistent escalation ladder.
"""

import re
from dataclasses import dataclass
from datetime import time
from typing import Dict, List, Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel

from app.config import settings as app_settings
from app.fsm.states import NoticeKind, TrackedModule
from app.timeutils import parse_clock

CLOCK_PATTERN = re.compile(r"^([01]\d|2[0-3]):[0-5]\d$")

DEFAULT_REMINDER_TEMPLATE = """Hi {{clientName}},

We haven't seen you on ResilienceHub for {{daysSinceLastActivity}} days and wanted to check in with you.

Your mental health journey is important, and we're here to support you every step of the way. Taking just a few minutes to track your emotions or write in your journal can make a real difference.

Ready to continue your progress?
{{dashboardLink}}

If you have any questions or need support, don't hesitate to reach out to your therapist: {{therapistName}}.

Take care,
The ResilienceHub Team"""

DEFAULT_DIGEST_TEMPLATE = """Hi {{clientName}},

Here's a summary of your progress this week:

- Emotions tracked: {{emotionsThisWeek}}
- Journal entries: {{journalEntriesThisWeek}}
- Goals worked on: {{goalsWorkedOn}}
- Thought records: {{thoughtRecordsThisWeek}}
- Reframe practices: {{practicesThisWeek}}

Keep up the great work! Continue your journey:
{{dashboardLink}}

Best regards,
{{therapistName}} and the ResilienceHub Team"""

DEFAULT_ESCALATION_TEMPLATES = [
    "Hi {{clientName}}, it has been a week since we last saw you. A gentle reminder that your tools are waiting: {{dashboardLink}}",
    "Hi {{clientName}}, it has been {{daysSinceLastActivity}} days. We are a little concerned and would love to hear how you are doing: {{dashboardLink}}",
    "Hi {{clientName}}, it has been {{daysSinceLastActivity}} days since your last check-in. Please reach out to {{therapistName}} or log in when you can: {{dashboardLink}}",
]


class MessageTemplate(BaseModel):
    subject: str
    body: str


class EngagementSettings(BaseModel):
    """Global, admin-configured reminder/digest/escalation policy."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    reminder_enabled: bool = True
    reminder_days: int = Field(default=3, ge=1)
    reminder_time: str = "09:00"
    reminder_email_subject: str = "Time to check in with ResilienceHub"
    reminder_email_template: str = DEFAULT_REMINDER_TEMPLATE

    weekly_digest_enabled: bool = True
    # 0 = Sunday
    weekly_digest_day: int = Field(default=0, ge=0, le=6)
    weekly_digest_time: str = "08:00"
    weekly_digest_subject: str = "Your weekly progress summary"
    weekly_digest_template: str = DEFAULT_DIGEST_TEMPLATE

    escalation_enabled: bool = False
    escalation_days: List[int] = Field(default_factory=lambda: [7, 14, 30])
    escalation_subject: str = "We miss you at ResilienceHub"
    escalation_templates: List[str] = Field(
        default_factory=lambda: list(DEFAULT_ESCALATION_TEMPLATES)
    )

    timezone: str = Field(default_factory=lambda: app_settings.default_timezone)

    @field_validator("reminder_time", "weekly_digest_time")
    @classmethod
    def _check_clock(cls, value: str) -> str:
        if not CLOCK_PATTERN.match(value):
            raise ValueError("time must be HH:MM (24-hour)")
        return value

    @field_validator("timezone")
    @classmethod
    def _check_timezone(cls, value: str) -> str:
        try:
            ZoneInfo(value)
        except (ZoneInfoNotFoundError, ValueError):
            raise ValueError(f"unknown timezone: {value}")
        return value

    @field_validator("escalation_days")
    @classmethod
    def _check_escalation_days(cls, value: List[int]) -> List[int]:
        if any(day < 1 for day in value):
            raise ValueError("escalation thresholds must be positive")
        if any(later <= earlier for earlier, later in zip(value, value[1:])):
            raise ValueError("escalation thresholds must be strictly increasing")
        return value

    @model_validator(mode="after")
    def _check_templates_match_stages(self) -> "EngagementSettings":
        if len(self.escalation_templates) != len(self.escalation_days):
            raise ValueError("each escalation stage needs exactly one template")
        return self

    @property
    def reminder_clock(self) -> time:
        return parse_clock(self.reminder_time)

    @property
    def digest_clock(self) -> time:
        return parse_clock(self.weekly_digest_time)

    def templates(self) -> Dict[str, MessageTemplate]:
        """Message templates keyed by Notice.template_key."""
        templates = {
            "reminder": MessageTemplate(
                subject=self.reminder_email_subject,
                body=self.reminder_email_template,
            ),
            "weekly_digest": MessageTemplate(
                subject=self.weekly_digest_subject,
                body=self.weekly_digest_template,
            ),
        }
        for stage, body in enumerate(self.escalation_templates, start=1):
            templates[f"escalation_{stage}"] = MessageTemplate(
                subject=self.escalation_subject,
                body=body,
            )
        return templates


@dataclass(frozen=True)
class Notice:
    """A notification the scheduler decided to send on this tick."""

    kind: NoticeKind
    days_since_activity: int
    stage: int = 0

    @property
    def template_key(self) -> str:
        if self.kind == NoticeKind.ESCALATION:
            return f"escalation_{self.stage}"
        if self.kind == NoticeKind.DIGEST:
            return "weekly_digest"
        return "reminder"


class TickReport(BaseModel):
    """Outcome of one scheduler run across all users."""

    processed: int = 0
    reminders: int = 0
    digests: int = 0
    escalations: int = 0
    skipped: int = 0
    failed: int = 0
    delivery_failures: int = 0

    def count(self, notice: Notice) -> None:
        if notice.kind == NoticeKind.REMINDER:
            self.reminders += 1
        elif notice.kind == NoticeKind.DIGEST:
            self.digests += 1
        else:
            self.escalations += 1


class EngagementStats(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    last_run_time: Optional[str] = None
    total_emails_sent: int = 0
    total_notifications_sent: int = 0
    active_clients: int = 0
    inactive_clients: int = 0


class RecordActivityRequest(BaseModel):
    module: TrackedModule
