"""Engagement tracking: activity events, per-user scheduler state, settings row."""

from datetime import datetime, timezone
from typing import Any, Dict, Optional

from sqlalchemy import JSON, String, DateTime, Integer, ForeignKey
from sqlalchemy.orm import Mapped, mapped_column

from app.database import Base


class ActivityEvent(Base):
    """One tracked action (emotion log, journal entry, ...). Feeds the weekly digest."""

    __tablename__ = "activity_events"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    user_id: Mapped[int] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    # TrackedModule value
    module: Mapped[str] = mapped_column(String(30), nullable=False)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False,
        index=True,
    )

    def __repr__(self) -> str:
        return f"<ActivityEvent {self.module} user={self.user_id}>"


class EngagementState(Base):
    """
    Per-user scheduler state.

    Created on the user's first tracked action and never deleted.
    escalation_stage only moves forward until activity resets it to 0.
    """

    __tablename__ = "engagement_states"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    user_id: Mapped[int] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"),
        unique=True,
        nullable=False,
        index=True,
    )

    last_activity_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
        index=True,
    )

    reminder_sent_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )

    digest_sent_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )

    # 0 = none, 1..N = escalation tiers
    escalation_stage: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
        nullable=False,
    )

    def __repr__(self) -> str:
        return (
            f"<EngagementState user={self.user_id} "
            f"last={self.last_activity_at} stage={self.escalation_stage}>"
        )


class EngagementSettingsRecord(Base):
    """Single row (id=1) holding the admin-edited EngagementSettings JSON."""

    __tablename__ = "engagement_settings"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)

    data: Mapped[Dict[str, Any]] = mapped_column(JSON, nullable=False)

    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
        nullable=False,
    )
