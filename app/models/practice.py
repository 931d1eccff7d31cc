"""Reframe Coach models: thought records, assignments, stored results."""

from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from sqlalchemy import JSON, String, Text, Boolean, DateTime, Integer, ForeignKey
from sqlalchemy.orm import Mapped, mapped_column

from app.database import Base
from app.fsm.states import AssignmentStatus


class ThoughtRecord(Base):
    """CBT thought record. Practice scenarios are generated from it."""

    __tablename__ = "thought_records"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    user_id: Mapped[int] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    automatic_thoughts: Mapped[str] = mapped_column(Text, nullable=False)

    cognitive_distortions: Mapped[List[str]] = mapped_column(JSON, default=list, nullable=False)

    emotion_category: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)

    evidence_for: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    evidence_against: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    alternative_perspective: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False,
    )


class ReframeAssignment(Base):
    """A practice set a therapist assigned to a client."""

    __tablename__ = "reframe_assignments"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    assigned_by: Mapped[int] = mapped_column(ForeignKey("users.id"), nullable=False)

    assigned_to: Mapped[int] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    thought_record_id: Mapped[Optional[int]] = mapped_column(
        ForeignKey("thought_records.id", ondelete="SET NULL"),
        nullable=True,
    )

    status: Mapped[str] = mapped_column(
        String(20),
        default=AssignmentStatus.ASSIGNED.value,
        nullable=False,
    )

    is_priority: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    notes: Mapped[str] = mapped_column(Text, default="", nullable=False)

    # PracticeSet JSON
    reframe_data: Mapped[Dict[str, Any]] = mapped_column(JSON, nullable=False)

    assigned_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False,
    )
    completed_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    def __repr__(self) -> str:
        return f"<ReframeAssignment {self.id} to={self.assigned_to} status={self.status}>"


class PracticeResult(Base):
    """
    A completed practice session.
    session_id is unique so a resubmitted session is stored (and scored) once.
    """

    __tablename__ = "practice_results"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    session_id: Mapped[str] = mapped_column(String(64), unique=True, nullable=False, index=True)

    user_id: Mapped[int] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    assignment_id: Mapped[Optional[int]] = mapped_column(
        ForeignKey("reframe_assignments.id", ondelete="SET NULL"),
        nullable=True,
    )
    thought_record_id: Mapped[Optional[int]] = mapped_column(
        ForeignKey("thought_records.id", ondelete="SET NULL"),
        nullable=True,
    )

    score: Mapped[int] = mapped_column(Integer, nullable=False)
    correct_answers: Mapped[int] = mapped_column(Integer, nullable=False)
    total_questions: Mapped[int] = mapped_column(Integer, nullable=False)
    # milliseconds
    time_spent: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

    scenario_data: Mapped[List[Dict[str, Any]]] = mapped_column(JSON, default=list, nullable=False)
    user_choices: Mapped[List[Dict[str, Any]]] = mapped_column(JSON, default=list, nullable=False)

    # GameUpdates returned when this result was first applied; replayed on resubmission
    game_updates: Mapped[Optional[Dict[str, Any]]] = mapped_column(JSON, nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False,
        index=True,
    )
