"""GameProfile model - per-user Reframe Coach score, streak and achievements."""

from datetime import datetime, timezone
from typing import List, Optional

from sqlalchemy import JSON, DateTime, Integer, ForeignKey
from sqlalchemy.orm import Mapped, mapped_column

from app.database import Base
from app.fsm.states import level_for_score


class GameProfile(Base):
    """
    Only the results-submission path writes this row, and only through a
    version-checked UPDATE. Level is derived from total_score, not stored.
    """

    __tablename__ = "game_profiles"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    user_id: Mapped[int] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"),
        unique=True,
        nullable=False,
        index=True,
    )

    total_score: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

    # Consecutive calendar days with at least one practice
    practice_streak: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

    last_practice_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )

    # Achievement keys in unlock order
    achievements: Mapped[List[str]] = mapped_column(JSON, default=list, nullable=False)

    # Bumped on every write; the compare-and-swap guard for concurrent sessions
    version: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False,
    )

    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
        nullable=False,
    )

    @property
    def level(self) -> int:
        return level_for_score(self.total_score or 0)

    def __repr__(self) -> str:
        return f"<GameProfile user={self.user_id} score={self.total_score} level={self.level}>"
