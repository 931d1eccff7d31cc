from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import String, Integer, DateTime, ForeignKey, Text, Enum as SqEnum
from sqlalchemy.orm import Mapped, mapped_column

from app.database import Base
from app.fsm.states import NoticeKind, NoticeStatus, DeliveryChannel


class NoticeLog(Base):
    """
    One row per (notice, channel) the scheduler decided to send.
    Written PENDING before dispatch so the decision survives a crash.
    """

    __tablename__ = "notice_logs"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"), index=True)
    kind: Mapped[NoticeKind] = mapped_column(SqEnum(NoticeKind), nullable=False)
    stage: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    channel: Mapped[DeliveryChannel] = mapped_column(SqEnum(DeliveryChannel), nullable=False)
    status: Mapped[NoticeStatus] = mapped_column(SqEnum(NoticeStatus), default=NoticeStatus.PENDING)
    error: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    # Format: "{kind}_{stage}_{channel}_{user_id}_{YYYY-MM-DDTHH:MM}"
    idempotency_key: Mapped[str] = mapped_column(String(255), unique=True, index=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False,
        index=True,
    )
    delivered_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)


def build_idempotency_key(
    kind: NoticeKind,
    stage: int,
    channel: DeliveryChannel,
    user_id: int,
    decided_at: datetime,
) -> str:
    return f"{kind.value.lower()}_{stage}_{channel.value}_{user_id}_{decided_at:%Y-%m-%dT%H:%M}"
