"""FSM package: shared enums and the practice session state machine."""

from app.fsm.states import (
    Achievement,
    DeliveryChannel,
    NoticeKind,
    NoticeStatus,
    TrackedModule,
    level_for_score,
)

__all__ = [
    "Achievement",
    "DeliveryChannel",
    "NoticeKind",
    "NoticeStatus",
    "TrackedModule",
    "level_for_score",
]
