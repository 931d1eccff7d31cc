"""
Activity API - tracked client actions.

Every emotion log, journal entry, thought record, goal update or practice
resets the client's inactivity clock.
"""

import logging

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps import get_current_user
from app.database import get_db
from app.models.user import User
from app.schemas.engagement import RecordActivityRequest
from app.services.activity_service import ActivityService
from app.timeutils import ensure_utc

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["Activity"])


@router.post("/users/{user_id}/activity")
async def record_activity(
    user_id: int,
    request: RecordActivityRequest,
    caller: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    # Only the client's own actions reset the inactivity clock
    if caller.id != user_id:
        raise HTTPException(status_code=403, detail="Activity can only be recorded by the client")

    state = await ActivityService(db).record_activity(user_id, request.module)
    logger.info(f"Activity '{request.module.value}' recorded for user {user_id}")

    return {
        "status": "success",
        "lastActivityAt": ensure_utc(state.last_activity_at).isoformat(),
        "escalationStage": state.escalation_stage,
    }
