"""
Reframe Coach API.

Scenario sets (assigned or generated on demand), results submission and the
gamification profile.
"""

import logging

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps import ensure_can_access, get_current_user
from app.database import get_db
from app.exceptions import NotFoundError
from app.fsm.states import AssignmentStatus, UserRole
from app.models.practice import PracticeResult, ReframeAssignment
from app.models.user import User
from app.schemas.practice import CreateAssignmentRequest, PracticeSet, ResultSubmission
from app.services.gamification_service import GamificationService
from app.services.scenario_provider import ScenarioProvider
from app.timeutils import ensure_utc

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["Reframe Coach"])


def _assignment_payload(assignment: ReframeAssignment) -> dict:
    return {
        "id": assignment.id,
        "assignedBy": assignment.assigned_by,
        "assignedTo": assignment.assigned_to,
        "thoughtRecordId": assignment.thought_record_id,
        "status": assignment.status,
        "isPriority": assignment.is_priority,
        "notes": assignment.notes,
        "reframeData": assignment.reframe_data,
        "assignedAt": ensure_utc(assignment.assigned_at).isoformat() if assignment.assigned_at else None,
        "completedAt": ensure_utc(assignment.completed_at).isoformat() if assignment.completed_at else None,
    }


@router.get("/reframe-coach/assignments/{assignment_id}")
async def get_assignment(
    assignment_id: int,
    caller: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Assigned practice set. Visible to the client and the assigning therapist."""
    await ScenarioProvider(db).from_assignment(assignment_id, caller.id)
    assignment = await db.get(ReframeAssignment, assignment_id)
    return {"status": "success", "assignment": _assignment_payload(assignment)}


@router.post("/reframe-coach/assignments")
async def create_assignment(
    request: CreateAssignmentRequest,
    caller: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """
    Therapist assigns practice on one of the client's thought records.
    Scenarios are generated once here and stored with the assignment.
    """
    if caller.role != UserRole.THERAPIST.value:
        raise HTTPException(status_code=403, detail="Only therapists can assign practice")

    client = await db.get(User, request.assigned_to)
    if client is None:
        raise NotFoundError("Client not found")

    practice_set = await ScenarioProvider(db).from_thought_record(
        request.thought_record_id,
        client.id,
        custom_instructions=request.custom_instructions,
    )

    assignment = ReframeAssignment(
        assigned_by=caller.id,
        assigned_to=client.id,
        thought_record_id=request.thought_record_id,
        status=AssignmentStatus.ASSIGNED.value,
        is_priority=request.is_priority,
        notes=request.notes,
        reframe_data=practice_set.model_dump(mode="json", by_alias=True),
    )
    db.add(assignment)
    await db.flush()

    logger.info(f"Therapist {caller.id} assigned practice {assignment.id} to client {client.id}")
    return {"status": "success", "assignment": _assignment_payload(assignment)}


@router.get("/users/{user_id}/thoughts/{thought_id}/practice-scenarios")
async def get_practice_scenarios(
    user_id: int,
    thought_id: int,
    caller: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    ensure_can_access(caller, user_id)

    practice_set: PracticeSet = await ScenarioProvider(db).from_thought_record(thought_id, user_id)
    return {"status": "success", **practice_set.model_dump(mode="json", by_alias=True)}


@router.post("/reframe-coach/results")
async def submit_results(
    submission: ResultSubmission,
    caller: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """
    Store a finished session and update the caller's game profile.
    Resubmitting a sessionId returns the original updates with duplicate=true.
    """
    if submission.user_id is not None and submission.user_id != caller.id:
        raise HTTPException(status_code=403, detail="Cannot submit results for another user")

    updates = await GamificationService(db).apply_practice_result(caller.id, submission)
    return {
        "status": "success",
        "sessionId": submission.session_id,
        "gameUpdates": updates.model_dump(mode="json", by_alias=True),
    }


@router.get("/users/{user_id}/reframe-coach/profile")
async def get_profile(
    user_id: int,
    caller: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    ensure_can_access(caller, user_id)

    stats = await GamificationService(db).get_profile_stats(user_id)
    return {"status": "success", **stats}


@router.get("/users/{user_id}/reframe-coach/results")
async def get_results(
    user_id: int,
    limit: int = Query(20, ge=1, le=100),
    caller: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Most recent practice sessions first."""
    ensure_can_access(caller, user_id)

    result = await db.execute(
        select(PracticeResult)
        .where(PracticeResult.user_id == user_id)
        .order_by(PracticeResult.created_at.desc(), PracticeResult.id.desc())
        .limit(limit)
    )
    rows = result.scalars().all()

    return {
        "status": "success",
        "results": [
            {
                "sessionId": row.session_id,
                "assignmentId": row.assignment_id,
                "thoughtRecordId": row.thought_record_id,
                "score": row.score,
                "correctAnswers": row.correct_answers,
                "totalQuestions": row.total_questions,
                "timeSpent": row.time_spent,
                "createdAt": ensure_utc(row.created_at).isoformat(),
            }
            for row in rows
        ],
    }
