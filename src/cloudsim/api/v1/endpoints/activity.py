# src/cloudsim/api/v1/endpoints/activity.py
"""The signed-in user's own activity feed."""

from __future__ import annotations

from fastapi import APIRouter, Query

from cloudsim.api.v1.dependencies import CurrentUserDep, SessionDep
from cloudsim.schemas.audit import ActivityResponse
from cloudsim.services.audit import AuditLogService

router = APIRouter(prefix="/activity", tags=["activity"])


@router.get("", response_model=list[ActivityResponse])
async def list_my_activity(
    current_user: CurrentUserDep,
    db: SessionDep,
    limit: int = Query(50, ge=1, le=500),
) -> list[ActivityResponse]:
    entries = AuditLogService(db).recent_activity(user_id=current_user.id, limit=limit)
    return [ActivityResponse.model_validate(entry) for entry in entries]
