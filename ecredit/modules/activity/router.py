from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession
from typing import List, Optional

from ecredit.core.database import get_db
from ecredit.core.dependencies import get_provisioned_identity, get_policy_evaluator
from ecredit.modules.authz.policy import PolicyEvaluator
from ecredit.modules.authz.schemas import Identity
from ecredit.modules.activity.schemas import ActivityCreate, ActivityResponse
from ecredit.modules.activity.services import ActivityService

router = APIRouter(prefix="/api/v1/activity", tags=["activity"])


@router.get("", response_model=List[ActivityResponse])
async def list_activity(
    activity_type: Optional[str] = None,
    skip: int = Query(0, ge=0),
    limit: int = Query(100, ge=1, le=500),
    db: AsyncSession = Depends(get_db),
    identity: Identity = Depends(get_provisioned_identity),
    evaluator: PolicyEvaluator = Depends(get_policy_evaluator)
):
    """Activity visible to the caller, newest first"""
    service = ActivityService(db, evaluator)
    return await service.list_activity(identity.user_id, activity_type, skip=skip, limit=limit)


@router.post("", response_model=ActivityResponse, status_code=status.HTTP_201_CREATED)
async def log_activity(
    data: ActivityCreate,
    db: AsyncSession = Depends(get_db),
    identity: Identity = Depends(get_provisioned_identity),
    evaluator: PolicyEvaluator = Depends(get_policy_evaluator)
):
    """Append an entry for the caller (or, for admins, for any user)"""
    service = ActivityService(db, evaluator)
    return await service.log_activity(identity.user_id, data)
