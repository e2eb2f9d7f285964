from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession
from typing import List, Optional

from ecredit.core.database import get_db
from ecredit.core.dependencies import (
    get_current_identity,
    get_provisioned_identity,
    get_policy_evaluator,
)
from ecredit.modules.authz.policy import PolicyEvaluator
from ecredit.modules.authz.schemas import Identity
from ecredit.modules.profiles.schemas import ProfileCreate, ProfileUpdate, ProfileResponse
from ecredit.modules.profiles.services import ProfileService

router = APIRouter(prefix="/api/v1/profiles", tags=["profiles"])


@router.get("/me", response_model=ProfileResponse)
async def get_my_profile(
    db: AsyncSession = Depends(get_db),
    identity: Identity = Depends(get_current_identity),
    evaluator: PolicyEvaluator = Depends(get_policy_evaluator)
):
    """Current user's profile, created on first call"""
    service = ProfileService(db, evaluator)
    return await service.ensure_profile(identity.user_id, identity.email)


@router.get("", response_model=List[ProfileResponse])
async def list_profiles(
    search: Optional[str] = None,
    skip: int = Query(0, ge=0),
    limit: int = Query(50, ge=1, le=200),
    db: AsyncSession = Depends(get_db),
    identity: Identity = Depends(get_provisioned_identity),
    evaluator: PolicyEvaluator = Depends(get_policy_evaluator)
):
    service = ProfileService(db, evaluator)
    return await service.list_profiles(identity.user_id, search=search, skip=skip, limit=limit)


@router.post("", response_model=ProfileResponse, status_code=status.HTTP_201_CREATED)
async def create_profile(
    data: ProfileCreate,
    db: AsyncSession = Depends(get_db),
    identity: Identity = Depends(get_current_identity),
    evaluator: PolicyEvaluator = Depends(get_policy_evaluator)
):
    """Register the caller's profile, or (admins) someone else's"""
    service = ProfileService(db, evaluator)
    return await service.create_profile(identity.user_id, data)


@router.get("/{profile_id}", response_model=ProfileResponse)
async def get_profile(
    profile_id: str,
    db: AsyncSession = Depends(get_db),
    identity: Identity = Depends(get_provisioned_identity),
    evaluator: PolicyEvaluator = Depends(get_policy_evaluator)
):
    service = ProfileService(db, evaluator)
    return await service.get_profile(identity.user_id, profile_id)


@router.patch("/{profile_id}", response_model=ProfileResponse)
async def update_profile(
    profile_id: str,
    data: ProfileUpdate,
    db: AsyncSession = Depends(get_db),
    identity: Identity = Depends(get_provisioned_identity),
    evaluator: PolicyEvaluator = Depends(get_policy_evaluator)
):
    service = ProfileService(db, evaluator)
    return await service.update_profile(identity.user_id, profile_id, data)
