"""
Admin dashboard endpoints.
"""
from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from ecredit.core.database import get_db
from ecredit.core.dependencies import get_provisioned_identity, get_policy_evaluator
from ecredit.modules.admin.schemas import DashboardStats
from ecredit.modules.admin.services import AdminService
from ecredit.modules.authz.policy import PolicyEvaluator
from ecredit.modules.authz.schemas import Identity

router = APIRouter(prefix="/api/v1/admin", tags=["admin"])


@router.get("/stats", response_model=DashboardStats)
async def get_dashboard_stats(
    db: AsyncSession = Depends(get_db),
    identity: Identity = Depends(get_provisioned_identity),
    evaluator: PolicyEvaluator = Depends(get_policy_evaluator)
):
    """Get dashboard statistics"""
    service = AdminService(db, evaluator)
    return await service.get_dashboard_stats(identity.user_id)
