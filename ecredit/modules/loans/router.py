from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession
from typing import List, Optional

from ecredit.core.database import get_db
from ecredit.core.dependencies import get_provisioned_identity, get_policy_evaluator
from ecredit.modules.authz.policy import PolicyEvaluator
from ecredit.modules.authz.schemas import Identity
from ecredit.modules.loans.models import LoanAction, LoanStatus
from ecredit.modules.loans.schemas import LoanApplicationRequest, LoanResponse
from ecredit.modules.loans.services import LoanService

router = APIRouter(prefix="/api/v1/loans", tags=["loans"])


@router.post("", response_model=LoanResponse, status_code=status.HTTP_201_CREATED)
async def apply_for_loan(
    data: LoanApplicationRequest,
    db: AsyncSession = Depends(get_db),
    identity: Identity = Depends(get_provisioned_identity),
    evaluator: PolicyEvaluator = Depends(get_policy_evaluator)
):
    """Submit a loan application for the current user"""
    service = LoanService(db, evaluator)
    return await service.apply_for_loan(identity.user_id, data)


@router.get("", response_model=List[LoanResponse])
async def list_loans(
    status: Optional[LoanStatus] = None,
    skip: int = Query(0, ge=0),
    limit: int = Query(100, ge=1, le=500),
    db: AsyncSession = Depends(get_db),
    identity: Identity = Depends(get_provisioned_identity),
    evaluator: PolicyEvaluator = Depends(get_policy_evaluator)
):
    service = LoanService(db, evaluator)
    return await service.list_loans(identity.user_id, status=status, skip=skip, limit=limit)


@router.get("/{loan_id}", response_model=LoanResponse)
async def get_loan(
    loan_id: int,
    db: AsyncSession = Depends(get_db),
    identity: Identity = Depends(get_provisioned_identity),
    evaluator: PolicyEvaluator = Depends(get_policy_evaluator)
):
    service = LoanService(db, evaluator)
    return await service.get_loan(identity.user_id, loan_id)


@router.post("/{loan_id}/{action}", response_model=LoanResponse)
async def transition_loan(
    loan_id: int,
    action: LoanAction,
    db: AsyncSession = Depends(get_db),
    identity: Identity = Depends(get_provisioned_identity),
    evaluator: PolicyEvaluator = Depends(get_policy_evaluator)
):
    """Approve, reject, disburse or complete a loan (admins only)"""
    service = LoanService(db, evaluator)
    return await service.transition(identity.user_id, loan_id, action)
