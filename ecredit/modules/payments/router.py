from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession
from typing import List, Optional

from ecredit.core.database import get_db
from ecredit.core.dependencies import get_provisioned_identity, get_policy_evaluator
from ecredit.modules.authz.policy import PolicyEvaluator
from ecredit.modules.authz.schemas import Identity
from ecredit.modules.payments.schemas import PaymentCreate, PaymentStatusUpdate, PaymentResponse
from ecredit.modules.payments.services import PaymentService

router = APIRouter(prefix="/api/v1/payments", tags=["payments"])


@router.post("", response_model=PaymentResponse, status_code=status.HTTP_201_CREATED)
async def record_payment(
    data: PaymentCreate,
    db: AsyncSession = Depends(get_db),
    identity: Identity = Depends(get_provisioned_identity),
    evaluator: PolicyEvaluator = Depends(get_policy_evaluator)
):
    """Record a payment against a loan (admins only)"""
    service = PaymentService(db, evaluator)
    return await service.record_payment(identity.user_id, data)


@router.get("", response_model=List[PaymentResponse])
async def list_payments(
    loan_id: Optional[int] = None,
    skip: int = Query(0, ge=0),
    limit: int = Query(100, ge=1, le=500),
    db: AsyncSession = Depends(get_db),
    identity: Identity = Depends(get_provisioned_identity),
    evaluator: PolicyEvaluator = Depends(get_policy_evaluator)
):
    service = PaymentService(db, evaluator)
    return await service.list_payments(identity.user_id, loan_id=loan_id, skip=skip, limit=limit)


@router.get("/{payment_id}", response_model=PaymentResponse)
async def get_payment(
    payment_id: int,
    db: AsyncSession = Depends(get_db),
    identity: Identity = Depends(get_provisioned_identity),
    evaluator: PolicyEvaluator = Depends(get_policy_evaluator)
):
    service = PaymentService(db, evaluator)
    return await service.get_payment(identity.user_id, payment_id)


@router.patch("/{payment_id}/status", response_model=PaymentResponse)
async def update_payment_status(
    payment_id: int,
    data: PaymentStatusUpdate,
    db: AsyncSession = Depends(get_db),
    identity: Identity = Depends(get_provisioned_identity),
    evaluator: PolicyEvaluator = Depends(get_policy_evaluator)
):
    service = PaymentService(db, evaluator)
    return await service.update_status(identity.user_id, payment_id, data.status)
