import logging
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select
from typing import Optional, List

from ecredit.core.exceptions import ConstraintViolation, NotFound
from ecredit.modules.activity.services import ActivityService
from ecredit.modules.authz.policy import Collection, PolicyEvaluator
from ecredit.modules.loans.models import Loan
from ecredit.modules.loans.services import fits_cents
from ecredit.modules.payments.models import Payment, PaymentStatus
from ecredit.modules.payments.schemas import PaymentCreate

logger = logging.getLogger(__name__)


class PaymentService:
    """Payments are recorded by admins and readable by the loan owner"""
    
    def __init__(self, db: AsyncSession, evaluator: PolicyEvaluator):
        self.db = db
        self.evaluator = evaluator
    
    async def record_payment(self, caller: Optional[str], data: PaymentCreate) -> Payment:
        payment = Payment(
            loan_id=data.loan_id,
            amount=data.amount,
            payment_method=data.payment_method,
            status=data.status,
        )
        if data.payment_date is not None:
            payment.payment_date = data.payment_date
        await self.evaluator.enforce_insert(Collection.PAYMENTS, caller, payment)
        
        if not fits_cents(data.amount):
            raise ConstraintViolation("amount", "Payment amount cannot have more than two decimal places")
        if data.amount <= 0:
            raise ConstraintViolation("amount", "Payment amount must be positive")
        
        loan = await self.db.get(Loan, data.loan_id)
        if loan is None:
            raise NotFound("Loan not found")
        
        self.db.add(payment)
        await self.db.flush()
        
        activity = ActivityService(self.db, self.evaluator)
        await activity.record(
            caller,
            user_id=loan.user_id,
            activity_type="payment_recorded",
            description=f"Payment of {data.amount} recorded for loan #{loan.id}",
            amount=data.amount,
            details={"loan_id": loan.id, "payment_id": payment.id},
        )
        
        await self.db.commit()
        await self.db.refresh(payment)
        logger.info(f"Payment {payment.id} recorded against loan {loan.id}")
        return payment
    
    async def get_payment(self, caller: Optional[str], payment_id: int) -> Payment:
        return await self.evaluator.get_visible(Collection.PAYMENTS, caller, payment_id)
    
    async def list_payments(
        self,
        caller: Optional[str],
        loan_id: Optional[int] = None,
        skip: int = 0,
        limit: int = 100
    ) -> List[Payment]:
        query = await self.evaluator.scoped(select(Payment), Collection.PAYMENTS, caller)
        if loan_id is not None:
            query = query.where(Payment.loan_id == loan_id)
        query = query.order_by(Payment.payment_date.desc(), Payment.id.desc()).offset(skip).limit(limit)
        
        result = await self.db.execute(query)
        return list(result.scalars().all())
    
    async def update_status(self, caller: Optional[str], payment_id: int, status: PaymentStatus) -> Payment:
        payment = await self.evaluator.get_for_update(Collection.PAYMENTS, caller, payment_id)
        changes = {"status": status} if payment.status != status else {}
        await self.evaluator.enforce_update(Collection.PAYMENTS, caller, payment, changes)
        
        if changes:
            payment.status = status
            await self.db.commit()
            await self.db.refresh(payment)
        return payment
