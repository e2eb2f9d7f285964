import logging
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, update
from datetime import datetime, timedelta, timezone
from decimal import Decimal, ROUND_HALF_UP
from typing import Optional, List

from ecredit.core.config import settings
from ecredit.core.exceptions import ConstraintViolation, InvalidStateTransition
from ecredit.modules.activity.services import ActivityService
from ecredit.modules.authz.policy import Collection, PolicyEvaluator
from ecredit.modules.loans.models import (
    Loan,
    LoanAction,
    LoanStatus,
    ACTION_TARGETS,
    can_transition,
)
from ecredit.modules.loans.schemas import LoanApplicationRequest

logger = logging.getLogger(__name__)

CENTS = Decimal("0.01")

# Days per month used for the due date
BILLING_CYCLE_DAYS = 30

_PAST_TENSE = {
    LoanAction.APPROVE: "approved",
    LoanAction.REJECT: "rejected",
    LoanAction.DISBURSE: "disbursed",
    LoanAction.COMPLETE: "completed",
}


def fits_cents(value: Decimal) -> bool:
    """True when `value` is stored in a Numeric(.., 2) column without rounding"""
    return value == value.quantize(CENTS)


class LoanService:
    """Loan applications and the admin-driven lifecycle"""
    
    def __init__(self, db: AsyncSession, evaluator: PolicyEvaluator):
        self.db = db
        self.evaluator = evaluator
    
    @staticmethod
    def _calculate_monthly_payment(principal: Decimal, annual_rate: Decimal, term_months: int) -> Decimal:
        """Fixed amortized installment, rounded to cents.
        
        ``annual_rate`` is a percentage (12.5 means 12.5% a year).
        """
        if annual_rate == 0:
            return (principal / term_months).quantize(CENTS, rounding=ROUND_HALF_UP)
        
        r = Decimal(annual_rate) / Decimal(1200)
        payment = principal * r / (1 - (1 + r) ** -term_months)
        return payment.quantize(CENTS, rounding=ROUND_HALF_UP)
    
    def _validate_application(self, data: LoanApplicationRequest) -> Decimal:
        if not fits_cents(data.amount):
            raise ConstraintViolation("amount", "Loan amount cannot have more than two decimal places")
        if data.amount <= 0:
            raise ConstraintViolation("amount", "Loan amount must be positive")
        if data.amount > settings.MAX_LOAN_AMOUNT:
            raise ConstraintViolation("amount", f"Loan amount cannot exceed {settings.MAX_LOAN_AMOUNT}")
        if not 1 <= data.term_months <= settings.MAX_TERM_MONTHS:
            raise ConstraintViolation(
                "term_months", f"Term must be between 1 and {settings.MAX_TERM_MONTHS} months"
            )
        
        rate = data.interest_rate if data.interest_rate is not None else settings.DEFAULT_INTEREST_RATE
        if not fits_cents(rate):
            raise ConstraintViolation("interest_rate", "Interest rate cannot have more than two decimal places")
        if rate < 0 or rate > 100:
            raise ConstraintViolation("interest_rate", "Interest rate must be between 0 and 100")
        return rate
    
    async def apply_for_loan(self, caller: Optional[str], data: LoanApplicationRequest) -> Loan:
        """Create a pending loan owned by the caller"""
        rate = self._validate_application(data)
        
        loan = Loan(
            user_id=caller,
            amount=data.amount,
            interest_rate=rate,
            term_months=data.term_months,
            monthly_payment=self._calculate_monthly_payment(data.amount, rate, data.term_months),
            status=LoanStatus.PENDING,
        )
        await self.evaluator.enforce_insert(Collection.LOANS, caller, loan)
        
        self.db.add(loan)
        await self.db.flush()
        
        activity = ActivityService(self.db, self.evaluator)
        await activity.record(
            caller,
            user_id=caller,
            activity_type="loan_application",
            description=f"Applied for a loan of {data.amount} over {data.term_months} months",
            amount=data.amount,
            details={"loan_id": loan.id},
        )
        
        await self.db.commit()
        await self.db.refresh(loan)
        logger.info(f"Loan {loan.id} submitted by {caller}")
        return loan
    
    async def get_loan(self, caller: Optional[str], loan_id: int) -> Loan:
        return await self.evaluator.get_visible(Collection.LOANS, caller, loan_id)
    
    async def list_loans(
        self,
        caller: Optional[str],
        status: Optional[LoanStatus] = None,
        skip: int = 0,
        limit: int = 100
    ) -> List[Loan]:
        query = await self.evaluator.scoped(select(Loan), Collection.LOANS, caller)
        if status:
            query = query.where(Loan.status == status)
        query = query.order_by(Loan.created_at.desc(), Loan.id.desc()).offset(skip).limit(limit)
        
        result = await self.db.execute(query)
        return list(result.scalars().all())
    
    async def transition(self, caller: Optional[str], loan_id: int, action: LoanAction) -> Loan:
        """Move a loan along the status graph.
        
        Authorization is checked before the status graph, so a caller who
        may not write the loan learns nothing about its state. The write is
        a compare-and-set on the status read here; if another request moved
        the loan first, nothing is written and InvalidStateTransition is
        raised.
        """
        loan = await self.evaluator.get_for_update(Collection.LOANS, caller, loan_id)
        current = loan.status
        target = ACTION_TARGETS[action]
        
        now = datetime.now(timezone.utc)
        changes = {"status": target}
        if action in (LoanAction.APPROVE, LoanAction.REJECT):
            changes["approval_date"] = now
        elif action == LoanAction.DISBURSE:
            changes["disbursement_date"] = now
            changes["due_date"] = now + timedelta(days=BILLING_CYCLE_DAYS * loan.term_months)
        
        await self.evaluator.enforce_update(Collection.LOANS, caller, loan, changes)
        
        if not can_transition(current, target):
            raise InvalidStateTransition(
                f"Cannot {action.value} a loan that is {current.value}"
            )
        
        result = await self.db.execute(
            update(Loan)
            .where(Loan.id == loan_id, Loan.status == current)
            .values(**changes)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            await self.db.rollback()
            logger.warning(f"Loan {loan_id} changed concurrently; {action.value} not applied")
            raise InvalidStateTransition(
                f"Loan {loan_id} is no longer {current.value}"
            )
        
        activity = ActivityService(self.db, self.evaluator)
        await activity.record(
            caller,
            user_id=loan.user_id,
            activity_type=f"loan_{action.value}",
            description=f"Loan #{loan_id} {_PAST_TENSE[action]}",
            amount=loan.amount,
            details={"loan_id": loan_id, "from": current.value, "to": target.value},
        )
        
        await self.db.commit()
        await self.db.refresh(loan)
        logger.info(f"Loan {loan_id}: {current.value} -> {target.value} by {caller}")
        return loan
