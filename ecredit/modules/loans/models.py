from sqlalchemy import Column, Integer, String, ForeignKey, DateTime, Numeric, Enum as SQLEnum
from sqlalchemy.sql import func
from ecredit.core.database import Base
import enum


class LoanStatus(str, enum.Enum):
    """Loan lifecycle status"""
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    ACTIVE = "active"
    COMPLETED = "completed"


class LoanAction(str, enum.Enum):
    """Admin actions that move a loan through its lifecycle"""
    APPROVE = "approve"
    REJECT = "reject"
    DISBURSE = "disburse"
    COMPLETE = "complete"


# Allowed edges of the status graph; rejected and completed are terminal
LOAN_TRANSITIONS = {
    LoanStatus.PENDING: {LoanStatus.APPROVED, LoanStatus.REJECTED},
    LoanStatus.APPROVED: {LoanStatus.ACTIVE},
    LoanStatus.ACTIVE: {LoanStatus.COMPLETED},
    LoanStatus.REJECTED: set(),
    LoanStatus.COMPLETED: set(),
}

ACTION_TARGETS = {
    LoanAction.APPROVE: LoanStatus.APPROVED,
    LoanAction.REJECT: LoanStatus.REJECTED,
    LoanAction.DISBURSE: LoanStatus.ACTIVE,
    LoanAction.COMPLETE: LoanStatus.COMPLETED,
}


def can_transition(current: LoanStatus, target: LoanStatus) -> bool:
    return target in LOAN_TRANSITIONS.get(current, set())


class Loan(Base):
    __tablename__ = "loans"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(String(64), ForeignKey("profiles.id", ondelete="CASCADE"), nullable=False, index=True)
    amount = Column(Numeric(15, 2), nullable=False)
    interest_rate = Column(Numeric(5, 2), nullable=False)
    term_months = Column(Integer, nullable=False)
    monthly_payment = Column(Numeric(15, 2), nullable=False)
    status = Column(SQLEnum(LoanStatus), nullable=False, default=LoanStatus.PENDING, index=True)
    
    application_date = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    approval_date = Column(DateTime(timezone=True), nullable=True)
    disbursement_date = Column(DateTime(timezone=True), nullable=True)
    due_date = Column(DateTime(timezone=True), nullable=True)
    
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)
    
    def __repr__(self):
        return f"<Loan(id={self.id}, user_id={self.user_id}, status={self.status})>"
