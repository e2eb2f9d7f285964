from pydantic import BaseModel, Field
from datetime import datetime
from decimal import Decimal
from typing import Optional

from ecredit.modules.loans.models import LoanStatus


class LoanApplicationRequest(BaseModel):
    amount: Decimal
    term_months: int
    interest_rate: Optional[Decimal] = Field(None, description="Annual rate in percent")


class LoanResponse(BaseModel):
    id: int
    user_id: str
    amount: Decimal
    interest_rate: Decimal
    term_months: int
    monthly_payment: Decimal
    status: LoanStatus
    application_date: datetime
    approval_date: Optional[datetime]
    disbursement_date: Optional[datetime]
    due_date: Optional[datetime]
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True
