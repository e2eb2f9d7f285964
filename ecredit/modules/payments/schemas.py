from pydantic import BaseModel, Field
from datetime import datetime
from decimal import Decimal
from typing import Optional

from ecredit.modules.payments.models import PaymentStatus


class PaymentCreate(BaseModel):
    loan_id: int
    amount: Decimal
    payment_method: Optional[str] = Field(None, max_length=50)
    payment_date: Optional[datetime] = None
    status: PaymentStatus = PaymentStatus.COMPLETED


class PaymentStatusUpdate(BaseModel):
    status: PaymentStatus


class PaymentResponse(BaseModel):
    id: int
    loan_id: int
    amount: Decimal
    payment_date: datetime
    payment_method: Optional[str]
    status: PaymentStatus
    created_at: datetime

    class Config:
        from_attributes = True
