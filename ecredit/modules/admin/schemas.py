from pydantic import BaseModel
from decimal import Decimal


class DashboardStats(BaseModel):
    """Admin dashboard statistics"""
    total_users: int
    total_loans: int
    pending_loans: int
    approved_loans: int
    total_loan_amount: Decimal
    total_revenue: Decimal
