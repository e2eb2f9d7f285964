import logging
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, func
from decimal import Decimal
from typing import Optional

from ecredit.core.exceptions import NotAuthorized
from ecredit.modules.admin.schemas import DashboardStats
from ecredit.modules.authz.policy import Collection, PolicyEvaluator
from ecredit.modules.loans.models import Loan, LoanStatus
from ecredit.modules.profiles.models import Profile

logger = logging.getLogger(__name__)

# Statuses whose interest counts as earned revenue
REVENUE_STATUSES = (LoanStatus.ACTIVE, LoanStatus.COMPLETED)


class AdminService:
    """Service for admin operations"""
    
    def __init__(self, db: AsyncSession, evaluator: PolicyEvaluator):
        self.db = db
        self.evaluator = evaluator
    
    async def get_dashboard_stats(self, caller: Optional[str]) -> DashboardStats:
        """Portfolio totals across all users.
        
        Restricted to admins; the queries still go through the read filter.
        """
        if not await self.evaluator.resolver.is_admin(caller):
            logger.warning(f"Dashboard stats denied for {caller or 'anonymous'}")
            raise NotAuthorized()
        
        loans = await self.evaluator.scoped(select(Loan), Collection.LOANS, caller)
        loans = loans.subquery()
        profiles = await self.evaluator.scoped(select(Profile.id), Collection.PROFILES, caller)
        
        # Users
        total_users = await self.db.execute(
            select(func.count()).select_from(profiles.subquery())
        )
        
        # Loans
        totals = await self.db.execute(
            select(func.count(loans.c.id), func.sum(loans.c.amount))
        )
        total_loans, total_loan_amount = totals.one()
        
        pending_loans = await self.db.execute(
            select(func.count(loans.c.id)).where(loans.c.status == LoanStatus.PENDING)
        )
        approved_loans = await self.db.execute(
            select(func.count(loans.c.id)).where(loans.c.status == LoanStatus.APPROVED)
        )
        revenue = await self.db.execute(
            select(
                func.sum(loans.c.monthly_payment * loans.c.term_months - loans.c.amount)
            ).where(loans.c.status.in_(REVENUE_STATUSES))
        )
        
        return DashboardStats(
            total_users=total_users.scalar() or 0,
            total_loans=total_loans or 0,
            pending_loans=pending_loans.scalar() or 0,
            approved_loans=approved_loans.scalar() or 0,
            total_loan_amount=Decimal(total_loan_amount or 0),
            total_revenue=Decimal(revenue.scalar() or 0)
        )
