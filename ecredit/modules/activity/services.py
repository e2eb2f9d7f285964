from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select
from decimal import Decimal
from typing import Optional, List, Dict, Any

from ecredit.core.exceptions import NotFound
from ecredit.modules.activity.models import ActivityRecord
from ecredit.modules.activity.schemas import ActivityCreate
from ecredit.modules.authz.policy import Collection, PolicyEvaluator
from ecredit.modules.profiles.models import Profile


class ActivityService:
    """Append-only activity log"""
    
    def __init__(self, db: AsyncSession, evaluator: PolicyEvaluator):
        self.db = db
        self.evaluator = evaluator
    
    async def record(
        self,
        caller: Optional[str],
        user_id: str,
        activity_type: str,
        description: str,
        amount: Optional[Decimal] = None,
        details: Optional[Dict[str, Any]] = None
    ) -> ActivityRecord:
        """Stage a record in the caller's transaction; the caller commits"""
        record = ActivityRecord(
            user_id=user_id,
            activity_type=activity_type,
            description=description,
            amount=amount,
            details=details
        )
        await self.evaluator.enforce_insert(Collection.ACTIVITY, caller, record)
        self.db.add(record)
        return record
    
    async def log_activity(self, caller: Optional[str], data: ActivityCreate) -> ActivityRecord:
        record = await self.record(
            caller,
            user_id=data.user_id or caller,
            activity_type=data.activity_type,
            description=data.description,
            amount=data.amount,
            details=data.details
        )
        if record.user_id != caller and await self.db.get(Profile, record.user_id) is None:
            self.db.expunge(record)
            raise NotFound("Profile not found")
        await self.db.commit()
        await self.db.refresh(record)
        return record
    
    async def list_activity(
        self,
        caller: Optional[str],
        activity_type: Optional[str] = None,
        skip: int = 0,
        limit: int = 100
    ) -> List[ActivityRecord]:
        query = await self.evaluator.scoped(select(ActivityRecord), Collection.ACTIVITY, caller)
        if activity_type:
            query = query.where(ActivityRecord.activity_type == activity_type)
        query = query.order_by(ActivityRecord.created_at.desc(), ActivityRecord.id.desc())
        query = query.offset(skip).limit(limit)
        
        result = await self.db.execute(query)
        return list(result.scalars().all())
