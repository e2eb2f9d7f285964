"""
Admin status resolution.

``AdminStatusResolver`` is the one read of profile data that does not go
through ``PolicyEvaluator``. The evaluator asks it for the admin bit on every
decision, so this module must never import or call the evaluator: a
policy-gated read here would re-enter the policy check that asked for it.
"""
import logging
from typing import Dict, Optional

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from ecredit.modules.profiles.models import Profile

logger = logging.getLogger(__name__)


class AdminStatusResolver:
    """Per-request admin lookup.

    One instance lives for one request. Answers are memoised on the
    instance and discarded with it, so a demotion is seen by the next
    request. Any store error is treated as "not an admin".
    """
    
    def __init__(self, db: AsyncSession):
        self.db = db
        self._cache: Dict[str, bool] = {}
    
    async def is_admin(self, identity: Optional[str]) -> bool:
        if not identity:
            return False
        
        if identity in self._cache:
            return self._cache[identity]
        
        try:
            result = await self.db.execute(
                select(Profile.is_admin).where(Profile.id == identity)
            )
            flag = result.scalar_one_or_none()
        except SQLAlchemyError as e:
            logger.error(f"Admin status lookup failed for {identity}, denying admin: {e}")
            # The failed statement leaves the transaction unusable on PostgreSQL
            await self.db.rollback()
            return False
        
        # Missing row and NULL flag both mean "not an admin"
        is_admin = bool(flag)
        self._cache[identity] = is_admin
        return is_admin
    
    def invalidate(self, identity: Optional[str] = None) -> None:
        """Forget a memoised answer after the caller changed a profile's flag"""
        if identity is None:
            self._cache.clear()
        else:
            self._cache.pop(identity, None)
