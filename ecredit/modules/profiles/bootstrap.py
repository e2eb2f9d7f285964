"""
Operator-only admin seeding.

This is the one place that writes ``is_admin`` without going through the
policy evaluator. It is reachable from the ``ecredit.seed_admin`` command
and never from an HTTP route.
"""
import logging
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select
from decimal import Decimal
from typing import Optional

from ecredit.core.exceptions import BootstrapRefused
from ecredit.modules.profiles.models import Profile

logger = logging.getLogger(__name__)


async def seed_admin(
    db: AsyncSession,
    identity: str,
    email: Optional[str] = None,
    force: bool = False
) -> Profile:
    """Make ``identity`` an administrator.

    Refuses when some other admin already exists, unless ``force`` is set.
    Running it twice for the same identity is a no-op.
    """
    profile = await db.get(Profile, identity)
    if profile is not None and profile.is_admin:
        logger.info(f"{identity} is already an administrator")
        return profile
    
    result = await db.execute(
        select(Profile.id).where(Profile.is_admin.is_(True)).limit(1)
    )
    if result.scalar_one_or_none() is not None and not force:
        raise BootstrapRefused()
    
    if profile is None:
        profile = Profile(id=identity, email=email, is_admin=True, loan_limit=Decimal("0"))
        db.add(profile)
    else:
        profile.is_admin = True
        if email and not profile.email:
            profile.email = email
    
    await db.commit()
    await db.refresh(profile)
    logger.info(f"Administrator seeded: {identity}{' (forced)' if force else ''}")
    return profile
