import logging
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, or_
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from decimal import Decimal
from typing import Optional, List, Dict, Any

from ecredit.core.config import settings
from ecredit.core.exceptions import ConstraintViolation, ProvisioningError
from ecredit.core.security import mask_email
from ecredit.modules.activity.services import ActivityService
from ecredit.modules.authz.policy import Collection, PolicyEvaluator
from ecredit.modules.loans.services import fits_cents
from ecredit.modules.profiles.models import Profile
from ecredit.modules.profiles.schemas import ProfileCreate, ProfileUpdate

logger = logging.getLogger(__name__)


def validate_profile_fields(values: Dict[str, Any]) -> None:
    """Domain bounds for profile attributes; raises ConstraintViolation"""
    credit_score = values.get("credit_score")
    if credit_score is not None and not (
        settings.MIN_CREDIT_SCORE <= credit_score <= settings.MAX_CREDIT_SCORE
    ):
        raise ConstraintViolation(
            "credit_score",
            f"Credit score must be between {settings.MIN_CREDIT_SCORE} and {settings.MAX_CREDIT_SCORE}"
        )
    
    loan_limit = values.get("loan_limit")
    if loan_limit is not None and not fits_cents(loan_limit):
        raise ConstraintViolation("loan_limit", "Loan limit cannot have more than two decimal places")
    if loan_limit is not None and loan_limit < 0:
        raise ConstraintViolation("loan_limit", "Loan limit cannot be negative")

    # Non-nullable columns
    for field in ("is_admin", "loan_limit"):
        if field in values and values[field] is None:
            raise ConstraintViolation(field, f"{field} cannot be null")


class ProfileService:
    """Profiles: bootstrap, self-service and admin maintenance"""
    
    def __init__(self, db: AsyncSession, evaluator: PolicyEvaluator):
        self.db = db
        self.evaluator = evaluator
    
    async def _find_visible(self, caller: Optional[str], profile_id: str) -> Optional[Profile]:
        query = await self.evaluator.scoped(
            select(Profile).where(Profile.id == profile_id), Collection.PROFILES, caller
        )
        result = await self.db.execute(query)
        return result.scalar_one_or_none()
    
    # ============================================================
    # Bootstrap
    # ============================================================
    
    async def ensure_profile(self, identity: str, email: Optional[str] = None) -> Profile:
        """Return the caller's profile, creating it on first contact.
        
        Idempotent. New profiles are never admins. The insert is a single
        statement; a failure leaves no row behind and is reported as
        retryable.
        """
        existing = await self._find_visible(identity, identity)
        if existing:
            if email and not existing.email:
                existing.email = email
                await self.db.commit()
            return existing
        
        profile = Profile(id=identity, email=email, is_admin=False, loan_limit=Decimal("0"))
        await self.evaluator.enforce_insert(Collection.PROFILES, identity, profile)
        
        try:
            self.db.add(profile)
            await self.db.commit()
        except IntegrityError:
            # Another request provisioned the same identity first
            await self.db.rollback()
            existing = await self._find_visible(identity, identity)
            if existing:
                return existing
            raise ProvisioningError()
        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.error(f"Profile provisioning failed for {identity}: {e}")
            raise ProvisioningError() from e
        
        await self.db.refresh(profile)
        logger.info(f"Provisioned profile {identity} ({mask_email(email) if email else 'no email'})")
        return profile
    
    # ============================================================
    # CRUD
    # ============================================================
    
    async def create_profile(self, caller: Optional[str], data: ProfileCreate) -> Profile:
        """Self-registration, or an admin creating a profile for someone else"""
        values = data.model_dump(exclude_unset=True)
        profile_id = values.pop("id", None) or caller
        validate_profile_fields(values)
        
        profile = Profile(id=profile_id, **values)
        await self.evaluator.enforce_insert(Collection.PROFILES, caller, profile)
        
        if await self.db.get(Profile, profile_id) is not None:
            raise ConstraintViolation("id", "Profile already exists")
        
        if profile.is_admin is None:
            profile.is_admin = False
        if profile.loan_limit is None:
            profile.loan_limit = Decimal("0")
        
        self.db.add(profile)
        await self.db.flush()
        if profile.is_admin and profile_id != caller:
            await self._log_admin_change(caller, profile_id, True)
        await self.db.commit()
        await self.db.refresh(profile)
        return profile
    
    async def get_profile(self, caller: Optional[str], profile_id: str) -> Profile:
        return await self.evaluator.get_visible(Collection.PROFILES, caller, profile_id)
    
    async def list_profiles(
        self,
        caller: Optional[str],
        search: Optional[str] = None,
        skip: int = 0,
        limit: int = 50
    ) -> List[Profile]:
        query = await self.evaluator.scoped(select(Profile), Collection.PROFILES, caller)
        
        if search:
            search_term = f"%{search}%"
            query = query.where(
                or_(
                    Profile.full_name.ilike(search_term),
                    Profile.email.ilike(search_term)
                )
            )
        
        query = query.order_by(Profile.created_at.desc()).offset(skip).limit(limit)
        result = await self.db.execute(query)
        return list(result.scalars().all())
    
    async def update_profile(self, caller: Optional[str], profile_id: str, data: ProfileUpdate) -> Profile:
        """Apply a partial update.
        
        Only columns whose value actually changes are checked against the
        field rules, so echoing back an unchanged admin flag is harmless.
        """
        profile = await self.evaluator.get_for_update(Collection.PROFILES, caller, profile_id)
        
        requested = data.model_dump(exclude_unset=True)
        changes = {
            field: value for field, value in requested.items()
            if getattr(profile, field) != value
        }
        await self.evaluator.enforce_update(Collection.PROFILES, caller, profile, changes)
        validate_profile_fields(changes)
        
        for field, value in changes.items():
            setattr(profile, field, value)
        
        if "is_admin" in changes:
            await self._log_admin_change(caller, profile_id, changes["is_admin"])
        
        await self.db.commit()
        await self.db.refresh(profile)
        
        if "is_admin" in changes:
            self.evaluator.resolver.invalidate(profile_id)
        return profile
    
    async def _log_admin_change(self, caller: Optional[str], profile_id: str, granted: bool) -> None:
        activity = ActivityService(self.db, self.evaluator)
        await activity.record(
            caller,
            user_id=profile_id,
            activity_type="admin_grant" if granted else "admin_revoke",
            description=f"Admin access {'granted' if granted else 'revoked'} by {caller}",
        )
        logger.info(f"Admin flag for {profile_id} set to {granted} by {caller}")
