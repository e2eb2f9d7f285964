import logging
from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.ext.asyncio import AsyncSession
from typing import Optional
from redis import asyncio as aioredis
from redis.exceptions import RedisError

from ecredit.core.database import get_db, get_redis
from ecredit.core.security import decode_token
from ecredit.modules.authz.policy import PolicyEvaluator
from ecredit.modules.authz.resolver import AdminStatusResolver
from ecredit.modules.authz.schemas import Identity
from ecredit.modules.profiles.services import ProfileService

logger = logging.getLogger(__name__)

bearer_scheme = HTTPBearer(auto_error=False)


def revoked_token_key(token: str) -> str:
    return f"revoked:{token}"


async def get_identity(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    redis: aioredis.Redis = Depends(get_redis)
) -> Identity:
    """Identity from the provider-issued bearer token; anonymous when absent"""
    if credentials is None:
        return Identity()
    
    token = credentials.credentials
    payload = decode_token(token)
    user_id = payload.get("sub")
    
    if not user_id:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Could not validate credentials",
            headers={"WWW-Authenticate": "Bearer"},
        )
    
    # Check if token has been revoked (logged out)
    try:
        is_revoked = await redis.get(revoked_token_key(token))
    except RedisError as e:
        logger.error(f"Token revocation lookup failed: {e}")
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Authentication service unavailable"
        )
    if is_revoked:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Token has been revoked",
            headers={"WWW-Authenticate": "Bearer"},
        )
    
    return Identity(user_id=str(user_id), email=payload.get("email"))


async def get_current_identity(
    identity: Identity = Depends(get_identity)
) -> Identity:
    """Require an authenticated caller"""
    if identity.is_anonymous:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return identity


def get_admin_resolver(db: AsyncSession = Depends(get_db)) -> AdminStatusResolver:
    """Fresh resolver per request; admin status is never carried across requests"""
    return AdminStatusResolver(db)


def get_policy_evaluator(
    db: AsyncSession = Depends(get_db),
    resolver: AdminStatusResolver = Depends(get_admin_resolver)
) -> PolicyEvaluator:
    return PolicyEvaluator(db, resolver)


async def get_provisioned_identity(
    identity: Identity = Depends(get_current_identity),
    db: AsyncSession = Depends(get_db),
    evaluator: PolicyEvaluator = Depends(get_policy_evaluator)
) -> Identity:
    """Authenticated caller whose profile is guaranteed to exist"""
    await ProfileService(db, evaluator).ensure_profile(identity.user_id, identity.email)
    return identity
