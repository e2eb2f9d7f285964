import logging
from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials
from redis import asyncio as aioredis
from redis.exceptions import RedisError

from ecredit.core.database import get_redis
from ecredit.core.dependencies import (
    bearer_scheme,
    get_current_identity,
    get_admin_resolver,
    revoked_token_key,
)
from ecredit.core.security import decode_token, token_ttl_seconds
from ecredit.modules.authz.resolver import AdminStatusResolver
from ecredit.modules.authz.schemas import Identity, SessionResponse

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/auth", tags=["auth"])


@router.get("/session", response_model=SessionResponse)
async def get_session(
    identity: Identity = Depends(get_current_identity),
    resolver: AdminStatusResolver = Depends(get_admin_resolver)
):
    """Who the caller is and whether they are an admin"""
    return SessionResponse(
        user_id=identity.user_id,
        email=identity.email,
        is_admin=await resolver.is_admin(identity.user_id)
    )


@router.post("/logout", status_code=status.HTTP_200_OK)
async def logout(
    identity: Identity = Depends(get_current_identity),
    credentials: HTTPAuthorizationCredentials = Depends(bearer_scheme),
    redis: aioredis.Redis = Depends(get_redis)
):
    """
    Revoke the bearer token.
    
    The token stays on the revocation list until it would have expired
    anyway; every later request with it is rejected as unauthenticated.
    """
    token = credentials.credentials
    payload = decode_token(token)
    
    try:
        await redis.setex(revoked_token_key(token), token_ttl_seconds(payload), "1")
    except RedisError as e:
        logger.error(f"Token revocation failed for {identity.user_id}: {e}")
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Authentication service unavailable"
        )
    
    logger.info(f"Session revoked for {identity.user_id}")
    return {"message": "Successfully logged out"}
