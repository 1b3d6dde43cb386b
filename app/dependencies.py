"""FastAPI dependencies."""

from typing import Annotated

import structlog
from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import settings
from app.core.exceptions import RateLimitException
from app.core.redis_client import CacheManager, RateLimiter, get_redis_client
from app.core.security import decode_access_token
from app.database import get_db
from app.services.user_service import UserService

logger = structlog.get_logger(__name__)

# Security
security = HTTPBearer()


async def get_current_user_id(
    credentials: Annotated[HTTPAuthorizationCredentials, Depends(security)],
) -> str:
    """
    Extract and validate the caller's uid from the JWT access token.

    Args:
        credentials: Bearer token credentials

    Returns:
        Firebase uid carried in ``sub``

    Raises:
        HTTPException: If token is invalid or expired
    """
    payload = decode_access_token(credentials.credentials)

    uid = payload.get("sub") if payload else None
    if not uid or not isinstance(uid, str):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Could not validate credentials",
            headers={"WWW-Authenticate": "Bearer"},
        )

    return uid


def get_cache_manager() -> CacheManager | None:
    """Profile cache, or None when Redis cannot be configured."""
    try:
        return CacheManager(get_redis_client())
    except Exception as e:
        logger.warning("cache_unavailable", error=str(e))
        return None


def get_rate_limiter() -> RateLimiter | None:
    """Message send rate limiter, or None when Redis cannot be configured."""
    try:
        return RateLimiter(get_redis_client())
    except Exception as e:
        logger.warning("rate_limiter_unavailable", error=str(e))
        return None


async def get_current_user(
    uid: Annotated[str, Depends(get_current_user_id)],
    db: Annotated[AsyncSession, Depends(get_db)],
    cache_manager: Annotated[CacheManager | None, Depends(get_cache_manager)],
) -> dict:
    """
    Resolve the caller's profile.

    Raises:
        HTTPException: If the uid has no profile (signup not completed)
    """
    user = await UserService(db, cache_manager).get_user_by_uid(uid)

    if not user:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="User not found",
            headers={"WWW-Authenticate": "Bearer"},
        )

    return user


async def enforce_message_rate_limit(
    uid: Annotated[str, Depends(get_current_user_id)],
    rate_limiter: Annotated[RateLimiter | None, Depends(get_rate_limiter)],
) -> None:
    """Limit message sends per user per minute."""
    if rate_limiter is None:
        return

    if not rate_limiter.check_rate_limit(
        f"ratelimit:messages:{uid}", settings.rate_limit_per_minute
    ):
        logger.info("message_rate_limited", uid=uid)
        raise RateLimitException("Too many messages, slow down")


# Type aliases for dependency injection
DatabaseSession = Annotated[AsyncSession, Depends(get_db)]
CurrentUserId = Annotated[str, Depends(get_current_user_id)]
CurrentUser = Annotated[dict, Depends(get_current_user)]
CacheManagerDep = Annotated[CacheManager | None, Depends(get_cache_manager)]
MessageRateLimit = Depends(enforce_message_rate_limit)
