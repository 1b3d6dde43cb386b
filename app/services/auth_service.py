"""Authentication service: Firebase identities in, API tokens out."""

import structlog
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import UnauthorizedException
from app.core.firebase import verify_firebase_token
from app.core.redis_client import CacheManager
from app.core.security import (
    create_access_token,
    create_refresh_token,
    decode_refresh_token,
)
from app.schemas.auth import LoginResponse, Token
from app.schemas.users import IdentityInfo, UserResponse
from app.services.user_service import UserService

logger = structlog.get_logger(__name__)


class AuthService:
    """Authentication service for handling Firebase and JWT operations."""

    def __init__(self, db: AsyncSession, cache_manager: CacheManager | None = None):
        """Initialize auth service with a session and cache manager."""
        self.db = db
        self.users = UserService(db, cache_manager)

    async def verify_firebase_id_token(self, id_token: str) -> IdentityInfo:
        """
        Verify a Firebase ID token.

        Raises:
            UnauthorizedException: If token verification fails
        """
        try:
            return await verify_firebase_token(id_token)
        except ValueError as e:
            raise UnauthorizedException(str(e))

    async def login(self, id_token: str) -> LoginResponse:
        """
        Exchange a Firebase ID token for API tokens.

        Identities without a profile get ``needs_signup`` and no tokens.
        """
        identity = await self.verify_firebase_id_token(id_token)

        user = await self.users.get_user_by_uid(identity.uid, use_cache=False)
        if not user:
            logger.info("login_needs_signup", uid=identity.uid)
            return LoginResponse(needs_signup=True)

        await self.users.update_last_seen(identity.uid)
        return self._login_response(user)

    async def signup(self, id_token: str, username: str) -> LoginResponse:
        """
        Create the caller's profile (idempotent) and issue API tokens.

        Raises:
            UnauthorizedException: If the ID token is invalid
            AppException: If the profile cannot be created (e.g. username taken)
        """
        identity = await self.verify_firebase_id_token(id_token)

        result = await self.users.create_user(identity, username)
        result.raise_for_error()

        user = await self.users.get_user_by_uid(identity.uid, use_cache=False)
        if not user:
            raise UnauthorizedException("User not found")
        return self._login_response(user)

    def _login_response(self, user: dict) -> LoginResponse:
        tokens = self.create_tokens(user["uid"])
        return LoginResponse(
            access_token=tokens.access_token,
            refresh_token=tokens.refresh_token,
            token_type=tokens.token_type,
            user=UserResponse.model_validate(user),
        )

    @staticmethod
    def create_tokens(uid: str) -> Token:
        """Create access and refresh tokens for a uid."""
        return Token(
            access_token=create_access_token(data={"sub": uid}),
            refresh_token=create_refresh_token(data={"sub": uid}),
        )

    def refresh_access_token(self, refresh_token: str) -> Token:
        """
        Create a new token pair from a refresh token.

        Raises:
            UnauthorizedException: If refresh token is invalid
        """
        payload = decode_refresh_token(refresh_token)
        if payload is None or not payload.get("sub"):
            raise UnauthorizedException("Invalid refresh token")

        return self.create_tokens(payload["sub"])
