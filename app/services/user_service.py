"""Profile store: user records keyed by the external uid."""

from datetime import UTC, datetime
from typing import Any

import structlog
from sqlalchemy import and_, or_, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import settings
from app.core.exceptions import BadRequestException, ConflictException, NotFoundException
from app.core.redis_client import CacheManager
from app.core.results import OperationResult, returns_result
from app.models.users import users
from app.schemas.users import IdentityInfo, UserUpdate
from app.services.helpers import like_pattern

logger = structlog.get_logger(__name__)


class UserService:
    """Service for profile operations."""

    # Cache TTL in seconds (30 minutes for user profiles)
    USER_CACHE_TTL = 1800

    def __init__(self, db: AsyncSession, cache_manager: CacheManager | None = None):
        """Initialize service with a session and optional cache manager."""
        self.db = db
        self.cache = cache_manager

    @staticmethod
    def _get_user_cache_key(uid: str) -> str:
        """Generate cache key for user."""
        return f"user:{uid}"

    def _invalidate(self, uid: str) -> None:
        if self.cache:
            self.cache.delete(self._get_user_cache_key(uid))

    @returns_result
    async def create_user(self, identity: IdentityInfo, username: str) -> OperationResult:
        """
        Create the profile for an authenticated identity.

        Signing up again with an existing uid is a no-op success. The username
        must not belong to any other uid.
        """
        existing = await self.get_user_by_uid(identity.uid, use_cache=False)
        if existing:
            return OperationResult.ok(identity.uid)

        taken = await self.get_user_by_username(username)
        if taken and taken["uid"] != identity.uid:
            raise ConflictException("Username already exists")

        now = datetime.now(UTC)
        try:
            await self.db.execute(
                users.insert().values(
                    uid=identity.uid,
                    email=identity.email or "",
                    username=username,
                    display_name=identity.display_name or username,
                    photo_url=identity.photo_url,
                    banner_color=settings.default_banner_color,
                    links=[],
                    created_at=now,
                    last_seen=now,
                )
            )
            await self.db.commit()
        except IntegrityError:
            # Lost a race for the same username
            raise ConflictException("Username already exists")

        logger.info("user_created", uid=identity.uid, username=username)
        return OperationResult.ok(identity.uid)

    async def get_user_by_uid(self, uid: str, use_cache: bool = True) -> dict | None:
        """Get profile by uid with caching."""
        if self.cache and use_cache:
            cached_user = self.cache.get_json(self._get_user_cache_key(uid))
            if cached_user:
                return cached_user

        result = await self.db.execute(select(users).where(users.c.uid == uid))
        user = result.mappings().first()

        if not user:
            return None

        user_dict = dict(user)

        if self.cache:
            self.cache.set_json(
                self._get_user_cache_key(uid), user_dict, ttl=self.USER_CACHE_TTL
            )

        return user_dict

    async def get_user_by_username(self, username: str) -> dict | None:
        """Get profile by username."""
        result = await self.db.execute(select(users).where(users.c.username == username))
        user = result.mappings().first()
        return dict(user) if user else None

    async def get_users_by_uids(self, uids: list[str]) -> list[dict]:
        """
        Resolve many uids at once.

        Unknown uids are omitted; the result keeps the request order and
        drops duplicates.
        """
        wanted = list(dict.fromkeys(uid.strip() for uid in uids if uid.strip()))
        if not wanted:
            return []

        result = await self.db.execute(select(users).where(users.c.uid.in_(wanted)))
        found = {row["uid"]: dict(row) for row in result.mappings().all()}
        return [found[uid] for uid in wanted if uid in found]

    async def search_users(self, query: str, current_uid: str) -> list[dict]:
        """Match username, display name or email, excluding the caller."""
        pattern = like_pattern(query.strip())
        stmt = (
            select(users)
            .where(
                and_(
                    users.c.uid != current_uid,
                    or_(
                        users.c.username.ilike(pattern, escape="\\"),
                        users.c.display_name.ilike(pattern, escape="\\"),
                        users.c.email.ilike(pattern, escape="\\"),
                    ),
                )
            )
            .order_by(users.c.username)
            .limit(settings.search_result_limit)
        )
        result = await self.db.execute(stmt)
        return [dict(row) for row in result.mappings().all()]

    @returns_result
    async def update_profile(self, uid: str, user_data: UserUpdate) -> OperationResult:
        """
        Update profile fields.

        The username is re-checked against every other uid on each write.
        """
        update_data: dict[str, Any] = user_data.model_dump(exclude_unset=True, exclude_none=True)

        if "username" in update_data:
            clash = await self.db.execute(
                select(users.c.uid).where(
                    and_(users.c.username == update_data["username"], users.c.uid != uid)
                )
            )
            if clash.first():
                raise ConflictException("Username already exists")

        if "links" in update_data and len(update_data["links"]) > settings.max_profile_links:
            raise BadRequestException(f"Maximum {settings.max_profile_links} links allowed")

        update_data["last_seen"] = datetime.now(UTC)

        try:
            result = await self.db.execute(
                update(users)
                .where(users.c.uid == uid)
                .values(**update_data)
                .returning(users.c.uid)
            )
        except IntegrityError:
            raise ConflictException("Username already exists")

        if result.first() is None:
            raise NotFoundException("User not found")

        await self.db.commit()
        self._invalidate(uid)

        logger.info("user_profile_updated", uid=uid, fields=sorted(update_data))
        return OperationResult.ok(uid)

    async def update_last_seen(self, uid: str) -> None:
        """Update the user's last seen timestamp."""
        await self.db.execute(
            update(users).where(users.c.uid == uid).values(last_seen=datetime.now(UTC))
        )
        await self.db.commit()
        self._invalidate(uid)
