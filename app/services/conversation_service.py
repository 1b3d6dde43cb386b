"""Conversation aggregator.

Builds, for one user, the ranked direct and group conversation lists shown in
a conversation sidebar. Everything here is read-only and recomputed on every
call; nothing is cached or persisted.

Each conversation is computed independently and yields either a view or a
``Skipped`` marker. Skipped entries are logged and left out of the result, so
one broken counterpart or group never hides the rest of the list. Each entry
runs in its own savepoint, so a failed statement only rolls back that entry.
If the list cannot be built at all the result is empty.

Unread counts are deliberately asymmetric: direct messages count every unread
message, group messages only count those from the last
``GROUP_UNREAD_WINDOW_HOURS`` (24 by default), so group badges expire.
"""

from collections.abc import Iterable
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from typing import Generic, TypeVar
from uuid import UUID

import structlog
from sqlalchemy import and_, exists, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import settings
from app.core.redis_client import CacheManager
from app.models.groups import group_message_reads, group_messages
from app.models.messages import messages
from app.schemas.conversations import (
    DirectConversation,
    DirectLastMessage,
    GroupConversation,
    GroupLastMessage,
)
from app.schemas.messages import MessageType
from app.services.group_service import GroupService
from app.services.message_service import between
from app.services.user_service import UserService

logger = structlog.get_logger(__name__)

T = TypeVar("T")

EMPTY_GROUP_CONTENT = "No messages yet"
SYSTEM_SENDER = "System"
UNKNOWN_SENDER = "Unknown User"


@dataclass(frozen=True)
class Skipped:
    """A conversation that could not be built."""

    key: str
    reason: str


@dataclass(frozen=True)
class Built(Generic[T]):
    """A conversation view with its ranking timestamp."""

    value: T
    sort_key: datetime


def collect(results: Iterable[Built[T] | Skipped], kind: str, uid: str) -> list[T]:
    """Drop and log skipped entries, then rank the rest newest first."""
    built: list[Built[T]] = []
    for result in results:
        if isinstance(result, Skipped):
            logger.info(
                "conversation_skipped", kind=kind, uid=uid, key=result.key, reason=result.reason
            )
            continue
        built.append(result)

    built.sort(key=lambda item: item.sort_key, reverse=True)
    return [item.value for item in built]


def _naive_utc(value: datetime) -> datetime:
    """Comparable form of a stored timestamp (some drivers drop the offset)."""
    if value.tzinfo is None:
        return value
    return value.astimezone(UTC).replace(tzinfo=None)


class ConversationService:
    """Read-only conversation lists for one user."""

    def __init__(self, db: AsyncSession, cache_manager: CacheManager | None = None):
        """Initialize service with a session and the profile cache."""
        self.db = db
        self.users = UserService(db, cache_manager)
        self.groups = GroupService(db)

    # Direct conversations

    async def _counterpart_ids(self, uid: str) -> list[str]:
        """Distinct uids ``uid`` has sent to or received from."""
        sent_to = await self.db.execute(
            select(messages.c.receiver_id)
            .where(messages.c.sender_id == uid)
            .group_by(messages.c.receiver_id)
        )
        received_from = await self.db.execute(
            select(messages.c.sender_id)
            .where(messages.c.receiver_id == uid)
            .group_by(messages.c.sender_id)
        )
        ids = [row[0] for row in sent_to] + [row[0] for row in received_from]
        return list(dict.fromkeys(ids))

    async def _direct_conversation(
        self, uid: str, other_id: str
    ) -> Built[DirectConversation] | Skipped:
        try:
            async with self.db.begin_nested():
                profile = await self.users.get_user_by_uid(other_id)
                if not profile:
                    return Skipped(other_id, "profile_not_found")

                latest = await self.db.execute(
                    select(messages)
                    .where(between(uid, other_id))
                    .order_by(messages.c.timestamp.desc())
                    .limit(1)
                )
                last = latest.mappings().first()
                if not last:
                    return Skipped(other_id, "no_messages")

                unread = await self.db.execute(
                    select(func.count())
                    .select_from(messages)
                    .where(
                        and_(
                            messages.c.sender_id == other_id,
                            messages.c.receiver_id == uid,
                            messages.c.read.is_(False),
                        )
                    )
                )

                conversation = DirectConversation(
                    user_id=other_id,
                    username=profile["username"],
                    display_name=profile["display_name"],
                    photo_url=profile.get("photo_url"),
                    last_message=DirectLastMessage(
                        content=last["content"],
                        timestamp=last["timestamp"],
                        is_from_self=last["sender_id"] == uid,
                        type=MessageType(last["type"]),
                    ),
                    unread_count=unread.scalar() or 0,
                )
                return Built(conversation, _naive_utc(last["timestamp"]))
        except Exception as e:
            return Skipped(other_id, f"error: {e}")

    async def list_direct_conversations(self, uid: str) -> list[DirectConversation]:
        """One entry per counterpart, most recent last message first."""
        try:
            counterpart_ids = await self._counterpart_ids(uid)
            results = [await self._direct_conversation(uid, other) for other in counterpart_ids]
        except Exception as e:
            logger.error("direct_conversations_failed", uid=uid, error=str(e))
            return []

        return collect(results, "direct", uid)

    # Group conversations

    async def _sender_display_name(self, sender_id: str) -> str:
        sender = await self.users.get_user_by_uid(sender_id)
        if not sender:
            return UNKNOWN_SENDER
        return sender.get("display_name") or sender.get("username") or UNKNOWN_SENDER

    async def _group_conversation(
        self, uid: str, group: dict, cutoff: datetime
    ) -> Built[GroupConversation] | Skipped:
        group_id: UUID = group["id"]
        try:
            async with self.db.begin_nested():
                latest = await self.db.execute(
                    select(group_messages)
                    .where(group_messages.c.group_id == group_id)
                    .order_by(group_messages.c.timestamp.desc())
                    .limit(1)
                )
                last = latest.mappings().first()

                read_by_viewer = exists().where(
                    and_(
                        group_message_reads.c.message_id == group_messages.c.id,
                        group_message_reads.c.user_id == uid,
                    )
                )
                unread = await self.db.execute(
                    select(func.count())
                    .select_from(group_messages)
                    .where(
                        and_(
                            group_messages.c.group_id == group_id,
                            group_messages.c.timestamp > cutoff,
                            ~read_by_viewer,
                        )
                    )
                )

                if last is None:
                    # Empty groups still surface, ranked by creation time
                    last_message = GroupLastMessage(
                        content=EMPTY_GROUP_CONTENT,
                        timestamp=group["created_at"],
                        sender_display_name=SYSTEM_SENDER,
                        type=MessageType.TEXT,
                    )
                else:
                    last_message = GroupLastMessage(
                        content=last["content"],
                        timestamp=last["timestamp"],
                        sender_display_name=await self._sender_display_name(last["sender_id"]),
                        type=MessageType(last["type"]),
                    )

                conversation = GroupConversation(
                    group_id=group_id,
                    group_name=group["name"],
                    group_avatar=group.get("avatar_url"),
                    member_count=len(group["members"]),
                    last_message=last_message,
                    unread_count=unread.scalar() or 0,
                    viewer_is_admin=uid in group["admins"],
                )
                return Built(conversation, _naive_utc(last_message.timestamp))
        except Exception as e:
            return Skipped(str(group_id), f"error: {e}")

    async def list_group_conversations(self, uid: str) -> list[GroupConversation]:
        """One entry per group the user belongs to, most recent activity first."""
        cutoff = datetime.now(UTC) - timedelta(hours=settings.group_unread_window_hours)
        try:
            user_groups = await self.groups.get_user_groups(uid)
            results = [await self._group_conversation(uid, group, cutoff) for group in user_groups]
        except Exception as e:
            logger.error("group_conversations_failed", uid=uid, error=str(e))
            return []

        return collect(results, "group", uid)
