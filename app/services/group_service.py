"""Group store: group records, group messages and read receipts."""

from datetime import UTC, datetime
from uuid import UUID

import structlog
from sqlalchemy import DateTime, Text, and_, exists, literal, or_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import settings
from app.core.exceptions import BadRequestException, ForbiddenException, NotFoundException
from app.core.results import OperationResult, returns_result
from app.models.groups import group_members, group_message_reads, group_messages, groups
from app.services.helpers import as_utc, like_pattern

logger = structlog.get_logger(__name__)


class GroupService:
    """Service for reading groups and their messages."""

    def __init__(self, db: AsyncSession):
        """Initialize service with database session."""
        self.db = db

    async def _attach_members(self, group_rows: list[dict]) -> list[dict]:
        """Fill ``members`` and ``admins`` for each group from membership rows."""
        if not group_rows:
            return group_rows

        by_id = {row["id"]: row for row in group_rows}
        for row in group_rows:
            row["members"] = []
            row["admins"] = []

        result = await self.db.execute(
            select(group_members)
            .where(group_members.c.group_id.in_(list(by_id)))
            .order_by(group_members.c.joined_at, group_members.c.user_id)
        )
        for member in result.mappings().all():
            group = by_id[member["group_id"]]
            group["members"].append(member["user_id"])
            if member["is_admin"]:
                group["admins"].append(member["user_id"])

        return group_rows

    async def load_group(self, group_id: UUID, *, for_update: bool = False) -> dict | None:
        """
        Read a group and its membership.

        With ``for_update`` the group row is locked until the transaction
        ends, serializing concurrent membership changes of the same group.
        """
        stmt = select(groups).where(groups.c.id == group_id)
        if for_update:
            stmt = stmt.with_for_update()

        result = await self.db.execute(stmt)
        row = result.mappings().first()
        if not row:
            return None

        (group,) = await self._attach_members([dict(row)])
        return group

    async def get_group(self, group_id: UUID) -> dict:
        """Get a group or raise ``NotFoundException``."""
        group = await self.load_group(group_id)
        if not group:
            raise NotFoundException("Group not found")
        return group

    async def get_user_groups(self, uid: str) -> list[dict]:
        """Groups the user belongs to, most recently updated first."""
        result = await self.db.execute(
            select(groups)
            .join(group_members, group_members.c.group_id == groups.c.id)
            .where(group_members.c.user_id == uid)
            .order_by(groups.c.updated_at.desc())
        )
        return await self._attach_members([dict(row) for row in result.mappings().all()])

    async def search_groups(self, query: str, current_uid: str) -> list[dict]:
        """Match name or description among groups the caller is not in."""
        query = query.strip()
        if len(query) < 2:
            raise BadRequestException("Search query must be at least 2 characters long")

        pattern = like_pattern(query)
        is_member = exists().where(
            and_(
                group_members.c.group_id == groups.c.id,
                group_members.c.user_id == current_uid,
            )
        )
        result = await self.db.execute(
            select(groups)
            .where(
                and_(
                    ~is_member,
                    or_(
                        groups.c.name.ilike(pattern, escape="\\"),
                        groups.c.description.ilike(pattern, escape="\\"),
                    ),
                )
            )
            .order_by(groups.c.updated_at.desc())
            .limit(settings.search_result_limit)
        )
        return await self._attach_members([dict(row) for row in result.mappings().all()])

    async def _require_member(self, group_id: UUID, uid: str) -> dict:
        group = await self.load_group(group_id)
        if not group:
            raise NotFoundException("Group not found")
        if uid not in group["members"]:
            raise ForbiddenException("You are not a member of this group")
        return group

    async def get_group_messages(
        self,
        group_id: UUID,
        viewer_id: str,
        limit: int | None = None,
        before: datetime | None = None,
    ) -> list[dict]:
        """
        Page of group messages, oldest first.

        Args:
            group_id: Group to read
            viewer_id: Must be a current member
            limit: Newest N messages (defaults to the configured page size)
            before: Only messages strictly older than this instant

        Returns:
            Messages with their ``read_by`` uids
        """
        await self._require_member(group_id, viewer_id)

        conditions = [group_messages.c.group_id == group_id]
        if before is not None:
            conditions.append(group_messages.c.timestamp < as_utc(before))

        result = await self.db.execute(
            select(group_messages)
            .where(and_(*conditions))
            .order_by(group_messages.c.timestamp.desc(), group_messages.c.id.desc())
            .limit(limit or settings.group_messages_page_size)
        )
        page = [dict(row) for row in result.mappings().all()]
        page.reverse()

        if not page:
            return page

        reads = await self.db.execute(
            select(group_message_reads.c.message_id, group_message_reads.c.user_id)
            .where(group_message_reads.c.message_id.in_([m["id"] for m in page]))
            .order_by(group_message_reads.c.read_at, group_message_reads.c.user_id)
        )
        read_by: dict[UUID, list[str]] = {}
        for message_id, user_id in reads.all():
            read_by.setdefault(message_id, []).append(user_id)

        for message in page:
            message["read_by"] = read_by.get(message["id"], [])

        return page

    @returns_result
    async def mark_group_message_as_read(
        self, group_id: UUID, message_id: UUID, uid: str
    ) -> OperationResult:
        """Add ``uid`` to one message's readers. Adding twice is a no-op."""
        await self._require_member(group_id, uid)

        found = await self.db.execute(
            select(group_messages.c.id).where(
                and_(group_messages.c.id == message_id, group_messages.c.group_id == group_id)
            )
        )
        if found.first() is None:
            raise NotFoundException("Message not found")

        already_read = await self.db.execute(
            select(group_message_reads.c.message_id).where(
                and_(
                    group_message_reads.c.message_id == message_id,
                    group_message_reads.c.user_id == uid,
                )
            )
        )
        if already_read.first() is None:
            try:
                await self.db.execute(
                    group_message_reads.insert().values(
                        message_id=message_id, user_id=uid, read_at=datetime.now(UTC)
                    )
                )
                await self.db.commit()
            except IntegrityError:
                # A concurrent request recorded the same read
                await self.db.rollback()

        return OperationResult.ok(message_id)

    @returns_result
    async def mark_group_as_read(self, group_id: UUID, uid: str) -> OperationResult:
        """Add ``uid`` to the readers of every message in the group."""
        await self._require_member(group_id, uid)

        already_read = exists().where(
            and_(
                group_message_reads.c.message_id == group_messages.c.id,
                group_message_reads.c.user_id == uid,
            )
        )
        unread = select(
            group_messages.c.id,
            literal(uid, Text),
            literal(datetime.now(UTC), DateTime(timezone=True)),
        ).where(and_(group_messages.c.group_id == group_id, ~already_read))

        result = await self.db.execute(
            group_message_reads.insert().from_select(
                ["message_id", "user_id", "read_at"], unread
            )
        )
        await self.db.commit()

        logger.info(
            "group_marked_read",
            group_id=str(group_id),
            uid=uid,
            messages=result.rowcount,  # type: ignore[attr-defined]
        )
        return OperationResult.ok(group_id)

