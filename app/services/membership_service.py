"""Group membership engine.

Owns every write to ``groups`` and ``group_members`` plus the send path for
group messages. Each mutation re-reads the group inside its transaction
before validating and checks the actor against the freshly read admin set;
nothing about a caller's rights is carried across calls.

Invariants:
    * the creator is a member and the first admin;
    * admins are always members (admin is a flag on the membership row);
    * a group never loses its last admin;
    * ``len(members) <= max_members``.
"""

from datetime import UTC, datetime
from typing import Any
from uuid import UUID

import structlog
from sqlalchemy import and_, delete, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import settings
from app.core.exceptions import (
    BadRequestException,
    ConflictException,
    ForbiddenException,
    NotFoundException,
)
from app.core.results import OperationResult, returns_result
from app.models.groups import group_members, group_message_reads, group_messages, groups
from app.models.users import users
from app.schemas.messages import MessageType
from app.services.group_service import GroupService
from app.services.message_service import validate_message_payload

logger = structlog.get_logger(__name__)

MIN_NAME_LENGTH = 3
MIN_GROUP_SIZE = 2
MAX_GROUP_SIZE = 10


def _validate_name(name: str) -> str:
    name = name.strip()
    if len(name) < MIN_NAME_LENGTH:
        raise BadRequestException(
            f"Group name must be at least {MIN_NAME_LENGTH} characters long"
        )
    return name


class GroupMembershipService:
    """Create groups and change their membership, admins and metadata."""

    def __init__(self, db: AsyncSession):
        """Initialize service with database session."""
        self.db = db
        self.groups = GroupService(db)

    async def _locked_group(self, group_id: UUID) -> dict:
        group = await self.groups.load_group(group_id, for_update=True)
        if not group:
            raise NotFoundException("Group not found")
        return group

    async def _missing_users(self, uids: list[str]) -> list[str]:
        result = await self.db.execute(select(users.c.uid).where(users.c.uid.in_(uids)))
        found = {row.uid for row in result}
        return [uid for uid in uids if uid not in found]

    async def _touch(self, group_id: UUID, now: datetime) -> None:
        await self.db.execute(
            update(groups).where(groups.c.id == group_id).values(updated_at=now)
        )

    @returns_result
    async def create_group(
        self,
        name: str,
        created_by: str,
        member_ids: list[str],
        description: str = "",
        max_members: int | None = None,
    ) -> OperationResult:
        """
        Create a group with ``created_by`` as its only admin.

        The creator is added to the members when absent from ``member_ids``;
        the capacity check counts the creator.
        """
        name = _validate_name(name)

        if max_members is None:
            max_members = settings.default_group_max_members
        if not MIN_GROUP_SIZE <= max_members <= MAX_GROUP_SIZE:
            raise BadRequestException(
                f"Group size must be between {MIN_GROUP_SIZE} and {MAX_GROUP_SIZE} members"
            )

        members = list(dict.fromkeys(uid.strip() for uid in member_ids if uid.strip()))
        if created_by not in members:
            members.append(created_by)

        if len(members) > max_members:
            raise BadRequestException(f"Group cannot have more than {max_members} members")

        missing = await self._missing_users(members)
        if missing:
            raise NotFoundException(f"User not found: {', '.join(missing)}")

        now = datetime.now(UTC)
        result = await self.db.execute(
            groups.insert()
            .values(
                name=name,
                description=(description or "").strip(),
                created_by=created_by,
                max_members=max_members,
                created_at=now,
                updated_at=now,
            )
            .returning(groups.c.id)
        )
        group_id = result.scalar_one()

        await self.db.execute(
            group_members.insert(),
            [
                {
                    "group_id": group_id,
                    "user_id": uid,
                    "is_admin": uid == created_by,
                    "joined_at": now,
                }
                for uid in members
            ],
        )
        await self.db.commit()

        logger.info(
            "group_created",
            group_id=str(group_id),
            created_by=created_by,
            member_count=len(members),
            max_members=max_members,
        )
        return OperationResult.ok(group_id)

    @returns_result
    async def add_member(self, group_id: UUID, user_id: str, added_by: str) -> OperationResult:
        """Admin-only: add ``user_id`` while the group has room."""
        group = await self._locked_group(group_id)

        if added_by not in group["admins"]:
            raise ForbiddenException("Only admins can add members")

        if user_id in group["members"]:
            raise ConflictException("User is already a member")

        if len(group["members"]) >= group["max_members"]:
            raise ConflictException("Group is at maximum capacity")

        if await self._missing_users([user_id]):
            raise NotFoundException("User not found")

        now = datetime.now(UTC)
        try:
            await self.db.execute(
                group_members.insert().values(
                    group_id=group_id, user_id=user_id, is_admin=False, joined_at=now
                )
            )
        except IntegrityError:
            raise ConflictException("User is already a member")

        await self._touch(group_id, now)
        await self.db.commit()

        logger.info(
            "group_member_added", group_id=str(group_id), user_id=user_id, added_by=added_by
        )
        return OperationResult.ok(group_id)

    @returns_result
    async def remove_member(
        self, group_id: UUID, user_id: str, removed_by: str
    ) -> OperationResult:
        """
        Kick (admin removing someone else) or leave (``removed_by == user_id``).

        Either way the last admin can never be removed.
        """
        group = await self._locked_group(group_id)

        leaving = removed_by == user_id
        if not leaving and removed_by not in group["admins"]:
            raise ForbiddenException("Only admins can remove members")

        if user_id not in group["members"]:
            raise NotFoundException("User is not a member of this group")

        if user_id in group["admins"] and len(group["admins"]) == 1:
            raise BadRequestException("Cannot remove the last admin")

        # Dropping the row drops the admin right with it
        await self.db.execute(
            delete(group_members).where(
                and_(group_members.c.group_id == group_id, group_members.c.user_id == user_id)
            )
        )
        await self._touch(group_id, datetime.now(UTC))
        await self.db.commit()

        logger.info(
            "group_member_left" if leaving else "group_member_removed",
            group_id=str(group_id),
            user_id=user_id,
            removed_by=removed_by,
        )
        return OperationResult.ok(group_id)

    @returns_result
    async def update_group(
        self, group_id: UUID, updates: dict[str, Any], updated_by: str
    ) -> OperationResult:
        """Admin-only: overwrite the provided name, description and avatar."""
        values = {
            key: value
            for key, value in updates.items()
            if key in ("name", "description", "avatar_url") and value is not None
        }
        if not values:
            raise BadRequestException("No valid updates provided")

        if "name" in values:
            values["name"] = _validate_name(values["name"])

        group = await self._locked_group(group_id)
        if updated_by not in group["admins"]:
            raise ForbiddenException("Only admins can update group info")

        values["updated_at"] = datetime.now(UTC)
        await self.db.execute(update(groups).where(groups.c.id == group_id).values(**values))
        await self.db.commit()

        logger.info(
            "group_updated",
            group_id=str(group_id),
            updated_by=updated_by,
            fields=sorted(k for k in values if k != "updated_at"),
        )
        return OperationResult.ok(group_id)

    @returns_result
    async def send_group_message(
        self,
        group_id: UUID,
        sender_id: str,
        content: str,
        message_type: MessageType = MessageType.TEXT,
        image_id: UUID | None = None,
    ) -> OperationResult:
        """Post a message; membership is checked on every send."""
        message_type = validate_message_payload(content, message_type, image_id)

        group = await self.groups.load_group(group_id)
        if not group:
            raise NotFoundException("Group not found")
        if sender_id not in group["members"]:
            raise ForbiddenException("You are not a member of this group")

        now = datetime.now(UTC)
        result = await self.db.execute(
            group_messages.insert()
            .values(
                group_id=group_id,
                sender_id=sender_id,
                content=content,
                type=message_type.value,
                image_id=image_id,
                timestamp=now,
            )
            .returning(group_messages.c.id)
        )
        message_id = result.scalar_one()

        # The sender has read their own message
        await self.db.execute(
            group_message_reads.insert().values(
                message_id=message_id, user_id=sender_id, read_at=now
            )
        )
        await self._touch(group_id, now)
        await self.db.commit()

        logger.info(
            "group_message_sent",
            group_id=str(group_id),
            message_id=str(message_id),
            sender_id=sender_id,
            type=message_type.value,
        )
        return OperationResult.ok(message_id)
