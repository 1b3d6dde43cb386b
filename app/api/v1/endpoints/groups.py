"""Group endpoints: groups, membership and group messages."""

from datetime import datetime
from uuid import UUID

from fastapi import APIRouter, Query, status

from app.dependencies import CurrentUserId, DatabaseSession, MessageRateLimit
from app.schemas.groups import (
    GroupCreate,
    GroupCreatedResponse,
    GroupMessageCreate,
    GroupMessageResponse,
    GroupResponse,
    GroupUpdate,
    MemberAdd,
    SuccessResponse,
)
from app.schemas.messages import SendResponse
from app.services.group_service import GroupService
from app.services.membership_service import GroupMembershipService

router = APIRouter(prefix="/groups", tags=["groups"])


@router.post("", response_model=GroupCreatedResponse, status_code=status.HTTP_201_CREATED)
async def create_group(
    group_data: GroupCreate,
    uid: CurrentUserId,
    db: DatabaseSession,
):
    """Create a group. The caller becomes a member and its only admin."""
    result = await GroupMembershipService(db).create_group(
        name=group_data.name,
        created_by=uid,
        member_ids=group_data.member_ids,
        description=group_data.description,
        max_members=group_data.max_members,
    )
    result.raise_for_error()
    return GroupCreatedResponse(group_id=result.id or "")


@router.get("", response_model=list[GroupResponse])
async def list_my_groups(uid: CurrentUserId, db: DatabaseSession):
    """Groups the caller belongs to, most recently active first."""
    groups = await GroupService(db).get_user_groups(uid)
    return [GroupResponse.model_validate(group) for group in groups]


@router.get("/search", response_model=list[GroupResponse])
async def search_groups(
    uid: CurrentUserId,
    db: DatabaseSession,
    q: str = Query(..., max_length=100, description="Name or description"),
):
    """Find groups the caller is not yet in."""
    groups = await GroupService(db).search_groups(q, uid)
    return [GroupResponse.model_validate(group) for group in groups]


@router.get("/{group_id}", response_model=GroupResponse)
async def get_group(group_id: UUID, uid: CurrentUserId, db: DatabaseSession):
    """Get a group with its members and admins."""
    group = await GroupService(db).get_group(group_id)
    return GroupResponse.model_validate(group)


@router.patch("/{group_id}", response_model=GroupResponse)
async def update_group(
    group_id: UUID,
    group_data: GroupUpdate,
    uid: CurrentUserId,
    db: DatabaseSession,
):
    """Admin-only: change the group's name, description or avatar."""
    result = await GroupMembershipService(db).update_group(
        group_id, group_data.model_dump(exclude_unset=True), uid
    )
    result.raise_for_error()

    group = await GroupService(db).get_group(group_id)
    return GroupResponse.model_validate(group)


@router.post("/{group_id}/members", response_model=SuccessResponse)
async def add_member(
    group_id: UUID,
    member: MemberAdd,
    uid: CurrentUserId,
    db: DatabaseSession,
):
    """Admin-only: add a user while the group has room."""
    result = await GroupMembershipService(db).add_member(group_id, member.user_id, uid)
    result.raise_for_error()
    return SuccessResponse()


@router.delete("/{group_id}/members/{user_id}", response_model=SuccessResponse)
async def remove_member(
    group_id: UUID,
    user_id: str,
    uid: CurrentUserId,
    db: DatabaseSession,
):
    """
    Remove a member.

    Admins may remove anyone; any member may remove themselves (leave). The
    last admin can never be removed.
    """
    result = await GroupMembershipService(db).remove_member(group_id, user_id, uid)
    result.raise_for_error()
    return SuccessResponse()


@router.get("/{group_id}/messages", response_model=list[GroupMessageResponse])
async def get_group_messages(
    group_id: UUID,
    uid: CurrentUserId,
    db: DatabaseSession,
    limit: int = Query(50, ge=1, le=200),
    before: datetime | None = Query(None, description="Only messages older than this"),
):
    """Newest page of group messages, oldest first. Members only."""
    rows = await GroupService(db).get_group_messages(group_id, uid, limit=limit, before=before)
    return [GroupMessageResponse.model_validate(row) for row in rows]


@router.post(
    "/{group_id}/messages",
    response_model=SendResponse,
    status_code=status.HTTP_201_CREATED,
    dependencies=[MessageRateLimit],
)
async def send_group_message(
    group_id: UUID,
    message: GroupMessageCreate,
    uid: CurrentUserId,
    db: DatabaseSession,
):
    """Post a message to a group the caller belongs to."""
    result = await GroupMembershipService(db).send_group_message(
        group_id,
        uid,
        message.content,
        message_type=message.type,
        image_id=message.image_id,
    )
    result.raise_for_error()
    return SendResponse(message_id=result.id or "")


@router.post("/{group_id}/messages/{message_id}/read", response_model=SuccessResponse)
async def mark_group_message_read(
    group_id: UUID,
    message_id: UUID,
    uid: CurrentUserId,
    db: DatabaseSession,
):
    """Record that the caller has read one message."""
    result = await GroupService(db).mark_group_message_as_read(group_id, message_id, uid)
    result.raise_for_error()
    return SuccessResponse()


@router.post("/{group_id}/read", response_model=SuccessResponse)
async def mark_group_read(group_id: UUID, uid: CurrentUserId, db: DatabaseSession):
    """Record that the caller has read every message in the group."""
    result = await GroupService(db).mark_group_as_read(group_id, uid)
    result.raise_for_error()
    return SuccessResponse()
