"""Conversation list views (derived, never persisted)."""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel

from app.schemas.messages import MessageType


class DirectLastMessage(BaseModel):
    """Latest message of a direct conversation."""

    content: str
    timestamp: datetime
    is_from_self: bool
    type: MessageType


class DirectConversation(BaseModel):
    """A direct conversation as seen by one participant."""

    user_id: str
    username: str
    display_name: str
    photo_url: str | None = None
    last_message: DirectLastMessage
    unread_count: int


class GroupLastMessage(BaseModel):
    """Latest message of a group, or the placeholder for an empty group."""

    content: str
    timestamp: datetime
    sender_display_name: str
    type: MessageType


class GroupConversation(BaseModel):
    """A group conversation as seen by one member."""

    group_id: UUID
    group_name: str
    group_avatar: str | None = None
    member_count: int
    last_message: GroupLastMessage
    unread_count: int
    viewer_is_admin: bool
