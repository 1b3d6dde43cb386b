"""Group schemas for request/response validation."""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from app.schemas.messages import MessageContent, MessageType


class GroupCreate(BaseModel):
    """
    Create a group.

    Range checks on ``name`` and ``max_members`` are enforced by the
    membership engine so that the rejection reasons match its messages.
    """

    name: str = Field(..., max_length=100)
    description: str = Field("", max_length=500)
    member_ids: list[str] = Field(default_factory=list)
    max_members: int = 10


class GroupUpdate(BaseModel):
    """Overwrite group metadata. Only provided fields are written."""

    name: str | None = Field(None, max_length=100)
    description: str | None = Field(None, max_length=500)
    avatar_url: str | None = Field(None, max_length=2048)


class MemberAdd(BaseModel):
    """Add ``user_id`` to a group."""

    user_id: str = Field(..., min_length=1)


class GroupResponse(BaseModel):
    """A group with its member and admin uids."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    name: str
    description: str = ""
    avatar_url: str | None = None
    created_by: str
    members: list[str]
    admins: list[str]
    max_members: int
    created_at: datetime
    updated_at: datetime


class GroupMessageCreate(MessageContent):
    """Send a message to a group."""


class GroupMessageResponse(BaseModel):
    """A stored group message with its readers."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    group_id: UUID
    sender_id: str
    content: str
    type: MessageType
    image_id: UUID | None = None
    timestamp: datetime
    read_by: list[str]


class GroupCreatedResponse(BaseModel):
    """Created group id."""

    success: bool = True
    group_id: str


class SuccessResponse(BaseModel):
    """Plain acknowledgement."""

    success: bool = True
