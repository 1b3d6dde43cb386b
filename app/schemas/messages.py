"""Direct message schemas."""

from datetime import datetime
from enum import Enum
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, model_validator


class MessageType(str, Enum):
    """Message payload type."""

    TEXT = "text"
    IMAGE = "image"


class MessageContent(BaseModel):
    """Content fields shared by direct and group messages."""

    content: str = Field(..., max_length=4000)
    type: MessageType = MessageType.TEXT
    image_id: UUID | None = None

    @model_validator(mode="after")
    def validate_payload(self) -> "MessageContent":
        """Content is required; an image id is present iff the type is image."""
        if not self.content.strip():
            raise ValueError("Message content cannot be empty")
        if self.type == MessageType.IMAGE and self.image_id is None:
            raise ValueError("Image messages require an image_id")
        if self.type == MessageType.TEXT and self.image_id is not None:
            raise ValueError("Text messages cannot carry an image_id")
        return self


class MessageCreate(MessageContent):
    """Send a direct message to ``receiver_id``."""

    receiver_id: str = Field(..., min_length=1)


class MessageResponse(BaseModel):
    """A stored direct message."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    sender_id: str
    receiver_id: str
    content: str
    type: MessageType
    image_id: UUID | None = None
    timestamp: datetime
    read: bool


class MarkReadRequest(BaseModel):
    """Mark every unread message from ``sender_id`` to the caller as read."""

    sender_id: str = Field(..., min_length=1)


class MarkReadResponse(BaseModel):
    """Mark-read outcome."""

    success: bool = True
    updated: int


class ClearConversationRequest(BaseModel):
    """Delete the whole conversation between the caller and ``user_id``."""

    user_id: str = Field(..., min_length=1)


class SendResponse(BaseModel):
    """Created message id."""

    success: bool = True
    message_id: str
