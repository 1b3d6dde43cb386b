"""Direct message endpoints."""

from fastapi import APIRouter, Query, status

from app.dependencies import CurrentUserId, DatabaseSession, MessageRateLimit
from app.schemas.groups import SuccessResponse
from app.schemas.messages import (
    ClearConversationRequest,
    MarkReadRequest,
    MarkReadResponse,
    MessageCreate,
    MessageResponse,
    SendResponse,
)
from app.services.message_service import MessageService

router = APIRouter(prefix="/messages", tags=["messages"])


@router.get("", response_model=list[MessageResponse])
async def get_conversation_messages(
    uid: CurrentUserId,
    db: DatabaseSession,
    other_uid: str = Query(..., alias="with", min_length=1, description="Counterpart uid"),
):
    """All messages exchanged with another user, oldest first."""
    rows = await MessageService(db).get_messages(uid, other_uid)
    return [MessageResponse.model_validate(row) for row in rows]


@router.post(
    "",
    response_model=SendResponse,
    status_code=status.HTTP_201_CREATED,
    dependencies=[MessageRateLimit],
)
async def send_message(
    message: MessageCreate,
    uid: CurrentUserId,
    db: DatabaseSession,
):
    """Send a text or image message to another user."""
    result = await MessageService(db).send_message(
        sender_id=uid,
        receiver_id=message.receiver_id,
        content=message.content,
        message_type=message.type,
        image_id=message.image_id,
    )
    result.raise_for_error()
    return SendResponse(message_id=result.id or "")


@router.post("/read", response_model=MarkReadResponse)
async def mark_messages_read(
    request: MarkReadRequest,
    uid: CurrentUserId,
    db: DatabaseSession,
):
    """Mark every unread message ``sender_id`` sent to the caller as read."""
    updated = await MessageService(db).mark_messages_as_read(request.sender_id, uid)
    return MarkReadResponse(updated=updated)


@router.post("/clear", response_model=SuccessResponse)
async def clear_conversation(
    request: ClearConversationRequest,
    uid: CurrentUserId,
    db: DatabaseSession,
):
    """Delete the whole conversation with ``user_id``, including its images."""
    result = await MessageService(db).clear_messages(uid, request.user_id)
    result.raise_for_error()
    return SuccessResponse()
