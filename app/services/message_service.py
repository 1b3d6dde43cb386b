"""Direct message store."""

from datetime import UTC, datetime
from uuid import UUID

import structlog
from sqlalchemy import and_, delete, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.sql.elements import ColumnElement

from app.core.exceptions import BadRequestException, NotFoundException
from app.core.results import OperationResult, returns_result
from app.models.messages import messages
from app.models.users import users
from app.schemas.messages import MessageType
from app.services.image_service import ImageService

logger = structlog.get_logger(__name__)


def between(user_a: str, user_b: str) -> ColumnElement[bool]:
    """Predicate matching every direct message exchanged by two users."""
    return or_(
        and_(messages.c.sender_id == user_a, messages.c.receiver_id == user_b),
        and_(messages.c.sender_id == user_b, messages.c.receiver_id == user_a),
    )


def validate_message_payload(
    content: str, message_type: MessageType | str, image_id: UUID | None
) -> MessageType:
    """Reject blank content, unknown types and image/type mismatches."""
    try:
        message_type = MessageType(message_type)
    except ValueError:
        raise BadRequestException(f"Unsupported message type: {message_type}") from None
    if not content or not content.strip():
        raise BadRequestException("Message content cannot be empty")
    if message_type == MessageType.IMAGE and image_id is None:
        raise BadRequestException("Image messages require an image_id")
    if message_type == MessageType.TEXT and image_id is not None:
        raise BadRequestException("Text messages cannot carry an image_id")
    return message_type


class MessageService:
    """Service for one-to-one messages."""

    def __init__(self, db: AsyncSession):
        """Initialize service with database session."""
        self.db = db

    @returns_result
    async def send_message(
        self,
        sender_id: str,
        receiver_id: str,
        content: str,
        message_type: MessageType = MessageType.TEXT,
        image_id: UUID | None = None,
    ) -> OperationResult:
        """Append a message with a server-assigned timestamp."""
        message_type = validate_message_payload(content, message_type, image_id)

        receiver = await self.db.execute(select(users.c.uid).where(users.c.uid == receiver_id))
        if receiver.first() is None:
            raise NotFoundException("User not found")

        result = await self.db.execute(
            messages.insert()
            .values(
                sender_id=sender_id,
                receiver_id=receiver_id,
                content=content,
                type=message_type.value,
                image_id=image_id,
                timestamp=datetime.now(UTC),
                read=False,
            )
            .returning(messages.c.id)
        )
        message_id = result.scalar_one()
        await self.db.commit()

        logger.info(
            "direct_message_sent",
            message_id=str(message_id),
            sender_id=sender_id,
            receiver_id=receiver_id,
            type=message_type.value,
        )
        return OperationResult.ok(message_id)

    async def get_messages(self, user_a: str, user_b: str) -> list[dict]:
        """Both directions of a conversation, oldest first."""
        result = await self.db.execute(
            select(messages)
            .where(between(user_a, user_b))
            .order_by(messages.c.timestamp.asc(), messages.c.id)
        )
        return [dict(row) for row in result.mappings().all()]

    async def mark_messages_as_read(self, sender_id: str, receiver_id: str) -> int:
        """
        Flag every unread ``sender -> receiver`` message as read.

        Idempotent: a second call updates nothing.

        Returns:
            Number of messages that changed state
        """
        result = await self.db.execute(
            update(messages)
            .where(
                and_(
                    messages.c.sender_id == sender_id,
                    messages.c.receiver_id == receiver_id,
                    messages.c.read.is_(False),
                )
            )
            .values(read=True)
        )
        await self.db.commit()
        return result.rowcount  # type: ignore[attr-defined]

    @returns_result
    async def clear_messages(self, user_a: str, user_b: str) -> OperationResult:
        """Delete every message between two users and the images they reference."""
        image_rows = await self.db.execute(
            select(messages.c.image_id).where(
                and_(
                    between(user_a, user_b),
                    messages.c.type == MessageType.IMAGE.value,
                    messages.c.image_id.is_not(None),
                )
            )
        )
        image_ids = [row.image_id for row in image_rows]

        images_deleted = await ImageService(self.db).delete_images(image_ids)

        result = await self.db.execute(delete(messages).where(between(user_a, user_b)))
        await self.db.commit()

        logger.info(
            "conversation_cleared",
            user_a=user_a,
            user_b=user_b,
            messages_deleted=result.rowcount,  # type: ignore[attr-defined]
            images_deleted=images_deleted,
        )
        return OperationResult.ok()
