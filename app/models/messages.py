"""Direct messages table model using SQLAlchemy Core."""

import uuid

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    DateTime,
    Index,
    MetaData,
    String,
    Table,
    Text,
    Uuid,
    false,
    func,
)

metadata = MetaData()

# One row per message; a "conversation" between two users is the set of rows
# where {sender_id, receiver_id} equals the pair.
messages = Table(
    "messages",
    metadata,
    Column("id", Uuid, primary_key=True, default=uuid.uuid4),
    Column("sender_id", Text, nullable=False),
    Column("receiver_id", Text, nullable=False),
    Column("content", Text, nullable=False),
    Column("type", String(10), nullable=False, server_default="text"),
    Column("image_id", Uuid, nullable=True),
    Column("timestamp", DateTime(timezone=True), nullable=False, server_default=func.now()),
    # Flips false -> true only, when the receiver opens the conversation
    Column("read", Boolean, nullable=False, server_default=false()),
    CheckConstraint("type IN ('text', 'image')", name="messages_type_check"),
    CheckConstraint(
        "(type = 'image' AND image_id IS NOT NULL) OR (type = 'text' AND image_id IS NULL)",
        name="messages_image_check",
    ),
    Index("ix_messages_pair_timestamp", "sender_id", "receiver_id", "timestamp"),
    Index("ix_messages_receiver_read", "receiver_id", "read"),
)
