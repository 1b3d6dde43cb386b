"""Group, membership and group message tables using SQLAlchemy Core."""

import uuid

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    MetaData,
    String,
    Table,
    Text,
    Uuid,
    false,
    func,
)

metadata = MetaData()

groups = Table(
    "groups",
    metadata,
    Column("id", Uuid, primary_key=True, default=uuid.uuid4),
    Column("name", Text, nullable=False),
    Column("description", Text, nullable=False, server_default=""),
    Column("avatar_url", Text, nullable=True),
    Column("created_by", Text, nullable=False),
    Column("max_members", Integer, nullable=False, server_default="10"),
    Column("created_at", DateTime(timezone=True), nullable=False, server_default=func.now()),
    # Bumped on membership change, metadata edit and new message
    Column("updated_at", DateTime(timezone=True), nullable=False, server_default=func.now()),
    CheckConstraint("max_members BETWEEN 2 AND 10", name="groups_max_members_check"),
    CheckConstraint("length(name) >= 3", name="groups_name_length_check"),
)

# Group.members is the set of rows for a group; Group.admins the rows with is_admin.
group_members = Table(
    "group_members",
    metadata,
    Column(
        "group_id",
        Uuid,
        ForeignKey("groups.id", ondelete="CASCADE"),
        primary_key=True,
    ),
    Column("user_id", Text, primary_key=True),
    Column("is_admin", Boolean, nullable=False, server_default=false()),
    Column("joined_at", DateTime(timezone=True), nullable=False, server_default=func.now()),
    Index("ix_group_members_user_id", "user_id"),
)

group_messages = Table(
    "group_messages",
    metadata,
    Column("id", Uuid, primary_key=True, default=uuid.uuid4),
    Column(
        "group_id",
        Uuid,
        ForeignKey("groups.id", ondelete="CASCADE"),
        nullable=False,
    ),
    Column("sender_id", Text, nullable=False),
    Column("content", Text, nullable=False),
    Column("type", String(10), nullable=False, server_default="text"),
    Column("image_id", Uuid, nullable=True),
    Column("timestamp", DateTime(timezone=True), nullable=False, server_default=func.now()),
    CheckConstraint("type IN ('text', 'image')", name="group_messages_type_check"),
    Index("ix_group_messages_group_timestamp", "group_id", "timestamp"),
)

# GroupMessage.read_by; rows are only ever inserted
group_message_reads = Table(
    "group_message_reads",
    metadata,
    Column(
        "message_id",
        Uuid,
        ForeignKey("group_messages.id", ondelete="CASCADE"),
        primary_key=True,
    ),
    Column("user_id", Text, primary_key=True),
    Column("read_at", DateTime(timezone=True), nullable=False, server_default=func.now()),
)
