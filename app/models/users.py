"""User profile model definition using SQLAlchemy Core."""

from sqlalchemy import (
    JSON,
    Column,
    DateTime,
    MetaData,
    String,
    Table,
    Text,
    func,
)

metadata = MetaData()

users = Table(
    "users",
    metadata,
    # Firebase identity (SOURCE OF TRUTH, join key for every other table)
    Column("uid", Text, primary_key=True),
    # Auth-related info (mirrored from Firebase)
    Column("email", Text, nullable=False, index=True),
    # Profile info (mutable)
    Column("username", Text, nullable=False, unique=True, index=True),
    Column("display_name", Text, nullable=False),
    Column("photo_url", Text),
    Column("banner_color", String(20), nullable=False, server_default="#5865f2"),
    Column("bio", Text),
    Column("pronouns", Text),
    # [{"title": ..., "url": ...}], at most five entries
    Column("links", JSON, nullable=False, default=list),
    # Audit
    Column("created_at", DateTime(timezone=True), nullable=False, server_default=func.now()),
    Column("last_seen", DateTime(timezone=True), nullable=False, server_default=func.now()),
)
