"""Image blob table using SQLAlchemy Core."""

import uuid

from sqlalchemy import (
    Column,
    DateTime,
    Integer,
    LargeBinary,
    MetaData,
    Table,
    Text,
    Uuid,
    func,
)

metadata = MetaData()

images = Table(
    "images",
    metadata,
    Column("id", Uuid, primary_key=True, default=uuid.uuid4),
    Column("filename", Text, nullable=True),
    # Recorded at upload time, not re-validated on read
    Column("content_type", Text, nullable=False),
    Column("size", Integer, nullable=False),
    Column("data", LargeBinary, nullable=False),
    Column("uploaded_by", Text, nullable=True),
    Column("created_at", DateTime(timezone=True), nullable=False, server_default=func.now()),
)
