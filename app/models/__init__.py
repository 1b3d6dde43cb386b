"""Database models."""

from sqlalchemy import MetaData

from app.models.groups import group_members, group_message_reads, group_messages, groups
from app.models.groups import metadata as groups_metadata
from app.models.images import images
from app.models.images import metadata as images_metadata
from app.models.messages import messages
from app.models.messages import metadata as messages_metadata
from app.models.users import metadata as users_metadata
from app.models.users import users

# Combined metadata for schema creation and migrations
metadata = MetaData()
for _source in (users_metadata, messages_metadata, groups_metadata, images_metadata):
    for _table in _source.tables.values():
        _table.to_metadata(metadata)

__all__ = [
    "group_members",
    "group_message_reads",
    "group_messages",
    "groups",
    "images",
    "messages",
    "metadata",
    "users",
]
