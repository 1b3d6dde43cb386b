"""Conversation list endpoints."""

from fastapi import APIRouter

from app.dependencies import CacheManagerDep, CurrentUserId, DatabaseSession
from app.schemas.conversations import DirectConversation, GroupConversation
from app.services.conversation_service import ConversationService

router = APIRouter(prefix="/conversations", tags=["conversations"])


@router.get("", response_model=list[DirectConversation])
async def list_direct_conversations(
    uid: CurrentUserId,
    cache_manager: CacheManagerDep,
    db: DatabaseSession,
):
    """Direct conversations of the caller, most recent first."""
    return await ConversationService(db, cache_manager).list_direct_conversations(uid)


@router.get("/groups", response_model=list[GroupConversation])
async def list_group_conversations(
    uid: CurrentUserId,
    cache_manager: CacheManagerDep,
    db: DatabaseSession,
):
    """Groups of the caller with last message and unread count, most recent first."""
    return await ConversationService(db, cache_manager).list_group_conversations(uid)
