"""Tests for direct and group conversation lists."""

from datetime import UTC, datetime, timedelta
from uuid import UUID, uuid4

import pytest
from httpx import AsyncClient
from sqlalchemy import insert, text
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.groups import group_messages
from app.models.messages import messages
from app.services.conversation_service import (
    EMPTY_GROUP_CONTENT,
    SYSTEM_SENDER,
    UNKNOWN_SENDER,
    Built,
    ConversationService,
    Skipped,
    collect,
)
from app.services.group_service import GroupService
from app.services.membership_service import GroupMembershipService
from app.services.message_service import MessageService
from app.services.user_service import UserService


async def add_direct(
    db: AsyncSession,
    sender: str,
    receiver: str,
    content: str,
    at: datetime,
    read: bool = False,
) -> None:
    await db.execute(
        insert(messages).values(
            id=uuid4(),
            sender_id=sender,
            receiver_id=receiver,
            content=content,
            type="text",
            timestamp=at,
            read=read,
        )
    )
    await db.commit()


async def add_group_message(
    db: AsyncSession, group_id: UUID, sender: str, content: str, at: datetime
) -> None:
    await db.execute(
        insert(group_messages).values(
            id=uuid4(),
            group_id=group_id,
            sender_id=sender,
            content=content,
            type="text",
            timestamp=at,
        )
    )
    await db.commit()


# ============================================================================
# Skip policy
# ============================================================================


def test_collect_drops_skipped_and_sorts_descending() -> None:
    """Skipped entries are dropped; the rest are ranked newest first."""
    now = datetime(2026, 1, 1, 12, 0)
    results = [
        Built("older", now - timedelta(hours=2)),
        Skipped("ghost", "profile_not_found"),
        Built("newest", now),
        Skipped("broken", "error: boom"),
        Built("middle", now - timedelta(hours=1)),
    ]

    assert collect(results, "direct", "uid-alice") == ["newest", "middle", "older"]


def test_collect_empty() -> None:
    assert collect([], "group", "uid-alice") == []


# ============================================================================
# Direct conversations
# ============================================================================


@pytest.mark.asyncio
async def test_three_messages_two_unread(db_session: AsyncSession, alice, bob) -> None:
    """A-B with three messages, the last two from B unread by A."""
    base = datetime.now(UTC) - timedelta(minutes=10)
    await add_direct(db_session, alice, bob, "hi bob", base)
    await add_direct(db_session, bob, alice, "hi alice", base + timedelta(minutes=1))
    await add_direct(db_session, bob, alice, "you there?", base + timedelta(minutes=2))

    conversations = await ConversationService(db_session).list_direct_conversations(alice)

    assert len(conversations) == 1
    conversation = conversations[0]
    assert conversation.user_id == bob
    assert conversation.username == "bob"
    assert conversation.unread_count == 2
    assert conversation.last_message.content == "you there?"
    assert conversation.last_message.is_from_self is False

    # Bob has read everything alice sent him except "hi bob"
    (for_bob,) = await ConversationService(db_session).list_direct_conversations(bob)
    assert for_bob.user_id == alice
    assert for_bob.unread_count == 1
    assert for_bob.last_message.is_from_self is True


@pytest.mark.asyncio
async def test_one_entry_per_counterpart_sorted(
    db_session: AsyncSession, alice, bob, carol
) -> None:
    """Counterparts from both directions, most recent first."""
    base = datetime.now(UTC) - timedelta(hours=1)
    await add_direct(db_session, alice, bob, "one", base)
    await add_direct(db_session, bob, alice, "two", base + timedelta(minutes=1))
    await add_direct(db_session, carol, alice, "three", base + timedelta(minutes=2))
    await add_direct(db_session, alice, bob, "four", base + timedelta(minutes=3))

    conversations = await ConversationService(db_session).list_direct_conversations(alice)

    assert [c.user_id for c in conversations] == [bob, carol]
    assert conversations[0].last_message.content == "four"
    assert conversations[1].last_message.content == "three"


@pytest.mark.asyncio
async def test_unresolved_counterpart_is_skipped(db_session: AsyncSession, alice, bob) -> None:
    """A counterpart without a profile is left out, the rest still shows."""
    now = datetime.now(UTC)
    await add_direct(db_session, alice, bob, "hello", now - timedelta(minutes=2))
    await add_direct(db_session, "uid-deleted", alice, "ghost", now - timedelta(minutes=1))

    conversations = await ConversationService(db_session).list_direct_conversations(alice)

    assert [c.user_id for c in conversations] == [bob]


@pytest.mark.asyncio
async def test_failing_lookup_is_skipped(
    db_session: AsyncSession, alice, bob, carol, monkeypatch
) -> None:
    """An exception while building one entry only drops that entry."""
    now = datetime.now(UTC)
    await add_direct(db_session, bob, alice, "from bob", now - timedelta(minutes=2))
    await add_direct(db_session, carol, alice, "from carol", now - timedelta(minutes=1))

    original = UserService.get_user_by_uid

    async def flaky_lookup(self, uid, use_cache=True):
        if uid == carol:
            raise RuntimeError("lookup failed")
        return await original(self, uid, use_cache)

    monkeypatch.setattr(UserService, "get_user_by_uid", flaky_lookup)

    conversations = await ConversationService(db_session).list_direct_conversations(alice)

    assert [c.user_id for c in conversations] == [bob]


@pytest.mark.asyncio
async def test_failed_statement_only_drops_its_entry(
    db_session: AsyncSession, alice, bob, carol, monkeypatch
) -> None:
    """A store error in one entry is rolled back without breaking the later entries."""
    now = datetime.now(UTC)
    await add_direct(db_session, bob, alice, "from bob", now - timedelta(minutes=2))
    await add_direct(db_session, carol, alice, "from carol", now - timedelta(minutes=1))

    original = UserService.get_user_by_uid
    attempted: list[str] = []

    async def broken_first_lookup(self, uid, use_cache=True):
        attempted.append(uid)
        if len(attempted) == 1:
            await self.db.execute(text("SELECT * FROM missing_table"))
        return await original(self, uid, use_cache)

    monkeypatch.setattr(UserService, "get_user_by_uid", broken_first_lookup)

    conversations = await ConversationService(db_session).list_direct_conversations(alice)

    assert len(attempted) == 2
    assert [c.user_id for c in conversations] == attempted[1:]


@pytest.mark.asyncio
async def test_mark_read_clears_unread_count(db_session: AsyncSession, alice, bob) -> None:
    """Unread count drops to zero after marking read, and stays there."""
    now = datetime.now(UTC)
    await add_direct(db_session, bob, alice, "one", now - timedelta(minutes=2))
    await add_direct(db_session, bob, alice, "two", now - timedelta(minutes=1))

    service = MessageService(db_session)
    assert await service.mark_messages_as_read(bob, alice) == 2
    assert await service.mark_messages_as_read(bob, alice) == 0

    (conversation,) = await ConversationService(db_session).list_direct_conversations(alice)
    assert conversation.unread_count == 0


@pytest.mark.asyncio
async def test_no_messages_no_conversations(db_session: AsyncSession, alice) -> None:
    assert await ConversationService(db_session).list_direct_conversations(alice) == []


# ============================================================================
# Group conversations
# ============================================================================


@pytest.mark.asyncio
async def test_group_unread_window(db_session: AsyncSession, alice, bob) -> None:
    """A message from 25 hours ago no longer counts as unread; one from 23 does."""
    engine = GroupMembershipService(db_session)
    group_id = UUID((await engine.create_group("Window", alice, [bob])).id)

    now = datetime.now(UTC)
    await add_group_message(db_session, group_id, bob, "old news", now - timedelta(hours=25))
    await add_group_message(db_session, group_id, bob, "recent", now - timedelta(hours=23))

    (conversation,) = await ConversationService(db_session).list_group_conversations(alice)

    assert conversation.group_id == group_id
    assert conversation.unread_count == 1
    assert conversation.last_message.content == "recent"
    assert conversation.last_message.sender_display_name == "Bob"
    assert conversation.member_count == 2
    assert conversation.viewer_is_admin is True

    (for_bob,) = await ConversationService(db_session).list_group_conversations(bob)
    assert for_bob.viewer_is_admin is False


@pytest.mark.asyncio
async def test_group_read_receipts_reduce_unread(db_session: AsyncSession, alice, bob) -> None:
    """Own messages and read messages are not unread."""
    engine = GroupMembershipService(db_session)
    group_id = UUID((await engine.create_group("Chat", alice, [bob])).id)
    await engine.send_group_message(group_id, bob, "first")
    await engine.send_group_message(group_id, bob, "second")
    await engine.send_group_message(group_id, alice, "mine")

    service = ConversationService(db_session)
    (conversation,) = await service.list_group_conversations(alice)
    assert conversation.unread_count == 2

    await GroupService(db_session).mark_group_as_read(group_id, alice)
    (conversation,) = await service.list_group_conversations(alice)
    assert conversation.unread_count == 0


@pytest.mark.asyncio
async def test_empty_group_placeholder(db_session: AsyncSession, alice, bob) -> None:
    """Groups without messages show a system placeholder at creation time."""
    engine = GroupMembershipService(db_session)
    active_id = UUID((await engine.create_group("Active", alice, [bob])).id)
    await add_group_message(
        db_session, active_id, bob, "hello", datetime.now(UTC) - timedelta(hours=2)
    )
    quiet_id = UUID((await engine.create_group("Quiet", bob, [alice])).id)

    conversations = await ConversationService(db_session).list_group_conversations(alice)

    assert [c.group_id for c in conversations] == [quiet_id, active_id]
    placeholder = conversations[0].last_message
    assert placeholder.content == EMPTY_GROUP_CONTENT
    assert placeholder.sender_display_name == SYSTEM_SENDER
    assert placeholder.type == "text"
    assert conversations[0].unread_count == 0
    assert conversations[0].viewer_is_admin is False


@pytest.mark.asyncio
async def test_unknown_group_sender(db_session: AsyncSession, alice, bob) -> None:
    """A sender without a profile is shown as an unknown user."""
    engine = GroupMembershipService(db_session)
    group_id = UUID((await engine.create_group("Ghosts", alice, [bob])).id)
    await add_group_message(db_session, group_id, "uid-deleted", "boo", datetime.now(UTC))

    (conversation,) = await ConversationService(db_session).list_group_conversations(alice)
    assert conversation.last_message.sender_display_name == UNKNOWN_SENDER


@pytest.mark.asyncio
async def test_group_list_failure_degrades_to_empty(
    db_session: AsyncSession, alice, bob, monkeypatch
) -> None:
    """When the group list itself cannot be read the result is empty."""
    await GroupMembershipService(db_session).create_group("Club", alice, [bob])

    async def broken(self, uid):
        raise RuntimeError("store unreachable")

    monkeypatch.setattr(GroupService, "get_user_groups", broken)

    assert await ConversationService(db_session).list_group_conversations(alice) == []


# ============================================================================
# Endpoints
# ============================================================================


@pytest.mark.asyncio
async def test_conversation_endpoints(
    client: AsyncClient, db_session: AsyncSession, alice, bob, auth_headers
) -> None:
    await add_direct(db_session, bob, alice, "ping", datetime.now(UTC))
    await GroupMembershipService(db_session).create_group("Club", alice, [bob])

    response = await client.get("/api/v1/conversations", headers=auth_headers)
    assert response.status_code == 200
    data = response.json()
    assert len(data) == 1
    assert data[0]["user_id"] == bob
    assert data[0]["unread_count"] == 1
    assert data[0]["last_message"]["is_from_self"] is False

    response = await client.get("/api/v1/conversations/groups", headers=auth_headers)
    assert response.status_code == 200
    data = response.json()
    assert len(data) == 1
    assert data[0]["group_name"] == "Club"
    assert data[0]["last_message"]["content"] == EMPTY_GROUP_CONTENT


@pytest.mark.asyncio
async def test_conversations_require_auth(client: AsyncClient) -> None:
    response = await client.get("/api/v1/conversations")
    assert response.status_code in (401, 403)
