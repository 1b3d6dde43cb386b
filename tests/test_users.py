"""Tests for the profile store and user endpoints."""

import pytest
from httpx import AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession

from app.schemas.users import IdentityInfo, UserUpdate
from app.services.user_service import UserService

# ============================================================================
# Profile store
# ============================================================================


@pytest.mark.asyncio
async def test_create_user_defaults(db_session: AsyncSession) -> None:
    """A new profile takes the identity's name and photo and the default banner."""
    service = UserService(db_session)
    identity = IdentityInfo(
        uid="uid-dana", email="dana@example.com", photo_url="https://example.com/d.png"
    )

    result = await service.create_user(identity, "dana")
    assert result.success is True
    assert result.id == "uid-dana"

    user = await service.get_user_by_uid("uid-dana")
    assert user["username"] == "dana"
    assert user["display_name"] == "dana"
    assert user["photo_url"] == "https://example.com/d.png"
    assert user["banner_color"] == "#5865f2"
    assert user["links"] == []


@pytest.mark.asyncio
async def test_create_user_is_idempotent(db_session: AsyncSession) -> None:
    """Signing up twice keeps the first profile."""
    service = UserService(db_session)
    identity = IdentityInfo(uid="uid-dana", email="dana@example.com", display_name="Dana")

    assert (await service.create_user(identity, "dana")).success is True
    assert (await service.create_user(identity, "someone-else")).success is True

    user = await service.get_user_by_uid("uid-dana")
    assert user["username"] == "dana"
    assert user["display_name"] == "Dana"


@pytest.mark.asyncio
async def test_create_user_username_taken(db_session: AsyncSession, alice) -> None:
    result = await UserService(db_session).create_user(IdentityInfo(uid="uid-eve"), "alice")
    assert result.success is False
    assert result.error == "Username already exists"
    assert result.status_code == 409


@pytest.mark.asyncio
async def test_update_profile(db_session: AsyncSession, alice, bob) -> None:
    """Username uniqueness and the link limit are checked on every write."""
    service = UserService(db_session)

    clash = await service.update_profile(alice, UserUpdate(username="bob"))
    assert clash.error == "Username already exists"

    links = [{"title": f"site {i}", "url": f"https://example.com/{i}"} for i in range(6)]
    too_many = await service.update_profile(alice, UserUpdate(links=links))
    assert too_many.error == "Maximum 5 links allowed"

    missing = await service.update_profile("uid-nobody", UserUpdate(bio="hi"))
    assert missing.error == "User not found"
    assert missing.status_code == 404

    ok = await service.update_profile(
        alice,
        UserUpdate(username="alice2", bio="Hello", links=links[:5], pronouns="she/her"),
    )
    assert ok.success is True

    user = await service.get_user_by_uid(alice)
    assert user["username"] == "alice2"
    assert user["bio"] == "Hello"
    assert len(user["links"]) == 5

    # Keeping your own username is not a clash
    same = await service.update_profile(alice, UserUpdate(username="alice2"))
    assert same.success is True


@pytest.mark.asyncio
async def test_get_users_by_uids(db_session: AsyncSession, alice, bob, carol) -> None:
    """Bulk lookup keeps the request order and omits unknown uids."""
    users = await UserService(db_session).get_users_by_uids([carol, "uid-nobody", alice, carol])
    assert [u["uid"] for u in users] == [carol, alice]


@pytest.mark.asyncio
async def test_search_users(db_session: AsyncSession, create_user, alice) -> None:
    """Matches username, display name or email, never the caller."""
    await create_user("uid-alina", "alina", "Alina")
    await create_user("uid-zed", "zed", "Zed Alvarez")
    await create_user("uid-quiet", "quiet", "Quiet", email="al@example.org")
    await create_user("uid-other", "other", "Other", email="other@example.org")

    found = await UserService(db_session).search_users("AL", alice)
    assert {u["uid"] for u in found} == {"uid-alina", "uid-zed", "uid-quiet"}


@pytest.mark.asyncio
async def test_search_users_escapes_wildcards(db_session: AsyncSession, create_user, alice) -> None:
    await create_user("uid-pct", "100%real", "Percent")
    await create_user("uid-plain", "100real", "Plain")

    found = await UserService(db_session).search_users("0%r", alice)
    assert [u["uid"] for u in found] == ["uid-pct"]


@pytest.mark.asyncio
async def test_search_users_limit(db_session: AsyncSession, create_user, alice) -> None:
    for i in range(12):
        await create_user(f"uid-member-{i:02d}", f"member{i:02d}")

    found = await UserService(db_session).search_users("member", alice)
    assert len(found) == 10


# ============================================================================
# User endpoints
# ============================================================================


@pytest.mark.asyncio
async def test_get_me(client: AsyncClient, alice, auth_headers) -> None:
    response = await client.get("/api/v1/users/me", headers=auth_headers)
    assert response.status_code == 200
    data = response.json()
    assert data["uid"] == alice
    assert data["username"] == "alice"
    assert data["links"] == []


@pytest.mark.asyncio
async def test_get_me_without_profile(client: AsyncClient, auth_headers_for) -> None:
    """A valid token for a uid without a profile is not enough."""
    response = await client.get("/api/v1/users/me", headers=auth_headers_for("uid-unknown"))
    assert response.status_code == 401


@pytest.mark.asyncio
async def test_patch_me(client: AsyncClient, alice, bob, auth_headers) -> None:
    response = await client.patch(
        "/api/v1/users/me",
        json={"display_name": "Alice L.", "banner_color": "#112233"},
        headers=auth_headers,
    )
    assert response.status_code == 200
    assert response.json()["display_name"] == "Alice L."
    assert response.json()["banner_color"] == "#112233"

    response = await client.patch(
        "/api/v1/users/me", json={"username": "bob"}, headers=auth_headers
    )
    assert response.status_code == 409

    response = await client.patch(
        "/api/v1/users/me", json={"banner_color": "blue"}, headers=auth_headers
    )
    assert response.status_code == 422


@pytest.mark.asyncio
async def test_search_bulk_and_profile_endpoints(
    client: AsyncClient, alice, bob, carol, auth_headers
) -> None:
    response = await client.get("/api/v1/users/search", params={"q": "b"}, headers=auth_headers)
    assert response.status_code == 200
    assert [u["uid"] for u in response.json()] == [bob]

    response = await client.get(
        "/api/v1/users/bulk", params={"uids": f"{carol},{bob},missing"}, headers=auth_headers
    )
    assert response.status_code == 200
    assert [u["uid"] for u in response.json()] == [carol, bob]

    response = await client.get(f"/api/v1/users/{bob}", headers=auth_headers)
    assert response.status_code == 200
    assert response.json()["username"] == "bob"

    response = await client.get("/api/v1/users/uid-missing", headers=auth_headers)
    assert response.status_code == 404
