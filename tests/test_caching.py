"""Tests for the Redis profile cache and message rate limiter."""

from unittest.mock import MagicMock

import pytest
import redis
from httpx import AsyncClient

from app.core.redis_client import CacheManager, RateLimiter
from app.dependencies import get_cache_manager
from app.main import app


def dict_backed_redis() -> MagicMock:
    """MagicMock Redis whose get/set/setex/delete share one dict."""
    store: dict[str, str] = {}
    mock_redis = MagicMock()
    mock_redis.get.side_effect = store.get
    mock_redis.set.side_effect = lambda key, value: store.__setitem__(key, value)
    mock_redis.setex.side_effect = lambda key, ttl, value: store.__setitem__(key, value)
    mock_redis.delete.side_effect = lambda key: store.pop(key, None)
    mock_redis.store = store
    return mock_redis


def test_cache_manager_get_json():
    """Test CacheManager get_json method."""
    mock_redis = MagicMock()
    cache_manager = CacheManager(redis_client=mock_redis)

    # Test cache miss
    mock_redis.get.return_value = None
    assert cache_manager.get_json("user:uid-alice") is None
    mock_redis.get.assert_called_once_with("user:uid-alice")

    # Test cache hit
    mock_redis.reset_mock()
    mock_redis.get.return_value = '{"uid": "uid-alice", "username": "alice"}'
    assert cache_manager.get_json("user:uid-alice") == {"uid": "uid-alice", "username": "alice"}


def test_cache_manager_set_json():
    """Test CacheManager set_json method."""
    mock_redis = MagicMock()
    cache_manager = CacheManager(redis_client=mock_redis)

    assert cache_manager.set_json("key", {"value": 123}) is True
    mock_redis.set.assert_called_once()

    mock_redis.reset_mock()
    assert cache_manager.set_json("key", {"value": 123}, ttl=300) is True
    mock_redis.setex.assert_called_once()
    assert mock_redis.setex.call_args.args[1] == 300


def test_cache_manager_errors_are_misses():
    """Redis failures never escape the cache."""
    mock_redis = MagicMock()
    mock_redis.get.side_effect = redis.ConnectionError("down")
    mock_redis.setex.side_effect = redis.ConnectionError("down")
    mock_redis.delete.side_effect = redis.ConnectionError("down")
    cache_manager = CacheManager(redis_client=mock_redis)

    assert cache_manager.get_json("key") is None
    assert cache_manager.set_json("key", {"a": 1}, ttl=10) is False
    assert cache_manager.delete("key") is False


def test_rate_limiter_counts_within_window():
    mock_redis = MagicMock()
    pipe = mock_redis.pipeline.return_value
    limiter = RateLimiter(mock_redis)

    pipe.execute.return_value = [3, True]
    assert limiter.check_rate_limit("ratelimit:messages:uid-alice", limit=3) is True

    pipe.execute.return_value = [4, False]
    assert limiter.check_rate_limit("ratelimit:messages:uid-alice", limit=3) is False

    pipe.incr.assert_called_with("ratelimit:messages:uid-alice")
    pipe.expire.assert_called_with("ratelimit:messages:uid-alice", 60, nx=True)


def test_rate_limiter_fails_open():
    mock_redis = MagicMock()
    mock_redis.pipeline.return_value.execute.side_effect = redis.ConnectionError("down")

    assert RateLimiter(mock_redis).check_rate_limit("key", limit=1) is True


@pytest.mark.asyncio
async def test_user_cache_invalidation(client: AsyncClient, alice, auth_headers) -> None:
    """Profile reads are cached and invalidated by profile writes."""
    mock_redis = dict_backed_redis()
    app.dependency_overrides[get_cache_manager] = lambda: CacheManager(mock_redis)

    response = await client.get("/api/v1/users/me", headers=auth_headers)
    assert response.status_code == 200
    assert f"user:{alice}" in mock_redis.store

    response = await client.patch(
        "/api/v1/users/me", json={"display_name": "Updated Name"}, headers=auth_headers
    )
    assert response.status_code == 200
    assert response.json()["display_name"] == "Updated Name"

    response = await client.get("/api/v1/users/me", headers=auth_headers)
    assert response.json()["display_name"] == "Updated Name"
