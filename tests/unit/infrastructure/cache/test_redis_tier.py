import json
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from redis.exceptions import ConnectionError as RedisConnectionError

from steadfast.infrastructure.cache.redis_tier import KEY_NAMESPACE, RedisCacheTier, escape_glob
from steadfast.infrastructure.connections import redis_connection
from steadfast.infrastructure.connections.redis_connection import connect_redis


async def test_set_stores_json_with_native_expiry(mock_redis_client):
    """Values are JSON under the cache namespace with a Redis EX expiry."""
    tier = RedisCacheTier(mock_redis_client)
    await tier.set("faceit_player:x", {"elo": 1800}, ttl=600)

    mock_redis_client.set.assert_awaited_once_with(
        f"{KEY_NAMESPACE}faceit_player:x", json.dumps({"elo": 1800}), ex=600
    )


async def test_sub_second_ttl_is_rounded_up_to_one(mock_redis_client):
    """EX must be a positive whole number of seconds."""
    tier = RedisCacheTier(mock_redis_client)
    await tier.set("k", 1, ttl=0.2)
    assert mock_redis_client.set.await_args.kwargs["ex"] == 1


async def test_get_decodes_and_misses_return_none(mock_redis_client):
    """Stored JSON is decoded; unknown keys return None."""
    tier = RedisCacheTier(mock_redis_client)
    await tier.set("k", [1, "two"], ttl=10)

    assert await tier.get("k") == [1, "two"]
    assert await tier.get("missing") is None


async def test_delete_and_delete_prefix(mock_redis_client):
    """Single and prefix deletes remove the namespaced keys."""
    tier = RedisCacheTier(mock_redis_client)
    for key in ("faceit_player:a", "faceit_player:b", "twitch_stream:c"):
        await tier.set(key, 1, ttl=10)

    await tier.delete("twitch_stream:c")
    assert await tier.delete_prefix("faceit_player:") == 2
    assert mock_redis_client.data == {}


async def test_delete_prefix_treats_glob_characters_literally(mock_redis_client):
    """A prefix containing *, ? or [ only matches keys that start with it verbatim."""
    tier = RedisCacheTier(mock_redis_client)
    for key in ("odd*:1", "odd-other:2", "q?:3", "qx:4", "br[a]:5", "bra:6"):
        await tier.set(key, 1, ttl=10)

    assert await tier.delete_prefix("odd*") == 1
    assert await tier.delete_prefix("q?") == 1
    assert await tier.delete_prefix("br[a]") == 1

    mock_redis_client.scan_iter.assert_called_with(match="cache:br\\[a\\]*")
    assert sorted(mock_redis_client.data) == ["cache:bra:6", "cache:odd-other:2", "cache:qx:4"]


@pytest.mark.parametrize("text, expected", [
    ("faceit_player:", "faceit_player:"),
    ("a*b", "a\\*b"),
    ("a?b", "a\\?b"),
    ("[x]", "\\[x\\]"),
    ("back\\slash", "back\\\\slash"),
])
def test_escape_glob(text, expected):
    """Every MATCH metacharacter is backslash-escaped."""
    assert escape_glob(text) == expected


async def test_close_closes_client(mock_redis_client):
    """Closing the tier closes its Redis client."""
    await RedisCacheTier(mock_redis_client).close()
    mock_redis_client.aclose.assert_awaited_once()


async def test_connect_returns_none_when_redis_unreachable():
    """An unreachable server yields no tier."""
    with patch("steadfast.infrastructure.cache.redis_tier.connect_redis", AsyncMock(return_value=None)):
        assert await RedisCacheTier.connect("redis://nowhere:6379") is None


async def test_connect_wraps_client(mock_redis_client):
    """A reachable server yields a tier around the connected client."""
    with patch("steadfast.infrastructure.cache.redis_tier.connect_redis", AsyncMock(return_value=mock_redis_client)):
        tier = await RedisCacheTier.connect("redis://localhost:6379")
    assert tier.client is mock_redis_client
    assert tier.name == "redis"


async def test_connect_redis_closes_client_after_failed_ping(mocker):
    """A failed PING closes the client and returns None."""
    client = MagicMock()
    client.ping = AsyncMock(side_effect=RedisConnectionError("refused"))
    client.aclose = AsyncMock()
    create = mocker.patch.object(redis_connection, "create_redis_client", return_value=client)

    assert await connect_redis("redis://user:secret@db:6379/0", retries=2) is None
    create.assert_called_once_with("redis://user:secret@db:6379/0", retries=2)
    client.aclose.assert_awaited_once()


async def test_connect_redis_returns_client_after_ping(mocker, mock_redis_client):
    """A successful PING returns the client."""
    mocker.patch.object(redis_connection, "create_redis_client", return_value=mock_redis_client)
    assert await connect_redis("redis://localhost:6379") is mock_redis_client
    mock_redis_client.ping.assert_awaited_once()


async def test_connect_redis_rejects_malformed_url():
    """A URL without a redis scheme is reported as unavailable."""
    assert await connect_redis("not-a-redis-url") is None


def test_create_redis_client_connection_settings():
    """Clients decode responses and carry socket timeouts."""
    client = redis_connection.create_redis_client("redis://localhost:6379/0", retries=3)
    kwargs = client.connection_pool.connection_kwargs
    assert kwargs["decode_responses"] is True
    assert kwargs["socket_timeout"] == redis_connection.SOCKET_TIMEOUT


@pytest.mark.parametrize("url, expected", [
    ("redis://localhost:6379", "redis://localhost:6379"),
    ("redis://user:pw@host:6379/0", "redis://***@host:6379/0"),
])
def test_redact_hides_credentials(url, expected):
    """Credentials never appear in logged URLs."""
    assert redis_connection._redact(url) == expected
