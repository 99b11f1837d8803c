"""
Unit tests for app/helpers/rate_limit.py
"""

from fakeredis import FakeAsyncRedis
from redis.exceptions import ConnectionError as RedisConnectionError

from app.helpers.rate_limit import allow


async def test_allows_up_to_limit(redis_client: FakeAsyncRedis):
    results = [
        await allow(redis_client, "login", "a@test.com", max_attempts=3, window_sec=60)
        for _ in range(4)
    ]
    assert results == [True, True, True, False]


async def test_keys_are_independent(redis_client: FakeAsyncRedis):
    for _ in range(3):
        await allow(redis_client, "login", "a@test.com", max_attempts=3, window_sec=60)

    assert await allow(redis_client, "login", "a@test.com", max_attempts=3, window_sec=60) is False
    assert await allow(redis_client, "login", "b@test.com", max_attempts=3, window_sec=60) is True


async def test_key_is_case_insensitive(redis_client: FakeAsyncRedis):
    await allow(redis_client, "login", "A@Test.com", max_attempts=1, window_sec=60)
    assert await allow(redis_client, "login", "a@test.com", max_attempts=1, window_sec=60) is False


async def test_window_expiry_is_set(redis_client: FakeAsyncRedis):
    await allow(redis_client, "login", "a@test.com", "127.0.0.1", max_attempts=3, window_sec=60)
    ttl = await redis_client.ttl("rl:login:a@test.com:127.0.0.1")
    assert 0 < ttl <= 60


async def test_redis_outage_fails_open():
    class BrokenRedis:
        async def incr(self, key):
            raise RedisConnectionError("connection refused")

    assert await allow(BrokenRedis(), "login", "a@test.com", max_attempts=1, window_sec=60) is True
