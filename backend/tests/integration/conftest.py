"""
Fixtures for integration tests against real Redis and the filesystem.
"""

import os

import pytest
import redis

from quickshare.infrastructure.redis_repository import RedisRepository

TEST_KEY_PREFIX = "quickshare_test"


@pytest.fixture
def redis_client():
    """
    Yields a Redis client, skipping the test when no server is reachable.

    Only keys under the test prefix are removed, before and after the test.
    """
    host = os.getenv("REDIS_HOST", "localhost")
    port = int(os.getenv("REDIS_PORT", 6379))
    db = int(os.getenv("REDIS_DB", 0))

    client = redis.Redis(host=host, port=port, db=db, decode_responses=False)

    try:
        client.ping()
    except redis.ConnectionError:
        pytest.skip("Redis service not available. Skipping integration tests.")

    def clean():
        for key in client.scan_iter(match=f"{TEST_KEY_PREFIX}:*"):
            client.delete(key)

    clean()
    yield client
    clean()
    client.close()


@pytest.fixture
def redis_repository(redis_client) -> RedisRepository:
    return RedisRepository(redis_client, key_prefix=TEST_KEY_PREFIX)
