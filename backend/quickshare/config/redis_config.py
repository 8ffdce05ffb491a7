"""
Redis Configuration

Connection settings for the Redis share registry and the Celery broker,
read from REDIS_* environment variables. REDIS_URL, when set, wins over
the individual host/port/db/password variables.
"""

import os
from typing import Optional

import redis

from quickshare.infrastructure.redis_repository import RedisConnectionManager, RedisRepository


class RedisConfig:
    """Redis connection settings."""

    def __init__(self):
        self.url = os.getenv("REDIS_URL")
        self.host = os.getenv("REDIS_HOST", "localhost")
        self.port = int(os.getenv("REDIS_PORT", 6379))
        self.db = int(os.getenv("REDIS_DB", 0))
        self.password = os.getenv("REDIS_PASSWORD") or None
        self.max_connections = int(os.getenv("REDIS_MAX_CONNECTIONS", 20))
        self.key_prefix = os.getenv("REDIS_KEY_PREFIX", "quickshare")

        if self.url:
            parsed = redis.connection.parse_url(self.url)
            self.host = parsed.get("host", self.host)
            self.port = parsed.get("port", self.port)
            self.db = parsed.get("db", self.db)
            self.password = parsed.get("password", self.password)

    def connection_url(self) -> str:
        """The settings as a redis:// URL, for clients that take one (Celery)."""
        if self.url:
            return self.url
        auth = f":{self.password}@" if self.password else ""
        return f"redis://{auth}{self.host}:{self.port}/{self.db}"


# One pool per process, created when the Redis registry is selected
_manager: Optional[RedisConnectionManager] = None


def init_redis(config: Optional[RedisConfig] = None) -> RedisConnectionManager:
    global _manager

    config = config or RedisConfig()
    _manager = RedisConnectionManager(
        host=config.host,
        port=config.port,
        db=config.db,
        password=config.password,
        max_connections=config.max_connections,
    )
    return _manager


def get_redis_client() -> redis.Redis:
    """
    Client backed by the process-wide pool.

    Raises:
        RuntimeError: If init_redis() has not run
    """
    if _manager is None:
        raise RuntimeError("Redis not initialized. Call init_redis() first.")
    return _manager.client


def get_redis_repository(key_prefix: str = "") -> RedisRepository:
    return RedisRepository(get_redis_client(), key_prefix)


def redis_health_check() -> Optional[bool]:
    """
    Ping Redis.

    Returns:
        None when this process does not use Redis, else whether PING succeeded
    """
    if _manager is None:
        return None
    return _manager.health_check()
