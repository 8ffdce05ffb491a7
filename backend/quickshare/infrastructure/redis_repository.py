"""
Redis document and lock primitives.

Share metadata is kept as one JSON document per key. Every key a repository
touches lives under its namespace, so several deployments (or a test run)
can share one Redis database.
"""

import json
import logging
from typing import Any, Dict, List, Optional

import redis
from redis.exceptions import ConnectionError as RedisConnectionError
from redis.exceptions import LockError
from redis.lock import Lock

logger = logging.getLogger(__name__)


class RedisRepository:
    """JSON documents and named locks inside one key namespace."""

    def __init__(self, redis_client: redis.Redis, key_prefix: str = ""):
        self.redis = redis_client
        self.key_prefix = key_prefix

    def _qualify(self, name: str) -> str:
        if not self.key_prefix:
            return name
        return f"{self.key_prefix}:{name}"

    def _unqualify(self, raw) -> str:
        if isinstance(raw, bytes):
            raw = raw.decode("utf-8")
        if self.key_prefix:
            return raw[len(self.key_prefix) + 1:]
        return raw

    def write_document(
        self,
        name: str,
        document: Dict[str, Any],
        expire_seconds: Optional[int] = None,
        create_only: bool = False,
    ) -> bool:
        """
        Serialize ``document`` to JSON and store it under ``name``.

        With ``create_only`` the write is a SET NX and returns False when
        the key is already taken.
        """
        written = self.redis.set(
            self._qualify(name),
            json.dumps(document),
            ex=expire_seconds or None,
            nx=create_only,
        )
        return bool(written)

    def read_document(self, name: str) -> Optional[Dict[str, Any]]:
        raw = self.redis.get(self._qualify(name))
        if raw is None:
            return None
        return json.loads(raw)

    def delete(self, name: str) -> bool:
        return self.redis.delete(self._qualify(name)) > 0

    def exists(self, name: str) -> bool:
        return self.redis.exists(self._qualify(name)) > 0

    def scan_names(self, glob: str) -> List[str]:
        """Names (namespace stripped) matching ``glob``, via SCAN."""
        return [
            self._unqualify(raw)
            for raw in self.redis.scan_iter(match=self._qualify(glob))
        ]

    def lock(self, name: str, ttl: int, wait: Optional[float]) -> Lock:
        """
        Take the named lock, waiting at most ``wait`` seconds.

        The lock frees itself after ``ttl`` seconds if its holder dies.

        Raises:
            LockError: if the lock stayed busy for the whole wait
        """
        handle = self.redis.lock(
            self._qualify(f"lock:{name}"), timeout=ttl, blocking_timeout=wait
        )
        if not handle.acquire(blocking=True, blocking_timeout=wait):
            raise LockError(f"Lock busy: {name}")
        return handle

    def unlock(self, handle: Lock) -> None:
        try:
            handle.release()
        except LockError:
            logger.warning(f"Lock {handle.name} lapsed while held")


class RedisConnectionManager:
    """Owns the connection pool behind every Redis client of the process."""

    def __init__(
        self,
        host: str = "localhost",
        port: int = 6379,
        db: int = 0,
        password: Optional[str] = None,
        max_connections: int = 20,
    ):
        self.connection_pool = redis.ConnectionPool(
            host=host,
            port=port,
            db=db,
            password=password,
            max_connections=max_connections,
            retry_on_timeout=True,
            socket_keepalive=True,
        )
        self.client = redis.Redis(connection_pool=self.connection_pool)

    def health_check(self) -> bool:
        try:
            return bool(self.client.ping())
        except RedisConnectionError:
            return False

    def close(self) -> None:
        self.connection_pool.disconnect()
