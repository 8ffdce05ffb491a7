"""
Redis Share Registry Implementation

Persistent IShareRegistry shared across processes. Share metadata survives
restarts, which lets the Celery reaper and several web workers operate on
the same registry.
"""

import functools
import threading
from contextlib import contextmanager
from datetime import datetime
from typing import Dict, Iterator, List, Optional

from redis.exceptions import LockError, RedisError

from quickshare.domain.errors import (
    InternalStorageError,
    ShareConflictError,
    ShareNotFoundError,
    ShareTimeoutError,
)
from quickshare.domain.share_lifecycle.entities import ConsumeResult, Share, utc_now
from quickshare.domain.share_lifecycle.registry import IShareRegistry, consume_download
from quickshare.domain.share_lifecycle.value_objects import ShareState

from .redis_repository import RedisRepository


def _storage_errors(method):
    """Report Redis failures as InternalStorageError."""

    @functools.wraps(method)
    def wrapper(self, *args, **kwargs):
        try:
            return method(self, *args, **kwargs)
        except RedisError as e:
            raise InternalStorageError(f"Redis {method.__name__} failed: {e}", e) from e

    return wrapper


class RedisShareRegistry(IShareRegistry):
    """
    Redis-based implementation of IShareRegistry.

    Each share is one JSON document under ``share:<token>``. The per-token
    critical section is a Redis distributed lock ``lock:share:<token>``,
    made re-entrant per thread so registry calls can nest inside a caller's
    wider section.
    """

    share_prefix = "share"

    def __init__(
        self,
        redis_repository: RedisRepository,
        lock_timeout: Optional[float] = 5,
        lock_ttl: int = 30,
    ):
        """
        Initialize with Redis repository.

        Args:
            redis_repository: RedisRepository instance from infrastructure layer
            lock_timeout: Longest wait for a per-token lock
            lock_ttl: Auto-release time of a held lock, in seconds
        """
        self.redis_repo = redis_repository
        self.lock_timeout = lock_timeout
        self.lock_ttl = lock_ttl
        self._local = threading.local()

    def _key(self, token: str) -> str:
        return f"{self.share_prefix}:{token}"

    def _held(self) -> Dict[str, int]:
        held = getattr(self._local, "held", None)
        if held is None:
            held = self._local.held = {}
        return held

    @contextmanager
    def locked(self, token: str) -> Iterator[None]:
        held = self._held()
        if token in held:
            held[token] += 1
            try:
                yield
            finally:
                held[token] -= 1
            return

        try:
            lock = self.redis_repo.lock(
                self._key(token), ttl=self.lock_ttl, wait=self.lock_timeout
            )
        except LockError as e:
            raise ShareTimeoutError(f"Timed out waiting for share {token[:8]}", e) from e
        except RedisError as e:
            raise InternalStorageError(f"Redis lock on share {token[:8]} failed: {e}", e) from e

        held[token] = 1
        try:
            yield
        finally:
            del held[token]
            try:
                self.redis_repo.unlock(lock)
            except RedisError as e:
                raise InternalStorageError(f"Redis unlock of share {token[:8]} failed: {e}", e) from e

    def _load(self, token: str) -> Share:
        data = self.redis_repo.read_document(self._key(token))
        if data is None:
            raise ShareNotFoundError(f"Share not found: {token[:8]}")
        return Share.from_dict(data)

    def _store(self, share: Share) -> None:
        self.redis_repo.write_document(self._key(share.token), share.to_dict())

    @_storage_errors
    def create(self, share: Share) -> Share:
        stored = share.snapshot()
        stored.state = ShareState.ACTIVE
        with self.locked(share.token):
            if not self.redis_repo.write_document(
                self._key(share.token), stored.to_dict(), create_only=True
            ):
                raise ShareConflictError(f"Token already registered: {share.token[:8]}")
        return stored

    @_storage_errors
    def lookup(self, token: str) -> Share:
        return self._load(token)

    @_storage_errors
    def exists(self, token: str) -> bool:
        return self.redis_repo.exists(self._key(token))

    @_storage_errors
    def consume_one_download(self, token: str, now: datetime = None) -> ConsumeResult:
        with self.locked(token):
            now = now or utc_now()
            share = self._load(token)
            try:
                return consume_download(share, now)
            finally:
                self._store(share)

    @_storage_errors
    def mark_expired(self, token: str) -> Share:
        with self.locked(token):
            share = self._load(token)
            if share.state == ShareState.ACTIVE:
                share.state = ShareState.EXPIRED
                self._store(share)
            return share

    @_storage_errors
    def remove(self, token: str) -> Share:
        with self.locked(token):
            share = self._load(token)
            self.redis_repo.delete(self._key(token))
            return share

    @_storage_errors
    def list_shares(self) -> List[Share]:
        shares = []
        for key in self.redis_repo.scan_names(f"{self.share_prefix}:*"):
            data = self.redis_repo.read_document(key)
            if data is not None:
                shares.append(Share.from_dict(data))
        return shares

    @_storage_errors
    def count(self) -> int:
        return len(self.redis_repo.scan_names(f"{self.share_prefix}:*"))
