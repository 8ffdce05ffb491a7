"""
In-Memory Share Registry Implementation

Process-local IShareRegistry with per-token critical sections built from a
fixed set of striped re-entrant locks.
"""

import threading
from contextlib import contextmanager
from datetime import datetime
from typing import Dict, Iterator, List, Optional

from quickshare.domain.errors import (
    ShareConflictError,
    ShareNotFoundError,
    ShareTimeoutError,
)
from quickshare.domain.share_lifecycle.entities import ConsumeResult, Share, utc_now
from quickshare.domain.share_lifecycle.registry import IShareRegistry, consume_download
from quickshare.domain.share_lifecycle.value_objects import ShareState

DEFAULT_STRIPES = 64


class InMemoryShareRegistry(IShareRegistry):
    """
    In-memory share registry for single-process deployments and tests.

    Tokens are hashed onto one of `stripes` RLocks, so unrelated tokens
    rarely contend and never serialise behind a global lock. A separate
    short-lived lock guards the dictionary itself.
    """

    def __init__(self, stripes: int = DEFAULT_STRIPES, lock_timeout: Optional[float] = None):
        """
        Args:
            stripes: Number of per-token lock stripes
            lock_timeout: Longest wait for a per-token lock, None waits forever
        """
        if stripes <= 0:
            raise ValueError("stripes must be positive")
        self._shares: Dict[str, Share] = {}
        self._index_lock = threading.Lock()
        self._stripes = [threading.RLock() for _ in range(stripes)]
        self.lock_timeout = lock_timeout

    def _stripe(self, token: str) -> threading.RLock:
        return self._stripes[hash(token) % len(self._stripes)]

    @contextmanager
    def locked(self, token: str) -> Iterator[None]:
        lock = self._stripe(token)
        timeout = -1 if self.lock_timeout is None else self.lock_timeout
        if not lock.acquire(timeout=timeout):
            raise ShareTimeoutError(f"Timed out waiting for share {token[:8]}")
        try:
            yield
        finally:
            lock.release()

    def _get(self, token: str) -> Share:
        with self._index_lock:
            share = self._shares.get(token)
        if share is None:
            raise ShareNotFoundError(f"Share not found: {token[:8]}")
        return share

    def create(self, share: Share) -> Share:
        with self.locked(share.token):
            with self._index_lock:
                if share.token in self._shares:
                    raise ShareConflictError(f"Token already registered: {share.token[:8]}")
                stored = share.snapshot()
                stored.state = ShareState.ACTIVE
                self._shares[share.token] = stored
            return stored.snapshot()

    def lookup(self, token: str) -> Share:
        with self.locked(token):
            return self._get(token).snapshot()

    def exists(self, token: str) -> bool:
        with self._index_lock:
            return token in self._shares

    def consume_one_download(self, token: str, now: datetime = None) -> ConsumeResult:
        with self.locked(token):
            now = now or utc_now()
            return consume_download(self._get(token), now)

    def mark_expired(self, token: str) -> Share:
        with self.locked(token):
            share = self._get(token)
            if share.state == ShareState.ACTIVE:
                share.state = ShareState.EXPIRED
            return share.snapshot()

    def remove(self, token: str) -> Share:
        with self.locked(token):
            with self._index_lock:
                share = self._shares.pop(token, None)
            if share is None:
                raise ShareNotFoundError(f"Share not found: {token[:8]}")
            return share

    def list_shares(self) -> List[Share]:
        with self._index_lock:
            shares = list(self._shares.values())
        return [share.snapshot() for share in shares]

    def count(self) -> int:
        with self._index_lock:
            return len(self._shares)
