"""
Share Registry

Repository interface for share metadata, the authoritative source of
validity, plus the consumption rule shared by every implementation.
"""

from abc import ABC, abstractmethod
from contextlib import AbstractContextManager
from datetime import datetime
from typing import List

from quickshare.domain.errors import ShareGoneError

from .entities import ConsumeResult, Share
from .value_objects import ShareState


def consume_download(share: Share, now: datetime) -> ConsumeResult:
    """
    Apply one download to a share, in place.

    Must be called inside the share's critical section. Every check uses the
    same `now`, so a request racing `expires_at` sees either a fully valid or
    a fully expired share. Callers persist the share whether or not this
    raises: a Gone decision may have moved it to EXPIRED.

    Args:
        share: Registry-owned share to mutate
        now: Single decision point for this request

    Returns:
        ConsumeResult with a snapshot of the share after the decrement

    Raises:
        ShareGoneError: If the share is expired, exhausted or being deleted
    """
    if share.state != ShareState.ACTIVE:
        raise ShareGoneError(f"Share is {share.state.value}")

    if share.is_time_expired(now):
        share.state = ShareState.EXPIRED
        raise ShareGoneError("Share has expired")

    if share.is_exhausted():
        share.state = ShareState.EXPIRED
        raise ShareGoneError("Share has no downloads remaining")

    last_download = False
    if share.downloads_remaining is not None:
        share.downloads_remaining -= 1
        if share.downloads_remaining == 0:
            share.state = ShareState.EXPIRED
            last_download = True

    return ConsumeResult(share=share.snapshot(), last_download=last_download)


class IShareRegistry(ABC):
    """
    Concurrency-safe mapping from token to share metadata.

    All mutations of one share are serialised through its per-token critical
    section (`locked`). Operations on different tokens never wait on each
    other.
    """

    @abstractmethod
    def create(self, share: Share) -> Share:
        """
        Register a new share in state ACTIVE.

        Raises:
            ShareConflictError: If the token is already registered
        """
        pass  # pragma: no cover

    @abstractmethod
    def lookup(self, token: str) -> Share:
        """
        Return a snapshot of the share registered under a token.

        Raises:
            ShareNotFoundError: If the token is not registered
        """
        pass  # pragma: no cover

    @abstractmethod
    def exists(self, token: str) -> bool:
        """Check whether a token is registered."""
        pass  # pragma: no cover

    @abstractmethod
    def consume_one_download(self, token: str, now: datetime = None) -> ConsumeResult:
        """
        Atomically consume one download from a share.

        Raises:
            ShareNotFoundError: If the token is not registered
            ShareGoneError: If the share is expired or exhausted
            ShareTimeoutError: If the per-token lock could not be acquired
        """
        pass  # pragma: no cover

    @abstractmethod
    def mark_expired(self, token: str) -> Share:
        """
        Move a share to EXPIRED so the Reaper converges it.

        Raises:
            ShareNotFoundError: If the token is not registered
        """
        pass  # pragma: no cover

    @abstractmethod
    def remove(self, token: str) -> Share:
        """
        Remove a share entry and return it.

        Raises:
            ShareNotFoundError: If the token is not registered
        """
        pass  # pragma: no cover

    @abstractmethod
    def list_shares(self) -> List[Share]:
        """Return snapshots of all registered shares."""
        pass  # pragma: no cover

    @abstractmethod
    def count(self) -> int:
        """Return the number of registered shares."""
        pass  # pragma: no cover

    @abstractmethod
    def locked(self, token: str) -> AbstractContextManager:
        """
        Enter the per-token critical section.

        Re-entrant for the thread that holds it, so callers may wrap registry
        calls on the same token in a wider section.

        Raises:
            ShareTimeoutError: If the lock is not acquired within the timeout
        """
        pass  # pragma: no cover
