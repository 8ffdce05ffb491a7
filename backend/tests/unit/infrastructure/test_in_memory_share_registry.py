"""
Unit tests for InMemoryShareRegistry.

Covers the registry contract and the per-token critical sections the
retrieval and reaper paths rely on.
"""

import threading
from datetime import timedelta

import pytest

from quickshare.domain.errors import (
    ShareConflictError,
    ShareGoneError,
    ShareNotFoundError,
    ShareTimeoutError,
)
from quickshare.domain.share_lifecycle import ShareState
from quickshare.infrastructure import InMemoryShareRegistry
from tests.fixtures import BASE_TIME, create_share


class TestContract:
    def test_create_and_lookup(self, registry):
        share = create_share(downloads_remaining=2, filename="a.txt")

        created = registry.create(share)

        assert created == share
        assert registry.lookup(share.token) == share
        assert registry.exists(share.token)
        assert registry.count() == 1

    def test_duplicate_token_conflicts(self, registry):
        share = create_share()
        registry.create(share)

        with pytest.raises(ShareConflictError):
            registry.create(create_share(token=share.token, storage_key="1" * 32))

        assert registry.lookup(share.token).storage_key == share.storage_key

    def test_lookup_returns_a_copy(self, registry):
        share = create_share(downloads_remaining=3)
        registry.create(share)

        registry.lookup(share.token).downloads_remaining = 0

        assert registry.lookup(share.token).downloads_remaining == 3

    def test_unknown_token(self, registry):
        with pytest.raises(ShareNotFoundError):
            registry.lookup("missing")
        with pytest.raises(ShareNotFoundError):
            registry.remove("missing")
        assert not registry.exists("missing")

    def test_consume_decrements_until_exhausted(self, registry):
        share = create_share(downloads_remaining=2)
        registry.create(share)

        first = registry.consume_one_download(share.token, BASE_TIME)
        second = registry.consume_one_download(share.token, BASE_TIME)

        assert (first.share.downloads_remaining, first.last_download) == (1, False)
        assert (second.share.downloads_remaining, second.last_download) == (0, True)
        assert registry.lookup(share.token).state == ShareState.EXPIRED
        with pytest.raises(ShareGoneError):
            registry.consume_one_download(share.token, BASE_TIME)

    def test_consume_at_expiry_instant_is_gone(self, registry):
        share = create_share(expires_at=BASE_TIME + timedelta(seconds=1))
        registry.create(share)

        registry.consume_one_download(share.token, BASE_TIME)
        with pytest.raises(ShareGoneError):
            registry.consume_one_download(share.token, BASE_TIME + timedelta(seconds=1))

        assert registry.lookup(share.token).state == ShareState.EXPIRED

    def test_mark_expired_only_moves_active_shares(self, registry):
        share = create_share()
        registry.create(share)

        assert registry.mark_expired(share.token).state == ShareState.EXPIRED
        assert registry.mark_expired(share.token).state == ShareState.EXPIRED

    def test_remove_and_list(self, registry):
        kept = create_share()
        removed = create_share()
        registry.create(kept)
        registry.create(removed)

        registry.remove(removed.token)

        assert [s.token for s in registry.list_shares()] == [kept.token]


class TestCriticalSections:
    def test_rejects_invalid_stripe_count(self):
        with pytest.raises(ValueError):
            InMemoryShareRegistry(stripes=0)

    def test_lock_is_reentrant(self, registry):
        share = create_share(downloads_remaining=1)
        registry.create(share)

        with registry.locked(share.token):
            with registry.locked(share.token):
                registry.consume_one_download(share.token, BASE_TIME)

        assert registry.lookup(share.token).downloads_remaining == 0

    def test_lock_wait_times_out(self):
        registry = InMemoryShareRegistry(stripes=1, lock_timeout=0.05)
        held = threading.Event()
        release = threading.Event()

        def holder():
            with registry.locked("a"):
                held.set()
                release.wait(5)

        thread = threading.Thread(target=holder)
        thread.start()
        held.wait(5)
        try:
            with pytest.raises(ShareTimeoutError):
                with registry.locked("b"):
                    pass
        finally:
            release.set()
            thread.join(5)

    def test_concurrent_consumers_never_overspend(self, registry):
        share = create_share(downloads_remaining=5)
        registry.create(share)
        start = threading.Barrier(20)
        granted = []
        lock = threading.Lock()

        def consume():
            start.wait()
            try:
                registry.consume_one_download(share.token, BASE_TIME)
            except ShareGoneError:
                return
            with lock:
                granted.append(True)

        threads = [threading.Thread(target=consume) for _ in range(20)]
        for t in threads:
            t.start()
        for t in threads:
            t.join(timeout=10)

        assert len(granted) == 5
        assert registry.lookup(share.token).downloads_remaining == 0
