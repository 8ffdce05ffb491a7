"""
Integration tests for LocalBlobStore on a real filesystem.
"""

import io
import os
import socket
import time
from datetime import datetime, timedelta, timezone

import pytest

from quickshare.domain.errors import (
    BlobNotFoundError,
    PayloadTooLargeError,
    ShareTimeoutError,
    UploadAbortedError,
)
from quickshare.infrastructure import LocalBlobStore
from tests.fixtures import ChunkedStream, FailingStream


def _names(store):
    return sorted(p.name for p in store.base_path.iterdir())


class TestPut:
    def test_put_and_get_round_trip(self, blob_store):
        data = os.urandom(200_000)

        key, size = blob_store.put(io.BytesIO(data))

        assert size == len(data)
        assert _names(blob_store) == [f"{key}.blob"]
        with blob_store.get(key) as f:
            assert f.read() == data
        assert blob_store.get_size(key) == len(data)

    def test_keys_are_unique(self, blob_store):
        first, _ = blob_store.put(io.BytesIO(b"same"))
        second, _ = blob_store.put(io.BytesIO(b"same"))

        assert first != second

    def test_size_cap_removes_partial(self, blob_store):
        with pytest.raises(PayloadTooLargeError):
            blob_store.put(io.BytesIO(b"x" * 11), max_bytes=10)

        assert _names(blob_store) == []

    def test_short_body_removes_partial(self, blob_store):
        with pytest.raises(UploadAbortedError):
            blob_store.put(io.BytesIO(b"abc"), expected_size=4)

        assert _names(blob_store) == []

    def test_failing_stream_removes_partial(self, blob_store):
        with pytest.raises(UploadAbortedError):
            blob_store.put(FailingStream(b"half", UploadAbortedError("gone")))

        assert _names(blob_store) == []

    def test_stalled_stream_times_out(self, blob_store):
        class SlowStream(ChunkedStream):
            def read(self, size=-1):
                time.sleep(0.05)
                return super().read(size)

        with pytest.raises(ShareTimeoutError):
            blob_store.put(SlowStream([b"a", b"b"]), idle_timeout=0.01)

        assert _names(blob_store) == []

    def test_stalled_socket_read_is_bounded_by_socket_timeout(self, blob_store):
        client, server = socket.socketpair()
        try:
            client.sendall(b"first bytes")
            server.settimeout(0.2)
            stream = server.makefile("rb")
            started = time.monotonic()

            with pytest.raises(ShareTimeoutError):
                blob_store.put(stream, idle_timeout=0.2)

            assert time.monotonic() - started < 2
            assert _names(blob_store) == []
        finally:
            client.close()
            server.close()

    def test_creates_missing_base_directory(self, tmp_path):
        store = LocalBlobStore(str(tmp_path / "nested" / "data"))

        assert store.base_path.is_dir()


class TestReadAndDelete:
    def test_unknown_key_is_not_found(self, blob_store):
        with pytest.raises(BlobNotFoundError):
            blob_store.get("0" * 32)

    @pytest.mark.parametrize("key", ["../etc/passwd", "ABC", "", "0" * 31])
    def test_malformed_keys_never_touch_the_filesystem(self, blob_store, key):
        with pytest.raises(BlobNotFoundError):
            blob_store.get(key)
        assert blob_store.delete(key) is True
        assert not blob_store.exists(key)
        assert blob_store.get_size(key) is None

    def test_delete_is_idempotent(self, blob_store):
        key, _ = blob_store.put(io.BytesIO(b"bye"))

        assert blob_store.delete(key) is True
        assert blob_store.delete(key) is True
        assert not blob_store.exists(key)

    def test_open_handle_survives_delete(self, blob_store):
        key, _ = blob_store.put(io.BytesIO(b"still readable"))

        with blob_store.get(key) as f:
            blob_store.delete(key)
            assert f.read() == b"still readable"


class TestListing:
    def test_list_blobs_ignores_partials_and_strangers(self, blob_store):
        key, _ = blob_store.put(io.BytesIO(b"12345"))
        (blob_store.base_path / f"{'d' * 32}.part").write_bytes(b"partial")
        (blob_store.base_path / "notes.blob").write_bytes(b"not ours")

        blobs = blob_store.list_blobs()

        assert [(b.storage_key, b.size_bytes) for b in blobs] == [(key, 5)]

    def test_purge_respects_age(self, blob_store):
        old = blob_store.base_path / f"{'1' * 32}.part"
        new = blob_store.base_path / f"{'2' * 32}.part"
        old.write_bytes(b"old")
        new.write_bytes(b"new")
        stale = time.time() - 3600
        os.utime(old, (stale, stale))

        removed = blob_store.purge_partial_uploads(
            older_than=datetime.now(timezone.utc) - timedelta(minutes=5)
        )

        assert removed == 1
        assert not old.exists()
        assert new.exists()
        assert blob_store.purge_partial_uploads() == 1
