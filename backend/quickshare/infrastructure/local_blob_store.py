"""
Local Blob Store Implementation

Concrete implementation of IBlobStore for the local filesystem.
Uploads are written to a `.part` file and atomically renamed to `.blob`
once the whole stream was received, so readers never see a partial object.
"""

import os
import re
import socket
import time
import uuid
from datetime import datetime, timezone
from pathlib import Path
from typing import BinaryIO, List, Optional, Tuple

from quickshare.domain.errors import (
    BlobNotFoundError,
    InternalStorageError,
    PayloadTooLargeError,
    ShareTimeoutError,
    UploadAbortedError,
)
from quickshare.domain.share_lifecycle.blob_store import BlobInfo, IBlobStore

_BLOB_SUFFIX = ".blob"
_PART_SUFFIX = ".part"
_KEY_PATTERN = re.compile(r"^[0-9a-f]{32}$")
_CHUNK_SIZE = 64 * 1024


class LocalBlobStore(IBlobStore):
    """
    Local filesystem implementation of IBlobStore.

    Each blob is stored as ``<storage_key>.blob`` directly under the base
    path. Storage keys are ``uuid4().hex`` strings; anything else is treated
    as unknown, which keeps every path inside the data directory.

    Thread Safety:
        Keys are unique per write and blobs are never rewritten, so
        concurrent operations only ever race on create-vs-delete of the same
        key, which the filesystem resolves atomically.

    Attributes:
        base_path: Data directory holding the blobs
    """

    def __init__(self, base_path: str = "/data"):
        """
        Initialize the local blob store.

        Args:
            base_path: Base directory for blob storage (default: /data)
        """
        self.base_path = Path(base_path)
        self._ensure_base_directory()

    def _ensure_base_directory(self) -> None:
        """
        Ensure the base storage directory exists.

        Raises:
            PermissionError: If insufficient permissions to create directory
            OSError: If directory creation fails for other reasons
        """
        try:
            self.base_path.mkdir(parents=True, exist_ok=True)
        except PermissionError as e:
            raise PermissionError(
                f"Insufficient permissions to create storage directory: {self.base_path}"
            ) from e
        except OSError as e:
            raise OSError(
                f"Failed to create storage directory: {self.base_path}"
            ) from e

    def _blob_path(self, storage_key: str) -> Optional[Path]:
        if not isinstance(storage_key, str) or not _KEY_PATTERN.match(storage_key):
            return None
        return self.base_path / f"{storage_key}{_BLOB_SUFFIX}"

    # IBlobStore interface methods

    def put(
        self,
        stream: BinaryIO,
        max_bytes: Optional[int] = None,
        expected_size: Optional[int] = None,
        idle_timeout: Optional[float] = None,
    ) -> Tuple[str, int]:
        """
        Stream content into a new blob.

        The partial file is removed on every failure path, including
        cancellation of the calling request.

        ``idle_timeout`` is checked between reads. A single blocking read is
        bounded by the stream itself, e.g. a socket timeout, which is
        reported as ShareTimeoutError too.
        """
        storage_key = uuid.uuid4().hex
        part_path = self.base_path / f"{storage_key}{_PART_SUFFIX}"
        blob_path = self.base_path / f"{storage_key}{_BLOB_SUFFIX}"
        completed = False

        try:
            size = 0
            with open(part_path, "xb") as f:
                last_chunk_at = time.monotonic()
                while True:
                    chunk = stream.read(_CHUNK_SIZE)
                    now = time.monotonic()
                    if idle_timeout is not None and now - last_chunk_at > idle_timeout:
                        raise ShareTimeoutError(
                            f"Upload stalled for more than {idle_timeout} seconds"
                        )
                    last_chunk_at = now
                    if not chunk:
                        break
                    size += len(chunk)
                    if max_bytes is not None and size > max_bytes:
                        raise PayloadTooLargeError(max_bytes)
                    f.write(chunk)
                f.flush()
                os.fsync(f.fileno())

            if expected_size is not None and size < expected_size:
                raise UploadAbortedError(
                    f"Upload ended after {size} of {expected_size} bytes"
                )

            os.replace(part_path, blob_path)
            completed = True
            return storage_key, size

        except socket.timeout as e:
            raise ShareTimeoutError("Upload stream read timed out", e) from e
        except OSError as e:
            raise InternalStorageError(f"Failed to write blob: {e}", e) from e
        finally:
            if not completed:
                part_path.unlink(missing_ok=True)

    def get(self, storage_key: str) -> BinaryIO:
        """Open a blob for streaming reads."""
        path = self._blob_path(storage_key)
        if path is None:
            raise BlobNotFoundError(str(storage_key))
        try:
            return open(path, "rb")
        except FileNotFoundError as e:
            raise BlobNotFoundError(storage_key) from e

    def delete(self, storage_key: str) -> bool:
        """
        Delete a blob.

        Idempotent: unknown keys and already-deleted blobs return True.

        Raises:
            PermissionError: If there are insufficient permissions to delete
        """
        path = self._blob_path(storage_key)
        if path is None:
            return True
        path.unlink(missing_ok=True)
        return True

    def exists(self, storage_key: str) -> bool:
        """Check if a completed blob exists. Never raises."""
        try:
            path = self._blob_path(storage_key)
            return path is not None and path.is_file()
        except OSError:
            return False

    def get_size(self, storage_key: str) -> Optional[int]:
        """Return the blob size in bytes, None if it does not exist."""
        path = self._blob_path(storage_key)
        if path is None:
            return None
        try:
            return path.stat().st_size
        except OSError:
            return None

    def list_blobs(self) -> List[BlobInfo]:
        """List completed blobs, oldest first."""
        blobs = []
        for path in self.base_path.glob(f"*{_BLOB_SUFFIX}"):
            storage_key = path.name[: -len(_BLOB_SUFFIX)]
            if not _KEY_PATTERN.match(storage_key):
                continue
            try:
                stat = path.stat()
            except FileNotFoundError:
                # Deleted between glob and stat
                continue
            blobs.append(
                BlobInfo(
                    storage_key=storage_key,
                    size_bytes=stat.st_size,
                    modified_at=datetime.fromtimestamp(stat.st_mtime, tz=timezone.utc),
                )
            )
        return sorted(blobs, key=lambda blob: (blob.modified_at, blob.storage_key))

    def purge_partial_uploads(self, older_than: Optional[datetime] = None) -> int:
        """Remove `.part` leftovers of interrupted uploads."""
        count = 0
        for path in self.base_path.glob(f"*{_PART_SUFFIX}"):
            if older_than is not None:
                try:
                    modified_at = datetime.fromtimestamp(
                        path.stat().st_mtime, tz=timezone.utc
                    )
                except FileNotFoundError:
                    continue
                if modified_at >= older_than:
                    continue
            path.unlink(missing_ok=True)
            count += 1
        return count
