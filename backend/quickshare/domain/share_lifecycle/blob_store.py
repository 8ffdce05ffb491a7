"""
Blob Store Interface

Abstract interface for durable byte storage keyed by an opaque storage key.
The blob store is a pure storage primitive: it knows nothing about tokens,
expiry or download budgets. Infrastructure implementations depend on this
domain-defined contract.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime
from typing import BinaryIO, List, Optional, Tuple


@dataclass(frozen=True)
class BlobInfo:
    """One stored blob as seen by a directory listing."""
    storage_key: str
    size_bytes: int
    modified_at: datetime


class IBlobStore(ABC):
    """
    Interface for blob storage operations.

    Contract Guarantees:
    - put() consumes the whole stream before reporting success; a failed or
      cancelled write never leaves a retrievable object behind
    - get() raises BlobNotFoundError for unknown keys
    - delete() and exists() are idempotent and never fail for unknown keys
    - No partial-overwrite path: a stored blob is only ever read or deleted

    Thread Safety:
    - Implementations must be safe for concurrent put/get/delete on
      different keys
    """

    @abstractmethod
    def put(
        self,
        stream: BinaryIO,
        max_bytes: Optional[int] = None,
        expected_size: Optional[int] = None,
        idle_timeout: Optional[float] = None,
    ) -> Tuple[str, int]:
        """
        Store the content of a stream under a fresh storage key.

        Args:
            stream: Readable binary stream, consumed until EOF
            max_bytes: Size cap; exceeding it aborts the write
            expected_size: Declared size; ending early aborts the write
            idle_timeout: Longest gap allowed between two chunks, in seconds

        Returns:
            Tuple of (storage_key, size_bytes)

        Raises:
            PayloadTooLargeError: If the stream exceeds max_bytes
            UploadAbortedError: If the stream ends before expected_size
            ShareTimeoutError: If a chunk arrives later than idle_timeout
            InternalStorageError: On I/O failures while writing
        """
        pass  # pragma: no cover

    @abstractmethod
    def get(self, storage_key: str) -> BinaryIO:
        """
        Open a stored blob for reading.

        The caller is responsible for closing the returned stream. An open
        handle stays readable even if the blob is deleted afterwards.

        Raises:
            BlobNotFoundError: If the key does not exist
        """
        pass  # pragma: no cover

    @abstractmethod
    def delete(self, storage_key: str) -> bool:
        """
        Delete a blob. Deleting an absent key is not an error.

        Returns:
            True if the blob was deleted or did not exist
        """
        pass  # pragma: no cover

    @abstractmethod
    def exists(self, storage_key: str) -> bool:
        """Check whether a completed blob exists under the key."""
        pass  # pragma: no cover

    @abstractmethod
    def get_size(self, storage_key: str) -> Optional[int]:
        """Return the blob size in bytes, None if it does not exist."""
        pass  # pragma: no cover

    @abstractmethod
    def list_blobs(self) -> List[BlobInfo]:
        """List completed blobs, oldest first."""
        pass  # pragma: no cover

    @abstractmethod
    def purge_partial_uploads(self, older_than: Optional[datetime] = None) -> int:
        """
        Remove leftovers of interrupted writes.

        Args:
            older_than: Only remove partial files last modified before this
                time; None removes all of them (startup recovery)

        Returns:
            Number of partial files removed
        """
        pass  # pragma: no cover
