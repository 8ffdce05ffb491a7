"""
Share Lifecycle Services

Domain services for the write path (ingest) and the read path (retrieval).
"""

from typing import BinaryIO, Callable, Iterator, Optional

from quickshare.domain.errors import (
    BlobNotFoundError,
    InternalStorageError,
    PayloadTooLargeError,
    ShareConflictError,
    ShareGoneError,
)

from .blob_store import IBlobStore
from .entities import Share, ShareStat, utc_now
from .registry import IShareRegistry
from .token_issuer import TokenIssuer
from .value_objects import SharePolicy, sanitize_filename

DEFAULT_CHUNK_SIZE = 64 * 1024


class IngestPipeline:
    """
    Accepts an upload stream and turns it into a registered share.

    Every failure path deletes the blob it wrote, so a failed or cancelled
    upload never leaves an orphaned share or blob behind.
    """

    # Registry creation attempts before a collision is surfaced
    CREATE_ATTEMPTS = 2

    def __init__(
        self,
        blob_store: IBlobStore,
        registry: IShareRegistry,
        token_issuer: Optional[TokenIssuer] = None,
        io_timeout: Optional[float] = None,
        clock: Callable = utc_now,
    ):
        """
        Args:
            blob_store: Storage for upload bytes
            registry: Share registry receiving the new entry
            token_issuer: Token source, defaults to one probing the registry
            io_timeout: Longest idle gap allowed while reading the upload
            clock: Returns the current UTC time
        """
        self.blob_store = blob_store
        self.registry = registry
        self.token_issuer = token_issuer or TokenIssuer(registry.exists)
        self.io_timeout = io_timeout
        self._clock = clock

    def ingest(
        self,
        stream: BinaryIO,
        policy: SharePolicy,
        declared_size: Optional[int] = None,
        filename: Optional[str] = None,
    ) -> Share:
        """
        Store an upload and register it as a new ACTIVE share.

        Args:
            stream: Upload body
            policy: Expiry, download budget and size cap
            declared_size: Size announced by the client (e.g. Content-Length)
            filename: Original file name, offered back on download

        Returns:
            The registered share

        Raises:
            PayloadTooLargeError: Declared or observed size exceeds the cap
            UploadAbortedError: Stream ended before the declared size
            ShareTimeoutError: Stream stalled longer than the I/O timeout
            InternalStorageError: Storage failure or repeated token collisions
        """
        if declared_size is not None and declared_size > policy.max_size_bytes:
            raise PayloadTooLargeError(policy.max_size_bytes)

        storage_key, size_bytes = self.blob_store.put(
            stream,
            max_bytes=policy.max_size_bytes,
            expected_size=declared_size,
            idle_timeout=self.io_timeout,
        )

        registered = False
        try:
            share = self._register(storage_key, size_bytes, policy, filename)
            registered = True
            return share
        finally:
            if not registered:
                self.blob_store.delete(storage_key)

    def _register(
        self,
        storage_key: str,
        size_bytes: int,
        policy: SharePolicy,
        filename: Optional[str],
    ) -> Share:
        last_error = None
        for _ in range(self.CREATE_ATTEMPTS):
            try:
                token = self.token_issuer.issue()
                share = Share(
                    token=token,
                    storage_key=storage_key,
                    size_bytes=size_bytes,
                    created_at=self._clock(),
                    expires_at=policy.expires_at,
                    downloads_remaining=policy.max_downloads,
                    max_downloads=policy.max_downloads,
                    filename=sanitize_filename(filename),
                )
                return self.registry.create(share)
            except ShareConflictError as e:
                last_error = e
        raise InternalStorageError(
            "Could not register share: token collision persisted", last_error
        )


class ShareDownload:
    """
    An open download of a share whose slot has already been consumed.

    Closing the download releases the blob handle and, after the last
    allowed download, runs the eager-reclaim hook. A download that is
    cancelled half-way keeps its slot spent.
    """

    def __init__(
        self,
        share: Share,
        stream: BinaryIO,
        last_download: bool = False,
        on_close: Optional[Callable[[], None]] = None,
        chunk_size: int = DEFAULT_CHUNK_SIZE,
    ):
        self.share = share
        self.last_download = last_download
        self._stream = stream
        self._on_close = on_close
        self._chunk_size = chunk_size
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def read(self, size: int = -1) -> bytes:
        return self._stream.read(size)

    def iter_chunks(self) -> Iterator[bytes]:
        """Yield the blob content chunk by chunk."""
        while True:
            chunk = self._stream.read(self._chunk_size)
            if not chunk:
                break
            yield chunk

    def close(self) -> None:
        """Release the blob handle and trigger eager reclamation once."""
        if self._closed:
            return
        self._closed = True
        try:
            self._stream.close()
        finally:
            if self._on_close is not None:
                self._on_close()

    def __enter__(self) -> "ShareDownload":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()


class RetrievalPipeline:
    """
    Validates tokens and serves shares back.

    The download slot is consumed and the blob handle opened inside the same
    per-token critical section, so two requests racing for the last slot
    cannot both succeed and the Reaper cannot delete the blob in between.
    """

    def __init__(
        self,
        blob_store: IBlobStore,
        registry: IShareRegistry,
        reclaim: Optional[Callable[[str], object]] = None,
        clock: Callable = utc_now,
        chunk_size: int = DEFAULT_CHUNK_SIZE,
    ):
        """
        Args:
            blob_store: Storage holding share bytes
            registry: Authoritative share registry
            reclaim: Called with a token that should be reaped now (after the
                last download, or to reconcile a missing blob)
            clock: Returns the current UTC time
            chunk_size: Read size used when streaming
        """
        self.blob_store = blob_store
        self.registry = registry
        self._reclaim = reclaim
        self._clock = clock
        self._chunk_size = chunk_size

    def stat(self, token: str) -> ShareStat:
        """
        Return share metadata without consuming a download.

        Raises:
            ShareNotFoundError: Token never issued or already reaped
            ShareGoneError: Share expired or exhausted
        """
        share = self.registry.lookup(token)
        if share.is_reapable(self._clock()):
            raise ShareGoneError("Share is no longer available")
        return ShareStat.from_share(share)

    def retrieve(self, token: str) -> ShareDownload:
        """
        Consume one download and open the share's blob.

        Raises:
            ShareNotFoundError: Token never issued or already reaped
            ShareGoneError: Share expired or exhausted
            ShareTimeoutError: Per-token lock wait exceeded the timeout
            InternalStorageError: Blob missing for a valid entry
        """
        now = self._clock()
        missing = None

        with self.registry.locked(token):
            result = self.registry.consume_one_download(token, now)
            try:
                stream = self.blob_store.get(result.share.storage_key)
            except BlobNotFoundError as e:
                self.registry.mark_expired(token)
                missing = e

        if missing is not None:
            self._request_reclaim(token)
            raise InternalStorageError(
                f"Blob missing for share {token[:8]}", missing
            ) from missing

        on_close = None
        if result.last_download:
            on_close = lambda: self._request_reclaim(token)  # noqa: E731

        return ShareDownload(
            share=result.share,
            stream=stream,
            last_download=result.last_download,
            on_close=on_close,
            chunk_size=self._chunk_size,
        )

    def _request_reclaim(self, token: str) -> None:
        if self._reclaim is not None:
            self._reclaim(token)
