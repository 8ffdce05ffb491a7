"""
Share Application Service

Coordinates the share lifecycle use cases: upload, stat, download and
reclamation. Builds the domain pipelines around one blob store and one
registry, and publishes domain events for every state change.
"""

import logging
from datetime import timedelta
from typing import BinaryIO, Callable, Optional

from quickshare.domain.errors import (
    BlobNotFoundError,
    DomainError,
    InternalStorageError,
    ShareGoneError,
    ShareNotFoundError,
)
from quickshare.domain.events import (
    ShareCreatedEvent,
    ShareDownloadedEvent,
    ShareExpiredEvent,
    ShareReapedEvent,
    UploadRejectedEvent,
)
from quickshare.domain.share_lifecycle import (
    IBlobStore,
    IngestPipeline,
    IShareRegistry,
    ReapReport,
    Reaper,
    RetrievalPipeline,
    Share,
    ShareDownload,
    SharePolicy,
    ShareStat,
    ShareToken,
    utc_now,
)
from quickshare.domain.share_lifecycle.reaper import DEFAULT_ORPHAN_GRACE

from .event_publisher import EventPublisher

logger = logging.getLogger(__name__)


class ShareService:
    """
    Application service for share operations.

    Retrieval's reclaim hook points back at this service, so exhausted
    shares and shares with a missing blob are reaped right away instead of
    waiting for the next Reaper pass.
    """

    def __init__(
        self,
        blob_store: IBlobStore,
        registry: IShareRegistry,
        event_publisher: Optional[EventPublisher] = None,
        max_upload_bytes: int = 1024 * 1024 * 1024,
        default_ttl_seconds: Optional[int] = None,
        max_ttl_seconds: Optional[int] = None,
        io_timeout: Optional[float] = None,
        orphan_grace: timedelta = DEFAULT_ORPHAN_GRACE,
        clock: Callable = utc_now,
    ):
        """
        Args:
            blob_store: Storage for share bytes
            registry: Authoritative share registry
            event_publisher: Receives lifecycle events, optional
            max_upload_bytes: Size cap applied to every upload
            default_ttl_seconds: Lifetime used when the uploader sets none
            max_ttl_seconds: Upper bound on a requested lifetime
            io_timeout: Longest idle gap allowed while reading an upload
            orphan_grace: Age before unreferenced blobs are swept
            clock: Returns the current UTC time
        """
        self.blob_store = blob_store
        self.registry = registry
        self.event_publisher = event_publisher
        self.max_upload_bytes = max_upload_bytes
        self.default_ttl_seconds = default_ttl_seconds
        self.max_ttl_seconds = max_ttl_seconds
        self.io_timeout = io_timeout
        self._clock = clock

        self.ingest_pipeline = IngestPipeline(
            blob_store, registry, io_timeout=io_timeout, clock=clock
        )
        self.retrieval_pipeline = RetrievalPipeline(
            blob_store, registry, reclaim=self._reclaim_quietly, clock=clock
        )
        self.reaper = Reaper(blob_store, registry, orphan_grace=orphan_grace, clock=clock)

    def create_share(
        self,
        stream: BinaryIO,
        expires_in: Optional[object] = None,
        max_downloads: Optional[object] = None,
        declared_size: Optional[int] = None,
        filename: Optional[str] = None,
    ) -> Share:
        """
        Store an upload as a new share.

        Args:
            stream: Upload body
            expires_in: Requested lifetime in seconds, raw request value
            max_downloads: Requested download budget, raw request value
            declared_size: Content-Length announced by the client
            filename: Original file name

        Returns:
            The registered share, token included

        Raises:
            InvalidPolicyError: expires_in or max_downloads invalid
            PayloadTooLargeError: Upload exceeds the size cap
            UploadAbortedError: Upload ended early
            ShareTimeoutError: Upload stalled
            InternalStorageError: Storage failure
        """
        now = self._clock()
        policy = SharePolicy.from_request(
            max_size_bytes=self.max_upload_bytes,
            expires_in=expires_in,
            max_downloads=max_downloads,
            default_ttl_seconds=self.default_ttl_seconds,
            max_ttl_seconds=self.max_ttl_seconds,
            now=now,
        )

        try:
            share = self.ingest_pipeline.ingest(
                stream, policy, declared_size=declared_size, filename=filename
            )
        except DomainError as e:
            self._publish(UploadRejectedEvent(
                aggregate_id="upload",
                occurred_at=self._clock(),
                reason=e.__class__.__name__,
                message=str(e),
            ))
            raise

        self._publish(ShareCreatedEvent(
            aggregate_id=share.token,
            occurred_at=share.created_at,
            size_bytes=share.size_bytes,
            expires_at=share.expires_at,
            max_downloads=share.max_downloads,
        ))
        return share

    def get_stat(self, token: str) -> ShareStat:
        """
        Return share metadata without consuming a download.

        Raises:
            ShareNotFoundError: Unknown token
            ShareGoneError: Share expired or exhausted
        """
        self._check_token(token)
        return self.retrieval_pipeline.stat(token)

    def open_download(self, token: str) -> ShareDownload:
        """
        Consume one download and return the open share content.

        The caller must close the returned download once the response has
        been sent; closing after the last download reaps the share.

        Raises:
            ShareNotFoundError: Unknown token
            ShareGoneError: Share expired or exhausted
            ShareTimeoutError: Per-token lock wait timed out
            InternalStorageError: Blob missing for a valid entry
        """
        self._check_token(token)
        try:
            download = self.retrieval_pipeline.retrieve(token)
        except ShareGoneError:
            # Time-expired shares are marked during the attempt; free them now
            self._reclaim_quietly(token)
            raise
        except InternalStorageError as e:
            if isinstance(e.original_error, BlobNotFoundError):
                self._publish(ShareExpiredEvent(
                    aggregate_id=token,
                    occurred_at=self._clock(),
                    reason="blob_missing",
                ))
            raise

        self._publish(ShareDownloadedEvent(
            aggregate_id=token,
            occurred_at=self._clock(),
            downloads_remaining=download.share.downloads_remaining,
            last_download=download.last_download,
        ))
        return download

    def reclaim(self, token: str) -> Optional[Share]:
        """
        Reap one share if it is no longer valid.

        Returns:
            The removed share, or None if nothing was reaped
        """
        removed = self.reaper.reap(token)
        if removed is not None:
            self._publish(ShareReapedEvent(
                aggregate_id=removed.token,
                occurred_at=self._clock(),
                bytes_freed=removed.size_bytes,
            ))
        return removed

    def run_reaper(self) -> ReapReport:
        """Run one full Reaper pass and publish an event per reaped share."""
        report = self.reaper.run_once()
        for share in report.reaped:
            self._publish(ShareReapedEvent(
                aggregate_id=share.token,
                occurred_at=self._clock(),
                bytes_freed=share.size_bytes,
            ))
        if report.errors:
            logger.warning(f"Reaper pass finished with errors: {report.errors}")
        return report

    def purge_partial_uploads(self) -> int:
        """
        Remove partial uploads left behind by an earlier crash.

        Partials written to within the I/O timeout may belong to a live upload
        in another process and are kept.
        """
        older_than = None
        if self.io_timeout:
            older_than = self._clock() - timedelta(seconds=self.io_timeout)
        return self.blob_store.purge_partial_uploads(older_than=older_than)

    def share_count(self) -> int:
        return self.registry.count()

    def _reclaim_quietly(self, token: str) -> None:
        # Runs from response teardown; the next Reaper pass retries failures
        try:
            self.reclaim(token)
        except (DomainError, OSError) as e:
            logger.warning(f"Eager reclaim of share {token[:8]} failed: {e}")

    def _check_token(self, token: str) -> None:
        if not ShareToken.is_well_formed(token):
            raise ShareNotFoundError("Malformed share token")

    def _publish(self, event) -> None:
        if self.event_publisher is not None:
            self.event_publisher.publish(event)
