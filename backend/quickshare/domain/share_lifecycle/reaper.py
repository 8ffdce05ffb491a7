"""
Reaper

Reclaims storage for shares that are no longer valid and sweeps blobs that
no registry entry references.
"""

from dataclasses import dataclass, field, replace
from datetime import datetime, timedelta
from typing import Callable, List, Optional, Tuple

from quickshare.domain.errors import DomainError, ShareNotFoundError

from .blob_store import IBlobStore
from .entities import Share, utc_now
from .registry import IShareRegistry
from .value_objects import ShareState

DEFAULT_ORPHAN_GRACE = timedelta(hours=1)


@dataclass
class ReapReport:
    """Result of one Reaper pass."""
    examined: int = 0
    reaped: List[Share] = field(default_factory=list)
    bytes_freed: int = 0
    orphans_removed: int = 0
    partials_removed: int = 0
    errors: List[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        """Convert to dictionary for task results and logging."""
        return {
            "examined": self.examined,
            "reaped": len(self.reaped),
            "bytes_freed": self.bytes_freed,
            "orphans_removed": self.orphans_removed,
            "partials_removed": self.partials_removed,
            "errors": list(self.errors),
        }


class Reaper:
    """
    Domain service deleting expired or exhausted shares.

    Per share, the blob is deleted before the registry entry. A crash in
    between leaves an entry pointing at a deleted blob (retrieval reports an
    internal error and the next pass removes it), never a live blob past its
    policy. Each share is reaped inside its per-token critical section, so
    the Reaper never races a download consuming the same share.
    """

    def __init__(
        self,
        blob_store: IBlobStore,
        registry: IShareRegistry,
        orphan_grace: timedelta = DEFAULT_ORPHAN_GRACE,
        clock: Callable = utc_now,
    ):
        """
        Args:
            blob_store: Storage holding share bytes
            registry: Share registry to converge
            orphan_grace: Age an unreferenced blob must reach before the sweep
                deletes it; protects uploads between blob write and registration
            clock: Returns the current UTC time
        """
        self.blob_store = blob_store
        self.registry = registry
        self.orphan_grace = orphan_grace
        self._clock = clock

    def run_once(self, now: Optional[datetime] = None) -> ReapReport:
        """
        Run one full pass: reap invalid shares, then sweep orphans.

        Failures on one share are recorded in the report and do not stop the
        pass; the share is retried on the next pass.
        """
        now = now or self._clock()
        report = ReapReport()

        for share in self.registry.list_shares():
            report.examined += 1
            if not share.is_reapable(now):
                continue
            try:
                removed = self.reap(share.token, now)
            except (DomainError, OSError) as e:
                report.errors.append(f"{share.token[:8]}: {e}")
                continue
            if removed is not None:
                report.reaped.append(removed)
                report.bytes_freed += removed.size_bytes

        try:
            report.orphans_removed, report.partials_removed = self.sweep_orphans(now)
        except (DomainError, OSError) as e:
            report.errors.append(f"orphan sweep: {e}")

        return report

    def reap(self, token: str, now: Optional[datetime] = None) -> Optional[Share]:
        """
        Reap one share if it is no longer valid.

        Args:
            token: Share token
            now: Decision point, defaults to the current time

        Returns:
            The removed share in state DELETED, or None when the token is
            unknown or the share is still valid
        """
        now = now or self._clock()
        with self.registry.locked(token):
            try:
                share = self.registry.lookup(token)
            except ShareNotFoundError:
                return None

            if not share.is_reapable(now):
                return None

            if share.state == ShareState.ACTIVE:
                self.registry.mark_expired(token)

            self.blob_store.delete(share.storage_key)
            removed = self.registry.remove(token)

        return replace(removed, state=ShareState.DELETED)

    def sweep_orphans(self, now: Optional[datetime] = None) -> Tuple[int, int]:
        """
        Delete blobs and partial uploads nothing references.

        Returns:
            Tuple of (orphaned blobs removed, partial uploads removed)
        """
        now = now or self._clock()
        cutoff = now - self.orphan_grace

        partials = self.blob_store.purge_partial_uploads(older_than=cutoff)

        referenced = {share.storage_key for share in self.registry.list_shares()}
        orphans = 0
        for blob in self.blob_store.list_blobs():
            if blob.storage_key in referenced or blob.modified_at >= cutoff:
                continue
            self.blob_store.delete(blob.storage_key)
            orphans += 1

        return orphans, partials
