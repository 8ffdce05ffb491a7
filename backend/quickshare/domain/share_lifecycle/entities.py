"""
Share Lifecycle Entities

Domain entities for shares: the unit combining one stored blob, one token
and its expiry/download policy.
"""

from dataclasses import dataclass, replace
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from .value_objects import ShareState


def utc_now() -> datetime:
    """Return the current timezone-aware UTC timestamp."""
    return datetime.now(timezone.utc)


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


@dataclass
class Share:
    """
    Entity representing one shared file and its validity policy.

    `token`, `storage_key`, `size_bytes`, `created_at` and `expires_at` are
    immutable once the share is registered. `downloads_remaining` only ever
    decreases; `None` means unlimited.
    """
    token: str
    storage_key: str
    size_bytes: int
    created_at: datetime
    expires_at: Optional[datetime] = None
    downloads_remaining: Optional[int] = None
    max_downloads: Optional[int] = None
    filename: Optional[str] = None
    state: ShareState = ShareState.ACTIVE

    def __post_init__(self):
        self.created_at = _as_utc(self.created_at)
        if self.expires_at is not None:
            self.expires_at = _as_utc(self.expires_at)
        if self.downloads_remaining is not None and self.downloads_remaining < 0:
            raise ValueError("downloads_remaining must be >= 0")

    def is_time_expired(self, now: datetime) -> bool:
        """
        Check whether the expiry timestamp has been reached.

        A request arriving exactly at `expires_at` sees an expired share.
        """
        return self.expires_at is not None and _as_utc(now) >= self.expires_at

    def is_exhausted(self) -> bool:
        """Check whether the download budget is spent."""
        return self.downloads_remaining is not None and self.downloads_remaining <= 0

    def is_reapable(self, now: datetime) -> bool:
        """
        Check whether the Reaper may delete this share.

        Args:
            now: Decision point for the time-based check

        Returns:
            True if expired by state, time or download budget
        """
        return (
            self.state != ShareState.ACTIVE
            or self.is_time_expired(now)
            or self.is_exhausted()
        )

    def get_remaining_seconds(self, now: Optional[datetime] = None) -> Optional[int]:
        """
        Get remaining seconds until expiration.

        Returns:
            Seconds remaining (0 if expired), None when there is no time limit
        """
        if self.expires_at is None:
            return None
        remaining = self.expires_at - _as_utc(now or utc_now())
        return max(0, int(remaining.total_seconds()))

    def snapshot(self) -> "Share":
        """Return a detached copy safe to hand out of the registry."""
        return replace(self)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "token": self.token,
            "storage_key": self.storage_key,
            "size_bytes": self.size_bytes,
            "created_at": self.created_at.isoformat(),
            "expires_at": self.expires_at.isoformat() if self.expires_at else None,
            "downloads_remaining": self.downloads_remaining,
            "max_downloads": self.max_downloads,
            "filename": self.filename,
            "state": self.state.value,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Share":
        """Create Share from dictionary."""
        expires_at = data.get("expires_at")
        return cls(
            token=data["token"],
            storage_key=data["storage_key"],
            size_bytes=data["size_bytes"],
            created_at=datetime.fromisoformat(data["created_at"]),
            expires_at=datetime.fromisoformat(expires_at) if expires_at else None,
            downloads_remaining=data.get("downloads_remaining"),
            max_downloads=data.get("max_downloads"),
            filename=data.get("filename"),
            state=ShareState(data.get("state", ShareState.ACTIVE.value)),
        )


@dataclass(frozen=True)
class ConsumeResult:
    """Outcome of a successful download consumption."""
    share: Share
    last_download: bool = False


@dataclass(frozen=True)
class ShareStat:
    """Metadata-only view of a share for clients checking before downloading."""
    token: str
    size_bytes: int
    created_at: datetime
    expires_at: Optional[datetime]
    downloads_remaining: Optional[int]
    filename: Optional[str]

    @classmethod
    def from_share(cls, share: Share) -> "ShareStat":
        return cls(
            token=share.token,
            size_bytes=share.size_bytes,
            created_at=share.created_at,
            expires_at=share.expires_at,
            downloads_remaining=share.downloads_remaining,
            filename=share.filename,
        )

    def get_remaining_seconds(self, now: Optional[datetime] = None) -> Optional[int]:
        if self.expires_at is None:
            return None
        remaining = self.expires_at - _as_utc(now or utc_now())
        return max(0, int(remaining.total_seconds()))

    def to_dict(self, now: Optional[datetime] = None) -> Dict[str, Any]:
        """Convert to dictionary for API responses."""
        return {
            "token": self.token,
            "size_bytes": self.size_bytes,
            "created_at": self.created_at.isoformat(),
            "expires_at": self.expires_at.isoformat() if self.expires_at else None,
            "downloads_remaining": self.downloads_remaining,
            "remaining_seconds": self.get_remaining_seconds(now),
            "filename": self.filename,
        }
