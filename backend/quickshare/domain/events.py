"""
Share lifecycle events.

Services publish these after a state change has been committed. Handlers
(logging, for now) subscribe through the EventPublisher and never feed
back into the lifecycle. ``aggregate_id`` is the share token, or the
literal "upload" for uploads that never got one.
"""

from dataclasses import dataclass, fields
from datetime import datetime
from typing import Any, Dict, Optional


@dataclass(frozen=True)
class DomainEvent:
    aggregate_id: str
    occurred_at: datetime

    def to_dict(self) -> Dict[str, Any]:
        """Every field plus ``event_type``; datetimes as ISO 8601 strings."""
        data: Dict[str, Any] = {"event_type": type(self).__name__}
        for field in fields(self):
            value = getattr(self, field.name)
            if isinstance(value, datetime):
                value = value.isoformat()
            data[field.name] = value
        return data


@dataclass(frozen=True)
class ShareCreatedEvent(DomainEvent):
    """Blob stored and entry registered; the token is now live."""

    size_bytes: int
    expires_at: Optional[datetime] = None
    max_downloads: Optional[int] = None


@dataclass(frozen=True)
class ShareDownloadedEvent(DomainEvent):
    """A download slot was spent. ``last_download`` marks the final one."""

    downloads_remaining: Optional[int] = None
    last_download: bool = False


@dataclass(frozen=True)
class ShareExpiredEvent(DomainEvent):
    """Forced to EXPIRED outside normal consumption, e.g. reason="blob_missing"."""

    reason: str


@dataclass(frozen=True)
class ShareReapedEvent(DomainEvent):
    bytes_freed: int


@dataclass(frozen=True)
class UploadRejectedEvent(DomainEvent):
    """An upload failed and its partial blob was removed.

    ``reason`` is the exception class name, ``message`` its text.
    """

    reason: str
    message: str
