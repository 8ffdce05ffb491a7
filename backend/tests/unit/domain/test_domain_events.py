from datetime import datetime, timezone

import pytest

from quickshare.domain.events import (
    ShareCreatedEvent,
    ShareDownloadedEvent,
    ShareExpiredEvent,
    ShareReapedEvent,
    UploadRejectedEvent,
)


def test_all_events_to_dict_cover_fields():
    now = datetime(2026, 1, 1, tzinfo=timezone.utc)

    cases = [
        (
            ShareCreatedEvent(
                aggregate_id="tok1", occurred_at=now, size_bytes=5,
                expires_at=now, max_downloads=2,
            ),
            {"size_bytes": 5, "expires_at": now.isoformat(), "max_downloads": 2},
        ),
        (
            ShareDownloadedEvent(
                aggregate_id="tok1", occurred_at=now,
                downloads_remaining=0, last_download=True,
            ),
            {"downloads_remaining": 0, "last_download": True},
        ),
        (
            ShareExpiredEvent(aggregate_id="tok1", occurred_at=now, reason="blob_missing"),
            {"reason": "blob_missing"},
        ),
        (
            ShareReapedEvent(aggregate_id="tok1", occurred_at=now, bytes_freed=9),
            {"bytes_freed": 9},
        ),
        (
            UploadRejectedEvent(
                aggregate_id="tok1", occurred_at=now,
                reason="PayloadTooLargeError", message="too big",
            ),
            {"reason": "PayloadTooLargeError", "message": "too big"},
        ),
    ]

    for ev, fields in cases:
        d = ev.to_dict()
        assert d["event_type"] == ev.__class__.__name__
        assert d["aggregate_id"] == "tok1"
        assert d["occurred_at"] == now.isoformat()
        for key, value in fields.items():
            assert d[key] == value


def test_created_event_without_expiry():
    ev = ShareCreatedEvent(
        aggregate_id="tok1", occurred_at=datetime.now(timezone.utc), size_bytes=1
    )
    assert ev.to_dict()["expires_at"] is None


def test_events_are_immutable():
    ev = ShareReapedEvent(
        aggregate_id="tok1", occurred_at=datetime.now(timezone.utc), bytes_freed=1
    )
    with pytest.raises(AttributeError):
        ev.bytes_freed = 2
