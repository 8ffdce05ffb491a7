"""
Property-based tests for the share lifecycle.

Each example builds its own blob store and registry, so no state leaks
between generated cases.
"""

import io
import tempfile
from datetime import timedelta

import pytest
from hypothesis import given
from hypothesis import strategies as st

from quickshare.application import ShareService
from quickshare.domain.errors import InvalidPolicyError, ShareGoneError, ShareNotFoundError
from quickshare.domain.share_lifecycle import SharePolicy, ShareToken, consume_download
from quickshare.infrastructure import InMemoryShareRegistry, LocalBlobStore
from tests.fixtures import BASE_TIME, FakeClock
from tests.property.strategies import (
    active_shares,
    download_budgets,
    malformed_tokens,
    payloads,
    raw_policy_values,
    request_offsets,
    well_formed_tokens,
)


def _service(data_dir, clock=None):
    return ShareService(
        LocalBlobStore(data_dir),
        InMemoryShareRegistry(lock_timeout=5),
        max_upload_bytes=64 * 1024,
        clock=clock or FakeClock(),
    )


@given(token=well_formed_tokens())
def test_never_issued_token_is_not_found(token):
    with tempfile.TemporaryDirectory() as data_dir:
        service = _service(data_dir)
        service.create_share(io.BytesIO(b"someone else's file"))

        with pytest.raises(ShareNotFoundError):
            service.get_stat(token)
        with pytest.raises(ShareNotFoundError):
            service.open_download(token)


@given(token=malformed_tokens())
def test_malformed_token_is_not_found(token):
    with tempfile.TemporaryDirectory() as data_dir:
        service = _service(data_dir)

        with pytest.raises(ShareNotFoundError):
            service.open_download(token)


@given(data=payloads(), budget=download_budgets())
def test_exactly_budget_downloads_return_uploaded_bytes(data, budget):
    with tempfile.TemporaryDirectory() as data_dir:
        service = _service(data_dir)
        share = service.create_share(io.BytesIO(data), max_downloads=budget)

        for _ in range(budget):
            with service.open_download(share.token) as download:
                assert b"".join(download.iter_chunks()) == data

        with pytest.raises(ShareNotFoundError):
            service.open_download(share.token)
        assert service.share_count() == 0


@given(share=active_shares(), offsets=request_offsets())
def test_consumption_respects_budget_and_expiry(share, offsets):
    granted = []
    refused_at = None

    for offset in offsets:
        now = BASE_TIME + timedelta(seconds=offset)
        try:
            consume_download(share, now)
        except ShareGoneError:
            refused_at = refused_at if refused_at is not None else now
            continue
        # Once refused, a share never becomes valid again
        assert refused_at is None
        granted.append(now)

    if share.max_downloads is not None:
        assert len(granted) <= share.max_downloads
    if share.expires_at is not None:
        assert all(now < share.expires_at for now in granted)


@given(expires_in=raw_policy_values(), max_downloads=raw_policy_values())
def test_policy_values_are_positive_or_rejected(expires_in, max_downloads):
    try:
        policy = SharePolicy.from_request(
            max_size_bytes=100,
            expires_in=expires_in,
            max_downloads=max_downloads,
            now=BASE_TIME,
        )
    except InvalidPolicyError:
        return

    if policy.expires_at is not None:
        assert policy.expires_at > BASE_TIME
    if policy.max_downloads is not None:
        assert policy.max_downloads > 0


@given(st.integers(min_value=1, max_value=50))
def test_generated_tokens_are_well_formed_and_distinct(count):
    tokens = {ShareToken.generate().value for _ in range(count)}

    assert len(tokens) == count
    assert all(ShareToken.is_well_formed(t) for t in tokens)
