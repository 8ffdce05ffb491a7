"""
Shared pytest fixtures and configuration for the Quickshare backend test suite.

This module provides:
- Hypothesis configuration for property-based testing
- Shared fixtures for blob stores, registries and services
- A Flask app built by the application factory
"""

import os
import tempfile

import pytest

# celery_app builds an app at import time; keep it away from /data and threads
os.environ.setdefault("QUICKSHARE_DATA_DIR", tempfile.mkdtemp(prefix="quickshare-test-"))
os.environ.setdefault("REAPER_ENABLED", "false")

from hypothesis import HealthCheck, settings  # noqa: E402

from quickshare.application import EventPublisher, ShareService  # noqa: E402
from quickshare.config import QuickshareConfig  # noqa: E402
from quickshare.infrastructure import InMemoryShareRegistry, LocalBlobStore  # noqa: E402
from tests.fixtures import FakeClock  # noqa: E402

# Profiles differ only in example count
for _name, _examples in (("default", 100), ("ci", 200), ("dev", 10)):
    settings.register_profile(
        _name,
        max_examples=_examples,
        deadline=None,
        suppress_health_check=[HealthCheck.too_slow, HealthCheck.function_scoped_fixture],
    )
settings.load_profile(os.getenv("HYPOTHESIS_PROFILE", "default"))


# =============================================================================
# Core Fixtures
# =============================================================================

@pytest.fixture
def clock() -> FakeClock:
    """Provide a controllable clock starting at a fixed instant."""
    return FakeClock()


@pytest.fixture
def blob_store(tmp_path) -> LocalBlobStore:
    """Provide a blob store rooted in a temporary directory."""
    return LocalBlobStore(str(tmp_path / "blobs"))


@pytest.fixture
def registry() -> InMemoryShareRegistry:
    """Provide an empty in-memory share registry."""
    return InMemoryShareRegistry(lock_timeout=5)


@pytest.fixture
def event_publisher() -> EventPublisher:
    return EventPublisher()


@pytest.fixture
def share_service(blob_store, registry, event_publisher, clock) -> ShareService:
    """Provide a ShareService with a 1 KiB cap and no default expiry."""
    return ShareService(
        blob_store,
        registry,
        event_publisher=event_publisher,
        max_upload_bytes=1024,
        default_ttl_seconds=None,
        io_timeout=5,
        clock=clock,
    )


# =============================================================================
# Flask Application Fixtures
# =============================================================================

@pytest.fixture
def app_config(tmp_path) -> QuickshareConfig:
    """Provide a config pointing at a temporary data directory."""
    config = QuickshareConfig()
    config.data_dir = str(tmp_path / "data")
    config.registry_backend = "memory"
    config.max_upload_mb = 1
    config.default_ttl_seconds = 3600
    config.max_ttl_seconds = None
    config.reaper_enabled = False
    config.upload_enabled = True
    config.pipe_enabled = True
    config.pipe_timeout_seconds = 5
    config.public_base_url = None
    return config


@pytest.fixture
def app(app_config):
    """Create a Flask app through the application factory."""
    from app_factory import create_app

    flask_app = create_app(app_config)
    flask_app.config["TESTING"] = True
    yield flask_app
    flask_app.container.shutdown()


@pytest.fixture
def client(app):
    """Create test client."""
    return app.test_client()


# =============================================================================
# Pytest Configuration Hooks
# =============================================================================

def pytest_collection_modifyitems(config, items):
    """Mark each test unit, integration or property by its directory."""
    for item in items:
        for kind in ("unit", "integration", "property"):
            if kind in item.path.parts:
                item.add_marker(getattr(pytest.mark, kind))
                break
