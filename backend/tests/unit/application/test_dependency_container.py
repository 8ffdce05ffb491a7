"""
Unit tests for DependencyContainer.
"""

import logging
from unittest.mock import Mock

import pytest

from quickshare.application import DependencyContainer, DependencyNotFoundError, EventPublisher
from quickshare.domain.events import ShareReapedEvent
from tests.fixtures import BASE_TIME, create_token


class DummyInterface:
    """Dummy interface for testing."""

    pass


class DummyImplementation(DummyInterface):
    """Dummy implementation for testing."""

    def __init__(self, value="default"):
        self.value = value


@pytest.fixture
def container():
    """Create a fresh DependencyContainer for each test."""
    return DependencyContainer()


class TestRegistration:
    """Test service registration and resolution."""

    def test_register_instance(self, container):
        """
        Test instance registration.

        Verifies that every resolution returns the registered instance.
        """
        # Arrange
        service = DummyImplementation("test")

        # Act
        returned = container.register_instance(DummyInterface, service)

        # Assert
        assert returned is service
        assert container.resolve(DummyInterface) is service
        assert container.is_registered(DummyInterface)

    def test_cached_factory_builds_once_on_demand(self, container):
        """
        Test lazy factory registration.

        Verifies that the factory is not called before the first resolve and
        its product is reused afterwards.
        """
        # Arrange
        factory = Mock(side_effect=DummyImplementation)
        container.register_factory(DummyInterface, factory)
        factory.assert_not_called()

        # Act
        first = container.resolve(DummyInterface)
        second = container.resolve(DummyInterface)

        # Assert
        assert first is second
        factory.assert_called_once()

    def test_uncached_factory_builds_per_resolve(self, container):
        container.register_factory(DummyInterface, DummyImplementation, cache=False)

        assert container.resolve(DummyInterface) is not container.resolve(DummyInterface)

    def test_factory_may_resolve_other_services(self, container):
        container.register_instance(str, "configured")
        container.register_factory(
            DummyInterface, lambda: DummyImplementation(container.resolve(str))
        )

        assert container.resolve(DummyInterface).value == "configured"

    def test_unregistered_raises(self, container):
        with pytest.raises(DependencyNotFoundError, match="DummyInterface"):
            container.resolve(DummyInterface)

        assert container.resolve_optional(DummyInterface) is None
        assert not container.is_registered(DummyInterface)


class TestOverrides:
    """Test overrides used by API tests."""

    def test_override_takes_precedence(self, container):
        # Arrange
        container.register_factory(DummyInterface, lambda: DummyImplementation("real"))
        fake = DummyImplementation("fake")

        # Act
        container.override(DummyInterface, fake)

        # Assert
        assert container.resolve(DummyInterface) is fake

    def test_clear_overrides_restores_registration(self, container):
        real = container.register_instance(DummyInterface, DummyImplementation("real"))
        container.override(DummyInterface, DummyImplementation("fake"))

        container.clear_overrides()

        assert container.resolve(DummyInterface) is real


class TestShutdown:
    def test_hooks_run_latest_first_and_once(self, container):
        calls = []
        container.on_shutdown(lambda: calls.append("worker"))
        container.on_shutdown(lambda: calls.append("relay"))

        container.shutdown()
        container.shutdown()

        assert calls == ["relay", "worker"]

    def test_failing_hook_does_not_stop_others(self, container):
        survivor = Mock()
        container.on_shutdown(survivor)
        container.on_shutdown(Mock(side_effect=RuntimeError("stuck")))

        container.shutdown()

        survivor.assert_called_once()


class TestEventHandlerSetup:
    def test_logging_handler_receives_domain_events(self, container, caplog):
        publisher = EventPublisher()
        container.setup_event_handlers(publisher)
        token = create_token()

        with caplog.at_level(logging.INFO, logger="quickshare"):
            publisher.publish(
                ShareReapedEvent(aggregate_id=token, occurred_at=BASE_TIME, bytes_freed=42)
            )

        assert f"Share {token[:8]} reaped, 42 bytes freed" in caplog.text
        assert token not in caplog.text

    def test_custom_handler_classes(self, container):
        handled = Mock()

        class RecordingHandler:
            def handle(self, event):
                handled(event)

        publisher = EventPublisher()
        container.setup_event_handlers(publisher, [RecordingHandler])
        event = ShareReapedEvent(aggregate_id=create_token(), occurred_at=BASE_TIME, bytes_freed=1)

        publisher.publish(event)

        handled.assert_called_once_with(event)
