"""
Dependency Injection Container

Holds the services one Flask app builds (blob store, registry, share service,
pipe relay, reaper worker) and tears them down again in reverse order.
"""

import logging
import threading
from typing import Any, Callable, Dict, List, Optional, Type, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar('T')

_MISSING = object()


class DependencyNotFoundError(Exception):
    """Raised when attempting to resolve an unregistered dependency."""
    pass


class DependencyContainer:
    """
    Service registry keyed by interface type.

    Instances are registered ready-made; factories are called on first
    resolution and their product cached, unless registered with
    ``cache=False``. Overrides shadow both and exist for tests.
    """

    def __init__(self):
        self._instances: Dict[Type, Any] = {}
        self._factories: Dict[Type, Callable[[], Any]] = {}
        self._cached: Dict[Type, bool] = {}
        self._overrides: Dict[Type, Any] = {}
        self._shutdown_hooks: List[Callable[[], None]] = []
        self._lock = threading.RLock()

    def register_instance(self, interface: Type[T], instance: T) -> T:
        """
        Register a ready-made service.

        Example:
            container.register_instance(IShareRegistry, InMemoryShareRegistry())
        """
        with self._lock:
            self._instances[interface] = instance
            self._factories.pop(interface, None)
        logger.debug(f"Registered instance: {interface.__name__}")
        return instance

    def register_factory(
        self, interface: Type[T], factory: Callable[[], T], cache: bool = True
    ) -> None:
        """
        Register a factory building the service on demand.

        Args:
            interface: Type the service is resolved by
            factory: Zero-argument callable; may resolve other services
            cache: Keep the first product (True) or build one per resolve
        """
        with self._lock:
            self._factories[interface] = factory
            self._cached[interface] = cache
            self._instances.pop(interface, None)
        logger.debug(f"Registered factory: {interface.__name__}")

    def resolve(self, interface: Type[T]) -> T:
        """
        Return the service registered for interface.

        Raises:
            DependencyNotFoundError: If the interface is not registered
        """
        service = self._lookup(interface)
        if service is _MISSING:
            raise DependencyNotFoundError(
                f"No registration found for type: {interface.__name__}"
            )
        return service

    def resolve_optional(self, interface: Type[T]) -> Optional[T]:
        """Like resolve(), but None when the interface is not registered."""
        service = self._lookup(interface)
        return None if service is _MISSING else service

    def _lookup(self, interface: Type) -> Any:
        # Re-entrant lock: a caching factory may resolve its own dependencies
        with self._lock:
            if interface in self._overrides:
                return self._overrides[interface]
            if interface in self._instances:
                return self._instances[interface]
            factory = self._factories.get(interface)
            if factory is None:
                return _MISSING
            service = factory()
            if self._cached[interface]:
                self._instances[interface] = service
            return service

    def override(self, interface: Type[T], implementation: T) -> None:
        """
        Shadow a registration (primarily for testing).

        Example:
            app.container.override(PipeRelay, PipeRelay(timeout=0.1))
        """
        with self._lock:
            self._overrides[interface] = implementation

    def clear_overrides(self) -> None:
        with self._lock:
            self._overrides.clear()

    def is_registered(self, interface: Type) -> bool:
        with self._lock:
            return (
                interface in self._overrides
                or interface in self._instances
                or interface in self._factories
            )

    def on_shutdown(self, hook: Callable[[], None]) -> None:
        """Register a callback run by shutdown(), latest first."""
        with self._lock:
            self._shutdown_hooks.append(hook)

    def shutdown(self) -> None:
        """
        Run shutdown hooks in reverse registration order.

        A failing hook is logged and does not prevent the others from running.
        """
        with self._lock:
            hooks = list(reversed(self._shutdown_hooks))
            self._shutdown_hooks.clear()

        for hook in hooks:
            try:
                hook()
            except Exception as e:
                logger.error(
                    f"Shutdown hook {getattr(hook, '__qualname__', hook)} failed: {e}",
                    exc_info=True,
                )

    def setup_event_handlers(self, event_publisher, event_handler_classes: List[Type] = None) -> None:
        """
        Instantiate infrastructure event handlers and subscribe them to all domain events.

        Args:
            event_publisher: EventPublisher instance to subscribe handlers to
            event_handler_classes: Handler classes to register. Defaults to
                [LoggingEventHandler].
        """
        from quickshare.domain.events import DomainEvent
        from quickshare.infrastructure.event_handlers import LoggingEventHandler

        if event_handler_classes is None:
            event_handler_classes = [LoggingEventHandler]

        for handler_class in event_handler_classes:
            if handler_class is LoggingEventHandler:
                handler = handler_class(logging.getLogger("quickshare"))
            else:
                handler = handler_class()

            event_publisher.subscribe(DomainEvent, handler.handle)
            logger.debug(f"Registered event handler: {handler_class.__name__}")
