"""
Event Publisher

Synchronous in-process dispatch of domain events to subscribed handlers.
"""

import logging
from threading import Lock
from typing import Callable, List, Tuple, Type

from quickshare.domain.events import DomainEvent

logger = logging.getLogger(__name__)

EventHandler = Callable[[DomainEvent], None]


def _handler_name(handler: EventHandler) -> str:
    return getattr(handler, "__qualname__", None) or repr(handler)


class EventPublisher:
    """
    Dispatches each published event to every handler subscribed to its
    class or one of its base classes, in subscription order.

    A failing handler is logged and skipped: publishing happens after the
    share operation has committed, so it must not turn a finished upload
    or download into an error.
    """

    def __init__(self):
        self._subscriptions: List[Tuple[Type[DomainEvent], EventHandler]] = []
        self._lock = Lock()

    def subscribe(self, event_type: Type[DomainEvent], handler: EventHandler) -> None:
        with self._lock:
            self._subscriptions.append((event_type, handler))
        logger.debug(f"Subscribed {_handler_name(handler)} to {event_type.__name__}")

    def unsubscribe(self, event_type: Type[DomainEvent], handler: EventHandler) -> bool:
        """Drop one subscription; False if it was not there."""
        with self._lock:
            try:
                self._subscriptions.remove((event_type, handler))
            except ValueError:
                return False
        return True

    def publish(self, event: DomainEvent) -> None:
        with self._lock:
            handlers = [h for t, h in self._subscriptions if isinstance(event, t)]

        for handler in handlers:
            try:
                handler(event)
            except Exception as e:
                logger.error(
                    f"Handler {_handler_name(handler)} failed on "
                    f"{type(event).__name__}: {e}",
                    exc_info=True,
                )
