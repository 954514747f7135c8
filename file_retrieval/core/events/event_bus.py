"""
Central domain event bus (Mediator Pattern).
"""
import asyncio
import logging
from collections import defaultdict
from typing import Awaitable, Callable, Dict, List, Type

from file_retrieval.core.events.domain_event import DomainEvent

# An event handler is an async function that takes a DomainEvent and returns None
EventHandler = Callable[[DomainEvent], Awaitable[None]]


class DomainEventBus:
    """
    Asynchronous event bus for domain event propagation.

    If one handler fails it does not prevent other handlers from running; the
    failure is logged and publication continues. Handlers subscribed to a base
    class also receive events of its subclasses.
    """

    def __init__(self) -> None:
        self._handlers: Dict[Type[DomainEvent], List[EventHandler]] = defaultdict(list)
        self._lock = asyncio.Lock()

    async def subscribe(self, event_type: Type[DomainEvent], handler: EventHandler) -> None:
        async with self._lock:
            self._handlers[event_type].append(handler)
            logging.debug(
                f"Handler {getattr(handler, '__name__', handler)} subscribed to {event_type.__name__}"
            )

    async def unsubscribe(self, event_type: Type[DomainEvent], handler: EventHandler) -> None:
        async with self._lock:
            if handler in self._handlers.get(event_type, []):
                self._handlers[event_type].remove(handler)

    def _handlers_for(self, event_type: Type[DomainEvent]) -> List[EventHandler]:
        handlers: List[EventHandler] = []
        for klass in event_type.__mro__:
            handlers.extend(self._handlers.get(klass, []))
        return handlers

    async def publish(self, event: DomainEvent) -> None:
        """
        Publishes a domain event, calling all subscribed handlers concurrently.

        Args:
            event: The domain event instance to publish.
        """
        event_type = type(event)
        handlers = self._handlers_for(event_type)

        if not handlers:
            logging.debug(f"No handlers for event {event_type.__name__}")
            return

        logging.debug(f"Publishing {event_type.__name__} to {len(handlers)} handler(s)")

        tasks = [self._safe_execute(handler, event) for handler in handlers]
        await asyncio.gather(*tasks)

    async def _safe_execute(self, handler: EventHandler, event: DomainEvent) -> None:
        try:
            await handler(event)
        except Exception as e:
            logging.error(
                f"Unhandled exception in handler '{getattr(handler, '__name__', handler)}' for event "
                f"'{type(event).__name__}': {e}",
                exc_info=True,
            )
