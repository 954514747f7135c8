"""
Message gateway - the only place outbound events and commands leave the engine.
"""

import logging
from abc import ABC, abstractmethod
from typing import List, Type, TypeVar

from file_retrieval.core.events.domain_event import IntegrationCommand, IntegrationEvent, IntegrationMessage
from file_retrieval.core.events.event_bus import DomainEventBus

TMessage = TypeVar("TMessage", bound=IntegrationMessage)


class MessageGateway(ABC):
    @abstractmethod
    async def publish(self, event: IntegrationEvent) -> None:
        """Publish an event to every interested subscriber."""
        raise NotImplementedError

    @abstractmethod
    async def send(self, command: IntegrationCommand) -> None:
        """Send a command to its target endpoint."""
        raise NotImplementedError


class EventBusGateway(MessageGateway):
    """
    Hands outbound messages to the in-process DomainEventBus.

    A transport bridge (service bus, webhook relay, ...) subscribes to
    IntegrationEvent / IntegrationCommand on the bus and forwards them.
    """

    def __init__(self, event_bus: DomainEventBus):
        self._event_bus = event_bus

    async def publish(self, event: IntegrationEvent) -> None:
        logging.info(
            f"Publishing {type(event).__name__} for client {event.client_id} "
            f"(idempotency key {event.idempotency_key})"
        )
        await self._event_bus.publish(event)

    async def send(self, command: IntegrationCommand) -> None:
        logging.info(
            f"Sending {type(command).__name__} to {command.target_endpoint} "
            f"(idempotency key {command.idempotency_key})"
        )
        await self._event_bus.publish(command)


class RecordingGateway(MessageGateway):
    """Keeps every outbound message in memory."""

    def __init__(self):
        self.published: List[IntegrationEvent] = []
        self.sent: List[IntegrationCommand] = []

    async def publish(self, event: IntegrationEvent) -> None:
        self.published.append(event)

    async def send(self, command: IntegrationCommand) -> None:
        self.sent.append(command)

    def of_type(self, message_type: Type[TMessage]) -> List[TMessage]:
        return [m for m in [*self.published, *self.sent] if isinstance(m, message_type)]
