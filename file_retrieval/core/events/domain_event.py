"""
Base classes for in-process and outbound events.
"""

import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone


@dataclass(frozen=True, kw_only=True)
class DomainEvent:
    """
    Represents an event that occurred in the domain.

    Attributes:
        event_id: A unique identifier for the event instance.
        timestamp: The UTC time when the event was created.
    """

    event_id: str = field(default_factory=lambda: str(uuid.uuid4()))
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


@dataclass(frozen=True, kw_only=True)
class IntegrationMessage(DomainEvent):
    """
    A message that leaves the process through the message gateway.

    Every outbound message is scoped by client and carries a correlation id and an
    idempotency key so downstream consumers can deduplicate redeliveries.
    """

    correlation_id: str
    idempotency_key: str
    client_id: str

    @property
    def message_id(self) -> str:
        return self.event_id

    @property
    def occurred_at(self) -> datetime:
        return self.timestamp


@dataclass(frozen=True, kw_only=True)
class IntegrationEvent(IntegrationMessage):
    """Published to every interested subscriber."""


@dataclass(frozen=True, kw_only=True)
class IntegrationCommand(IntegrationMessage):
    """Sent to exactly one named endpoint."""

    target_endpoint: str
