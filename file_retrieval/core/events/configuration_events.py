"""
In-process lifecycle events for configurations. The scheduler subscribes to
these to keep its configuration cache fresh.
"""

from dataclasses import dataclass

from file_retrieval.core.events.domain_event import DomainEvent


@dataclass(frozen=True, kw_only=True)
class ConfigurationChanged(DomainEvent):
    """Base for all configuration lifecycle events."""

    client_id: str
    configuration_id: str


@dataclass(frozen=True, kw_only=True)
class ConfigurationCreated(ConfigurationChanged):
    pass


@dataclass(frozen=True, kw_only=True)
class ConfigurationUpdated(ConfigurationChanged):
    version: int


@dataclass(frozen=True, kw_only=True)
class ConfigurationDeactivated(ConfigurationChanged):
    pass


@dataclass(frozen=True, kw_only=True)
class ConfigurationDeleted(ConfigurationChanged):
    pass
