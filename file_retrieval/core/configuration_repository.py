"""
Configuration Repository - in-memory data access for Configuration documents.
"""

import asyncio
import logging
from datetime import datetime
from typing import Dict, List, Optional

from file_retrieval.core.exceptions import ConcurrencyConflictError, ConfigurationNotFoundError
from file_retrieval.models import Configuration


class ConfigurationRepository:
    """
    Async-safe, in-memory store for configurations.

    Reads hand out copies so callers never mutate the stored document; writes go
    through update(), which compares the caller's version with the stored one.
    """

    def __init__(self):
        self._configurations: Dict[str, Configuration] = {}
        self._lock = asyncio.Lock()
        logging.info("ConfigurationRepository initialized")

    async def get(self, client_id: str, configuration_id: str) -> Optional[Configuration]:
        async with self._lock:
            stored = self._configurations.get(configuration_id)
            if stored is None or stored.client_id != client_id:
                return None
            return stored.model_copy(deep=True)

    async def get_by_id(self, configuration_id: str) -> Optional[Configuration]:
        async with self._lock:
            stored = self._configurations.get(configuration_id)
            return stored.model_copy(deep=True) if stored else None

    async def list_by_client(self, client_id: str, include_inactive: bool = True) -> List[Configuration]:
        async with self._lock:
            return [
                c.model_copy(deep=True)
                for c in self._configurations.values()
                if c.client_id == client_id and (include_inactive or c.is_active)
            ]

    async def list_active(self) -> List[Configuration]:
        async with self._lock:
            return [c.model_copy(deep=True) for c in self._configurations.values() if c.is_active]

    async def add(self, configuration: Configuration) -> Configuration:
        async with self._lock:
            if configuration.id in self._configurations:
                raise ValueError(f"Configuration {configuration.id} already exists")
            self._configurations[configuration.id] = configuration.model_copy(deep=True)
            return configuration

    async def update(self, configuration: Configuration, expected_version: int) -> Configuration:
        """Store the configuration if the stored version equals expected_version; bumps version."""
        async with self._lock:
            stored = self._configurations.get(configuration.id)
            if stored is None or stored.client_id != configuration.client_id:
                raise ConfigurationNotFoundError(configuration.client_id, configuration.id)
            if stored.version != expected_version:
                raise ConcurrencyConflictError(
                    "Configuration", configuration.id, expected_version, stored.version
                )
            updated = configuration.model_copy(update={"version": stored.version + 1}, deep=True)
            self._configurations[configuration.id] = updated
            return updated.model_copy(deep=True)

    async def touch_last_executed(self, configuration_id: str, executed_at: datetime) -> None:
        """Record the last run time. Not a user edit, so the version is left alone."""
        async with self._lock:
            stored = self._configurations.get(configuration_id)
            if stored is not None:
                stored.last_executed_at = executed_at

    async def remove(self, client_id: str, configuration_id: str) -> bool:
        async with self._lock:
            stored = self._configurations.get(configuration_id)
            if stored is None or stored.client_id != client_id:
                return False
            del self._configurations[configuration_id]
            return True

    async def count(self) -> int:
        async with self._lock:
            return len(self._configurations)
