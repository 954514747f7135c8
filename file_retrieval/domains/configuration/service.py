"""
Configuration Service - validated lifecycle of client configurations.
"""

import logging
from typing import Callable, List, Optional

from pydantic import ValidationError

from file_retrieval.core.configuration_repository import ConfigurationRepository
from file_retrieval.core.events.configuration_events import (
    ConfigurationCreated,
    ConfigurationDeactivated,
    ConfigurationDeleted,
    ConfigurationUpdated,
)
from file_retrieval.core.events.event_bus import DomainEventBus
from file_retrieval.core.exceptions import ConfigurationNotFoundError, ConfigurationValidationError
from file_retrieval.domains.configuration.schemas import ConfigurationInput
from file_retrieval.domains.patterns.token_resolver import contains_tokens, validate_template
from file_retrieval.domains.scheduling.schedule_evaluator import ScheduleEvaluator
from file_retrieval.models import BlobSettings, Configuration, FtpSettings, HttpsSettings, utcnow


class ConfigurationService:
    """
    Creates, updates, deactivates and deletes configurations.

    Every change is validated first (patterns, host part, cron + timezone) and
    announced on the event bus afterwards so the scheduler can refresh its cache.
    """

    def __init__(
        self,
        configuration_repository: ConfigurationRepository,
        event_bus: DomainEventBus,
        evaluator: Optional[ScheduleEvaluator] = None,
        clock: Callable = utcnow,
    ):
        self._repository = configuration_repository
        self._event_bus = event_bus
        self._evaluator = evaluator or ScheduleEvaluator()
        self._clock = clock

    def validate(self, configuration: Configuration) -> None:
        """
        Raises:
            ConfigurationValidationError: naming the first invalid field.
        """
        validate_template(configuration.file_path_pattern, "file_path_pattern")
        validate_template(configuration.filename_pattern, "filename_pattern")

        for field, value in self._host_parts(configuration):
            if contains_tokens(value):
                raise ConfigurationValidationError(
                    f"Date tokens are not allowed in {field}", field=f"protocol_settings.{field}"
                )

        if configuration.file_extension is not None:
            extension = configuration.file_extension.lstrip(".")
            if not extension or any(ch in extension for ch in "/\\{}*?"):
                raise ConfigurationValidationError(
                    f"Invalid file extension '{configuration.file_extension}'", field="file_extension"
                )

        self._evaluator.validate(configuration.cron_expression, configuration.timezone, self._clock())

    @staticmethod
    def _host_parts(configuration: Configuration):
        settings = configuration.protocol_settings
        if isinstance(settings, FtpSettings):
            return [("server", settings.server)]
        if isinstance(settings, HttpsSettings):
            return [("base_url", settings.base_url)]
        if isinstance(settings, BlobSettings):
            return [
                ("storage_account_name", settings.storage_account_name),
                ("container_name", settings.container_name),
            ]
        return []

    @staticmethod
    def _build(**fields) -> Configuration:
        try:
            return Configuration(**fields)
        except ValidationError as e:
            first = e.errors()[0]
            field = ".".join(str(part) for part in first.get("loc", ())) or None
            raise ConfigurationValidationError(first.get("msg", str(e)), field=field) from e

    async def get(self, client_id: str, configuration_id: str) -> Configuration:
        configuration = await self._repository.get(client_id, configuration_id)
        if configuration is None:
            raise ConfigurationNotFoundError(client_id, configuration_id)
        return configuration

    async def list(self, client_id: str, include_inactive: bool = True) -> List[Configuration]:
        configurations = await self._repository.list_by_client(client_id, include_inactive=include_inactive)
        return sorted(configurations, key=lambda c: c.created_at)

    async def create(self, client_id: str, data: ConfigurationInput, created_by: str) -> Configuration:
        configuration = self._build(
            client_id=client_id,
            created_by=created_by,
            created_at=self._clock(),
            **data.model_dump(exclude={"version"}),
        )
        self.validate(configuration)

        await self._repository.add(configuration)
        logging.info(f"Configuration {configuration.id} ({configuration.name}) oprettet for client {client_id}")
        await self._event_bus.publish(
            ConfigurationCreated(client_id=client_id, configuration_id=configuration.id)
        )
        return configuration

    async def update(
        self,
        client_id: str,
        configuration_id: str,
        data: ConfigurationInput,
        expected_version: int,
        modified_by: str,
    ) -> Configuration:
        """
        Replace the client-editable fields.

        Raises:
            ConfigurationNotFoundError, ConfigurationValidationError,
            ConcurrencyConflictError: if expected_version is stale.
        """
        current = await self.get(client_id, configuration_id)
        changed = self._build(
            **{
                **current.model_dump(),
                **data.model_dump(exclude={"version"}),
                "last_modified_at": self._clock(),
                "last_modified_by": modified_by,
            }
        )
        self.validate(changed)

        updated = await self._repository.update(changed, expected_version=expected_version)
        logging.info(f"Configuration {configuration_id} opdateret til version {updated.version}")
        await self._event_bus.publish(
            ConfigurationUpdated(client_id=client_id, configuration_id=configuration_id, version=updated.version)
        )
        return updated

    async def deactivate(self, client_id: str, configuration_id: str, modified_by: str) -> Configuration:
        current = await self.get(client_id, configuration_id)
        if not current.is_active:
            return current

        current.is_active = False
        current.last_modified_at = self._clock()
        current.last_modified_by = modified_by
        updated = await self._repository.update(current, expected_version=current.version)
        logging.info(f"Configuration {configuration_id} deaktiveret")
        await self._event_bus.publish(
            ConfigurationDeactivated(client_id=client_id, configuration_id=configuration_id)
        )
        return updated

    async def delete(self, client_id: str, configuration_id: str) -> None:
        if not await self._repository.remove(client_id, configuration_id):
            raise ConfigurationNotFoundError(client_id, configuration_id)
        logging.info(f"Configuration {configuration_id} slettet")
        await self._event_bus.publish(ConfigurationDeleted(client_id=client_id, configuration_id=configuration_id))
