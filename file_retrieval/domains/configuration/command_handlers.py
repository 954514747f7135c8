"""
Configuration Command Handlers
"""
from file_retrieval.core.cqrs.command import CommandHandler
from file_retrieval.domains.configuration.commands import (
    CreateConfigurationCommand,
    DeactivateConfigurationCommand,
    DeleteConfigurationCommand,
    UpdateConfigurationCommand,
)
from file_retrieval.domains.configuration.service import ConfigurationService
from file_retrieval.models import Configuration


class CreateConfigurationCommandHandler(CommandHandler[CreateConfigurationCommand, Configuration]):
    def __init__(self, service: ConfigurationService):
        self._service = service

    async def handle(self, command: CreateConfigurationCommand) -> Configuration:
        return await self._service.create(command.client_id, command.data, command.created_by)


class UpdateConfigurationCommandHandler(CommandHandler[UpdateConfigurationCommand, Configuration]):
    def __init__(self, service: ConfigurationService):
        self._service = service

    async def handle(self, command: UpdateConfigurationCommand) -> Configuration:
        return await self._service.update(
            command.client_id,
            command.configuration_id,
            command.data,
            expected_version=command.expected_version,
            modified_by=command.modified_by,
        )


class DeactivateConfigurationCommandHandler(CommandHandler[DeactivateConfigurationCommand, Configuration]):
    def __init__(self, service: ConfigurationService):
        self._service = service

    async def handle(self, command: DeactivateConfigurationCommand) -> Configuration:
        return await self._service.deactivate(command.client_id, command.configuration_id, command.modified_by)


class DeleteConfigurationCommandHandler(CommandHandler[DeleteConfigurationCommand, None]):
    def __init__(self, service: ConfigurationService):
        self._service = service

    async def handle(self, command: DeleteConfigurationCommand) -> None:
        await self._service.delete(command.client_id, command.configuration_id)
