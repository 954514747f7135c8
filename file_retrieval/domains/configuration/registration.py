from file_retrieval.core.cqrs.command_bus import CommandBus
from file_retrieval.core.cqrs.query_bus import QueryBus
from file_retrieval.domains.configuration.command_handlers import (
    CreateConfigurationCommandHandler,
    DeactivateConfigurationCommandHandler,
    DeleteConfigurationCommandHandler,
    UpdateConfigurationCommandHandler,
)
from file_retrieval.domains.configuration.commands import (
    CreateConfigurationCommand,
    DeactivateConfigurationCommand,
    DeleteConfigurationCommand,
    UpdateConfigurationCommand,
)
from file_retrieval.domains.configuration.queries import GetConfigurationQuery, ListConfigurationsQuery
from file_retrieval.domains.configuration.query_handlers import (
    GetConfigurationQueryHandler,
    ListConfigurationsQueryHandler,
)
from file_retrieval.domains.configuration.service import ConfigurationService


def register_configuration_handlers(command_bus: CommandBus, query_bus: QueryBus, service: ConfigurationService):
    """Register all Configuration CQRS handlers."""
    command_bus.register(CreateConfigurationCommand, CreateConfigurationCommandHandler(service).handle)
    command_bus.register(UpdateConfigurationCommand, UpdateConfigurationCommandHandler(service).handle)
    command_bus.register(DeactivateConfigurationCommand, DeactivateConfigurationCommandHandler(service).handle)
    command_bus.register(DeleteConfigurationCommand, DeleteConfigurationCommandHandler(service).handle)

    query_bus.register(GetConfigurationQuery, GetConfigurationQueryHandler(service).handle)
    query_bus.register(ListConfigurationsQuery, ListConfigurationsQueryHandler(service).handle)
