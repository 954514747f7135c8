from file_retrieval.domains.configuration.commands import (
    CreateConfigurationCommand,
    DeactivateConfigurationCommand,
    DeleteConfigurationCommand,
    UpdateConfigurationCommand,
)
from file_retrieval.domains.configuration.queries import GetConfigurationQuery, ListConfigurationsQuery
from file_retrieval.domains.configuration.schemas import ConfigurationInput, ConfigurationUpdateInput
from file_retrieval.domains.configuration.service import ConfigurationService

__all__ = [
    "ConfigurationInput",
    "ConfigurationUpdateInput",
    "ConfigurationService",
    "CreateConfigurationCommand",
    "UpdateConfigurationCommand",
    "DeactivateConfigurationCommand",
    "DeleteConfigurationCommand",
    "GetConfigurationQuery",
    "ListConfigurationsQuery",
]
