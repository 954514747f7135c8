"""
Configuration Domain Commands
"""
from dataclasses import dataclass

from file_retrieval.core.cqrs.command import Command
from file_retrieval.domains.configuration.schemas import ConfigurationInput


@dataclass
class CreateConfigurationCommand(Command):
    client_id: str
    data: ConfigurationInput
    created_by: str = "api"


@dataclass
class UpdateConfigurationCommand(Command):
    """Full replacement of the editable fields, guarded by the version the caller read."""
    client_id: str
    configuration_id: str
    data: ConfigurationInput
    expected_version: int
    modified_by: str = "api"


@dataclass
class DeactivateConfigurationCommand(Command):
    client_id: str
    configuration_id: str
    modified_by: str = "api"


@dataclass
class DeleteConfigurationCommand(Command):
    client_id: str
    configuration_id: str
