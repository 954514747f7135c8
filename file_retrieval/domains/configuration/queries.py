"""
Configuration Domain Queries
"""
from dataclasses import dataclass

from file_retrieval.core.cqrs.query import Query


@dataclass
class GetConfigurationQuery(Query):
    client_id: str
    configuration_id: str


@dataclass
class ListConfigurationsQuery(Query):
    client_id: str
    include_inactive: bool = True
