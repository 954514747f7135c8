"""
Configuration Query Handlers
"""
from typing import List

from file_retrieval.core.cqrs.query import QueryHandler
from file_retrieval.domains.configuration.queries import GetConfigurationQuery, ListConfigurationsQuery
from file_retrieval.domains.configuration.service import ConfigurationService
from file_retrieval.models import Configuration


class GetConfigurationQueryHandler(QueryHandler[GetConfigurationQuery, Configuration]):
    def __init__(self, service: ConfigurationService):
        self._service = service

    async def handle(self, query: GetConfigurationQuery) -> Configuration:
        return await self._service.get(query.client_id, query.configuration_id)


class ListConfigurationsQueryHandler(QueryHandler[ListConfigurationsQuery, List[Configuration]]):
    def __init__(self, service: ConfigurationService):
        self._service = service

    async def handle(self, query: ListConfigurationsQuery) -> List[Configuration]:
        return await self._service.list(query.client_id, include_inactive=query.include_inactive)
