"""
Fixtures for the execution domain: engine wired to in-memory repositories,
an in-memory protocol adapter and a recording gateway.
"""

from datetime import datetime, timezone

import pytest

from file_retrieval.core.configuration_repository import ConfigurationRepository
from file_retrieval.core.events.event_bus import DomainEventBus
from file_retrieval.core.execution_repository import ExecutionRepository
from file_retrieval.core.execution_state_machine import ExecutionStateMachine
from file_retrieval.domains.discovery.ledger import DiscoveryLedger
from file_retrieval.domains.discovery.processed_files import ProcessedFileRepository
from file_retrieval.domains.execution.dispatcher import ExecutionDispatcher
from file_retrieval.domains.execution.engine import ExecutionEngine
from file_retrieval.domains.messaging.gateway import RecordingGateway
from file_retrieval.domains.protocols.factory import ProtocolAdapterFactory
from file_retrieval.domains.protocols.memory_adapter import InMemoryProtocolAdapter
from file_retrieval.domains.protocols.secrets import InMemorySecretResolver
from file_retrieval.models import Execution, ProtocolKind

REFERENCE = datetime(2024, 3, 5, 8, 0, tzinfo=timezone.utc)


class EngineHarness:
    """Samler engine og alle in-memory afhængigheder til én test."""

    def __init__(self, settings):
        self.settings = settings
        self.configurations = ConfigurationRepository()
        self.executions = ExecutionRepository()
        self.event_bus = DomainEventBus()
        self.state_machine = ExecutionStateMachine(self.executions, self.event_bus)
        self.ledger = DiscoveryLedger()
        self.processed_files = ProcessedFileRepository()
        self.gateway = RecordingGateway()
        self.adapter = InMemoryProtocolAdapter(base_url="ftp://ftp.example.com:21")
        self.adapters_created = 0

        self.factory = ProtocolAdapterFactory(InMemorySecretResolver())
        self.factory.register(ProtocolKind.FTP, self._build_adapter)

        self.engine = ExecutionEngine(
            settings=settings,
            configuration_repository=self.configurations,
            execution_repository=self.executions,
            state_machine=self.state_machine,
            ledger=self.ledger,
            processed_files=self.processed_files,
            adapter_factory=self.factory,
            gateway=self.gateway,
        )

    def _build_adapter(self, configuration):
        self.adapters_created += 1
        self.adapter.closed = False
        return self.adapter

    async def add_configuration(self, configuration):
        await self.configurations.add(configuration)
        return configuration

    async def pending(self, configuration, reference_instant=REFERENCE, is_manual=False, key=None) -> Execution:
        execution = Execution(
            configuration_id=configuration.id,
            client_id=configuration.client_id,
            reference_instant=reference_instant,
            is_manual=is_manual,
            idempotency_key=key or f"{configuration.client_id}:{configuration.id}:scheduled:{reference_instant.isoformat()}",
            correlation_id="corr-1",
        )
        await self.executions.add(execution)
        return execution

    def dispatcher(self) -> ExecutionDispatcher:
        return ExecutionDispatcher(
            settings=self.settings,
            configuration_repository=self.configurations,
            execution_repository=self.executions,
            engine=self.engine,
        )


@pytest.fixture
def harness_factory():
    return EngineHarness


@pytest.fixture
def harness(settings) -> EngineHarness:
    return EngineHarness(settings)
