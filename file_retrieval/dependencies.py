from functools import lru_cache
from typing import Any, Dict

from file_retrieval.core.configuration_repository import ConfigurationRepository
from file_retrieval.core.cqrs.command_bus import CommandBus
from file_retrieval.core.cqrs.query_bus import QueryBus
from file_retrieval.core.events.event_bus import DomainEventBus
from file_retrieval.core.execution_repository import ExecutionRepository
from file_retrieval.core.execution_state_machine import ExecutionStateMachine
from file_retrieval.domains.configuration.registration import register_configuration_handlers
from file_retrieval.domains.configuration.service import ConfigurationService
from file_retrieval.domains.discovery.ledger import DiscoveryLedger
from file_retrieval.domains.discovery.processed_files import ProcessedFileRepository
from file_retrieval.domains.execution.dispatcher import ExecutionDispatcher
from file_retrieval.domains.execution.engine import ExecutionEngine
from file_retrieval.domains.execution.error_classifier import ExecutionErrorClassifier
from file_retrieval.domains.execution.registration import register_execution_handlers
from file_retrieval.domains.execution.retry_policy import RetryPolicy
from file_retrieval.domains.messaging.gateway import EventBusGateway, MessageGateway
from file_retrieval.domains.protocols.factory import ProtocolAdapterFactory
from file_retrieval.domains.protocols.secrets import EnvironmentSecretResolver, SecretResolver
from file_retrieval.domains.scheduling.schedule_evaluator import ScheduleEvaluator
from file_retrieval.domains.scheduling.scheduler import Scheduler

from .config import Settings

# Global singleton instances
_singletons: Dict[str, Any] = {}


@lru_cache
def get_settings() -> Settings:
    """Hent Settings singleton instance."""
    return Settings()


def get_command_bus() -> CommandBus:
    if "command_bus" not in _singletons:
        _singletons["command_bus"] = CommandBus()
    return _singletons["command_bus"]


def get_query_bus() -> QueryBus:
    if "query_bus" not in _singletons:
        _singletons["query_bus"] = QueryBus()
    return _singletons["query_bus"]


def get_event_bus() -> DomainEventBus:
    if "event_bus" not in _singletons:
        _singletons["event_bus"] = DomainEventBus()
    return _singletons["event_bus"]


def get_configuration_repository() -> ConfigurationRepository:
    if "configuration_repository" not in _singletons:
        _singletons["configuration_repository"] = ConfigurationRepository()
    return _singletons["configuration_repository"]


def get_execution_repository() -> ExecutionRepository:
    if "execution_repository" not in _singletons:
        _singletons["execution_repository"] = ExecutionRepository()
    return _singletons["execution_repository"]


def get_discovery_ledger() -> DiscoveryLedger:
    if "discovery_ledger" not in _singletons:
        _singletons["discovery_ledger"] = DiscoveryLedger()
    return _singletons["discovery_ledger"]


def get_processed_file_repository() -> ProcessedFileRepository:
    if "processed_files" not in _singletons:
        _singletons["processed_files"] = ProcessedFileRepository()
    return _singletons["processed_files"]


def get_execution_state_machine() -> ExecutionStateMachine:
    if "execution_state_machine" not in _singletons:
        _singletons["execution_state_machine"] = ExecutionStateMachine(
            execution_repository=get_execution_repository(),
            event_bus=get_event_bus(),
        )
    return _singletons["execution_state_machine"]


def get_secret_resolver() -> SecretResolver:
    if "secret_resolver" not in _singletons:
        _singletons["secret_resolver"] = EnvironmentSecretResolver(get_settings().secret_env_prefix)
    return _singletons["secret_resolver"]


def get_adapter_factory() -> ProtocolAdapterFactory:
    if "adapter_factory" not in _singletons:
        _singletons["adapter_factory"] = ProtocolAdapterFactory(get_secret_resolver())
    return _singletons["adapter_factory"]


def get_message_gateway() -> MessageGateway:
    if "message_gateway" not in _singletons:
        _singletons["message_gateway"] = EventBusGateway(get_event_bus())
    return _singletons["message_gateway"]


def get_schedule_evaluator() -> ScheduleEvaluator:
    if "schedule_evaluator" not in _singletons:
        _singletons["schedule_evaluator"] = ScheduleEvaluator()
    return _singletons["schedule_evaluator"]


def get_execution_engine() -> ExecutionEngine:
    if "execution_engine" not in _singletons:
        settings = get_settings()
        _singletons["execution_engine"] = ExecutionEngine(
            settings=settings,
            configuration_repository=get_configuration_repository(),
            execution_repository=get_execution_repository(),
            state_machine=get_execution_state_machine(),
            ledger=get_discovery_ledger(),
            processed_files=get_processed_file_repository(),
            adapter_factory=get_adapter_factory(),
            gateway=get_message_gateway(),
            error_classifier=ExecutionErrorClassifier(),
            retry_policy=RetryPolicy(settings.retry_delays_seconds),
        )
    return _singletons["execution_engine"]


def get_execution_dispatcher() -> ExecutionDispatcher:
    if "execution_dispatcher" not in _singletons:
        _singletons["execution_dispatcher"] = ExecutionDispatcher(
            settings=get_settings(),
            configuration_repository=get_configuration_repository(),
            execution_repository=get_execution_repository(),
            engine=get_execution_engine(),
        )
    return _singletons["execution_dispatcher"]


def get_configuration_service() -> ConfigurationService:
    if "configuration_service" not in _singletons:
        _singletons["configuration_service"] = ConfigurationService(
            configuration_repository=get_configuration_repository(),
            event_bus=get_event_bus(),
            evaluator=get_schedule_evaluator(),
        )
    return _singletons["configuration_service"]


def get_scheduler() -> Scheduler:
    if "scheduler" not in _singletons:
        _singletons["scheduler"] = Scheduler(
            settings=get_settings(),
            configuration_repository=get_configuration_repository(),
            command_bus=get_command_bus(),
            event_bus=get_event_bus(),
            evaluator=get_schedule_evaluator(),
        )
    return _singletons["scheduler"]


def register_handlers() -> None:
    """Wire every CQRS handler onto the buses. Safe to call more than once."""
    if _singletons.get("handlers_registered"):
        return

    command_bus = get_command_bus()
    query_bus = get_query_bus()
    register_configuration_handlers(command_bus, query_bus, get_configuration_service())
    register_execution_handlers(
        command_bus,
        query_bus,
        dispatcher=get_execution_dispatcher(),
        execution_repository=get_execution_repository(),
        ledger=get_discovery_ledger(),
        processed_files=get_processed_file_repository(),
    )
    _singletons["handlers_registered"] = True


def reset_singletons() -> None:
    _singletons.clear()
