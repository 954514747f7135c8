from file_retrieval.core.cqrs.command_bus import CommandBus
from file_retrieval.core.cqrs.query_bus import QueryBus
from file_retrieval.core.execution_repository import ExecutionRepository
from file_retrieval.domains.discovery.ledger import DiscoveryLedger
from file_retrieval.domains.discovery.processed_files import ProcessedFileRepository
from file_retrieval.domains.execution.command_handlers import (
    CancelExecutionCommandHandler,
    TriggerExecutionCommandHandler,
)
from file_retrieval.domains.execution.commands import CancelExecutionCommand, TriggerExecutionCommand
from file_retrieval.domains.execution.dispatcher import ExecutionDispatcher
from file_retrieval.domains.execution.queries import (
    GetDiscoveredFilesQuery,
    GetExecutionDetailsQuery,
    GetExecutionHistoryQuery,
    GetExecutionMetricsQuery,
    GetProcessedFilesQuery,
)
from file_retrieval.domains.execution.query_handlers import (
    GetDiscoveredFilesQueryHandler,
    GetExecutionDetailsQueryHandler,
    GetExecutionHistoryQueryHandler,
    GetExecutionMetricsQueryHandler,
    GetProcessedFilesQueryHandler,
)


def register_execution_handlers(
    command_bus: CommandBus,
    query_bus: QueryBus,
    dispatcher: ExecutionDispatcher,
    execution_repository: ExecutionRepository,
    ledger: DiscoveryLedger,
    processed_files: ProcessedFileRepository,
):
    """Register all Execution CQRS handlers."""
    command_bus.register(TriggerExecutionCommand, TriggerExecutionCommandHandler(dispatcher).handle)
    command_bus.register(CancelExecutionCommand, CancelExecutionCommandHandler(dispatcher).handle)

    query_bus.register(GetExecutionHistoryQuery, GetExecutionHistoryQueryHandler(execution_repository).handle)
    query_bus.register(GetExecutionDetailsQuery, GetExecutionDetailsQueryHandler(execution_repository).handle)
    query_bus.register(GetExecutionMetricsQuery, GetExecutionMetricsQueryHandler(execution_repository).handle)
    query_bus.register(GetDiscoveredFilesQuery, GetDiscoveredFilesQueryHandler(ledger).handle)
    query_bus.register(GetProcessedFilesQuery, GetProcessedFilesQueryHandler(processed_files).handle)
