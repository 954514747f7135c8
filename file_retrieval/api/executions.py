from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from fastapi import status as http_status

from file_retrieval.core.cqrs.command_bus import CommandBus
from file_retrieval.core.cqrs.query_bus import QueryBus
from file_retrieval.core.exceptions import ExecutionNotFoundError
from file_retrieval.dependencies import get_command_bus, get_query_bus
from file_retrieval.domains.configuration.queries import GetConfigurationQuery
from file_retrieval.domains.execution.commands import CancelExecutionCommand
from file_retrieval.domains.execution.queries import (
    ExecutionHistoryPage,
    ExecutionMetrics,
    GetDiscoveredFilesQuery,
    GetExecutionDetailsQuery,
    GetExecutionHistoryQuery,
    GetExecutionMetricsQuery,
    GetProcessedFilesQuery,
)
from file_retrieval.models import DiscoveredFile, Execution, ExecutionStatus, ProcessedFileRecord

from .errors import to_http_exception

router = APIRouter(prefix="/api/clients/{client_id}", tags=["executions"])


async def _ensure_configuration(query_bus: QueryBus, client_id: str, configuration_id: str) -> None:
    await query_bus.execute(GetConfigurationQuery(client_id=client_id, configuration_id=configuration_id))


async def _get_execution(query_bus: QueryBus, client_id: str, configuration_id: str, execution_id: str) -> Execution:
    execution = await query_bus.execute(GetExecutionDetailsQuery(client_id=client_id, execution_id=execution_id))
    if execution is None or execution.configuration_id != configuration_id:
        raise ExecutionNotFoundError(execution_id)
    return execution


@router.get("/configurations/{configuration_id}/executions", response_model=ExecutionHistoryPage)
async def get_execution_history(
    client_id: str,
    configuration_id: str,
    status: Optional[ExecutionStatus] = None,
    start_date: Optional[datetime] = None,
    end_date: Optional[datetime] = None,
    page_size: int = Query(default=50, ge=1, le=500),
    offset: int = Query(default=0, ge=0),
    query_bus: QueryBus = Depends(get_query_bus),
) -> ExecutionHistoryPage:
    try:
        await _ensure_configuration(query_bus, client_id, configuration_id)
        return await query_bus.execute(
            GetExecutionHistoryQuery(
                client_id=client_id,
                configuration_id=configuration_id,
                status=status,
                start_date=start_date,
                end_date=end_date,
                page_size=page_size,
                offset=offset,
            )
        )
    except Exception as e:
        raise to_http_exception(e) from e


@router.get("/configurations/{configuration_id}/executions/{execution_id}", response_model=Execution)
async def get_execution(
    client_id: str,
    configuration_id: str,
    execution_id: str,
    query_bus: QueryBus = Depends(get_query_bus),
) -> Execution:
    try:
        return await _get_execution(query_bus, client_id, configuration_id, execution_id)
    except Exception as e:
        raise to_http_exception(e) from e


@router.get(
    "/configurations/{configuration_id}/executions/{execution_id}/discovered-files",
    response_model=List[DiscoveredFile],
)
async def get_discovered_files(
    client_id: str,
    configuration_id: str,
    execution_id: str,
    query_bus: QueryBus = Depends(get_query_bus),
) -> List[DiscoveredFile]:
    try:
        await _get_execution(query_bus, client_id, configuration_id, execution_id)
        return await query_bus.execute(GetDiscoveredFilesQuery(client_id=client_id, execution_id=execution_id))
    except Exception as e:
        raise to_http_exception(e) from e


@router.get("/configurations/{configuration_id}/metrics", response_model=ExecutionMetrics)
async def get_execution_metrics(
    client_id: str,
    configuration_id: str,
    start_date: Optional[datetime] = None,
    end_date: Optional[datetime] = None,
    query_bus: QueryBus = Depends(get_query_bus),
) -> ExecutionMetrics:
    try:
        await _ensure_configuration(query_bus, client_id, configuration_id)
        return await query_bus.execute(
            GetExecutionMetricsQuery(
                client_id=client_id,
                configuration_id=configuration_id,
                start_date=start_date,
                end_date=end_date,
            )
        )
    except Exception as e:
        raise to_http_exception(e) from e


@router.get("/configurations/{configuration_id}/processed-files", response_model=List[ProcessedFileRecord])
async def get_processed_files(
    client_id: str,
    configuration_id: str,
    filename: Optional[str] = None,
    execution_id: Optional[str] = None,
    query_bus: QueryBus = Depends(get_query_bus),
) -> List[ProcessedFileRecord]:
    try:
        await _ensure_configuration(query_bus, client_id, configuration_id)
        return await query_bus.execute(
            GetProcessedFilesQuery(
                client_id=client_id,
                configuration_id=configuration_id,
                filename=filename,
                execution_id=execution_id,
            )
        )
    except Exception as e:
        raise to_http_exception(e) from e


@router.post(
    "/executions/{execution_id}/cancel",
    response_model=Execution,
    status_code=http_status.HTTP_200_OK,
)
async def cancel_execution(
    client_id: str,
    execution_id: str,
    command_bus: CommandBus = Depends(get_command_bus),
) -> Execution:
    """Cancel a pending or running execution. Terminal executions are returned unchanged."""
    try:
        return await command_bus.execute(CancelExecutionCommand(client_id=client_id, execution_id=execution_id))
    except Exception as e:
        raise to_http_exception(e) from e
