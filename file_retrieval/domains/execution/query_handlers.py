"""
Execution Query Handlers
"""
import logging
from collections import Counter
from datetime import datetime, timedelta, timezone
from typing import List, Optional

from file_retrieval.core.cqrs.query import QueryHandler
from file_retrieval.core.execution_repository import ExecutionRepository
from file_retrieval.domains.discovery.ledger import DiscoveryLedger
from file_retrieval.domains.discovery.processed_files import ProcessedFileRepository
from file_retrieval.domains.execution.queries import (
    ExecutionHistoryPage,
    ExecutionMetrics,
    GetDiscoveredFilesQuery,
    GetExecutionDetailsQuery,
    GetExecutionHistoryQuery,
    GetExecutionMetricsQuery,
    GetProcessedFilesQuery,
)
from file_retrieval.models import DiscoveredFile, Execution, ExecutionStatus, ProcessedFileRecord, utcnow


def _as_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Naive query dates are taken as UTC."""
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class GetExecutionHistoryQueryHandler(QueryHandler[GetExecutionHistoryQuery, ExecutionHistoryPage]):
    def __init__(self, execution_repository: ExecutionRepository):
        self._executions = execution_repository

    async def handle(self, query: GetExecutionHistoryQuery) -> ExecutionHistoryPage:
        start_date, end_date = _as_utc(query.start_date), _as_utc(query.end_date)
        executions = await self._executions.list_for_configuration(query.client_id, query.configuration_id)
        matching = [
            e
            for e in executions
            if (query.status is None or e.status == query.status)
            and (start_date is None or e.queued_at >= start_date)
            and (end_date is None or e.queued_at <= end_date)
        ]
        matching.sort(key=lambda e: e.queued_at, reverse=True)
        return ExecutionHistoryPage(
            items=matching[query.offset:query.offset + query.page_size],
            total_count=len(matching),
            page_size=query.page_size,
            offset=query.offset,
        )


class GetExecutionDetailsQueryHandler(QueryHandler[GetExecutionDetailsQuery, Optional[Execution]]):
    def __init__(self, execution_repository: ExecutionRepository):
        self._executions = execution_repository

    async def handle(self, query: GetExecutionDetailsQuery) -> Optional[Execution]:
        return await self._executions.get(query.client_id, query.execution_id)


class GetDiscoveredFilesQueryHandler(QueryHandler[GetDiscoveredFilesQuery, List[DiscoveredFile]]):
    def __init__(self, ledger: DiscoveryLedger):
        self._ledger = ledger

    async def handle(self, query: GetDiscoveredFilesQuery) -> List[DiscoveredFile]:
        records = await self._ledger.list_for_execution(query.client_id, query.execution_id)
        return sorted(records, key=lambda r: r.discovered_at)


class GetProcessedFilesQueryHandler(QueryHandler[GetProcessedFilesQuery, List[ProcessedFileRecord]]):
    def __init__(self, processed_files: ProcessedFileRepository):
        self._processed_files = processed_files

    async def handle(self, query: GetProcessedFilesQuery) -> List[ProcessedFileRecord]:
        return await self._processed_files.list_for_configuration(
            query.client_id,
            query.configuration_id,
            filename=query.filename,
            execution_id=query.execution_id,
        )


class GetExecutionMetricsQueryHandler(QueryHandler[GetExecutionMetricsQuery, ExecutionMetrics]):
    """Success rate is a fraction (0..1); files per day is averaged over the whole range."""

    DEFAULT_WINDOW = timedelta(days=30)

    def __init__(self, execution_repository: ExecutionRepository):
        self._executions = execution_repository

    async def handle(self, query: GetExecutionMetricsQuery) -> ExecutionMetrics:
        end_date = _as_utc(query.end_date) or utcnow()
        start_date = _as_utc(query.start_date) or end_date - self.DEFAULT_WINDOW

        executions = [
            e
            for e in await self._executions.list_for_configuration(query.client_id, query.configuration_id)
            if start_date <= e.queued_at <= end_date
        ]

        total = len(executions)
        succeeded = sum(1 for e in executions if e.status == ExecutionStatus.COMPLETED)
        failed = sum(1 for e in executions if e.status == ExecutionStatus.FAILED)
        finished = [e for e in executions if e.status.is_terminal]
        average_duration = sum(e.duration_ms for e in finished) / len(finished) if finished else 0.0
        total_files = sum(e.files_found for e in executions)
        days_in_range = (end_date - start_date).total_seconds() / 86400

        files_by_day: Counter = Counter()
        for e in executions:
            files_by_day[e.queued_at.date()] += e.files_found

        metrics = ExecutionMetrics(
            configuration_id=query.configuration_id,
            start_date=start_date,
            end_date=end_date,
            total_executions=total,
            successful_executions=succeeded,
            failed_executions=failed,
            success_rate=succeeded / total if total else 0.0,
            average_duration_ms=average_duration,
            total_files_discovered=total_files,
            files_discovered_per_day=total_files / days_in_range if days_in_range > 0 else 0.0,
            files_by_day=dict(sorted(files_by_day.items())),
        )
        logging.info(
            f"Metrics for configuration {query.configuration_id}: {metrics.success_rate:.0%} success rate, "
            f"{total} executions"
        )
        return metrics
