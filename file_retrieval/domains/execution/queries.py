"""
Execution Domain Queries
Read-only queries over executions, discovered files and processed file records.
All queries are scoped by client id.
"""
from dataclasses import dataclass
from datetime import date, datetime
from typing import Dict, List, Optional

from pydantic import BaseModel, computed_field

from file_retrieval.core.cqrs.query import Query
from file_retrieval.models import Execution, ExecutionStatus


@dataclass
class GetExecutionHistoryQuery(Query):
    """Executions for a configuration, newest first."""
    client_id: str
    configuration_id: str
    status: Optional[ExecutionStatus] = None
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    page_size: int = 50
    offset: int = 0


@dataclass
class GetExecutionDetailsQuery(Query):
    client_id: str
    execution_id: str


@dataclass
class GetDiscoveredFilesQuery(Query):
    client_id: str
    execution_id: str


@dataclass
class GetProcessedFilesQuery(Query):
    client_id: str
    configuration_id: str
    filename: Optional[str] = None
    execution_id: Optional[str] = None


@dataclass
class GetExecutionMetricsQuery(Query):
    """Aggregates over a date range; defaults to the last 30 days."""
    client_id: str
    configuration_id: str
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None


class ExecutionHistoryPage(BaseModel):
    items: List[Execution]
    total_count: int
    page_size: int
    offset: int

    @computed_field
    @property
    def has_more(self) -> bool:
        return self.offset + len(self.items) < self.total_count


class ExecutionMetrics(BaseModel):
    configuration_id: str
    start_date: datetime
    end_date: datetime
    total_executions: int
    successful_executions: int
    failed_executions: int
    success_rate: float
    average_duration_ms: float
    total_files_discovered: int
    files_discovered_per_day: float
    files_by_day: Dict[date, int]
