"""
Domain events specific to execution records.
"""

from dataclasses import dataclass
from typing import Optional

from file_retrieval.core.events.domain_event import DomainEvent
from file_retrieval.models import ExecutionStatus


@dataclass(frozen=True, kw_only=True)
class ExecutionStatusChanged(DomainEvent):
    """Event published when an execution's status changes."""

    execution_id: str
    configuration_id: str
    client_id: str
    old_status: Optional[ExecutionStatus]
    new_status: ExecutionStatus
