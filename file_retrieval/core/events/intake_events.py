"""
Outbound messages produced by the intake engine.

Every message carries message id, correlation id, occurred-at, client id and an
idempotency key (see IntegrationMessage). Downstream consumers deduplicate on
the idempotency key.
"""

from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Any, Dict, Optional

from file_retrieval.core.events.domain_event import IntegrationCommand, IntegrationEvent


@dataclass(frozen=True, kw_only=True)
class FileCheckTriggered(IntegrationEvent):
    """Published when an execution leaves Pending and starts running."""

    configuration_id: str
    execution_id: str
    is_manual: bool
    triggered_by: str
    scheduled_time: datetime


@dataclass(frozen=True, kw_only=True)
class FileDiscovered(IntegrationEvent):
    """Published once per newly discovered file per discovery day."""

    configuration_id: str
    configuration_name: str
    protocol: str
    execution_id: str
    discovered_file_id: str
    file_url: str
    filename: str
    discovery_date: date
    file_size: Optional[int] = None
    last_modified: Optional[datetime] = None
    event_data: Dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True, kw_only=True)
class DiscoveredFileProcessed(IntegrationEvent):
    """Published after a discovered file was fetched and checksummed."""

    configuration_id: str
    execution_id: str
    discovered_file_id: str
    processed_file_id: str
    file_url: str
    filename: str
    downloaded_size_bytes: int
    checksum_algorithm: str
    checksum_hex: str


@dataclass(frozen=True, kw_only=True)
class FileCheckCompleted(IntegrationEvent):
    configuration_id: str
    execution_id: str
    files_found: int
    files_processed: int
    duration_ms: int
    resolved_file_path_pattern: Optional[str]
    resolved_filename_pattern: Optional[str]
    is_manual: bool


@dataclass(frozen=True, kw_only=True)
class FileCheckFailed(IntegrationEvent):
    configuration_id: str
    execution_id: str
    error_message: str
    error_category: str
    retry_count: int
    resolved_file_path_pattern: Optional[str]
    resolved_filename_pattern: Optional[str]
    is_manual: bool


@dataclass(frozen=True, kw_only=True)
class ProcessDiscoveredFile(IntegrationCommand):
    """Downstream command sent for each command definition on the configuration."""

    command_type: str
    configuration_id: str
    execution_id: str
    discovered_file_id: str
    file_url: str
    filename: str
    command_data: Dict[str, Any] = field(default_factory=dict)
