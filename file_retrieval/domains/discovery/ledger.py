"""
Discovery Ledger - the idempotency boundary for discovered files.
"""

import asyncio
import logging
from dataclasses import dataclass
from datetime import date
from enum import Enum
from typing import Dict, List, Optional, Tuple

from file_retrieval.models import DiscoveredFile, DiscoveryStatus, utcnow

LedgerKey = Tuple[str, str, date]


class InsertOutcome(str, Enum):
    INSERTED = "inserted"
    ALREADY_EXISTS = "alreadyExists"


@dataclass(frozen=True)
class InsertResult:
    outcome: InsertOutcome
    record: DiscoveredFile

    @property
    def inserted(self) -> bool:
        return self.outcome == InsertOutcome.INSERTED


def _is_retryable(record: DiscoveredFile) -> bool:
    """A record that failed before anything was announced may be claimed again."""
    return record.status == DiscoveryStatus.FAILED and record.event_published_at is None


class DiscoveryLedger:
    """
    One DiscoveredFile per (configuration id, filename, discovery day).

    A record whose fetch failed before the discovery event went out is replaced on
    the next sighting, so the file is not lost for the rest of the day.

    try_insert() is the only way in and checks-and-inserts under one lock, so two
    overlapping executions can never both register the same file for the same day.
    """

    def __init__(self):
        self._records: Dict[LedgerKey, DiscoveredFile] = {}
        self._by_id: Dict[str, LedgerKey] = {}
        self._lock = asyncio.Lock()
        logging.info("DiscoveryLedger initialized")

    async def try_insert(self, discovered_file: DiscoveredFile) -> InsertResult:
        key = discovered_file.ledger_key
        async with self._lock:
            existing = self._records.get(key)
            if existing is not None and not _is_retryable(existing):
                logging.debug(
                    f"Ledger hit for {discovered_file.filename} on {discovered_file.discovery_date} "
                    f"(config {discovered_file.configuration_id})"
                )
                return InsertResult(InsertOutcome.ALREADY_EXISTS, existing.model_copy(deep=True))
            if existing is not None:
                logging.info(
                    f"Previous attempt for {discovered_file.filename} on {discovered_file.discovery_date} "
                    f"failed before announcement, registering it again"
                )
                self._by_id.pop(existing.id, None)
            self._records[key] = discovered_file.model_copy(deep=True)
            self._by_id[discovered_file.id] = key
            return InsertResult(InsertOutcome.INSERTED, discovered_file)

    async def get(self, discovered_file_id: str) -> Optional[DiscoveredFile]:
        async with self._lock:
            key = self._by_id.get(discovered_file_id)
            return self._records[key].model_copy(deep=True) if key else None

    async def find(self, configuration_id: str, filename: str, discovery_day: date) -> Optional[DiscoveredFile]:
        async with self._lock:
            record = self._records.get((configuration_id, filename, discovery_day))
            return record.model_copy(deep=True) if record else None

    async def update_status(
        self,
        discovered_file_id: str,
        status: DiscoveryStatus,
        error_message: Optional[str] = None,
    ) -> DiscoveredFile:
        """
        Move a record forward. Records in a terminal discovery status are never changed.

        Raises:
            KeyError: if the record does not exist.
            ValueError: if the record is already terminal.
        """
        async with self._lock:
            key = self._by_id.get(discovered_file_id)
            if key is None:
                raise KeyError(discovered_file_id)
            record = self._records[key]
            if record.status.is_terminal:
                raise ValueError(
                    f"DiscoveredFile {discovered_file_id} is {record.status.value} and cannot change"
                )
            now = utcnow()
            update = {"status": status}
            if status == DiscoveryStatus.EVENT_PUBLISHED:
                update["event_published_at"] = now
            elif status == DiscoveryStatus.COMMAND_SENT:
                update["command_sent_at"] = now
            if error_message is not None:
                update["error_message"] = error_message
            self._records[key] = record.model_copy(update=update)
            return self._records[key].model_copy(deep=True)

    async def list_for_execution(self, client_id: str, execution_id: str) -> List[DiscoveredFile]:
        async with self._lock:
            return [
                r.model_copy(deep=True)
                for r in self._records.values()
                if r.client_id == client_id and r.execution_id == execution_id
            ]

    async def list_for_configuration(self, client_id: str, configuration_id: str) -> List[DiscoveredFile]:
        async with self._lock:
            return [
                r.model_copy(deep=True)
                for r in self._records.values()
                if r.client_id == client_id and r.configuration_id == configuration_id
            ]

    async def count(self) -> int:
        async with self._lock:
            return len(self._records)
