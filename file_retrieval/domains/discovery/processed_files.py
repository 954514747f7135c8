"""
Processed File Repository - immutable records of fetched and checksummed files.
"""

import asyncio
import logging
from typing import Dict, List, Optional

from file_retrieval.models import ProcessedFileRecord


class ProcessedFileRepository:
    def __init__(self):
        self._records: Dict[str, ProcessedFileRecord] = {}
        self._lock = asyncio.Lock()
        logging.info("ProcessedFileRepository initialized")

    async def add(self, record: ProcessedFileRecord) -> bool:
        """Store a record once. Returns False if a record with the same id already exists."""
        async with self._lock:
            if record.id in self._records:
                logging.warning(f"ProcessedFileRecord {record.id} already exists, keeping the original")
                return False
            self._records[record.id] = record
            return True

    async def get(self, client_id: str, record_id: str) -> Optional[ProcessedFileRecord]:
        async with self._lock:
            record = self._records.get(record_id)
            return record if record and record.client_id == client_id else None

    async def list_for_configuration(
        self,
        client_id: str,
        configuration_id: str,
        filename: Optional[str] = None,
        execution_id: Optional[str] = None,
    ) -> List[ProcessedFileRecord]:
        async with self._lock:
            records = [
                r
                for r in self._records.values()
                if r.client_id == client_id
                and r.configuration_id == configuration_id
                and (filename is None or r.filename == filename)
                and (execution_id is None or r.execution_id == execution_id)
            ]
        return sorted(records, key=lambda r: r.processed_at, reverse=True)
