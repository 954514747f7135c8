"""
Execution Repository - in-memory data access for Execution records.
"""

import asyncio
import logging
from typing import Dict, List, Optional

from file_retrieval.core.exceptions import ConcurrencyConflictError, ExecutionNotFoundError
from file_retrieval.models import Execution


class ExecutionRepository:
    """In-memory execution store with compare-and-swap updates on version."""

    def __init__(self):
        self._executions: Dict[str, Execution] = {}
        self._by_idempotency_key: Dict[str, str] = {}
        self._lock = asyncio.Lock()
        logging.info("ExecutionRepository initialized")

    async def get_by_id(self, execution_id: str) -> Optional[Execution]:
        async with self._lock:
            stored = self._executions.get(execution_id)
            return stored.model_copy(deep=True) if stored else None

    async def get(self, client_id: str, execution_id: str) -> Optional[Execution]:
        execution = await self.get_by_id(execution_id)
        if execution is None or execution.client_id != client_id:
            return None
        return execution

    async def find_by_idempotency_key(self, idempotency_key: str) -> Optional[Execution]:
        async with self._lock:
            execution_id = self._by_idempotency_key.get(idempotency_key)
            if execution_id is None:
                return None
            return self._executions[execution_id].model_copy(deep=True)

    async def list_for_configuration(self, client_id: str, configuration_id: str) -> List[Execution]:
        async with self._lock:
            return [
                e.model_copy(deep=True)
                for e in self._executions.values()
                if e.client_id == client_id and e.configuration_id == configuration_id
            ]

    async def list_unfinished(self) -> List[Execution]:
        async with self._lock:
            return [e.model_copy(deep=True) for e in self._executions.values() if not e.status.is_terminal]

    async def add(self, execution: Execution) -> Execution:
        async with self._lock:
            if execution.id in self._executions:
                raise ValueError(f"Execution {execution.id} already exists")
            self._executions[execution.id] = execution.model_copy(deep=True)
            self._by_idempotency_key[execution.idempotency_key] = execution.id
            return execution

    async def update(self, execution: Execution, expected_version: int) -> Execution:
        async with self._lock:
            stored = self._executions.get(execution.id)
            if stored is None:
                raise ExecutionNotFoundError(execution.id)
            if stored.version != expected_version:
                raise ConcurrencyConflictError("Execution", execution.id, expected_version, stored.version)
            updated = execution.model_copy(update={"version": stored.version + 1}, deep=True)
            self._executions[execution.id] = updated
            return updated.model_copy(deep=True)

    async def count(self) -> int:
        async with self._lock:
            return len(self._executions)
