"""
Execution Dispatcher - accepts triggers and runs executions with bounded concurrency.
"""

import asyncio
import logging
from collections import OrderedDict
from typing import Dict, Optional

from file_retrieval.config import Settings
from file_retrieval.core.configuration_repository import ConfigurationRepository
from file_retrieval.core.exceptions import ConfigurationNotFoundError, ExecutionNotFoundError
from file_retrieval.core.execution_repository import ExecutionRepository
from file_retrieval.domains.execution.commands import TriggerExecutionCommand
from file_retrieval.domains.execution.engine import ExecutionEngine
from file_retrieval.models import Execution


class ExecutionDispatcher:
    """
    Turns triggers into Pending executions and runs them on the engine.

    - A trigger whose idempotency key was seen before is a no-op: the existing
      execution is returned, whatever its status.
    - At most max_concurrent_checks executions run at once across configurations.
    - Executions of the same configuration run one at a time, in trigger order;
      a later trigger waits as Pending until the earlier run is terminal.
    """

    def __init__(
        self,
        settings: Settings,
        configuration_repository: ConfigurationRepository,
        execution_repository: ExecutionRepository,
        engine: ExecutionEngine,
    ):
        self._configurations = configuration_repository
        self._executions = execution_repository
        self._engine = engine
        self._max_concurrent = settings.max_concurrent_checks
        self._history_size = settings.trigger_history_size

        self._semaphore = asyncio.Semaphore(self._max_concurrent)
        # Dropped again once no execution of the configuration is queued or running
        self._configuration_locks: Dict[str, asyncio.Lock] = {}
        self._lock_users: Dict[str, int] = {}
        self._submit_lock = asyncio.Lock()
        self._recent_keys: "OrderedDict[str, str]" = OrderedDict()
        self._tasks: Dict[str, asyncio.Task] = {}
        self._running = False

        logging.info(f"ExecutionDispatcher initialiseret (max {self._max_concurrent} samtidige checks)")

    @property
    def is_running(self) -> bool:
        return self._running

    @property
    def active_count(self) -> int:
        return len(self._tasks)

    @property
    def tracked_configuration_count(self) -> int:
        """Configurations with an execution queued or running."""
        return len(self._configuration_locks)

    def start(self) -> None:
        self._running = True
        logging.info("ExecutionDispatcher startet")

    async def stop(self) -> None:
        """Cancel everything still queued or running and wait for the records to close."""
        self._running = False
        pending = dict(self._tasks)
        for task in pending.values():
            task.cancel()
        if pending:
            await asyncio.gather(*pending.values(), return_exceptions=True)
        for execution_id in pending:
            await self._engine.cancel_pending(execution_id, reason="Execution cancelled at shutdown")
        logging.info(f"ExecutionDispatcher stoppet ({len(pending)} execution(s) cancelled)")

    async def submit(self, command: TriggerExecutionCommand) -> Optional[Execution]:
        """
        Accept a trigger.

        Returns:
            The new or already existing execution, or None if the configuration is inactive.

        Raises:
            ConfigurationNotFoundError: if the configuration does not exist for the client.
        """
        async with self._submit_lock:
            existing = await self._find_existing(command.idempotency_key)
            if existing is not None:
                logging.info(
                    f"Duplikeret trigger {command.idempotency_key} ignoreret; "
                    f"execution {existing.id} er {existing.status.value}"
                )
                return existing

            configuration = await self._configurations.get(command.client_id, command.configuration_id)
            if configuration is None:
                raise ConfigurationNotFoundError(command.client_id, command.configuration_id)
            if not configuration.is_active:
                logging.info(f"Trigger for inaktiv configuration {configuration.id} ignoreret")
                return None

            execution = Execution(
                configuration_id=configuration.id,
                client_id=configuration.client_id,
                reference_instant=command.reference_instant,
                is_manual=command.is_manual,
                idempotency_key=command.idempotency_key,
                correlation_id=command.correlation_id,
            )
            await self._executions.add(execution)
            self._remember(command.idempotency_key, execution.id)

            task = asyncio.create_task(self._run(execution), name=f"execution-{execution.id}")
            self._tasks[execution.id] = task
            task.add_done_callback(lambda _t, execution_id=execution.id: self._tasks.pop(execution_id, None))

        logging.info(
            f"Execution {execution.id} oprettet for config {configuration.id} "
            f"({execution.triggered_by}, key {command.idempotency_key})"
        )
        return execution

    async def cancel(self, client_id: str, execution_id: str) -> Execution:
        execution = await self._executions.get(client_id, execution_id)
        if execution is None:
            raise ExecutionNotFoundError(execution_id)
        if execution.status.is_terminal:
            logging.info(f"Execution {execution_id} er allerede {execution.status.value}, intet at cancelle")
            return execution

        task = self._tasks.get(execution_id)
        if task is not None:
            task.cancel()
            await asyncio.gather(task, return_exceptions=True)

        # No-op when the task already closed the record itself
        execution = await self._engine.cancel_pending(execution_id)
        logging.info(f"Execution {execution_id} cancelled")
        return execution

    async def wait_idle(self) -> None:
        """Wait until every accepted execution has reached a terminal state."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks.values()), return_exceptions=True)

    async def _run(self, execution: Execution) -> None:
        configuration_id = execution.configuration_id
        lock = self._configuration_locks.setdefault(configuration_id, asyncio.Lock())
        self._lock_users[configuration_id] = self._lock_users.get(configuration_id, 0) + 1
        try:
            # Configuration lock first: a queued trigger must not hold a concurrency slot
            async with lock:
                async with self._semaphore:
                    await self._engine.run(execution.id)
        except asyncio.CancelledError:
            # Cancelled while still queued; the engine closes runs it already started
            await self._engine.cancel_pending(execution.id)
            raise
        except Exception as e:
            logging.error(f"Execution {execution.id} stoppede uventet: {e}", exc_info=True)
        finally:
            self._release_lock(configuration_id)

    def _release_lock(self, configuration_id: str) -> None:
        remaining = self._lock_users.get(configuration_id, 1) - 1
        if remaining > 0:
            self._lock_users[configuration_id] = remaining
            return
        self._lock_users.pop(configuration_id, None)
        self._configuration_locks.pop(configuration_id, None)

    async def _find_existing(self, idempotency_key: str) -> Optional[Execution]:
        execution_id = self._recent_keys.get(idempotency_key)
        if execution_id is not None:
            self._recent_keys.move_to_end(idempotency_key)
            return await self._executions.get_by_id(execution_id)
        return await self._executions.find_by_idempotency_key(idempotency_key)

    def _remember(self, idempotency_key: str, execution_id: str) -> None:
        self._recent_keys[idempotency_key] = execution_id
        while len(self._recent_keys) > self._history_size:
            self._recent_keys.popitem(last=False)
