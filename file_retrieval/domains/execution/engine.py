"""
Execution Engine - runs one configuration check from Pending to a terminal state.
"""

import asyncio
import hashlib
import logging
import time
from dataclasses import dataclass
from typing import Awaitable, Callable, List, Optional, Tuple, TypeVar

from file_retrieval.config import Settings
from file_retrieval.core.configuration_repository import ConfigurationRepository
from file_retrieval.core.events.intake_events import (
    DiscoveredFileProcessed,
    FileCheckCompleted,
    FileCheckFailed,
    FileCheckTriggered,
    FileDiscovered,
    ProcessDiscoveredFile,
)
from file_retrieval.core.exceptions import (
    AdapterTimeoutError,
    ErrorCategory,
    ExecutionCancelledError,
    ExecutionNotFoundError,
    FileRetrievalError,
)
from file_retrieval.core.execution_repository import ExecutionRepository
from file_retrieval.core.execution_state_machine import ExecutionStateMachine
from file_retrieval.domains.discovery.ledger import DiscoveryLedger
from file_retrieval.domains.discovery.processed_files import ProcessedFileRepository
from file_retrieval.domains.execution.error_classifier import ExecutionErrorClassifier
from file_retrieval.domains.execution.retry_policy import RetryPolicy
from file_retrieval.domains.messaging.gateway import MessageGateway
from file_retrieval.domains.patterns.token_resolver import discovery_date, resolve
from file_retrieval.domains.protocols.base import ProtocolAdapter
from file_retrieval.domains.protocols.factory import ProtocolAdapterFactory
from file_retrieval.models import (
    CandidateFile,
    Configuration,
    DiscoveredFile,
    DiscoveryStatus,
    Execution,
    ExecutionStatus,
    ProcessedFileRecord,
)

T = TypeVar("T")

# Display names for checksum algorithms in records and events
_CHECKSUM_NAMES = {"sha256": "SHA-256", "sha1": "SHA-1", "sha512": "SHA-512", "md5": "MD5"}


@dataclass
class _RetryBudget:
    """Retries used so far by one execution. Shared by listing and all fetches."""

    used: int = 0


class CheckFailed(Exception):
    """Internal: carries the categorized error that ends an execution."""

    def __init__(self, error: BaseException, category: ErrorCategory):
        self.error = error
        self.category = category
        super().__init__(str(error) or type(error).__name__)


class ExecutionEngine:
    """
    Orchestrates one execution:

    1. resolve path and filename patterns for the reference instant,
    2. list candidates through the protocol adapter (bounded timeout, retry on transient errors),
    3. register each candidate in the discovery ledger and skip known files,
    4. fetch, checksum and record every newly discovered file and announce it,
    5. finish as Completed or Failed and publish the outcome event.

    Failures never propagate to the caller; they end as a Failed execution plus a
    FileCheckFailed event. Only task cancellation is re-raised after the record is closed.
    """

    def __init__(
        self,
        settings: Settings,
        configuration_repository: ConfigurationRepository,
        execution_repository: ExecutionRepository,
        state_machine: ExecutionStateMachine,
        ledger: DiscoveryLedger,
        processed_files: ProcessedFileRepository,
        adapter_factory: ProtocolAdapterFactory,
        gateway: MessageGateway,
        error_classifier: Optional[ExecutionErrorClassifier] = None,
        retry_policy: Optional[RetryPolicy] = None,
    ):
        self._settings = settings
        self._configurations = configuration_repository
        self._executions = execution_repository
        self._state_machine = state_machine
        self._ledger = ledger
        self._processed_files = processed_files
        self._adapter_factory = adapter_factory
        self._gateway = gateway
        self._classifier = error_classifier or ExecutionErrorClassifier()
        self._retry_policy = retry_policy or RetryPolicy(settings.retry_delays_seconds)
        self._call_timeout = settings.adapter_call_timeout_seconds
        self._checksum_algorithm = settings.checksum_algorithm.lower()

        logging.info(
            f"ExecutionEngine initialiseret (retries: {self._retry_policy.max_retries}, "
            f"call timeout: {self._call_timeout}s, checksum: {self._checksum_algorithm})"
        )

    async def run(self, execution_id: str) -> Execution:
        execution = await self._executions.get_by_id(execution_id)
        if execution is None:
            raise ExecutionNotFoundError(execution_id)
        if execution.status != ExecutionStatus.PENDING:
            logging.info(f"Execution {execution_id} er allerede {execution.status.value}, springer over")
            return execution

        configuration = await self._configurations.get(execution.client_id, execution.configuration_id)
        if configuration is None:
            return await self._fail(
                execution,
                CheckFailed(
                    FileRetrievalError(f"Configuration {execution.configuration_id} no longer exists"),
                    ErrorCategory.CONFIGURATION,
                ),
                retry_count=0,
                started=time.monotonic(),
            )

        started = time.monotonic()
        budget = _RetryBudget()

        try:
            resolved_path = resolve(configuration.file_path_pattern, execution.reference_instant, configuration.timezone)
            resolved_filename = resolve(configuration.filename_pattern, execution.reference_instant, configuration.timezone)
        except FileRetrievalError as e:
            return await self._fail(execution, CheckFailed(e, e.category), retry_count=0, started=started)

        execution = await self._state_machine.transition(
            execution_id=execution.id,
            new_status=ExecutionStatus.IN_PROGRESS,
            resolved_file_path_pattern=resolved_path,
            resolved_filename_pattern=resolved_filename,
        )
        try:
            await self._publish_triggered(execution)
            files_found, files_processed = await self._check(configuration, execution, budget)
        except asyncio.CancelledError:
            logging.warning(f"Execution {execution.id} blev cancelled under kørsel")
            await self._fail(
                execution,
                CheckFailed(ExecutionCancelledError("Execution cancelled by operator"), ErrorCategory.CANCELLED),
                retry_count=budget.used,
                started=started,
            )
            raise
        except CheckFailed as failure:
            return await self._fail(execution, failure, retry_count=budget.used, started=started)
        except Exception as e:
            logging.error(f"Uventet fejl i execution {execution.id}: {e}", exc_info=True)
            return await self._fail(
                execution, CheckFailed(e, self._classifier.classify(e)), retry_count=budget.used, started=started
            )

        return await self._complete(execution, files_found, files_processed, budget.used, started)

    async def cancel_pending(self, execution_id: str, reason: str = "Execution cancelled by operator") -> Execution:
        """Close an execution whose task was cancelled before the engine could close it."""
        execution = await self._executions.get_by_id(execution_id)
        if execution is None:
            raise ExecutionNotFoundError(execution_id)
        if execution.status.is_terminal:
            return execution
        return await self._fail(
            execution,
            CheckFailed(ExecutionCancelledError(reason), ErrorCategory.CANCELLED),
            retry_count=execution.retry_count,
            started=time.monotonic(),
        )

    # --- The check itself ---

    async def _check(
        self, configuration: Configuration, execution: Execution, budget: _RetryBudget
    ) -> Tuple[int, int]:
        adapter = self._adapter_factory.create(configuration)
        try:
            candidates = await self._call_with_retry(
                lambda: adapter.list_files(execution.resolved_file_path_pattern, execution.resolved_filename_pattern),
                budget,
                f"list {execution.resolved_file_path_pattern}/{execution.resolved_filename_pattern}",
                execution,
            )
            candidates = self._apply_extension_filter(configuration, candidates)
            files_found = len(candidates)
            logging.info(f"Execution {execution.id}: {files_found} kandidat(er) fundet for {configuration.name}")

            day = discovery_date(execution.reference_instant, configuration.timezone)
            files_processed = 0
            for candidate in candidates:
                discovered = DiscoveredFile(
                    configuration_id=configuration.id,
                    execution_id=execution.id,
                    client_id=configuration.client_id,
                    file_url=candidate.file_url,
                    filename=candidate.filename,
                    file_size=candidate.file_size,
                    last_modified=candidate.last_modified,
                    discovery_date=day,
                )
                result = await self._ledger.try_insert(discovered)
                if not result.inserted:
                    logging.info(
                        f"Springer over {candidate.filename}: allerede opdaget {day} "
                        f"(config {configuration.id})"
                    )
                    continue

                await self._process_new_file(configuration, execution, discovered, candidate, adapter, budget)
                files_processed += 1

            return files_found, files_processed
        finally:
            await adapter.close()

    def _apply_extension_filter(
        self, configuration: Configuration, candidates: List[CandidateFile]
    ) -> List[CandidateFile]:
        if not configuration.file_extension:
            return candidates
        wanted = configuration.file_extension.lstrip(".").lower()
        return [c for c in candidates if c.filename.rsplit(".", 1)[-1].lower() == wanted and "." in c.filename]

    async def _process_new_file(
        self,
        configuration: Configuration,
        execution: Execution,
        discovered: DiscoveredFile,
        candidate: CandidateFile,
        adapter: ProtocolAdapter,
        budget: _RetryBudget,
    ) -> None:
        try:
            content = await self._call_with_retry(
                lambda: adapter.fetch(candidate), budget, f"fetch {candidate.file_url}", execution
            )
        except CheckFailed as failure:
            await self._ledger.update_status(discovered.id, DiscoveryStatus.FAILED, error_message=str(failure))
            raise

        digest = hashlib.new(self._checksum_algorithm, content.data).hexdigest()
        ledger_key = f"{configuration.client_id}:{configuration.id}:{candidate.file_url}:{discovered.discovery_date.isoformat()}"

        record = ProcessedFileRecord(
            id=discovered.id,
            client_id=configuration.client_id,
            configuration_id=configuration.id,
            execution_id=execution.id,
            discovered_file_id=discovered.id,
            file_url=candidate.file_url,
            filename=candidate.filename,
            protocol=configuration.protocol,
            downloaded_size_bytes=content.size,
            checksum_algorithm=_CHECKSUM_NAMES.get(self._checksum_algorithm, self._checksum_algorithm.upper()),
            checksum_hex=digest,
            correlation_id=execution.correlation_id,
            idempotency_key=f"{ledger_key}:processed",
        )
        await self._processed_files.add(record)

        await self._ledger.update_status(discovered.id, DiscoveryStatus.EVENT_PUBLISHED)
        await self._gateway.publish(
            FileDiscovered(
                correlation_id=execution.correlation_id,
                idempotency_key=ledger_key,
                client_id=configuration.client_id,
                configuration_id=configuration.id,
                configuration_name=configuration.name,
                protocol=configuration.protocol.value,
                execution_id=execution.id,
                discovered_file_id=discovered.id,
                file_url=candidate.file_url,
                filename=candidate.filename,
                discovery_date=discovered.discovery_date,
                file_size=candidate.file_size,
                last_modified=candidate.last_modified,
                event_data=dict(configuration.event_data),
            )
        )
        await self._gateway.publish(
            DiscoveredFileProcessed(
                correlation_id=execution.correlation_id,
                idempotency_key=record.idempotency_key,
                client_id=configuration.client_id,
                configuration_id=configuration.id,
                execution_id=execution.id,
                discovered_file_id=discovered.id,
                processed_file_id=record.id,
                file_url=record.file_url,
                filename=record.filename,
                downloaded_size_bytes=record.downloaded_size_bytes,
                checksum_algorithm=record.checksum_algorithm,
                checksum_hex=record.checksum_hex,
            )
        )
        logging.info(
            f"Ny fil {candidate.filename} ({content.size} bytes, {record.checksum_algorithm} {digest[:12]}...) "
            f"registreret for config {configuration.id}"
        )

        if configuration.command_definitions:
            for definition in configuration.command_definitions:
                await self._gateway.send(
                    ProcessDiscoveredFile(
                        correlation_id=execution.correlation_id,
                        idempotency_key=f"{ledger_key}:{definition.command_type}:cmd",
                        client_id=configuration.client_id,
                        target_endpoint=definition.target_endpoint,
                        command_type=definition.command_type,
                        configuration_id=configuration.id,
                        execution_id=execution.id,
                        discovered_file_id=discovered.id,
                        file_url=candidate.file_url,
                        filename=candidate.filename,
                        command_data=dict(definition.command_data),
                    )
                )
            await self._ledger.update_status(discovered.id, DiscoveryStatus.COMMAND_SENT)

    async def _call_with_retry(
        self,
        operation: Callable[[], Awaitable[T]],
        budget: _RetryBudget,
        description: str,
        execution: Execution,
    ) -> T:
        """
        Run one adapter call with the per-call timeout.

        Transient failures are retried while the execution's budget lasts; anything
        else, or an exhausted budget, raises CheckFailed with the error's category.
        """
        while True:
            try:
                return await asyncio.wait_for(operation(), timeout=self._call_timeout)
            except asyncio.CancelledError:
                raise
            except Exception as e:
                error: BaseException = e
                if isinstance(e, asyncio.TimeoutError) and not isinstance(e, FileRetrievalError):
                    error = AdapterTimeoutError(f"{description} exceeded {self._call_timeout}s")
                category = self._classifier.classify(error)

                if not category.is_transient:
                    logging.error(f"Execution {execution.id}: {description} fejlede ({category.value}): {error}")
                    raise CheckFailed(error, category) from e
                if not self._retry_policy.can_retry(budget.used):
                    logging.error(
                        f"Execution {execution.id}: {description} fejlede efter {budget.used} retries "
                        f"({category.value}): {error}"
                    )
                    raise CheckFailed(error, category) from e

                attempt = budget.used
                budget.used += 1
                logging.warning(
                    f"Execution {execution.id}: {description} fejlede ({category.value}), "
                    f"retry {budget.used}/{self._retry_policy.max_retries} om {self._retry_policy.delay_for(attempt)}s: {error}"
                )
                await self._retry_policy.wait(attempt)

    # --- Terminal transitions ---

    async def _complete(
        self, execution: Execution, files_found: int, files_processed: int, retry_count: int, started: float
    ) -> Execution:
        duration_ms = int((time.monotonic() - started) * 1000)
        execution = await self._state_machine.transition(
            execution_id=execution.id,
            new_status=ExecutionStatus.COMPLETED,
            files_found=files_found,
            files_processed=files_processed,
            duration_ms=duration_ms,
            retry_count=retry_count,
        )
        await self._configurations.touch_last_executed(execution.configuration_id, execution.completed_at)
        await self._gateway.publish(
            FileCheckCompleted(
                correlation_id=execution.correlation_id,
                idempotency_key=f"{execution.client_id}:{execution.configuration_id}:completed:{execution.id}",
                client_id=execution.client_id,
                configuration_id=execution.configuration_id,
                execution_id=execution.id,
                files_found=files_found,
                files_processed=files_processed,
                duration_ms=duration_ms,
                resolved_file_path_pattern=execution.resolved_file_path_pattern,
                resolved_filename_pattern=execution.resolved_filename_pattern,
                is_manual=execution.is_manual,
            )
        )
        logging.info(
            f"Execution {execution.id} Completed: {files_found} fundet, {files_processed} behandlet "
            f"på {duration_ms}ms"
        )
        return execution

    async def _fail(self, execution: Execution, failure: CheckFailed, retry_count: int, started: float) -> Execution:
        duration_ms = int((time.monotonic() - started) * 1000)
        message = str(failure)[:5000]
        execution = await self._state_machine.transition(
            execution_id=execution.id,
            new_status=ExecutionStatus.FAILED,
            error_message=message,
            error_category=failure.category.value,
            retry_count=retry_count,
            duration_ms=duration_ms,
        )
        if execution.started_at is not None:
            await self._configurations.touch_last_executed(execution.configuration_id, execution.completed_at)
        await self._gateway.publish(
            FileCheckFailed(
                correlation_id=execution.correlation_id,
                idempotency_key=f"{execution.client_id}:{execution.configuration_id}:failed:{execution.id}",
                client_id=execution.client_id,
                configuration_id=execution.configuration_id,
                execution_id=execution.id,
                error_message=message,
                error_category=failure.category.value,
                retry_count=retry_count,
                resolved_file_path_pattern=execution.resolved_file_path_pattern,
                resolved_filename_pattern=execution.resolved_filename_pattern,
                is_manual=execution.is_manual,
            )
        )
        logging.error(
            f"Execution {execution.id} Failed ({failure.category.value}) efter {retry_count} retries: {message}"
        )
        return execution

    async def _publish_triggered(self, execution: Execution) -> None:
        await self._gateway.publish(
            FileCheckTriggered(
                correlation_id=execution.correlation_id,
                idempotency_key=f"{execution.client_id}:{execution.configuration_id}:triggered:{execution.id}",
                client_id=execution.client_id,
                configuration_id=execution.configuration_id,
                execution_id=execution.id,
                is_manual=execution.is_manual,
                triggered_by=execution.triggered_by,
                scheduled_time=execution.reference_instant,
            )
        )
