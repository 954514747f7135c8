import asyncio
import logging
from typing import Dict, Optional, Set

from file_retrieval.core.events.event_bus import DomainEventBus
from file_retrieval.core.events.execution_events import ExecutionStatusChanged
from file_retrieval.core.exceptions import ExecutionNotFoundError, InvalidTransitionError
from file_retrieval.core.execution_repository import ExecutionRepository
from file_retrieval.models import Execution, ExecutionStatus, utcnow


class ExecutionStateMachine:
    """
    Central "dørmand" for alle execution-statusovergange.

    Dette er den ENESTE klasse i systemet, der må:
    1. Validere en status-overgang.
    2. Ændre en Execution's .status felt.
    3. Gemme ændringen til ExecutionRepository.
    4. Publicere ExecutionStatusChanged.

    Terminale executions (Completed/Failed) kan ikke ændres igen.
    """

    def __init__(
        self,
        execution_repository: ExecutionRepository,
        event_bus: DomainEventBus,
    ):
        self._repository = execution_repository
        self._event_bus = event_bus
        self._lock = asyncio.Lock()

        self._transitions: Dict[ExecutionStatus, Set[ExecutionStatus]] = {
            ExecutionStatus.PENDING: {
                ExecutionStatus.IN_PROGRESS,
                ExecutionStatus.FAILED,  # Cancelled eller konfiguration forsvundet før start
            },
            ExecutionStatus.IN_PROGRESS: {
                ExecutionStatus.COMPLETED,
                ExecutionStatus.FAILED,
            },
            ExecutionStatus.COMPLETED: set(),
            ExecutionStatus.FAILED: set(),
        }
        logging.info("ExecutionStateMachine initialiseret med %s overgangsregler", len(self._transitions))

    async def transition(
        self,
        *,
        execution_id: str,
        new_status: ExecutionStatus,
        **kwargs,
    ) -> Execution:
        """
        Udfører en status-overgang atomisk og publicerer en event.

        Args:
            execution_id: ID på executionen (keyword-only).
            new_status: Den ønskede nye status (keyword-only).
            **kwargs: Felter der opdateres samtidig (f.eks. error_message, files_found).

        Returns:
            Den opdaterede Execution.

        Raises:
            InvalidTransitionError: Hvis overgangen ikke er tilladt.
            ExecutionNotFoundError: Hvis executionen ikke findes.
            ValueError: Hvis resultatet bryder en execution-invariant.
        """
        event_to_publish: Optional[ExecutionStatusChanged] = None

        async with self._lock:
            execution = await self._repository.get_by_id(execution_id)
            if not execution:
                raise ExecutionNotFoundError(execution_id)

            old_status = execution.status

            if new_status == old_status and not old_status.is_terminal:
                return execution

            if new_status not in self._transitions.get(old_status, set()):
                raise InvalidTransitionError(execution_id, old_status.value, new_status.value)

            logging.info(
                f"Transition: execution {execution_id} (config {execution.configuration_id}) | "
                f"{old_status.value} -> {new_status.value}"
            )
            execution.status = new_status

            # Ryd altid gamle fejl; kwargs kan sætte dem igen
            execution.error_message = None
            execution.error_category = None

            for key, value in kwargs.items():
                if hasattr(execution, key):
                    setattr(execution, key, value)

            now = utcnow()
            if new_status == ExecutionStatus.IN_PROGRESS and not execution.started_at:
                execution.started_at = now
            if new_status.is_terminal and not execution.completed_at:
                execution.completed_at = now

            execution.validate_invariants()

            updated = await self._repository.update(execution, expected_version=execution.version)

            event_to_publish = ExecutionStatusChanged(
                execution_id=updated.id,
                configuration_id=updated.configuration_id,
                client_id=updated.client_id,
                old_status=old_status,
                new_status=new_status,
            )

        # Publiceres uden for låsen, så langsomme subscribers ikke blokerer andre overgange
        if event_to_publish:
            asyncio.create_task(self._event_bus.publish(event_to_publish))

        return updated
