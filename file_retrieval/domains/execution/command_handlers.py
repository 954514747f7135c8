"""
Execution Command Handlers
"""
from typing import Optional

from file_retrieval.core.cqrs.command import CommandHandler
from file_retrieval.domains.execution.commands import CancelExecutionCommand, TriggerExecutionCommand
from file_retrieval.domains.execution.dispatcher import ExecutionDispatcher
from file_retrieval.models import Execution


class TriggerExecutionCommandHandler(CommandHandler[TriggerExecutionCommand, Optional[Execution]]):
    """Hands scheduled and manual triggers to the dispatcher."""

    def __init__(self, dispatcher: ExecutionDispatcher):
        self._dispatcher = dispatcher

    async def handle(self, command: TriggerExecutionCommand) -> Optional[Execution]:
        return await self._dispatcher.submit(command)


class CancelExecutionCommandHandler(CommandHandler[CancelExecutionCommand, Execution]):
    def __init__(self, dispatcher: ExecutionDispatcher):
        self._dispatcher = dispatcher

    async def handle(self, command: CancelExecutionCommand) -> Execution:
        return await self._dispatcher.cancel(command.client_id, command.execution_id)
