import logging
from typing import Any, Awaitable, Callable, Dict, Type

from file_retrieval.core.cqrs.command import Command

logger = logging.getLogger(__name__)


class CommandBus:
    """
    Sender inbound commands (configuration lifecycle, triggers, cancel) til
    præcis én registreret handler pr. command-type.
    """

    def __init__(self):
        self._handlers: Dict[Type[Command], Callable[[Command], Awaitable[Any]]] = {}

    def register(self, command_type: Type[Command], handler: Callable[[Command], Awaitable[Any]]):
        """
        Registrerer en handler til en specifik command-type.
        Kaster en ValueError, hvis en handler allerede er registreret.
        """
        if command_type in self._handlers:
            logger.error(f"Handler for command '{command_type.__name__}' er allerede registreret.")
            raise ValueError(f"Handler for command '{command_type.__name__}' er allerede registreret.")

        self._handlers[command_type] = handler
        logger.debug(f"Handler {getattr(handler, '__name__', handler)} registreret for {command_type.__name__}")

    def is_registered(self, command_type: Type[Command]) -> bool:
        return command_type in self._handlers

    async def execute(self, command: Command) -> Any:
        """
        Eksekverer en command ved at sende den til den registrerede handler.
        Kaster en ValueError, hvis ingen handler er fundet. Domænefejl fra
        handleren kastes videre til kalderen uændret.
        """
        handler = self._handlers.get(type(command))
        if not handler:
            logger.error(f"Ingen handler registreret for command '{type(command).__name__}'")
            raise ValueError(f"No handler registered for command '{type(command).__name__}'")

        return await handler(command)
