import logging
from typing import Any, Awaitable, Callable, Dict, Type

from file_retrieval.core.cqrs.query import Query

logger = logging.getLogger(__name__)


class QueryBus:
    """
    En simpel, asynkron Query Bus (Mediator-mønster).

    Den router en Query til præcis én registreret Handler.
    """

    def __init__(self):
        self._handlers: Dict[Type[Query], Callable[[Query], Awaitable[Any]]] = {}

    def register(self, query_type: Type[Query], handler: Callable[[Query], Awaitable[Any]]):
        if query_type in self._handlers:
            logger.error(f"En handler for query '{query_type.__name__}' er allerede registreret.")
            raise ValueError(f"Handler for query '{query_type.__name__}' er allerede registreret.")

        self._handlers[query_type] = handler
        logger.debug(f"Handler '{getattr(handler, '__name__', handler)}' registreret for '{query_type.__name__}'")

    def is_registered(self, query_type: Type[Query]) -> bool:
        return query_type in self._handlers

    async def execute(self, query: Query) -> Any:
        """
        Eksekverer en query ved at finde og kalde dens registrerede handler.

        Kaster en fejl, hvis ingen handler er fundet.
        """
        query_type = type(query)
        handler = self._handlers.get(query_type)

        if not handler:
            logger.error(f"Ingen handler fundet for query '{query_type.__name__}'")
            raise ValueError(f"No handler registered for query '{query_type.__name__}'")

        logger.debug(f"Eksekverer query '{query_type.__name__}'")

        try:
            return await handler(query)
        except Exception as e:
            # Logges, men kastes videre så API'et kan mappe fejlen til et HTTP-svar
            logger.error(
                f"Fejl i handler ved eksekvering af '{query_type.__name__}': {e}",
                exc_info=True,
            )
            raise
