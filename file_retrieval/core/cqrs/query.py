from abc import ABC, abstractmethod
from typing import Generic, TypeVar

TQuery = TypeVar('TQuery', bound='Query')
TResult = TypeVar('TResult')


class Query(ABC):
    """
    Baseklasse for alle Query-objekter.
    En Query repræsenterer en forespørgsel om data og ændrer ikke systemets tilstand.
    Alle queries er scoped til en client_id.
    """
    pass


class QueryHandler(Generic[TQuery, TResult], ABC):
    @abstractmethod
    async def handle(self, query: TQuery) -> TResult:
        """Håndterer den givne query og returnerer et resultat."""
        raise NotImplementedError
