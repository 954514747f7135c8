"""
Protocol adapter contract shared by FTP, HTTPS, blob storage and the in-memory adapter.
"""

from abc import ABC, abstractmethod
from typing import List

from file_retrieval.models import CandidateFile, FetchedContent, ProtocolKind


class ProtocolAdapter(ABC):
    """
    Lists and fetches files from one remote location.

    Adapters never retry. They raise AdapterConnectionError, AdapterAuthenticationError
    or AdapterTimeoutError (or another FileRetrievalError with a category tag) and
    leave backoff to the execution engine.
    """

    protocol: ProtocolKind

    @abstractmethod
    async def list_files(self, resolved_path: str, resolved_filename: str) -> List[CandidateFile]:
        """Return the files under resolved_path whose names match resolved_filename."""
        raise NotImplementedError

    @abstractmethod
    async def fetch(self, candidate: CandidateFile) -> FetchedContent:
        raise NotImplementedError

    async def close(self) -> None:
        """Release network resources. Safe to call more than once."""
        return None

    async def __aenter__(self) -> "ProtocolAdapter":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()


def join_remote_path(*parts: str) -> str:
    """Join path segments with single slashes, keeping a leading slash if the first part has one."""
    cleaned = [p.strip("/") for p in parts if p and p.strip("/")]
    leading = "/" if parts and parts[0].startswith("/") else ""
    return leading + "/".join(cleaned)
