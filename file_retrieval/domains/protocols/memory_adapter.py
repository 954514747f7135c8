"""
In-memory protocol adapter for tests and local runs.
"""

import asyncio
from dataclasses import dataclass
from datetime import datetime
from typing import Dict, List, Optional, Tuple

from file_retrieval.core.exceptions import AdapterError
from file_retrieval.domains.patterns.token_resolver import matches
from file_retrieval.domains.protocols.base import ProtocolAdapter, join_remote_path
from file_retrieval.models import CandidateFile, FetchedContent, ProtocolKind


@dataclass
class _StoredFile:
    data: bytes
    last_modified: Optional[datetime]


class InMemoryProtocolAdapter(ProtocolAdapter):
    """
    Holds files per (path, filename) and can be scripted to fail.

    list_errors / fetch_errors are consumed front to back, one per call; once empty,
    calls succeed. listing_gate, when set, makes list_files wait until the event is set.
    """

    def __init__(self, protocol: ProtocolKind = ProtocolKind.FTP, base_url: str = "memory://files"):
        self.protocol = protocol
        self.base_url = base_url.rstrip("/")
        self._files: Dict[Tuple[str, str], _StoredFile] = {}
        self.list_errors: List[Exception] = []
        self.fetch_errors: List[Exception] = []
        self.listing_gate: Optional[asyncio.Event] = None
        self.list_delay_seconds: float = 0.0
        self.list_calls = 0
        self.fetch_calls = 0
        self.closed = False

    def add_file(
        self,
        path: str,
        filename: str,
        data: bytes = b"",
        last_modified: Optional[datetime] = None,
    ) -> None:
        self._files[(path.strip("/"), filename)] = _StoredFile(data=data, last_modified=last_modified)

    def remove_file(self, path: str, filename: str) -> None:
        self._files.pop((path.strip("/"), filename), None)

    def _url(self, path: str, filename: str) -> str:
        return f"{self.base_url}/{join_remote_path(path, filename)}"

    async def list_files(self, resolved_path: str, resolved_filename: str) -> List[CandidateFile]:
        self.list_calls += 1
        if self.listing_gate is not None:
            await self.listing_gate.wait()
        if self.list_delay_seconds:
            await asyncio.sleep(self.list_delay_seconds)
        if self.list_errors:
            raise self.list_errors.pop(0)

        path = resolved_path.strip("/")
        return [
            CandidateFile(
                file_url=self._url(path, filename),
                filename=filename,
                file_size=len(stored.data),
                last_modified=stored.last_modified,
                metadata={"path": path},
            )
            for (stored_path, filename), stored in sorted(self._files.items())
            if stored_path == path and matches(resolved_filename, filename)
        ]

    async def fetch(self, candidate: CandidateFile) -> FetchedContent:
        self.fetch_calls += 1
        if self.fetch_errors:
            raise self.fetch_errors.pop(0)
        path = str(candidate.metadata.get("path", ""))
        stored = self._files.get((path, candidate.filename))
        if stored is None:
            raise AdapterError(f"File {candidate.file_url} no longer exists")
        return FetchedContent(candidate=candidate, data=stored.data)

    async def close(self) -> None:
        self.closed = True
