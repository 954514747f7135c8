"""
FTP / FTPS adapter built on ftplib. Blocking ftplib calls run in a worker thread.
"""

import asyncio
import ftplib
import io
import logging
import posixpath
import socket
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Callable, Iterator, List, Optional

from file_retrieval.core.exceptions import (
    AdapterAuthenticationError,
    AdapterConnectionError,
    AdapterError,
    AdapterTimeoutError,
    FileRetrievalError,
)
from file_retrieval.domains.patterns.token_resolver import matches
from file_retrieval.domains.protocols.base import ProtocolAdapter, join_remote_path
from file_retrieval.domains.protocols.secrets import SecretResolver
from file_retrieval.models import CandidateFile, FetchedContent, FtpSettings, ProtocolKind

# FTP reply codes that mean the login was refused
_AUTH_REPLY_CODES = {430, 530, 532}
# "550 No such file or directory", also sent by many servers for an empty directory
_NO_SUCH_PATH = 550


def _reply_code(error: ftplib.Error) -> Optional[int]:
    reply = error.args[0] if error.args else ""
    head = str(reply)[:3]
    return int(head) if head.isdigit() else None


def _parse_mlsd_time(value: Optional[str]) -> Optional[datetime]:
    if not value:
        return None
    try:
        return datetime.strptime(value[:14], "%Y%m%d%H%M%S").replace(tzinfo=timezone.utc)
    except ValueError:
        return None


class FtpProtocolAdapter(ProtocolAdapter):
    protocol = ProtocolKind.FTP

    def __init__(
        self,
        settings: FtpSettings,
        secret_resolver: SecretResolver,
        client_factory: Optional[Callable[[], ftplib.FTP]] = None,
    ):
        self._settings = settings
        self._secret_resolver = secret_resolver
        self._client_factory = client_factory or self._default_client

    def _default_client(self) -> ftplib.FTP:
        timeout = self._settings.connection_timeout_seconds
        return ftplib.FTP_TLS(timeout=timeout) if self._settings.use_tls else ftplib.FTP(timeout=timeout)

    @contextmanager
    def _session(self) -> Iterator[ftplib.FTP]:
        """Connected and logged-in FTP session; ftplib errors are mapped to adapter errors."""
        ftp = self._client_factory()
        try:
            try:
                ftp.connect(self._settings.server, self._settings.port)
                ftp.login(self._settings.username, self._secret_resolver.resolve(self._settings.password_secret))
                if isinstance(ftp, ftplib.FTP_TLS):
                    ftp.prot_p()
                ftp.set_pasv(self._settings.use_passive_mode)
                yield ftp
            except FileRetrievalError:
                raise
            except ftplib.error_perm as e:
                if _reply_code(e) in _AUTH_REPLY_CODES:
                    raise AdapterAuthenticationError(f"FTP login refused by {self._settings.server}: {e}") from e
                raise AdapterError(f"FTP command rejected by {self._settings.server}: {e}") from e
            except ftplib.error_temp as e:
                raise AdapterConnectionError(f"FTP temporary failure on {self._settings.server}: {e}") from e
            except (socket.timeout, TimeoutError) as e:
                raise AdapterTimeoutError(f"FTP timeout talking to {self._settings.server}") from e
            except (OSError, EOFError, ftplib.Error) as e:
                raise AdapterConnectionError(f"FTP connection to {self._settings.server} failed: {e}") from e
        finally:
            try:
                ftp.quit()
            except (OSError, EOFError, ftplib.Error):
                ftp.close()

    def _file_url(self, remote_path: str) -> str:
        if not remote_path.startswith("/"):
            remote_path = "/" + remote_path
        return f"ftp://{self._settings.server}:{self._settings.port}{remote_path}"

    def _empty_listing(self, resolved_path: str, reply: ftplib.error_perm) -> List[CandidateFile]:
        logging.info(f"FTP path '{resolved_path}' på {self._settings.server} er tom eller findes ikke ({reply})")
        return []

    def _list_sync(self, resolved_path: str, resolved_filename: str) -> List[CandidateFile]:
        with self._session() as ftp:
            try:
                entries = list(ftp.mlsd(resolved_path or "", facts=["type", "size", "modify"]))
            except ftplib.error_perm as e:
                if _reply_code(e) == _NO_SUCH_PATH:
                    return self._empty_listing(resolved_path, e)
                # Server without MLSD support
                logging.debug(f"MLSD not supported on {self._settings.server}, falling back to NLST")
                try:
                    names = ftp.nlst(resolved_path or "")
                except ftplib.error_perm as nlst_error:
                    if _reply_code(nlst_error) == _NO_SUCH_PATH:
                        return self._empty_listing(resolved_path, nlst_error)
                    raise
                entries = [(posixpath.basename(name), {"type": "file"}) for name in names]

        candidates = []
        for name, facts in entries:
            if facts.get("type", "file") != "file":
                continue
            if not matches(resolved_filename, name):
                continue
            size = facts.get("size")
            remote_path = join_remote_path(resolved_path, name)
            candidates.append(
                CandidateFile(
                    file_url=self._file_url(remote_path),
                    filename=name,
                    file_size=int(size) if size and size.isdigit() else None,
                    last_modified=_parse_mlsd_time(facts.get("modify")),
                    metadata={"remote_path": remote_path},
                )
            )
        return candidates

    def _fetch_sync(self, candidate: CandidateFile) -> FetchedContent:
        remote_path = candidate.metadata.get("remote_path") or candidate.filename
        buffer = io.BytesIO()
        with self._session() as ftp:
            ftp.retrbinary(f"RETR {remote_path}", buffer.write)
        return FetchedContent(candidate=candidate, data=buffer.getvalue())

    async def list_files(self, resolved_path: str, resolved_filename: str) -> List[CandidateFile]:
        logging.debug(
            f"FTP check on {self._settings.server}:{self._settings.port} - "
            f"path: {resolved_path}, pattern: {resolved_filename}"
        )
        candidates = await asyncio.to_thread(self._list_sync, resolved_path, resolved_filename)
        logging.info(f"FTP check completed: {len(candidates)} file(s) on {self._settings.server}")
        return candidates

    async def fetch(self, candidate: CandidateFile) -> FetchedContent:
        return await asyncio.to_thread(self._fetch_sync, candidate)
