import ftplib
import logging
import socket
from datetime import datetime, timezone

import pytest

from file_retrieval.core.exceptions import (
    AdapterAuthenticationError,
    AdapterConnectionError,
    AdapterError,
    AdapterTimeoutError,
    ErrorCategory,
)
from file_retrieval.domains.protocols.ftp_adapter import FtpProtocolAdapter
from file_retrieval.domains.protocols.secrets import InMemorySecretResolver, SecretNotFoundError
from file_retrieval.models import FtpSettings

logging.disable(logging.CRITICAL)


class FakeFtp:
    """Minimal stand-in for ftplib.FTP; records the calls the adapter makes."""

    def __init__(
        self,
        entries=None,
        files=None,
        login_error=None,
        connect_error=None,
        mlsd_supported=True,
        mlsd_error=None,
        nlst_error=None,
    ):
        self.entries = entries or []
        self.files = files or {}
        self.login_error = login_error
        self.connect_error = connect_error
        self.mlsd_supported = mlsd_supported
        self.mlsd_error = mlsd_error
        self.nlst_error = nlst_error
        self.calls = []
        self.quit_called = False

    def connect(self, host, port):
        self.calls.append(("connect", host, port))
        if self.connect_error:
            raise self.connect_error

    def login(self, user, passwd):
        self.calls.append(("login", user, passwd))
        if self.login_error:
            raise self.login_error

    def set_pasv(self, value):
        self.calls.append(("pasv", value))

    def mlsd(self, path, facts=()):
        if self.mlsd_error:
            raise self.mlsd_error
        if not self.mlsd_supported:
            raise ftplib.error_perm("500 MLSD not understood")
        self.calls.append(("mlsd", path))
        return iter(self.entries)

    def nlst(self, path):
        self.calls.append(("nlst", path))
        if self.nlst_error:
            raise self.nlst_error
        return [f"{path}/{name}" for name, _ in self.entries]

    def retrbinary(self, cmd, callback):
        self.calls.append(("retr", cmd))
        callback(self.files[cmd[len("RETR "):]])

    def quit(self):
        self.quit_called = True

    def close(self):
        pass


def make_adapter(fake: FakeFtp, **settings_overrides) -> FtpProtocolAdapter:
    settings = FtpSettings(
        server="ftp.example.com", username="intake", password_secret="ftp-password", **settings_overrides
    )
    return FtpProtocolAdapter(settings, InMemorySecretResolver({"ftp-password": "pw"}), client_factory=lambda: fake)


@pytest.mark.asyncio
async def test_list_uses_mlsd_and_filters():
    fake = FakeFtp(
        entries=[
            ("ach_20240305.csv", {"type": "file", "size": "120", "modify": "20240305060000"}),
            ("ach_20240305.tmp", {"type": "file", "size": "7"}),
            ("archive", {"type": "dir"}),
            ("other.csv", {"type": "file"}),
        ]
    )
    adapter = make_adapter(fake, port=2121)

    candidates = await adapter.list_files("/inbound/2024/03", "ach_*.csv")

    (candidate,) = candidates
    assert candidate.filename == "ach_20240305.csv"
    assert candidate.file_url == "ftp://ftp.example.com:2121/inbound/2024/03/ach_20240305.csv"
    assert candidate.file_size == 120
    assert candidate.last_modified == datetime(2024, 3, 5, 6, 0, tzinfo=timezone.utc)
    assert ("connect", "ftp.example.com", 2121) in fake.calls
    assert ("login", "intake", "pw") in fake.calls
    assert ("pasv", True) in fake.calls
    assert fake.quit_called


@pytest.mark.asyncio
async def test_list_falls_back_to_nlst():
    fake = FakeFtp(entries=[("ach_20240305.csv", {})], mlsd_supported=False)

    candidates = await make_adapter(fake).list_files("/inbound", "*.csv")

    assert [c.filename for c in candidates] == ["ach_20240305.csv"]
    assert ("nlst", "/inbound") in fake.calls


@pytest.mark.asyncio
async def test_fetch_retrieves_remote_path():
    fake = FakeFtp(
        entries=[("a.csv", {"type": "file"})],
        files={"/inbound/a.csv": b"id;amount\n"},
    )
    adapter = make_adapter(fake)
    (candidate,) = await adapter.list_files("/inbound", "a.csv")

    fetched = await adapter.fetch(candidate)

    assert fetched.data == b"id;amount\n"
    assert ("retr", "RETR /inbound/a.csv") in fake.calls


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "fake, error_type",
    [
        (FakeFtp(login_error=ftplib.error_perm("530 Login incorrect")), AdapterAuthenticationError),
        (FakeFtp(connect_error=ConnectionRefusedError("refused")), AdapterConnectionError),
        (FakeFtp(connect_error=socket.timeout("timed out")), AdapterTimeoutError),
        (FakeFtp(login_error=ftplib.error_temp("421 Too many users")), AdapterConnectionError),
    ],
)
async def test_errors_are_mapped(fake, error_type):
    with pytest.raises(error_type):
        await make_adapter(fake).list_files("/inbound", "*.csv")


@pytest.mark.asyncio
async def test_missing_password_secret():
    settings = FtpSettings(server="ftp.example.com", username="intake", password_secret="unknown")
    adapter = FtpProtocolAdapter(settings, InMemorySecretResolver(), client_factory=lambda: FakeFtp())

    with pytest.raises(SecretNotFoundError):
        await adapter.list_files("/inbound", "*.csv")


@pytest.mark.asyncio
async def test_empty_directory_reported_by_nlst_gives_no_candidates():
    """Mange servere svarer 550 på NLST af en tom mappe; det er 0 filer, ikke en fejl."""
    fake = FakeFtp(mlsd_supported=False, nlst_error=ftplib.error_perm("550 No files found"))

    assert await make_adapter(fake).list_files("/inbound/2024/03", "*.csv") == []
    assert fake.quit_called


@pytest.mark.asyncio
async def test_missing_directory_reported_by_mlsd_gives_no_candidates():
    fake = FakeFtp(mlsd_error=ftplib.error_perm("550 /inbound/2024/03: No such file or directory"))

    assert await make_adapter(fake).list_files("/inbound/2024/03", "*.csv") == []
    assert not any(call[0] == "nlst" for call in fake.calls)


@pytest.mark.asyncio
async def test_other_nlst_rejections_stay_errors():
    fake = FakeFtp(mlsd_supported=False, nlst_error=ftplib.error_perm("553 Requested action not taken"))

    with pytest.raises(AdapterError) as e:
        await make_adapter(fake).list_files("/inbound", "*.csv")

    assert e.value.category == ErrorCategory.UNKNOWN
