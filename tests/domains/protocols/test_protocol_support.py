import logging

import pytest

from file_retrieval.core.exceptions import AdapterConnectionError
from file_retrieval.domains.protocols.base import join_remote_path
from file_retrieval.domains.protocols.blob_adapter import BlobProtocolAdapter
from file_retrieval.domains.protocols.factory import ProtocolAdapterFactory
from file_retrieval.domains.protocols.ftp_adapter import FtpProtocolAdapter
from file_retrieval.domains.protocols.https_adapter import HttpsProtocolAdapter
from file_retrieval.domains.protocols.memory_adapter import InMemoryProtocolAdapter
from file_retrieval.domains.protocols.secrets import (
    EnvironmentSecretResolver,
    InMemorySecretResolver,
    SecretNotFoundError,
)
from file_retrieval.models import BlobSettings, HttpsSettings, ProtocolKind

logging.disable(logging.CRITICAL)


@pytest.mark.parametrize(
    "parts, expected",
    [
        (("/inbound/", "2024"), "/inbound/2024"),
        (("inbound", "/2024/", "a.csv"), "inbound/2024/a.csv"),
        (("", "a.csv"), "a.csv"),
        (("/",), "/"),
    ],
)
def test_join_remote_path(parts, expected):
    assert join_remote_path(*parts) == expected


def test_environment_secret_resolver():
    resolver = EnvironmentSecretResolver("FR_SECRET_", environ={"FR_SECRET_FTP_PASSWORD": "pw"})

    assert resolver.variable_name("ftp-password") == "FR_SECRET_FTP_PASSWORD"
    assert resolver.resolve("ftp-password") == "pw"
    with pytest.raises(SecretNotFoundError):
        resolver.resolve("blob.sas")


def test_in_memory_secret_resolver():
    resolver = InMemorySecretResolver()
    resolver.set("token", "abc")

    assert resolver.resolve("token") == "abc"
    with pytest.raises(SecretNotFoundError):
        resolver.resolve("other")


def test_factory_builds_adapter_per_protocol(configuration_factory):
    factory = ProtocolAdapterFactory(InMemorySecretResolver())

    ftp = configuration_factory()
    https = configuration_factory(
        protocol=ProtocolKind.HTTPS, protocol_settings=HttpsSettings(base_url="https://files.example.com")
    )
    blob = configuration_factory(
        protocol=ProtocolKind.AZURE_BLOB,
        protocol_settings=BlobSettings(storage_account_name="intake", container_name="drop"),
    )

    assert isinstance(factory.create(ftp), FtpProtocolAdapter)
    assert isinstance(factory.create(https), HttpsProtocolAdapter)
    assert isinstance(factory.create(blob), BlobProtocolAdapter)


def test_factory_builder_can_be_overridden(configuration_factory):
    factory = ProtocolAdapterFactory(InMemorySecretResolver())
    adapter = InMemoryProtocolAdapter()
    factory.register(ProtocolKind.FTP, lambda configuration: adapter)

    assert factory.create(configuration_factory()) is adapter


@pytest.mark.asyncio
async def test_in_memory_adapter_lists_fetches_and_fails_on_demand():
    adapter = InMemoryProtocolAdapter(base_url="ftp://ftp.example.com:21")
    adapter.add_file("/inbound/2024", "ach_20240305.csv", b"abc")
    adapter.add_file("/inbound/2024", "ach_20240306.csv", b"def")
    adapter.add_file("/inbound/2023", "ach_20230305.csv", b"ghi")
    adapter.list_errors.append(AdapterConnectionError("down"))

    with pytest.raises(AdapterConnectionError):
        await adapter.list_files("/inbound/2024", "*.csv")
    candidates = await adapter.list_files("/inbound/2024/", "ACH_2024030?.CSV")
    fetched = await adapter.fetch(candidates[0])

    assert [c.filename for c in candidates] == ["ach_20240305.csv", "ach_20240306.csv"]
    assert candidates[0].file_url == "ftp://ftp.example.com:21/inbound/2024/ach_20240305.csv"
    assert fetched.data == b"abc"
    assert adapter.list_calls == 2
