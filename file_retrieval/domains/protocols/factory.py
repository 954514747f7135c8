"""
Creates the protocol adapter for a configuration.
"""

from typing import Callable, Dict, Optional

from file_retrieval.core.exceptions import ConfigurationValidationError
from file_retrieval.domains.protocols.base import ProtocolAdapter
from file_retrieval.domains.protocols.blob_adapter import BlobProtocolAdapter
from file_retrieval.domains.protocols.ftp_adapter import FtpProtocolAdapter
from file_retrieval.domains.protocols.https_adapter import HttpsProtocolAdapter
from file_retrieval.domains.protocols.secrets import SecretResolver
from file_retrieval.models import Configuration, ProtocolKind

AdapterBuilder = Callable[[Configuration], ProtocolAdapter]


class ProtocolAdapterFactory:
    """
    Maps a configuration's protocol kind to an adapter instance.

    Builders can be overridden per protocol (tests register in-memory adapters here).
    """

    def __init__(self, secret_resolver: SecretResolver):
        self._secret_resolver = secret_resolver
        self._builders: Dict[ProtocolKind, AdapterBuilder] = {
            ProtocolKind.FTP: lambda c: FtpProtocolAdapter(c.protocol_settings, self._secret_resolver),
            ProtocolKind.HTTPS: lambda c: HttpsProtocolAdapter(c.protocol_settings, self._secret_resolver),
            ProtocolKind.AZURE_BLOB: lambda c: BlobProtocolAdapter(c.protocol_settings, self._secret_resolver),
        }

    def register(self, protocol: ProtocolKind, builder: AdapterBuilder) -> None:
        self._builders[protocol] = builder

    def create(self, configuration: Configuration) -> ProtocolAdapter:
        builder: Optional[AdapterBuilder] = self._builders.get(configuration.protocol)
        if builder is None:
            raise ConfigurationValidationError(
                f"Unsupported protocol {configuration.protocol}", field="protocol"
            )
        return builder(configuration)
