"""
Azure Blob Storage adapter built on the async azure-storage-blob client.
"""

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator, List, Optional

from azure.core.exceptions import (
    ClientAuthenticationError,
    HttpResponseError,
    ResourceNotFoundError,
    ServiceRequestError,
    ServiceRequestTimeoutError,
    ServiceResponseError,
    ServiceResponseTimeoutError,
)
from azure.identity.aio import DefaultAzureCredential
from azure.storage.blob.aio import ContainerClient

from file_retrieval.core.exceptions import (
    AdapterAuthenticationError,
    AdapterConnectionError,
    AdapterError,
    AdapterTimeoutError,
)
from file_retrieval.domains.patterns.token_resolver import matches
from file_retrieval.domains.protocols.base import ProtocolAdapter, join_remote_path
from file_retrieval.domains.protocols.secrets import SecretResolver
from file_retrieval.models import BlobAuthType, BlobSettings, CandidateFile, FetchedContent, ProtocolKind


class BlobProtocolAdapter(ProtocolAdapter):
    protocol = ProtocolKind.AZURE_BLOB

    def __init__(
        self,
        settings: BlobSettings,
        secret_resolver: SecretResolver,
        container_client: Optional[ContainerClient] = None,
    ):
        self._settings = settings
        self._secret_resolver = secret_resolver
        self._container = container_client
        self._credential: Optional[DefaultAzureCredential] = None

    def _get_container(self) -> ContainerClient:
        if self._container is not None:
            return self._container

        settings = self._settings
        if settings.auth_type == BlobAuthType.CONNECTION_STRING:
            conn_str = self._secret_resolver.resolve(settings.connection_string_secret)
            self._container = ContainerClient.from_connection_string(
                conn_str, container_name=settings.container_name
            )
        elif settings.auth_type == BlobAuthType.SAS_TOKEN:
            sas_token = self._secret_resolver.resolve(settings.sas_token_secret)
            self._container = ContainerClient(
                settings.account_url, settings.container_name, credential=sas_token
            )
        else:
            # Managed identity and service principal (AZURE_CLIENT_ID/SECRET/TENANT_ID) both
            # go through the default credential chain
            self._credential = DefaultAzureCredential()
            self._container = ContainerClient(
                settings.account_url, settings.container_name, credential=self._credential
            )
        return self._container

    @asynccontextmanager
    async def _translate_errors(self, operation: str) -> AsyncIterator[None]:
        target = self._settings.server_address
        try:
            yield
        except ClientAuthenticationError as e:
            raise AdapterAuthenticationError(f"Blob {operation} on {target} was refused: {e.message}") from e
        except (ServiceRequestTimeoutError, ServiceResponseTimeoutError) as e:
            raise AdapterTimeoutError(f"Blob {operation} on {target} timed out") from e
        except (ServiceRequestError, ServiceResponseError) as e:
            raise AdapterConnectionError(f"Blob {operation} on {target} failed: {e}") from e
        except ResourceNotFoundError as e:
            raise AdapterError(f"Blob {operation} on {target}: resource not found") from e
        except HttpResponseError as e:
            status = e.status_code or 0
            if status in (401, 403):
                raise AdapterAuthenticationError(f"Blob {operation} on {target} was refused ({status})") from e
            if status in (408, 429) or status >= 500:
                raise AdapterConnectionError(f"Blob {operation} on {target} failed with status {status}") from e
            raise AdapterError(f"Blob {operation} on {target} failed with status {status}") from e

    async def list_files(self, resolved_path: str, resolved_filename: str) -> List[CandidateFile]:
        prefix = join_remote_path(self._settings.blob_prefix or "", resolved_path)
        logging.debug(f"Listing blobs in {self._settings.server_address} with prefix '{prefix}'")

        candidates: List[CandidateFile] = []
        async with self._translate_errors("listing"):
            container = self._get_container()
            async for blob in container.list_blobs(name_starts_with=prefix or None):
                filename = blob.name.rsplit("/", 1)[-1]
                if not matches(resolved_filename, filename):
                    continue
                candidates.append(
                    CandidateFile(
                        file_url=f"{container.url.rstrip('/')}/{blob.name}",
                        filename=filename,
                        file_size=blob.size,
                        last_modified=blob.last_modified,
                        metadata={"blob_name": blob.name, "etag": blob.etag},
                    )
                )

        logging.info(f"Blob check completed: {len(candidates)} file(s) in {self._settings.server_address}")
        return candidates

    async def fetch(self, candidate: CandidateFile) -> FetchedContent:
        blob_name = candidate.metadata.get("blob_name") or candidate.filename
        async with self._translate_errors("download"):
            downloader = await self._get_container().download_blob(blob_name)
            data = await downloader.readall()
        return FetchedContent(candidate=candidate, data=data)

    async def close(self) -> None:
        if self._container is not None:
            await self._container.close()
            self._container = None
        if self._credential is not None:
            await self._credential.close()
            self._credential = None
