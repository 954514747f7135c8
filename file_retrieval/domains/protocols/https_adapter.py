"""
HTTPS adapter built on httpx.

A GET on base_url + resolved path either returns a JSON array describing files
({name, url, size, lastModified}) or the file itself.
"""

import logging
import posixpath
from datetime import datetime
from email.utils import parsedate_to_datetime
from typing import Any, Dict, List, Optional
from urllib.parse import urlparse

import httpx

from file_retrieval.core.exceptions import (
    AdapterAuthenticationError,
    AdapterConnectionError,
    AdapterError,
    AdapterTimeoutError,
)
from file_retrieval.domains.patterns.token_resolver import matches
from file_retrieval.domains.protocols.secrets import SecretResolver
from file_retrieval.domains.protocols.base import ProtocolAdapter
from file_retrieval.models import CandidateFile, FetchedContent, HttpsAuthType, HttpsSettings, ProtocolKind


def _combine_url(base_url: str, path: str) -> str:
    path = path.strip("/")
    return f"{base_url.rstrip('/')}/{path}" if path else base_url.rstrip("/")


def _parse_timestamp(value: Any) -> Optional[datetime]:
    if not value or not isinstance(value, str):
        return None
    try:
        return datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return None


def _parse_http_date(value: Optional[str]) -> Optional[datetime]:
    if not value:
        return None
    try:
        return parsedate_to_datetime(value)
    except (TypeError, ValueError):
        return None


class HttpsProtocolAdapter(ProtocolAdapter):
    protocol = ProtocolKind.HTTPS

    def __init__(
        self,
        settings: HttpsSettings,
        secret_resolver: SecretResolver,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self._settings = settings
        self._secret_resolver = secret_resolver
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    def _auth_headers(self) -> Dict[str, str]:
        headers = {"Accept": "application/json, */*"}
        auth_type = self._settings.auth_type
        if auth_type == HttpsAuthType.BEARER_TOKEN and self._settings.password_or_token_secret:
            token = self._secret_resolver.resolve(self._settings.password_or_token_secret)
            headers["Authorization"] = f"Bearer {token}"
        elif auth_type == HttpsAuthType.API_KEY and self._settings.username_or_api_key:
            headers["X-API-Key"] = self._settings.username_or_api_key
        return headers

    def _basic_auth(self) -> Optional[httpx.BasicAuth]:
        if (
            self._settings.auth_type == HttpsAuthType.USERNAME_PASSWORD
            and self._settings.username_or_api_key
            and self._settings.password_or_token_secret
        ):
            password = self._secret_resolver.resolve(self._settings.password_or_token_secret)
            return httpx.BasicAuth(self._settings.username_or_api_key, password)
        return None

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                timeout=self._settings.connection_timeout_seconds,
                follow_redirects=self._settings.follow_redirects,
                max_redirects=self._settings.max_redirects,
                headers=self._auth_headers(),
                auth=self._basic_auth(),
                transport=self._transport,
            )
        return self._client

    async def _get(self, url: str) -> httpx.Response:
        try:
            response = await self._get_client().get(url)
        except httpx.TimeoutException as e:
            raise AdapterTimeoutError(f"HTTPS request to {url} timed out") from e
        except httpx.TransportError as e:
            raise AdapterConnectionError(f"HTTPS request to {url} failed: {e}") from e

        if response.status_code in (401, 403):
            raise AdapterAuthenticationError(f"HTTPS request to {url} was refused ({response.status_code})")
        if response.status_code in (408, 429) or response.status_code >= 500:
            raise AdapterConnectionError(f"HTTPS request to {url} failed with status {response.status_code}")
        if response.is_error:
            raise AdapterError(f"HTTPS request to {url} failed with status {response.status_code}")
        return response

    async def list_files(self, resolved_path: str, resolved_filename: str) -> List[CandidateFile]:
        url = _combine_url(self._settings.base_url, resolved_path)
        logging.debug(f"HTTPS check GET {url} - pattern: {resolved_filename}")
        response = await self._get(url)

        content_type = response.headers.get("content-type", "")
        candidates: List[CandidateFile] = []
        if "json" in content_type.lower():
            try:
                entries = response.json()
            except ValueError as e:
                raise AdapterError(f"HTTPS listing at {url} is not valid JSON") from e
            if not isinstance(entries, list):
                raise AdapterError(f"HTTPS listing at {url} is not a JSON array")
            for entry in entries:
                if not isinstance(entry, dict):
                    continue
                lowered = {str(k).lower(): v for k, v in entry.items()}
                name = str(lowered.get("name") or "")
                if not name or not matches(resolved_filename, name):
                    continue
                size = lowered.get("size")
                candidates.append(
                    CandidateFile(
                        file_url=lowered.get("url") or _combine_url(url, name),
                        filename=name,
                        file_size=size if isinstance(size, int) and size > 0 else None,
                        last_modified=_parse_timestamp(lowered.get("lastmodified")),
                        metadata={"content_type": lowered.get("contenttype") or "unknown"},
                    )
                )
        else:
            filename = posixpath.basename(urlparse(url).path)
            if filename and matches(resolved_filename, filename):
                last_modified = _parse_http_date(response.headers.get("last-modified"))
                candidates.append(
                    CandidateFile(
                        file_url=url,
                        filename=filename,
                        file_size=len(response.content),
                        last_modified=last_modified,
                        metadata={"content_type": content_type or "unknown"},
                    )
                )

        logging.info(f"HTTPS check completed: {len(candidates)} file(s) at {self._settings.base_url}")
        return candidates

    async def fetch(self, candidate: CandidateFile) -> FetchedContent:
        response = await self._get(candidate.file_url)
        return FetchedContent(candidate=candidate, data=response.content)

    async def close(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None
