"""
Credential references on configurations are resolved here, never stored in clear text.
"""

import logging
import os
import re
from abc import ABC, abstractmethod
from typing import Dict, Optional

from file_retrieval.core.exceptions import ErrorCategory, FileRetrievalError


class SecretNotFoundError(FileRetrievalError):
    category = ErrorCategory.CONFIGURATION

    def __init__(self, reference: str):
        self.reference = reference
        super().__init__(f"Secret '{reference}' could not be resolved")


class SecretResolver(ABC):
    @abstractmethod
    def resolve(self, reference: str) -> str:
        raise NotImplementedError


class EnvironmentSecretResolver(SecretResolver):
    """Looks up reference 'ftp-password' as environment variable <prefix>FTP_PASSWORD."""

    def __init__(self, prefix: str, environ: Optional[Dict[str, str]] = None):
        self._prefix = prefix
        self._environ = environ if environ is not None else os.environ

    def variable_name(self, reference: str) -> str:
        return self._prefix + re.sub(r"[^A-Za-z0-9]", "_", reference).upper()

    def resolve(self, reference: str) -> str:
        name = self.variable_name(reference)
        value = self._environ.get(name)
        if not value:
            logging.warning(f"Secret reference '{reference}' not found (expected env var {name})")
            raise SecretNotFoundError(reference)
        return value


class InMemorySecretResolver(SecretResolver):
    def __init__(self, secrets: Optional[Dict[str, str]] = None):
        self._secrets: Dict[str, str] = dict(secrets or {})

    def set(self, reference: str, value: str) -> None:
        self._secrets[reference] = value

    def resolve(self, reference: str) -> str:
        if reference not in self._secrets:
            raise SecretNotFoundError(reference)
        return self._secrets[reference]
