# file_retrieval/core/exceptions.py

from enum import Enum
from typing import Optional


class ErrorCategory(str, Enum):
    """Explicit category tag carried by every intake error."""

    VALIDATION = "ValidationError"
    AUTHENTICATION = "AuthenticationError"
    CONNECTION = "ConnectionError"
    TIMEOUT = "TimeoutError"
    CANCELLED = "Cancelled"
    CONFIGURATION = "ConfigurationError"
    UNKNOWN = "UnknownError"

    @property
    def is_transient(self) -> bool:
        return self in (ErrorCategory.CONNECTION, ErrorCategory.TIMEOUT)


class FileRetrievalError(Exception):
    """Base class for errors raised by the intake engine."""

    category: ErrorCategory = ErrorCategory.UNKNOWN

    def __init__(self, message: str, *, category: Optional[ErrorCategory] = None):
        super().__init__(message)
        if category is not None:
            self.category = category


class ConfigurationValidationError(FileRetrievalError):
    """A configuration failed validation. Surfaced synchronously, never retried."""

    category = ErrorCategory.VALIDATION

    def __init__(self, message: str, field: Optional[str] = None):
        self.field = field
        super().__init__(message)


class ConfigurationNotFoundError(FileRetrievalError):
    category = ErrorCategory.CONFIGURATION

    def __init__(self, client_id: str, configuration_id: str):
        self.client_id = client_id
        self.configuration_id = configuration_id
        super().__init__(
            f"Configuration {configuration_id} not found for client {client_id}"
        )


class ExecutionNotFoundError(FileRetrievalError):
    def __init__(self, execution_id: str):
        self.execution_id = execution_id
        super().__init__(f"Execution {execution_id} not found")


class AdapterError(FileRetrievalError):
    """Raised by protocol adapters. Adapters never retry on their own."""


class AdapterConnectionError(AdapterError):
    category = ErrorCategory.CONNECTION


class AdapterAuthenticationError(AdapterError):
    category = ErrorCategory.AUTHENTICATION


class AdapterTimeoutError(AdapterError):
    category = ErrorCategory.TIMEOUT


class ExecutionCancelledError(FileRetrievalError):
    category = ErrorCategory.CANCELLED


class InvalidTransitionError(Exception):
    """Raised when an execution status transition is not allowed."""

    def __init__(self, execution_id: str, from_status: str, to_status: str):
        self.execution_id = execution_id
        self.from_status = from_status
        self.to_status = to_status
        super().__init__(
            f"Invalid state transition for execution {execution_id}: "
            f"Cannot move from '{from_status}' to '{to_status}'."
        )


class ConcurrencyConflictError(Exception):
    """Compare-and-swap on an entity version failed."""

    def __init__(self, entity: str, entity_id: str, expected: int, actual: int):
        self.entity = entity
        self.entity_id = entity_id
        self.expected = expected
        self.actual = actual
        super().__init__(
            f"{entity} {entity_id} was modified concurrently "
            f"(expected version {expected}, found {actual})"
        )
