"""
Execution Error Classifier - maps any exception raised during a check to an ErrorCategory.
"""

import asyncio
import logging

from file_retrieval.core.exceptions import ErrorCategory, FileRetrievalError


class ExecutionErrorClassifier:
    """
    Classifies by exception type and category tag only.

    Adapter errors carry their category; anything else is mapped from the
    builtin exception hierarchy, and unknown types are UnknownError (never retried).
    """

    def classify(self, error: BaseException) -> ErrorCategory:
        if isinstance(error, FileRetrievalError):
            return error.category
        if isinstance(error, asyncio.CancelledError):
            return ErrorCategory.CANCELLED
        if isinstance(error, (asyncio.TimeoutError, TimeoutError)):
            return ErrorCategory.TIMEOUT
        if isinstance(error, ConnectionError):
            return ErrorCategory.CONNECTION
        if isinstance(error, PermissionError):
            return ErrorCategory.AUTHENTICATION
        if isinstance(error, OSError):
            # Socket-level failures (DNS, unreachable host)
            return ErrorCategory.CONNECTION

        logging.debug(f"Unclassified error type {type(error).__name__}, treating as UnknownError")
        return ErrorCategory.UNKNOWN

    def is_retryable(self, error: BaseException) -> bool:
        return self.classify(error).is_transient
