import asyncio
import socket

import pytest

from file_retrieval.core.exceptions import (
    AdapterAuthenticationError,
    AdapterConnectionError,
    AdapterError,
    AdapterTimeoutError,
    ConfigurationValidationError,
    ErrorCategory,
    ExecutionCancelledError,
)
from file_retrieval.domains.execution.error_classifier import ExecutionErrorClassifier
from file_retrieval.domains.execution.retry_policy import RetryPolicy


@pytest.fixture
def classifier() -> ExecutionErrorClassifier:
    return ExecutionErrorClassifier()


@pytest.mark.parametrize(
    "error, expected",
    [
        (AdapterConnectionError("reset"), ErrorCategory.CONNECTION),
        (AdapterTimeoutError("slow"), ErrorCategory.TIMEOUT),
        (AdapterAuthenticationError("denied"), ErrorCategory.AUTHENTICATION),
        (AdapterError("404"), ErrorCategory.UNKNOWN),
        (ConfigurationValidationError("bad cron"), ErrorCategory.VALIDATION),
        (asyncio.TimeoutError(), ErrorCategory.TIMEOUT),
        (ConnectionRefusedError(), ErrorCategory.CONNECTION),
        (socket.gaierror("name resolution"), ErrorCategory.CONNECTION),
        (PermissionError("nope"), ErrorCategory.AUTHENTICATION),
        (asyncio.CancelledError(), ErrorCategory.CANCELLED),
        (ExecutionCancelledError("stopped"), ErrorCategory.CANCELLED),
        (KeyError("x"), ErrorCategory.UNKNOWN),
    ],
)
def test_classification_by_type(classifier, error, expected):
    assert classifier.classify(error) == expected


def test_message_text_is_ignored(classifier):
    """En fejl med 'timeout' i teksten er stadig UnknownError."""
    assert classifier.classify(RuntimeError("connection timeout while reading")) == ErrorCategory.UNKNOWN


def test_only_connection_and_timeout_are_retryable(classifier):
    assert classifier.is_retryable(AdapterConnectionError("x"))
    assert classifier.is_retryable(AdapterTimeoutError("x"))
    assert not classifier.is_retryable(AdapterAuthenticationError("x"))
    assert not classifier.is_retryable(ValueError("x"))


@pytest.mark.asyncio
async def test_retry_policy_walks_the_schedule():
    slept = []

    async def fake_sleep(seconds: float) -> None:
        slept.append(seconds)

    policy = RetryPolicy([2.0, 5.0, 10.0], sleep=fake_sleep)

    assert policy.max_retries == 3
    for used in range(3):
        assert policy.can_retry(used)
        await policy.wait(used)
    assert not policy.can_retry(3)
    assert slept == [2.0, 5.0, 10.0]
