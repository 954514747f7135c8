"""
Execution Domain
Runs configuration checks: dispatcher, engine, retry policy and the read side.
"""
from .commands import CancelExecutionCommand, TriggerExecutionCommand
from .dispatcher import ExecutionDispatcher
from .engine import ExecutionEngine
from .error_classifier import ExecutionErrorClassifier
from .retry_policy import RetryPolicy

__all__ = [
    "CancelExecutionCommand",
    "TriggerExecutionCommand",
    "ExecutionDispatcher",
    "ExecutionEngine",
    "ExecutionErrorClassifier",
    "RetryPolicy",
]
