"""
File discovery bookkeeping: the discovery ledger and processed file records.
"""
from .ledger import DiscoveryLedger, InsertOutcome, InsertResult
from .processed_files import ProcessedFileRepository

__all__ = ["DiscoveryLedger", "InsertOutcome", "InsertResult", "ProcessedFileRepository"]
