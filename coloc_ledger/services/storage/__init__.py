"""
Storage Services Package

Provides the abstract ledger store and its implementations.
Google Sheets is the persistent backend; the in-memory store serves
tests and unconfigured setups.
"""

from coloc_ledger.services.storage.interface import (
    JsonBlobLedgerStore,
    LedgerStoreInterface,
    NotFoundError,
    StorageError,
    StoreConnectionError,
)
from coloc_ledger.services.storage.memory import InMemoryLedgerStore
from coloc_ledger.services.storage.google_sheets import (
    GoogleSheetsClient,
    GoogleSheetsLedgerStore,
)

__all__ = [
    # Interfaces
    "JsonBlobLedgerStore",
    "LedgerStoreInterface",
    # Exceptions
    "NotFoundError",
    "StorageError",
    "StoreConnectionError",
    # Implementations
    "GoogleSheetsClient",
    "GoogleSheetsLedgerStore",
    "InMemoryLedgerStore",
]
