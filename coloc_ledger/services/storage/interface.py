"""
Abstract Storage Interface

DESIGN DECISION: The ledger reads and writes whole collections.
There are three of them (months, members, settings), each small enough
to load in one call. Every write path in the Ledger Book is:
load the collection, change it in memory, save it back once.

This allows us to:
1. Use in-memory storage for testing and unconfigured setups
2. Keep Google Sheets as the persistent backend
3. Keep business logic decoupled from storage implementation
"""

from abc import ABC, abstractmethod
from typing import Optional

from pydantic import TypeAdapter

from coloc_ledger.errors import LedgerError
from coloc_ledger.models.ledger import Member, Month, ReimbursementSettings


MONTHS_KEY = "months"
MEMBERS_KEY = "members"
SETTINGS_KEY = "settings"

_months_adapter = TypeAdapter(list[Month])
_members_adapter = TypeAdapter(list[Member])


class LedgerStoreInterface(ABC):
    """
    Abstract interface for ledger persistence.

    Any storage implementation must implement these methods.
    Loading a collection that was never saved returns its empty value.
    """

    @abstractmethod
    def load_months(self) -> list[Month]:
        """
        Load every month.

        Raises:
            StorageError: If the backend cannot be read
        """
        pass

    @abstractmethod
    def save_months(self, months: list[Month]) -> None:
        """
        Replace the stored months with the given list.

        Raises:
            StorageError: If the write fails (nothing is partially written)
        """
        pass

    @abstractmethod
    def load_members(self) -> list[Member]:
        """Load the global roster."""
        pass

    @abstractmethod
    def save_members(self, members: list[Member]) -> None:
        """Replace the stored roster."""
        pass

    @abstractmethod
    def load_settings(self) -> ReimbursementSettings:
        """Load reimbursement settings (defaults if never saved)."""
        pass

    @abstractmethod
    def save_settings(self, settings: ReimbursementSettings) -> None:
        """Replace the stored reimbursement settings."""
        pass


class JsonBlobLedgerStore(LedgerStoreInterface):
    """
    Stores each collection as one JSON document under a fixed key.

    Subclasses only move strings around; encoding and decoding happen
    here so every backend stores exactly the same text.
    """

    @abstractmethod
    def _read_blob(self, key: str) -> Optional[str]:
        """Return the stored document, or None if the key was never written."""
        pass

    @abstractmethod
    def _write_blob(self, key: str, blob: str) -> None:
        pass

    def _decode(self, key: str, adapter: TypeAdapter, default):
        blob = self._read_blob(key)
        if not blob:
            return default
        try:
            return adapter.validate_json(blob)
        except ValueError as e:
            raise StorageError(f"Stored {key} are not readable: {e}") from e

    def load_months(self) -> list[Month]:
        return self._decode(MONTHS_KEY, _months_adapter, [])

    def save_months(self, months: list[Month]) -> None:
        self._write_blob(MONTHS_KEY, _months_adapter.dump_json(months).decode("utf-8"))

    def load_members(self) -> list[Member]:
        return self._decode(MEMBERS_KEY, _members_adapter, [])

    def save_members(self, members: list[Member]) -> None:
        self._write_blob(MEMBERS_KEY, _members_adapter.dump_json(members).decode("utf-8"))

    def load_settings(self) -> ReimbursementSettings:
        blob = self._read_blob(SETTINGS_KEY)
        if not blob:
            return ReimbursementSettings()
        try:
            return ReimbursementSettings.model_validate_json(blob)
        except ValueError as e:
            raise StorageError(f"Stored settings are not readable: {e}") from e

    def save_settings(self, settings: ReimbursementSettings) -> None:
        self._write_blob(SETTINGS_KEY, settings.model_dump_json())


class StorageError(LedgerError):
    """Base exception for storage operations."""
    pass


class NotFoundError(StorageError):
    """Entity not found in storage."""
    pass


class StoreConnectionError(StorageError):
    """Could not connect to storage backend."""
    pass
