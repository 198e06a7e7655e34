"""
In-Memory Storage

Keeps each collection as the same JSON text the persistent backend
would store, so tests exercise the real encoding. Also used when no
Google Sheets configuration is available.
"""

from typing import Optional

from coloc_ledger.services.storage.interface import JsonBlobLedgerStore


class InMemoryLedgerStore(JsonBlobLedgerStore):
    """Dictionary-backed store. Contents are lost when the process exits."""

    def __init__(self, blobs: Optional[dict[str, str]] = None):
        self._blobs: dict[str, str] = dict(blobs or {})

    def _read_blob(self, key: str) -> Optional[str]:
        return self._blobs.get(key)

    def _write_blob(self, key: str, blob: str) -> None:
        self._blobs[key] = blob

    def raw(self, key: str) -> Optional[str]:
        """The stored document for a key, exactly as written."""
        return self._blobs.get(key)
