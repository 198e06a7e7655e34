"""
Google Sheets Storage Implementation

DESIGN DECISION: Google Sheets is the persistent backend because:
1. The household can look at its data directly in Sheets
2. No database setup required
3. Built-in backup (Google's infrastructure)

LAYOUT:
One worksheet, one row per collection:
    key | json | updated_at
The whole collection is rewritten on every save, matching the
load-modify-save pattern of the Ledger Book.

TRADEOFFS:
- A cell holds at most 50,000 characters, which bounds the history
  a single spreadsheet can keep
- No transactions; a save is a single cell range update
"""

from datetime import datetime
from typing import Optional

import gspread
from google.oauth2.service_account import Credentials
from tenacity import retry, stop_after_attempt, wait_exponential

from coloc_ledger.config import GoogleSheetsSettings, get_settings
from coloc_ledger.services.storage.interface import (
    JsonBlobLedgerStore,
    StorageError,
    StoreConnectionError,
)


DATA_COLUMNS = ["key", "json", "updated_at"]

# Google Sheets hard limit per cell
MAX_CELL_CHARS = 50_000


class GoogleSheetsClient:
    """
    Low-level Google Sheets client wrapper.

    Handles authentication and provides retry logic for API calls.
    """

    def __init__(self, settings: Optional[GoogleSheetsSettings] = None):
        self._client: Optional[gspread.Client] = None
        self._spreadsheet: Optional[gspread.Spreadsheet] = None
        self._settings = settings or get_settings().google_sheets

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    def connect(self) -> gspread.Client:
        """
        Establish connection to Google Sheets.

        Uses service account credentials for authentication.
        """
        if self._client is None:
            try:
                scopes = [
                    "https://www.googleapis.com/auth/spreadsheets",
                    "https://www.googleapis.com/auth/drive",
                ]
                credentials = Credentials.from_service_account_file(
                    self._settings.credentials_path,
                    scopes=scopes,
                )
                self._client = gspread.authorize(credentials)
            except FileNotFoundError:
                raise StoreConnectionError(
                    f"Google credentials file not found: {self._settings.credentials_path}"
                )
            except Exception as e:
                raise StoreConnectionError(f"Failed to connect to Google Sheets: {e}")

        return self._client

    def get_spreadsheet(self) -> gspread.Spreadsheet:
        """Get the configured spreadsheet."""
        if self._spreadsheet is None:
            client = self.connect()
            try:
                self._spreadsheet = client.open_by_key(
                    self._settings.spreadsheet_id
                )
            except gspread.SpreadsheetNotFound:
                raise StoreConnectionError(
                    f"Spreadsheet not found: {self._settings.spreadsheet_id}"
                )
        return self._spreadsheet

    def get_data_sheet(self) -> gspread.Worksheet:
        """Get or create the ledger data worksheet."""
        spreadsheet = self.get_spreadsheet()
        try:
            sheet = spreadsheet.worksheet(self._settings.data_sheet_name)
        except gspread.WorksheetNotFound:
            # Create the sheet with headers
            sheet = spreadsheet.add_worksheet(
                title=self._settings.data_sheet_name,
                rows=10,
                cols=len(DATA_COLUMNS),
            )
            sheet.append_row(DATA_COLUMNS)
        return sheet


class GoogleSheetsLedgerStore(JsonBlobLedgerStore):
    """
    Google Sheets implementation of ledger storage.

    Each collection is a JSON document in column B of the row whose
    column A holds its key.
    """

    def __init__(self, client: Optional[GoogleSheetsClient] = None):
        self._client = client or GoogleSheetsClient()

    @staticmethod
    def _find_row(all_rows: list[list[str]], key: str) -> Optional[int]:
        """1-based sheet row index of a key (row 1 is the header)."""
        for idx, row in enumerate(all_rows[1:], start=2):
            if row and row[0] == key:
                return idx
        return None

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    def _read_blob(self, key: str) -> Optional[str]:
        try:
            sheet = self._client.get_data_sheet()
            all_rows = sheet.get_all_values()
        except StoreConnectionError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to read {key}: {e}")

        idx = self._find_row(all_rows, key)
        if idx is None:
            return None
        row = all_rows[idx - 1]
        return row[1] if len(row) > 1 and row[1] else None

    def _write_blob(self, key: str, blob: str) -> None:
        if len(blob) > MAX_CELL_CHARS:
            raise StorageError(
                f"Cannot save {key}: {len(blob)} characters exceeds the "
                f"{MAX_CELL_CHARS} limit of a Google Sheets cell"
            )
        self._put_row(key, blob)

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    def _put_row(self, key: str, blob: str) -> None:
        new_row = [key, blob, datetime.utcnow().isoformat()]
        try:
            sheet = self._client.get_data_sheet()
            idx = self._find_row(sheet.get_all_values(), key)
            if idx is None:
                sheet.append_row(new_row, value_input_option="RAW")
            else:
                sheet.update(
                    range_name=f"A{idx}:C{idx}",
                    values=[new_row],
                    value_input_option="RAW",
                )
        except StoreConnectionError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to save {key}: {e}")
