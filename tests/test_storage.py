"""Tests for the ledger stores."""

from decimal import Decimal

import pytest

from coloc_ledger.models import Member, Month, ReimbursementRule, ReimbursementSettings
from coloc_ledger.services.storage import (
    GoogleSheetsLedgerStore,
    InMemoryLedgerStore,
    StorageError,
)
from coloc_ledger.services.storage.google_sheets import DATA_COLUMNS, MAX_CELL_CHARS

from tests.conftest import alice_bob_transactions


class FakeWorksheet:
    """Just enough of gspread.Worksheet for the store."""

    def __init__(self):
        self.rows = [list(DATA_COLUMNS)]
        self.updates = []

    def get_all_values(self):
        return [list(row) for row in self.rows]

    def append_row(self, values, value_input_option=None):
        self.rows.append(list(values))

    def update(self, range_name=None, values=None, value_input_option=None):
        self.updates.append(range_name)
        row_number = int(range_name.split(":")[0][1:])
        self.rows[row_number - 1] = list(values[0])


class FakeClient:
    def __init__(self, sheet):
        self.sheet = sheet

    def get_data_sheet(self):
        return self.sheet


@pytest.fixture
def sheet():
    return FakeWorksheet()


@pytest.fixture
def sheets_store(sheet):
    return GoogleSheetsLedgerStore(client=FakeClient(sheet))


class TestInMemoryStore:
    """Tests for the in-memory store."""

    def test_empty_collections(self, store):
        """Test never-saved collections load as empty values."""
        assert store.load_months() == []
        assert store.load_members() == []
        assert store.load_settings() == ReimbursementSettings()

    def test_months_round_trip(self, store):
        """Test a month with its transactions survives save/load."""
        month = Month(month_name="Mars", year=2025, transactions=alice_bob_transactions())
        store.save_months([month])
        assert store.load_months() == [month]

    def test_loads_are_independent_copies(self, store):
        """Test mutating a loaded month does not change the store."""
        store.save_months([Month(month_name="Mars", year=2025)])
        store.load_months()[0].remarks = "changed"
        assert store.load_months()[0].remarks is None

    def test_corrupt_blob(self):
        """Test unreadable stored text raises StorageError."""
        store = InMemoryLedgerStore({"months": "{not json"})
        with pytest.raises(StorageError):
            store.load_months()


class TestGoogleSheetsStore:
    """Tests for the Sheets-backed store with a fake worksheet."""

    def test_first_save_appends_row(self, sheets_store, sheet):
        """Test a new collection gets its own row."""
        sheets_store.save_members([Member(name="Alice")])
        assert len(sheet.rows) == 2
        assert sheet.rows[1][0] == "members"
        assert [m.name for m in sheets_store.load_members()] == ["Alice"]

    def test_second_save_updates_row(self, sheets_store, sheet):
        """Test saving again rewrites the same row."""
        sheets_store.save_members([Member(name="Alice")])
        sheets_store.save_months([Month(month_name="Mars", year=2025)])
        sheets_store.save_members([Member(name="Alice"), Member(name="Bob")])

        assert len(sheet.rows) == 3
        assert sheet.updates == ["A2:C2"]
        assert [m.name for m in sheets_store.load_members()] == ["Alice", "Bob"]

    def test_settings_round_trip(self, sheets_store):
        """Test settings are read back."""
        sheets_store.save_settings(ReimbursementSettings(
            rule=ReimbursementRule.PRIORITIZED,
            initial_budget=Decimal("120.00"),
        ))
        assert sheets_store.load_settings().rule == ReimbursementRule.PRIORITIZED

    def test_missing_key_is_empty(self, sheets_store):
        """Test an empty sheet reads as empty collections."""
        assert sheets_store.load_months() == []

    def test_oversized_collection_is_refused(self, sheets_store, sheet):
        """Test a document beyond the cell limit is not written."""
        members = [Member(name=f"Membre {i}", email=f"m{i}@example.org") for i in range(600)]
        with pytest.raises(StorageError, match=str(MAX_CELL_CHARS)):
            sheets_store.save_members(members)
        assert len(sheet.rows) == 1
