"""
Tests for the month lifecycle: two-pass closure and gated reopening.
"""

from datetime import date
from decimal import Decimal

import pytest

from coloc_ledger.config import LedgerSettings
from coloc_ledger.errors import (
    AllocationMismatchError,
    AuthorizationError,
    MonthClosedError,
    ValidationError,
)
from coloc_ledger.lifecycle import MonthLifecycle
from coloc_ledger.models import (
    MemberAmount,
    Month,
    MonthState,
    ResidualAllocation,
    ResidualDirection,
    SettlementKind,
)
from coloc_ledger.services.storage import NotFoundError

from tests.conftest import PASSPHRASE, due, expense


def amounts(**values) -> list[MemberAmount]:
    return [MemberAmount(member_name=name, amount=Decimal(v)) for name, v in values.items()]


def all_to_savings(value: str) -> ResidualAllocation:
    return ResidualAllocation(savings_amount=Decimal(value))


@pytest.fixture
def deficit_month(store):
    """Avril-2025: dues 200, expenses 300."""
    month = Month(
        month_name="Avril",
        year=2025,
        transactions=[
            due("Alice", "100"),
            due("Bob", "100"),
            expense("Alice", "180"),
            expense("Bob", "120"),
        ],
    )
    store.save_months(store.load_months() + [month])
    return month


class TestBeginClosure:
    """Tests for OPEN -> ADJUSTING_CLOSURE."""

    def test_draft_from_proposal(self, lifecycle, march):
        """Test that leaving Pass A blank uses the proposed amounts."""
        draft = lifecycle.begin_closure("Mars-2025")
        assert draft.state == MonthState.ADJUSTING_CLOSURE
        assert draft.direction == ResidualDirection.SURPLUS
        assert draft.residual_target == Decimal("194.50")
        assert draft.allocation.savings_amount == Decimal("0")
        assert draft.allocation.lines == []
        assert draft.expense_check.is_valid

    def test_nothing_is_written(self, lifecycle, store, march):
        """Test a draft leaves the stored month open and unchanged."""
        before = store.raw("months")
        lifecycle.begin_closure("Mars-2025")
        assert store.raw("months") == before
        assert lifecycle.state_of("Mars-2025") == MonthState.OPEN

    def test_pass_a_mismatch(self, lifecycle, march):
        """Test an unbalanced Pass A is rejected with its remainder."""
        with pytest.raises(AllocationMismatchError) as exc_info:
            lifecycle.begin_closure("Mars-2025", amounts(Alice="85.50", Bob="100"))
        assert exc_info.value.delta == Decimal("20.00")
        assert exc_info.value.stage == "expense_reimbursement"

    def test_unknown_month(self, lifecycle):
        """Test closing a month that does not exist."""
        with pytest.raises(NotFoundError):
            lifecycle.begin_closure("Mars-2025")

    def test_closed_month_cannot_be_closed_again(self, lifecycle, march):
        """Test a second closure is refused."""
        lifecycle.close_month("Mars-2025", None, all_to_savings("194.50"))
        with pytest.raises(MonthClosedError):
            lifecycle.begin_closure("Mars-2025")

    def test_credits_exclude_the_month_being_closed(self, lifecycle, store, march):
        """Test credits come from other closed months plus manual credit."""
        lifecycle.close_month("Mars-2025", None, all_to_savings("194.50"))
        store.save_months(store.load_months() + [Month(
            month_name="Avril", year=2025, transactions=[due("Alice", "50")],
        )])
        draft = lifecycle.begin_closure("Avril-2025")
        # March balances: Alice +114.50, Bob +80
        assert draft.credits == {"Alice": Decimal("114.50"), "Bob": Decimal("80.00")}


class TestConfirmClosure:
    """Tests for ADJUSTING_CLOSURE -> CLOSED."""

    def test_surplus_closure(self, lifecycle, store, march):
        """Test a surplus split between savings and a credit reimbursement."""
        draft = lifecycle.begin_closure("Mars-2025")
        result = lifecycle.confirm_closure(draft, ResidualAllocation(
            savings_amount=Decimal("150"),
            lines=amounts(Bob="44.50"),
        ))

        assert result.state == MonthState.CLOSED
        assert result.state_changed is True
        kinds = [s.kind for s in result.settlements]
        assert kinds == [
            SettlementKind.EXPENSE_REIMBURSEMENT,
            SettlementKind.EXPENSE_REIMBURSEMENT,
            SettlementKind.SAVINGS_DEPOSIT,
            SettlementKind.CREDIT_REIMBURSEMENT,
        ]
        assert result.settlements[2].from_member == "Caisse commune"
        assert result.settlements[2].to_member == "Épargne"

        stored = store.load_months()[0]
        assert stored.is_closed
        assert stored.residual_allocated_total() == Decimal("194.50")
        assert [m.name for m in stored.closed_member_snapshot] == ["Alice", "Bob"]
        assert lifecycle.state_of("Mars-2025") == MonthState.CLOSED

    def test_pass_b_mismatch_keeps_month_open(self, lifecycle, store, march):
        """Test savings 100 of 194.50 is rejected and nothing is written."""
        draft = lifecycle.begin_closure("Mars-2025")
        before = store.raw("months")
        with pytest.raises(AllocationMismatchError) as exc_info:
            lifecycle.confirm_closure(draft, all_to_savings("100"))
        assert exc_info.value.delta == Decimal("94.50")
        assert store.raw("months") == before

    def test_deficit_closure(self, lifecycle, store, march, deficit_month):
        """Test a deficit covered by savings and a member grant."""
        result = lifecycle.close_month(
            "Avril-2025",
            None,
            ResidualAllocation(savings_amount=Decimal("60"), lines=amounts(Alice="40")),
        )
        residual = [s for s in result.settlements if s.kind != SettlementKind.EXPENSE_REIMBURSEMENT]
        assert [(s.kind, s.from_member, s.to_member) for s in residual] == [
            (SettlementKind.SAVINGS_WITHDRAWAL, "Épargne", "Caisse commune"),
            (SettlementKind.CREDIT_GRANT, "Alice", "Caisse commune"),
        ]

    def test_deficit_one_cent_short(self, lifecycle, march, deficit_month):
        """Test 99.99 of a 100 deficit leaves 0.01."""
        draft = lifecycle.begin_closure("Avril-2025")
        with pytest.raises(AllocationMismatchError) as exc_info:
            lifecycle.confirm_closure(draft, all_to_savings("99.99"))
        assert exc_info.value.delta == Decimal("0.01")

    def test_check_residual_with_given_roster(self, lifecycle, march):
        """Test a caller-provided roster replaces the stored one for the name check."""
        draft = lifecycle.begin_closure("Mars-2025")
        allocation = ResidualAllocation(savings_amount=Decimal("94.50"), lines=amounts(Bob="100"))

        from_store = lifecycle.check_residual(draft, allocation)
        assert not any(i.issue_type == "unknown_member" for i in from_store.issues)

        given = lifecycle.check_residual(draft, allocation, roster=["Alice"])
        assert given.is_valid
        assert any(i.issue_type == "unknown_member" for i in given.issues)

    def test_deficit_grant_is_not_carried_as_credit(self, lifecycle, book, march, deficit_month):
        """Test covering a deficit adds nothing to the member's credit."""
        lifecycle.close_month(
            "Avril-2025",
            None,
            ResidualAllocation(savings_amount=Decimal("40"), lines=amounts(Alice="60")),
        )
        credits = book.credits()
        assert credits["Alice"].carried == Decimal("0.00")
        assert credits["Alice"].total == Decimal("0.00")

    def test_zero_amounts_produce_no_settlement(self, lifecycle, march):
        """Test that zero lines are skipped."""
        result = lifecycle.close_month(
            "Mars-2025",
            None,
            ResidualAllocation(savings_amount=Decimal("194.50"), lines=amounts(Alice="0")),
        )
        assert len(result.settlements) == 3

    def test_changed_transactions_invalidate_draft(self, lifecycle, book, march):
        """Test the closure refuses a month edited after the draft."""
        draft = lifecycle.begin_closure("Mars-2025")
        book.add_transaction(
            "Mars-2025",
            type="expense",
            member_name="Bob",
            date=date(2025, 3, 20),
            description="Lessive",
            amount=Decimal("10"),
        )
        with pytest.raises(ValidationError, match="changed since the closure started"):
            lifecycle.confirm_closure(draft, all_to_savings("194.50"))
        assert lifecycle.state_of("Mars-2025") == MonthState.OPEN

    def test_deducted_dues_closure(self, lifecycle, store):
        """Test Pass A skips dues deducted at purchase."""
        store.save_months([Month(
            month_name="Mai",
            year=2025,
            transactions=[
                due("Alice", "50", deducted=True),
                due("Bob", "200"),
                expense("Alice", "85.50"),
            ],
        )])
        result = lifecycle.close_month("Mai-2025", None, all_to_savings("164.50"))
        reimbursed = [s for s in result.settlements if s.kind == SettlementKind.EXPENSE_REIMBURSEMENT]
        assert [(s.to_member, s.amount) for s in reimbursed] == [("Alice", Decimal("35.50"))]


class TestClosedMonthIsFrozen:
    """Tests that a closed month's transactions cannot change."""

    @pytest.fixture
    def closed(self, lifecycle, march):
        lifecycle.close_month("Mars-2025", None, all_to_savings("194.50"))

    def test_writes_are_rejected(self, book, store, closed):
        """Test add/update/delete fail and leave the store untouched."""
        before = store.raw("months")
        transaction_id = book.get_month("Mars-2025").transactions[0].id

        with pytest.raises(MonthClosedError):
            book.add_transaction(
                "Mars-2025", type="due", member_name="Alice",
                date=date(2025, 3, 5), description="Cotisation", amount=Decimal("10"),
            )
        with pytest.raises(MonthClosedError):
            book.update_transaction("Mars-2025", transaction_id, amount=Decimal("1"))
        with pytest.raises(MonthClosedError):
            book.delete_transaction("Mars-2025", transaction_id)

        assert store.raw("months") == before

    def test_remarks_stay_editable(self, book, closed):
        """Test remarks can still be written."""
        assert book.update_remarks("Mars-2025", "Payé en liquide").remarks == "Payé en liquide"

    def test_snapshot_survives_member_deletion(self, book, closed):
        """Test deleting a member does not change a closed month's roster."""
        bob = next(m for m in book.list_members() if m.name == "Bob")
        book.delete_member(bob.id)
        assert [m.name for m in book.month_roster("Mars-2025")] == ["Alice", "Bob"]
        assert [m.name for m in book.list_members()] == ["Alice"]


class TestReopen:
    """Tests for CLOSED -> OPEN."""

    @pytest.fixture
    def closed(self, lifecycle, march):
        lifecycle.close_month("Mars-2025", None, all_to_savings("194.50"))

    def test_wrong_passphrase(self, lifecycle, store, closed):
        """Test a wrong passphrase leaves the month closed."""
        before = store.raw("months")
        with pytest.raises(AuthorizationError):
            lifecycle.reopen_month("Mars-2025", "sésame")
        assert store.raw("months") == before
        assert lifecycle.state_of("Mars-2025") == MonthState.CLOSED

    def test_correct_passphrase(self, lifecycle, closed):
        """Test reopening clears the snapshot and the settlement."""
        month = lifecycle.reopen_month("Mars-2025", PASSPHRASE)
        assert month.is_closed is False
        assert month.closed_member_snapshot is None
        assert month.settlement_record is None
        assert len(month.transactions) == 4
        assert lifecycle.state_of("Mars-2025") == MonthState.OPEN

    def test_no_passphrase_configured(self, store, closed):
        """Test reopening is refused when no secret is set."""
        lifecycle = MonthLifecycle(store, settings=LedgerSettings(reopen_passphrase=None))
        with pytest.raises(AuthorizationError, match="no passphrase"):
            lifecycle.reopen_month("Mars-2025", "")

    def test_open_month_cannot_be_reopened(self, lifecycle, march):
        """Test reopening an open month is a validation error."""
        with pytest.raises(ValidationError, match="not closed"):
            lifecycle.reopen_month("Mars-2025", PASSPHRASE)

    def test_close_reopen_close(self, lifecycle, store, closed):
        """Test a reopened month can be closed again with the same outcome."""
        first = store.load_months()[0].settlement_record
        lifecycle.reopen_month("Mars-2025", PASSPHRASE)
        result = lifecycle.close_month("Mars-2025", None, all_to_savings("194.50"))
        assert [(s.kind, s.amount) for s in result.settlements] == [
            (s.kind, s.amount) for s in first
        ]
