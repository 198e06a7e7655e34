"""
Tests for Colocation Ledger models

Test strategy:
1. Unit tests for individual components (models, helpers)
2. Integration tests for flows (with in-memory store and fakes)
3. No real API calls in tests
"""

from datetime import date
from decimal import Decimal

import pytest

from coloc_ledger.errors import ValidationError
from coloc_ledger.models import (
    AllocationIssue,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
    Member,
    MemberKind,
    Month,
    ReimbursementRule,
    ReimbursementSettings,
    Settlement,
    SettlementKind,
    Transaction,
    TransactionType,
    format_currency,
    format_month_key,
    parse_month_key,
    sum_money,
    to_money,
)


class TestMoneyHelpers:
    """Tests for money rounding and formatting."""

    def test_to_money_rounds_half_up(self):
        """Test that half cents round away from zero."""
        assert to_money(Decimal("0.005")) == Decimal("0.01")
        assert to_money(Decimal("2.675")) == Decimal("2.68")

    def test_to_money_accepts_float_via_str(self):
        """Test that floats do not leak binary noise."""
        assert to_money(0.1 + 0.2) == Decimal("0.30")

    def test_sum_money(self):
        """Test summing several amounts."""
        assert sum_money([Decimal("85.50"), Decimal("120")]) == Decimal("205.50")
        assert sum_money([]) == Decimal("0.00")

    def test_format_currency(self):
        """Test French-style rendering."""
        assert format_currency(Decimal("94.5")) == "94,50 €"
        assert format_currency(Decimal("1234.5")) == "1 234,50 €"
        assert format_currency(Decimal("-100")) == "-100,00 €"


class TestMonthKey:
    """Tests for month key formatting and parsing."""

    def test_format_month_key(self):
        """Test key rendering."""
        assert format_month_key("Mars", 2025) == "Mars-2025"

    def test_parse_month_key(self):
        """Test key parsing."""
        assert parse_month_key("Décembre-2024") == ("Décembre", 2024)

    @pytest.mark.parametrize("key", ["Mars2025", "March-2025", "Mars-25", "Mars-20x5", ""])
    def test_parse_month_key_rejects_invalid(self, key):
        """Test that malformed keys raise ValidationError."""
        with pytest.raises(ValidationError):
            parse_month_key(key)


class TestLedgerModels:
    """Tests for stored Pydantic models."""

    def test_transaction_creation(self):
        """Test Transaction model creation."""
        t = Transaction(
            type=TransactionType.EXPENSE,
            member_name="  Alice  ",
            date=date(2025, 3, 2),
            description="Courses",
            amount=Decimal("85.50"),
        )
        assert t.member_name == "Alice"
        assert t.id
        assert t.deducted_at_purchase is False

    def test_transaction_ids_are_unique(self):
        """Test that each transaction gets its own id."""
        fields = dict(type="due", member_name="Bob", date=date(2025, 3, 1),
                      description="Cotisation", amount=Decimal("200"))
        assert Transaction(**fields).id != Transaction(**fields).id

    @pytest.mark.parametrize("amount", [Decimal("0"), Decimal("-5"), Decimal("1.234")])
    def test_transaction_rejects_bad_amounts(self, amount):
        """Test that zero, negative and sub-cent amounts are rejected."""
        with pytest.raises(ValueError):
            Transaction(
                type=TransactionType.DUE,
                member_name="Bob",
                date=date(2025, 3, 1),
                description="Cotisation",
                amount=amount,
            )

    def test_only_dues_can_be_deducted(self):
        """Test that an expense cannot be flagged as deducted at purchase."""
        with pytest.raises(ValueError, match="Only a due"):
            Transaction(
                type=TransactionType.EXPENSE,
                member_name="Alice",
                date=date(2025, 3, 2),
                description="Courses",
                amount=Decimal("10"),
                deducted_at_purchase=True,
            )

    def test_member_defaults(self):
        """Test Member defaults."""
        member = Member(name="Alice")
        assert member.manual_credit == Decimal("0")
        assert member.kind == MemberKind.VOLUNTEER
        assert member.email is None
        assert member.join_date == date.today()

    def test_member_blank_email_is_none(self):
        """Test that an empty email field is stored as None."""
        assert Member(name="Alice", email="   ").email is None

    def test_member_rejects_invalid_email(self):
        """Test that malformed emails are rejected."""
        with pytest.raises(ValueError):
            Member(name="Alice", email="not-an-email")

    def test_member_manual_credit_can_be_negative(self):
        """Test that manual credit is signed."""
        assert Member(name="Bob", manual_credit=Decimal("-20")).manual_credit == Decimal("-20")

    def test_month_key_and_sort_key(self):
        """Test derived month properties."""
        month = Month(month_name="Mars", year=2025)
        assert month.key == "Mars-2025"
        assert month.sort_key == (2025, 2)
        assert month.is_closed is False
        assert month.settlement_record is None

    def test_month_rejects_unknown_name(self):
        """Test that English month names are rejected."""
        with pytest.raises(ValueError, match="Unknown month name"):
            Month(month_name="March", year=2025)

    def test_settlement_is_frozen(self):
        """Test that settlements cannot be edited once built."""
        settlement = Settlement(
            from_member="Caisse commune",
            to_member="Alice",
            amount=Decimal("85.50"),
            reason="Remboursement",
            kind=SettlementKind.EXPENSE_REIMBURSEMENT,
        )
        with pytest.raises(ValueError):
            settlement.amount = Decimal("1")

    def test_residual_allocated_total_ignores_expense_reimbursements(self):
        """Test the residual total only counts Pass B lines."""
        month = Month(
            month_name="Mars",
            year=2025,
            is_closed=True,
            settlement_record=[
                Settlement(from_member="Caisse commune", to_member="Alice", amount=Decimal("85.50"),
                           reason="r", kind=SettlementKind.EXPENSE_REIMBURSEMENT),
                Settlement(from_member="Caisse commune", to_member="Épargne", amount=Decimal("150"),
                           reason="r", kind=SettlementKind.SAVINGS_DEPOSIT),
                Settlement(from_member="Caisse commune", to_member="Bob", amount=Decimal("44.50"),
                           reason="r", kind=SettlementKind.CREDIT_REIMBURSEMENT),
            ],
        )
        assert month.residual_allocated_total() == Decimal("194.50")

    def test_reimbursement_settings_rule_values(self):
        """Test the stored rule values."""
        assert ReimbursementSettings().rule == ReimbursementRule.EQUAL
        assert ReimbursementRule("equal-starting-with-hosted") == ReimbursementRule.EQUAL_STARTING_WITH_HOSTED
        with pytest.raises(ValueError):
            ReimbursementSettings(initial_budget=Decimal("-1"))


class TestAuditModels:
    """Tests for audit-related models."""

    def test_audit_event_to_log_dict(self):
        """Test conversion to log dictionary."""
        event = AuditEventBuilder.month_closed("Mars-2025", 3, "194.50")
        log_dict = event.to_log_dict()
        assert log_dict["event_type"] == "month_closed"
        assert log_dict["entity_id"] == "Mars-2025"
        assert log_dict["details"]["settlement_count"] == 3
        assert log_dict["correlation_id"] is None

    def test_reopen_denied_is_a_warning(self):
        """Test that a denied reopen is logged as a warning."""
        event = AuditEventBuilder.reopen_denied("Mars-2025", "wrong passphrase")
        assert event.event_type == AuditEventType.REOPEN_DENIED
        assert event.severity == AuditSeverity.WARNING

    def test_transaction_changed_description(self):
        """Test the builder names the change."""
        event = AuditEventBuilder.transaction_changed(
            AuditEventType.TRANSACTION_DELETED, "Mars-2025", "abc", "Bob", "120.00"
        )
        assert event.description == "Transaction deleted in Mars-2025: Bob 120.00"

    def test_notification_failure_carries_error(self):
        """Test failed deliveries keep the error message."""
        event = AuditEventBuilder.notification_result(
            "Mars-2025", "bob@example.org", success=False, error_message="HTTP 400"
        )
        assert event.event_type == AuditEventType.NOTIFICATION_FAILED
        assert event.error_message == "HTTP 400"


class TestAllocationIssue:
    """Tests for allocation issue severity."""

    def test_severity_pattern(self):
        """Test that only error/warning/info are accepted."""
        AllocationIssue(field="x", issue_type="mismatch", message="m", severity="error")
        with pytest.raises(ValueError):
            AllocationIssue(field="x", issue_type="mismatch", message="m", severity="fatal")
