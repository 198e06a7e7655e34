"""
Ledger Book - Months, Transactions and Members

DESIGN DECISION: Every write is load-modify-save on a whole collection.
1. Load the collection from the store
2. Validate and change it in memory
3. Save it back in one call

If any step before the save raises, nothing is written. There is no
partial update to clean up.

Closed months reject every transaction change. Remarks are not
transactions and stay editable after closure.
"""

from decimal import Decimal
from typing import Any, Optional, TypeVar

import pydantic

from coloc_ledger.audit import AuditLogger
from coloc_ledger.calculations import (
    credit_breakdown,
    summarize_month,
    total_savings,
)
from coloc_ledger.errors import MonthClosedError, ValidationError
from coloc_ledger.models import (
    AuditEventType,
    CreditBreakdown,
    Member,
    Month,
    MonthSummary,
    ReimbursementSettings,
    Transaction,
    parse_month_key,
    to_money,
)
from coloc_ledger.services.storage import LedgerStoreInterface, NotFoundError


ModelT = TypeVar("ModelT", bound=pydantic.BaseModel)


def _describe(error: pydantic.ValidationError) -> str:
    """One-line message out of a pydantic error."""
    parts = []
    for err in error.errors():
        location = ".".join(str(part) for part in err["loc"])
        parts.append(f"{location}: {err['msg']}" if location else err["msg"])
    return "; ".join(parts)


def validated(model_cls: type[ModelT], data: dict[str, Any]) -> ModelT:
    """
    Build a model from operator input.

    Raises:
        ValidationError: with every field problem in one message
    """
    try:
        return model_cls.model_validate(data)
    except pydantic.ValidationError as e:
        raise ValidationError(_describe(e)) from e


def find_month(months: list[Month], month_key: str) -> Optional[Month]:
    for month in months:
        if month.key == month_key:
            return month
    return None


def roster_for(month: Month, members: list[Member]) -> list[Member]:
    """A closed month answers with its snapshot, an open one with the live roster."""
    if month.is_closed and month.closed_member_snapshot is not None:
        return list(month.closed_member_snapshot)
    return list(members)


class LedgerBook:
    """
    CRUD over months, transactions, members and reimbursement settings.

    All reads return fresh model instances; mutating them has no effect
    on the store until passed back through a write method.
    """

    def __init__(
        self,
        store: LedgerStoreInterface,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._store = store
        self._audit = audit_logger or AuditLogger()

    # =========================================================================
    # MONTHS
    # =========================================================================

    def list_months(self) -> list[Month]:
        """All months, oldest first (year, then calendar order)."""
        return sorted(self._store.load_months(), key=lambda m: m.sort_key)

    def get_month(self, month_key: str) -> Optional[Month]:
        return find_month(self._store.load_months(), month_key)

    def _require_month(self, months: list[Month], month_key: str) -> Month:
        month = find_month(months, month_key)
        if month is None:
            raise NotFoundError(f"Month not found: {month_key}")
        return month

    def _require_open(self, month: Month, operation: str) -> None:
        if month.is_closed:
            self._audit.log_closed_month_write_rejected(month.key, operation)
            raise MonthClosedError(month.key)

    def create_month(self, month_name: str, year: int) -> Month:
        """
        Create an empty open month.

        Raises:
            ValidationError: invalid name/year, or the month already exists
        """
        month = validated(Month, {"month_name": month_name, "year": year})
        months = self._store.load_months()
        if find_month(months, month.key) is not None:
            raise ValidationError(f"Month {month.key} already exists")

        months.append(month)
        self._store.save_months(months)
        self._audit.log_month_created(month.key)
        return month

    def update_remarks(self, month_key: str, remarks: Optional[str]) -> Month:
        """Set the free-text remarks of a month, open or closed."""
        months = self._store.load_months()
        month = self._require_month(months, month_key)

        text = (remarks or "").strip() or None
        updated = validated(Month, {**month.model_dump(), "remarks": text})
        months[months.index(month)] = updated
        self._store.save_months(months)
        self._audit.log_remarks_updated(month_key)
        return updated

    def month_roster(self, month_key: str) -> list[Member]:
        """
        Members to show for a month.

        Raises:
            NotFoundError: if the month does not exist
        """
        month = self._require_month(self._store.load_months(), month_key)
        return roster_for(month, self._store.load_members())

    def month_summary(self, month_key: str) -> MonthSummary:
        """
        Totals and per-member balances of a month.

        Raises:
            NotFoundError: if the month does not exist
        """
        month = self._require_month(self._store.load_months(), month_key)
        return summarize_month(month)

    def total_savings(self, months: Optional[list[Month]] = None) -> Decimal:
        """
        Savings pool balance: the initial budget plus every month's global balance.

        Args:
            months: Already loaded months, to avoid reading the store again
        """
        if months is None:
            months = self._store.load_months()
        initial = self._store.load_settings().initial_budget
        return to_money(initial + total_savings(months))

    def credits(self, exclude_key: Optional[str] = None) -> dict[str, CreditBreakdown]:
        """Available credit per member, optionally leaving one month out."""
        return credit_breakdown(
            self._store.load_months(),
            self._store.load_members(),
            exclude_key=exclude_key,
        )

    # =========================================================================
    # TRANSACTIONS
    # =========================================================================

    def add_transaction(self, month_key: str, **fields: Any) -> Transaction:
        """
        Append a transaction, creating the month if it does not exist yet.

        Args:
            month_key: "<MonthName>-<Year>"
            **fields: Transaction fields (type, member_name, date,
                      description, amount, deducted_at_purchase)

        Raises:
            ValidationError: invalid key or fields
            MonthClosedError: the month is closed
        """
        month_name, year = parse_month_key(month_key)
        fields.pop("id", None)
        transaction = validated(Transaction, fields)

        months = self._store.load_months()
        month = find_month(months, month_key)
        created = month is None
        if created:
            month = validated(Month, {"month_name": month_name, "year": year})
            months.append(month)
        else:
            self._require_open(month, "add_transaction")

        month.transactions.append(transaction)
        self._store.save_months(months)

        if created:
            self._audit.log_month_created(month_key, implicit=True)
        self._audit.log_transaction_changed(
            AuditEventType.TRANSACTION_ADDED,
            month_key=month_key,
            transaction_id=transaction.id,
            member_name=transaction.member_name,
            amount=str(transaction.amount),
        )
        return transaction

    def update_transaction(
        self,
        month_key: str,
        transaction_id: str,
        **changes: Any,
    ) -> Transaction:
        """
        Change fields of an existing transaction. The id never changes.

        Raises:
            NotFoundError: unknown month or transaction
            MonthClosedError: the month is closed
            ValidationError: the changed transaction is invalid
        """
        months = self._store.load_months()
        month = self._require_month(months, month_key)
        self._require_open(month, "update_transaction")

        current = month.find_transaction(transaction_id)
        if current is None:
            raise NotFoundError(f"Transaction not found in {month_key}: {transaction_id}")

        changes.pop("id", None)
        updated = validated(Transaction, {**current.model_dump(), **changes})
        month.transactions[month.transactions.index(current)] = updated
        self._store.save_months(months)

        self._audit.log_transaction_changed(
            AuditEventType.TRANSACTION_UPDATED,
            month_key=month_key,
            transaction_id=transaction_id,
            member_name=updated.member_name,
            amount=str(updated.amount),
        )
        return updated

    def delete_transaction(self, month_key: str, transaction_id: str) -> Transaction:
        """
        Remove a transaction and return it.

        Raises:
            NotFoundError: unknown month or transaction
            MonthClosedError: the month is closed
        """
        months = self._store.load_months()
        month = self._require_month(months, month_key)
        self._require_open(month, "delete_transaction")

        transaction = month.find_transaction(transaction_id)
        if transaction is None:
            raise NotFoundError(f"Transaction not found in {month_key}: {transaction_id}")

        month.transactions.remove(transaction)
        self._store.save_months(months)

        self._audit.log_transaction_changed(
            AuditEventType.TRANSACTION_DELETED,
            month_key=month_key,
            transaction_id=transaction_id,
            member_name=transaction.member_name,
            amount=str(transaction.amount),
        )
        return transaction

    # =========================================================================
    # MEMBERS
    # =========================================================================

    def list_members(self) -> list[Member]:
        return self._store.load_members()

    def get_member(self, member_id: str) -> Optional[Member]:
        for member in self._store.load_members():
            if member.id == member_id:
                return member
        return None

    @staticmethod
    def _check_unique_name(members: list[Member], name: str, member_id: Optional[str] = None):
        for other in members:
            if other.id != member_id and other.name.casefold() == name.casefold():
                raise ValidationError(f"A member named {other.name} already exists")

    def _require_member(self, members: list[Member], member_id: str) -> Member:
        for member in members:
            if member.id == member_id:
                return member
        raise NotFoundError(f"Member not found: {member_id}")

    def add_member(self, **fields: Any) -> Member:
        """
        Add a member to the global roster.

        Raises:
            ValidationError: invalid fields or a name already in use
        """
        fields.pop("id", None)
        member = validated(Member, fields)
        members = self._store.load_members()
        self._check_unique_name(members, member.name)

        members.append(member)
        self._store.save_members(members)
        self._audit.log_member_changed(AuditEventType.MEMBER_ADDED, member.id, member.name)
        return member

    def update_member(self, member_id: str, **changes: Any) -> Member:
        """
        Change a member's profile.

        Closed-month snapshots keep the old values.

        Raises:
            NotFoundError: unknown member
            ValidationError: invalid fields or a name already in use
        """
        members = self._store.load_members()
        current = self._require_member(members, member_id)

        changes.pop("id", None)
        updated = validated(Member, {**current.model_dump(), **changes})
        self._check_unique_name(members, updated.name, member_id)

        members[members.index(current)] = updated
        self._store.save_members(members)
        self._audit.log_member_changed(AuditEventType.MEMBER_UPDATED, member_id, updated.name)
        return updated

    def delete_member(self, member_id: str) -> Member:
        """
        Remove a member from the global roster.

        Their transactions and closed-month snapshots are left untouched.

        Raises:
            NotFoundError: unknown member
        """
        members = self._store.load_members()
        member = self._require_member(members, member_id)

        members.remove(member)
        self._store.save_members(members)
        self._audit.log_member_changed(AuditEventType.MEMBER_DELETED, member_id, member.name)
        return member

    def set_manual_credit(self, member_id: str, amount) -> Member:
        """Replace a member's manual credit (signed)."""
        return self.update_member(member_id, manual_credit=amount)

    # =========================================================================
    # SETTINGS
    # =========================================================================

    def get_settings(self) -> ReimbursementSettings:
        return self._store.load_settings()

    def save_settings(self, **fields: Any) -> ReimbursementSettings:
        """
        Replace the reimbursement settings.

        Raises:
            ValidationError: unknown rule or negative budget
        """
        current = self._store.load_settings()
        settings = validated(ReimbursementSettings, {**current.model_dump(), **fields})
        self._store.save_settings(settings)
        self._audit.log_settings_updated(settings.rule.value, str(settings.initial_budget))
        return settings

