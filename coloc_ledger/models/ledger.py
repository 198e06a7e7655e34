"""
Core Data Models for Colocation Ledger

These models define the strict schemas for everything the ledger stores.
They are designed to:
1. Enforce type safety at runtime
2. Provide clear validation error messages
3. Round-trip through the store as JSON without loss

DESIGN DECISION: Money is Decimal with 2 fractional digits.
Inputs with more precision are rejected rather than silently rounded;
derived amounts go through to_money() after every combination.
"""

import datetime as dt
from decimal import ROUND_HALF_UP, Decimal
from enum import Enum
from typing import Iterable, Optional
from uuid import uuid4

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    field_validator,
    model_validator,
)

from coloc_ledger.errors import ValidationError


MONEY_QUANTUM = Decimal("0.01")

MONTH_NAMES = (
    "Janvier", "Février", "Mars", "Avril",
    "Mai", "Juin", "Juillet", "Août",
    "Septembre", "Octobre", "Novembre", "Décembre",
)


def _new_id() -> str:
    return uuid4().hex


def to_money(value) -> Decimal:
    """Round any amount to cents (half up). Floats go through str first."""
    if isinstance(value, float):
        value = str(value)
    return Decimal(value).quantize(MONEY_QUANTUM, rounding=ROUND_HALF_UP)


def sum_money(values: Iterable) -> Decimal:
    """Sum amounts, rounding to cents after every addition."""
    total = Decimal("0.00")
    for value in values:
        total = to_money(total + to_money(value))
    return total


def format_month_key(month_name: str, year: int) -> str:
    """Render the key used everywhere to address a month: 'Mars-2025'."""
    return f"{month_name}-{year}"


def parse_month_key(month_key: str) -> tuple[str, int]:
    """
    Split a month key on its first '-'.

    Raises:
        ValidationError: unknown month name or a year that is not 4 digits
    """
    month_name, sep, year = month_key.partition("-")
    if not sep or month_name not in MONTH_NAMES:
        raise ValidationError(f"Invalid month key: {month_key!r}")
    if len(year) != 4 or not year.isdigit():
        raise ValidationError(f"Invalid year in month key: {month_key!r}")
    return month_name, int(year)


def month_sort_key(month_name: str, year: int) -> tuple[int, int]:
    """Chronological sort key (year, then calendar position)."""
    return year, MONTH_NAMES.index(month_name)


# =============================================================================
# ENUMS - Finite set of valid values
# =============================================================================

class TransactionType(str, Enum):
    """A due flows into the pool, an expense flows out of it."""
    DUE = "due"
    EXPENSE = "expense"


class MemberKind(str, Enum):
    """How a roommate takes part in the household."""
    VOLUNTEER = "volunteer"
    HOSTED = "hosted"


class ReimbursementRule(str, Enum):
    """
    Preferred order for paying back members' credit.

    Stored for the operator's reference; allocation checks do not use it.
    """
    EQUAL = "equal"
    EQUAL_STARTING_WITH_HOSTED = "equal-starting-with-hosted"
    PRIORITIZED = "prioritized"


class SettlementKind(str, Enum):
    """What a settlement line accounts for."""
    # Pass A
    EXPENSE_REIMBURSEMENT = "expense_reimbursement"
    # Pass B, surplus month
    SAVINGS_DEPOSIT = "savings_deposit"
    CREDIT_REIMBURSEMENT = "credit_reimbursement"
    # Pass B, deficit month
    SAVINGS_WITHDRAWAL = "savings_withdrawal"
    CREDIT_GRANT = "credit_grant"


RESIDUAL_SETTLEMENT_KINDS = frozenset({
    SettlementKind.SAVINGS_DEPOSIT,
    SettlementKind.CREDIT_REIMBURSEMENT,
    SettlementKind.SAVINGS_WITHDRAWAL,
    SettlementKind.CREDIT_GRANT,
})


# =============================================================================
# STORED MODELS
# =============================================================================

class Transaction(BaseModel):
    """
    A single due or expense logged against a month.

    A due marked deducted_at_purchase was not paid into the pool: the
    member kept it out of a grocery receipt they paid for.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    id: str = Field(
        default_factory=_new_id,
        description="Unique transaction ID"
    )
    type: TransactionType
    member_name: str = Field(
        ...,
        min_length=1,
        max_length=100,
        description="Roommate who paid or contributed"
    )
    date: dt.date
    description: str = Field(
        ...,
        min_length=1,
        max_length=200
    )
    amount: Decimal = Field(
        ...,
        gt=0,
        decimal_places=2,
        description="Amount in the household currency"
    )
    deducted_at_purchase: bool = Field(
        default=False,
        description="Due deducted from a purchase instead of paid in"
    )

    @model_validator(mode='after')
    def only_dues_are_deducted(self) -> 'Transaction':
        if self.deducted_at_purchase and self.type != TransactionType.DUE:
            raise ValueError("Only a due can be deducted at purchase")
        return self


class Member(BaseModel):
    """
    A roommate ("colocataire").

    Members are global, not month-scoped. Closed months keep their own
    copy of the roster, so editing or deleting a member never rewrites
    history.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    id: str = Field(default_factory=_new_id)
    name: str = Field(
        ...,
        min_length=1,
        max_length=100,
        description="Display name, unique across the roster"
    )
    manual_credit: Decimal = Field(
        default=Decimal("0"),
        decimal_places=2,
        description="Signed credit entered by hand, independent of months"
    )
    email: Optional[str] = Field(
        default=None,
        max_length=254,
        pattern=r"^[^@\s]+@[^@\s]+\.[^@\s]+$"
    )
    monthly_due: Optional[Decimal] = Field(
        default=None,
        ge=0,
        decimal_places=2
    )
    join_date: dt.date = Field(default_factory=dt.date.today)
    kind: MemberKind = MemberKind.VOLUNTEER
    handles_groceries: bool = False
    reimbursement_priority: Optional[int] = Field(
        default=None,
        ge=1,
        description="1 is reimbursed first under the prioritized rule"
    )

    @field_validator('email', mode='before')
    @classmethod
    def blank_email_is_none(cls, v):
        if isinstance(v, str) and not v.strip():
            return None
        return v


class Settlement(BaseModel):
    """
    One reimbursement line recorded when a month is closed.

    Immutable: produced once by the closure and never edited.
    """
    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=_new_id)
    from_member: str = Field(..., min_length=1)
    amount: Decimal = Field(..., gt=0, decimal_places=2)
    to_member: str = Field(..., min_length=1)
    reason: str = Field(..., min_length=1, max_length=200)
    kind: SettlementKind


class Month(BaseModel):
    """
    A month of household bookkeeping, keyed by (month_name, year).

    Open months accept transaction changes. Closed months carry the
    roster snapshot and the settlement agreed at closure.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    month_name: str
    year: int = Field(..., ge=1000, le=9999)
    transactions: list[Transaction] = Field(default_factory=list)
    is_closed: bool = False
    closed_member_snapshot: Optional[list[Member]] = None
    settlement_record: Optional[list[Settlement]] = None
    remarks: Optional[str] = Field(default=None, max_length=2000)

    @field_validator('month_name')
    @classmethod
    def validate_month_name(cls, v: str) -> str:
        if v not in MONTH_NAMES:
            raise ValueError(f"Unknown month name: {v}. Expected one of {MONTH_NAMES}")
        return v

    @property
    def key(self) -> str:
        return format_month_key(self.month_name, self.year)

    @property
    def sort_key(self) -> tuple[int, int]:
        return month_sort_key(self.month_name, self.year)

    def find_transaction(self, transaction_id: str) -> Optional[Transaction]:
        for transaction in self.transactions:
            if transaction.id == transaction_id:
                return transaction
        return None

    def residual_allocated_total(self) -> Decimal:
        """Sum of the settlement lines that allocate the month's surplus or deficit."""
        return sum_money(
            s.amount for s in (self.settlement_record or [])
            if s.kind in RESIDUAL_SETTLEMENT_KINDS
        )


class ReimbursementSettings(BaseModel):
    """Household-wide reimbursement preferences."""

    rule: ReimbursementRule = ReimbursementRule.EQUAL
    initial_budget: Decimal = Field(
        default=Decimal("0"),
        ge=0,
        decimal_places=2,
        description="Amount in the savings pool when bookkeeping started"
    )


# =============================================================================
# DERIVED MODELS - computed on demand, never persisted
# =============================================================================

class MemberBalance(BaseModel):
    """One member's totals for a month."""

    member_name: str
    dues: Decimal = Decimal("0.00")
    expenses: Decimal = Decimal("0.00")
    deducted_dues: Decimal = Field(
        default=Decimal("0.00"),
        description="Part of dues deducted at purchase"
    )

    @property
    def balance(self) -> Decimal:
        return to_money(self.dues - self.expenses)

    @property
    def amount_owed(self) -> Decimal:
        """What the pool owes back for this member's purchases."""
        return to_money(self.expenses - self.deducted_dues)


class MonthSummary(BaseModel):
    """
    Totals for a month.

    balances holds one entry per member appearing in the transactions,
    in order of first appearance.
    """

    total_dues: Decimal = Decimal("0.00")
    total_expenses: Decimal = Decimal("0.00")
    deducted_dues: Decimal = Decimal("0.00")
    balances: dict[str, MemberBalance] = Field(default_factory=dict)

    @property
    def global_balance(self) -> Decimal:
        return to_money(self.total_dues - self.total_expenses)

    @property
    def is_deficit(self) -> bool:
        return self.global_balance < 0

    @property
    def member_count(self) -> int:
        return len(self.balances)


def format_currency(amount: Decimal, symbol: str = "€") -> str:
    """French-style rendering: 1 234,50 €."""
    text = f"{to_money(amount):,.2f}".replace(",", " ").replace(".", ",")
    return f"{text} {symbol}"
