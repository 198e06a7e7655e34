"""
Closure Models

Inputs the operator types while closing a month, the verdicts the
allocator returns for them, and the transient draft that represents a
month in the middle of being closed.

CRITICAL: A ClosureDraft is never persisted. Only the Month produced by
a confirmed closure is written to the store.
"""

from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field

from coloc_ledger.models.ledger import (
    Month,
    MonthSummary,
    Settlement,
    Transaction,
)


class MonthState(str, Enum):
    """Lifecycle states of a month."""
    OPEN = "open"
    ADJUSTING_CLOSURE = "adjusting_closure"  # draft only, never stored
    CLOSED = "closed"


class AllocationStage(str, Enum):
    """The two passes a closure goes through."""
    EXPENSE_REIMBURSEMENT = "expense_reimbursement"  # Pass A
    RESIDUAL = "residual"                            # Pass B


class ResidualDirection(str, Enum):
    """Whether the month ended with money left over or missing."""
    SURPLUS = "surplus"
    DEFICIT = "deficit"


class MemberAmount(BaseModel):
    """An amount attributed to one member on an allocation form."""

    member_name: str = Field(..., min_length=1, max_length=100)
    amount: Decimal = Field(
        ...,
        ge=0,
        decimal_places=2,
    )


class ResidualAllocation(BaseModel):
    """
    How the month's surplus or deficit is distributed.

    For a surplus, savings_amount goes into savings and lines are credit
    reimbursements. For a deficit, savings_amount is taken out of savings
    and lines are credit grants to the members who covered the gap.
    """

    savings_amount: Decimal = Field(
        default=Decimal("0"),
        ge=0,
        decimal_places=2,
    )
    lines: list[MemberAmount] = Field(default_factory=list)


class AllocationIssue(BaseModel):
    """A single problem found while checking an allocation."""

    field: str = Field(
        ...,
        description="Form field or member the issue is about"
    )
    issue_type: str = Field(
        ...,
        description="Type of issue (e.g., 'mismatch', 'unknown_member', 'exceeds_credit')"
    )
    message: str
    severity: str = Field(
        ...,
        pattern="^(error|warning|info)$",
    )
    suggested_fix: Optional[str] = None


class AllocationCheck(BaseModel):
    """
    Verdict for one allocation pass.

    remaining is target - allocated ("écart restant"): positive means
    money still has to be allocated, negative means too much was.
    """

    stage: AllocationStage
    direction: Optional[ResidualDirection] = None
    target: Decimal
    allocated: Decimal
    remaining: Decimal
    is_valid: bool
    issues: list[AllocationIssue] = Field(default_factory=list)

    @property
    def has_errors(self) -> bool:
        return any(issue.severity == "error" for issue in self.issues)

    @property
    def warnings(self) -> list[str]:
        return [issue.message for issue in self.issues if issue.severity == "warning"]


class ClosureDraft(BaseModel):
    """
    A month in the ADJUSTING_CLOSURE state.

    Created once Pass A validates. Carries everything the Pass B form
    needs; residual allocation inputs start at zero.
    """

    month_key: str
    started_at: datetime = Field(default_factory=datetime.utcnow)
    state: MonthState = MonthState.ADJUSTING_CLOSURE

    # Frozen view of the month when the draft was taken
    transactions: list[Transaction]
    summary: MonthSummary

    # Pass A
    reimbursements: list[MemberAmount]
    expense_check: AllocationCheck

    # Pass B
    direction: ResidualDirection
    residual_target: Decimal
    allocation: ResidualAllocation = Field(default_factory=ResidualAllocation)
    credits: dict[str, Decimal] = Field(
        default_factory=dict,
        description="Available credit per member, excluding this month"
    )


class ClosureResult(BaseModel):
    """Returned by a confirmed closure so the caller knows state changed."""

    month: Month
    settlements: list[Settlement]
    expense_check: AllocationCheck
    residual_check: AllocationCheck
    previous_state: MonthState = MonthState.ADJUSTING_CLOSURE
    state: MonthState = MonthState.CLOSED
    state_changed: bool = True


class CreditBreakdown(BaseModel):
    """Where a member's available credit comes from."""

    member_name: str
    manual: Decimal = Decimal("0.00")
    carried: Decimal = Decimal("0.00")
    total: Decimal = Decimal("0.00")
