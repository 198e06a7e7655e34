"""
Settlement Allocator - Two-Pass Closure Validation

DESIGN DECISION: Closing a month requires two allocations, checked in order:

PASS A - EXPENSE REIMBURSEMENT:
- Each member is owed what they spent for the household, minus any due
  they deducted at purchase instead of paying in
- The "reimburse now" amounts typed by the operator must add up to
  total expenses - deducted dues

PASS B - RESIDUAL ALLOCATION:
- What is left (dues - expenses) must be placed exactly
- Surplus: savings deposit + credit reimbursements
- Deficit: savings withdrawal + credit grants

WHY VALIDATE INSTEAD OF COMPUTE:
The household decides who gets paid back and how much goes to savings.
The allocator only checks that the numbers add up and reports the exact
signed remainder ("écart restant") when they do not.

IMPORTANT: Nothing is ever rounded into balance. The operator has to
reach the target within the configured tolerance.
"""

from decimal import Decimal
from typing import Iterable, Optional

from coloc_ledger.config import LedgerSettings, get_settings
from coloc_ledger.errors import AllocationMismatchError
from coloc_ledger.models.closure import (
    AllocationCheck,
    AllocationIssue,
    AllocationStage,
    MemberAmount,
    ResidualAllocation,
    ResidualDirection,
)
from coloc_ledger.models.ledger import (
    MonthSummary,
    format_currency,
    sum_money,
    to_money,
)


class SettlementAllocator:
    """
    Checks closure allocations against the month's summary.

    Every check is a pure function of its inputs: calling it twice with
    the same summary and allocation returns the same verdict.
    """

    def __init__(
        self,
        settings: Optional[LedgerSettings] = None,
    ):
        """
        Initialize allocator.

        Args:
            settings: Ledger settings (tolerance, currency).
                      If None, loaded from the environment.
        """
        self._settings = settings or get_settings().ledger
        self._tolerance = self._settings.amount_tolerance

    def _fmt(self, amount: Decimal) -> str:
        return format_currency(amount, self._settings.currency_symbol)

    def is_balanced(self, remaining: Decimal) -> bool:
        """True when the remainder is within tolerance."""
        return abs(remaining) < self._tolerance

    @staticmethod
    def residual_direction(summary: MonthSummary) -> ResidualDirection:
        if summary.global_balance < 0:
            return ResidualDirection.DEFICIT
        return ResidualDirection.SURPLUS

    @staticmethod
    def expense_target(summary: MonthSummary) -> Decimal:
        """Pass A target: total expenses minus dues deducted at purchase."""
        return to_money(summary.total_expenses - summary.deducted_dues)

    @staticmethod
    def residual_target(summary: MonthSummary) -> Decimal:
        """Pass B target: the absolute surplus or deficit."""
        return abs(summary.global_balance)

    def propose_expense_reimbursements(
        self,
        summary: MonthSummary,
    ) -> list[MemberAmount]:
        """
        Pre-fill the Pass A form: each member is proposed what they are owed.

        A member who deducted more dues than they spent is proposed zero,
        so the proposal only balances when nobody did.
        """
        return [
            MemberAmount(
                member_name=name,
                amount=max(balance.amount_owed, Decimal("0.00")),
            )
            for name, balance in summary.balances.items()
        ]

    def _duplicate_issues(self, lines: Iterable[MemberAmount]) -> list[AllocationIssue]:
        issues = []
        seen: set[str] = set()
        for line in lines:
            if line.member_name in seen:
                issues.append(AllocationIssue(
                    field=line.member_name,
                    issue_type="duplicate_member",
                    message=f"{line.member_name} appears more than once",
                    severity="error",
                    suggested_fix="Merge the lines into one amount",
                ))
            seen.add(line.member_name)
        return issues

    def _mismatch_issue(
        self,
        field: str,
        label: str,
        target: Decimal,
        allocated: Decimal,
        remaining: Decimal,
    ) -> AllocationIssue:
        return AllocationIssue(
            field=field,
            issue_type="mismatch",
            message=(
                f"{label} total {self._fmt(allocated)}, expected {self._fmt(target)} "
                f"(écart restant: {self._fmt(remaining)})"
            ),
            severity="error",
            suggested_fix=(
                f"Allocate {self._fmt(remaining)} more" if remaining > 0
                else f"Remove {self._fmt(-remaining)}"
            ),
        )

    def check_expense_reimbursements(
        self,
        summary: MonthSummary,
        reimbursements: Iterable[MemberAmount],
    ) -> AllocationCheck:
        """
        Pass A: check the "reimburse now" amounts.

        Errors (blocking):
        - a line for someone without transactions this month
        - the same member twice
        - total differs from the target by the tolerance or more

        Warnings:
        - a member reimbursed more than they are owed
        """
        lines = list(reimbursements)
        target = self.expense_target(summary)
        issues = self._duplicate_issues(lines)

        for line in lines:
            balance = summary.balances.get(line.member_name)
            if balance is None:
                issues.append(AllocationIssue(
                    field=line.member_name,
                    issue_type="unknown_member",
                    message=f"{line.member_name} has no transaction this month",
                    severity="error",
                    suggested_fix="Remove this line",
                ))
            elif line.amount > max(balance.amount_owed, Decimal("0.00")):
                issues.append(AllocationIssue(
                    field=line.member_name,
                    issue_type="exceeds_owed",
                    message=(
                        f"{line.member_name} is reimbursed {self._fmt(line.amount)} "
                        f"but is owed {self._fmt(balance.amount_owed)}"
                    ),
                    severity="warning",
                    suggested_fix="Check the amount for this member",
                ))

        allocated = sum_money(line.amount for line in lines)
        remaining = to_money(target - allocated)
        if not self.is_balanced(remaining):
            issues.append(self._mismatch_issue(
                "reimbursements", "Reimbursements", target, allocated, remaining,
            ))

        return AllocationCheck(
            stage=AllocationStage.EXPENSE_REIMBURSEMENT,
            target=target,
            allocated=allocated,
            remaining=remaining,
            is_valid=not any(issue.severity == "error" for issue in issues),
            issues=issues,
        )

    def check_residual_allocation(
        self,
        summary: MonthSummary,
        allocation: ResidualAllocation,
        credits: Optional[dict[str, Decimal]] = None,
        roster: Optional[Iterable[str]] = None,
    ) -> AllocationCheck:
        """
        Pass B: check the surplus/deficit allocation.

        Args:
            summary: The month's summary
            allocation: Savings amount and per-member lines
            credits: Available credit per member (enables the
                     exceeds-credit warning on surpluses)
            roster: Known member names (enables the unknown-member warning)

        Returns:
            AllocationCheck with the signed remainder
        """
        direction = self.residual_direction(summary)
        target = self.residual_target(summary)
        issues = self._duplicate_issues(allocation.lines)

        known = set(roster) if roster is not None else None
        for line in allocation.lines:
            if known is not None and line.member_name not in known:
                issues.append(AllocationIssue(
                    field=line.member_name,
                    issue_type="unknown_member",
                    message=f"{line.member_name} is not on the roster",
                    severity="warning",
                    suggested_fix="Check the spelling of the name",
                ))
            if direction == ResidualDirection.SURPLUS and credits is not None:
                available = credits.get(line.member_name, Decimal("0.00"))
                if line.amount > available:
                    issues.append(AllocationIssue(
                        field=line.member_name,
                        issue_type="exceeds_credit",
                        message=(
                            f"{line.member_name} is reimbursed {self._fmt(line.amount)} "
                            f"with only {self._fmt(available)} of credit"
                        ),
                        severity="warning",
                        suggested_fix="Reimburse at most the available credit",
                    ))

        allocated = sum_money(
            [allocation.savings_amount] + [line.amount for line in allocation.lines]
        )
        remaining = to_money(target - allocated)
        if not self.is_balanced(remaining):
            label = "Surplus allocation" if direction == ResidualDirection.SURPLUS else "Deficit coverage"
            issues.append(self._mismatch_issue(
                "allocation", label, target, allocated, remaining,
            ))

        return AllocationCheck(
            stage=AllocationStage.RESIDUAL,
            direction=direction,
            target=target,
            allocated=allocated,
            remaining=remaining,
            is_valid=not any(issue.severity == "error" for issue in issues),
            issues=issues,
        )

    def ensure_valid(self, check: AllocationCheck) -> AllocationCheck:
        """
        Raise if a check did not pass.

        Raises:
            AllocationMismatchError: carrying the signed remainder and issues
        """
        if check.is_valid:
            return check
        errors = [issue for issue in check.issues if issue.severity == "error"]
        raise AllocationMismatchError(
            stage=check.stage.value,
            delta=check.remaining,
            message=errors[0].message if errors else None,
            issues=errors,
        )

    def get_user_friendly_summary(self, check: AllocationCheck) -> str:
        """
        Summary of a check for the operator, in the household's language.
        """
        if check.is_valid and not check.warnings:
            return f"✅ Répartition équilibrée ({self._fmt(check.allocated)})."

        lines = []
        if not check.is_valid:
            lines.append(f"❌ Écart restant : {self._fmt(check.remaining)}")
            for issue in check.issues:
                if issue.severity == "error" and issue.issue_type != "mismatch":
                    lines.append(f"   • {issue.message}")

        if check.warnings:
            lines.append("⚠️ À vérifier :")
            for warning in check.warnings:
                lines.append(f"   • {warning}")

        return "\n".join(lines)
