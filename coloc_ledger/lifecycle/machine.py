"""
Month Lifecycle State Machine

    OPEN ──begin_closure──▶ ADJUSTING_CLOSURE ──confirm_closure──▶ CLOSED
      ▲                                                              │
      └──────────────────── reopen_month (passphrase) ───────────────┘

DESIGN DECISION: ADJUSTING_CLOSURE exists only as a ClosureDraft held by
the caller. Abandoning a draft needs no cleanup because nothing was
written. The store only ever sees OPEN or CLOSED months.

CRITICAL: confirm_closure re-reads the month and refuses to close it if
its transactions changed after the draft was taken. The settlement must
describe exactly the transactions it froze.
"""

import hmac
from typing import Iterable, Optional
from uuid import UUID

from coloc_ledger.audit import AuditLogger
from coloc_ledger.book import find_month
from coloc_ledger.calculations import compute_credits, summarize_month
from coloc_ledger.config import LedgerSettings, get_settings
from coloc_ledger.errors import (
    AuthorizationError,
    MonthClosedError,
    ValidationError,
)
from coloc_ledger.models import (
    AllocationCheck,
    ClosureDraft,
    ClosureResult,
    MemberAmount,
    Month,
    MonthState,
    ResidualAllocation,
    ResidualDirection,
    Settlement,
    SettlementKind,
)
from coloc_ledger.services.storage import LedgerStoreInterface, NotFoundError
from coloc_ledger.validation import SettlementAllocator


class MonthLifecycle:
    """
    Drives months through closure and reopening.

    Usage:
        lifecycle = MonthLifecycle(store)
        draft = lifecycle.begin_closure("Mars-2025", reimbursements)
        result = lifecycle.confirm_closure(draft, allocation)
    """

    def __init__(
        self,
        store: LedgerStoreInterface,
        allocator: Optional[SettlementAllocator] = None,
        settings: Optional[LedgerSettings] = None,
        audit_logger: Optional[AuditLogger] = None,
    ):
        """
        Initialize the state machine.

        Args:
            store: Ledger persistence
            allocator: Allocation checks (built from settings if None)
            settings: Ledger settings holding the reopen passphrase and
                      counterparty names (loaded from env if None)
            audit_logger: For logging events
        """
        self._store = store
        self._settings = settings or get_settings().ledger
        self._allocator = allocator or SettlementAllocator(self._settings)
        self._audit = audit_logger or AuditLogger()

    @property
    def allocator(self) -> SettlementAllocator:
        return self._allocator

    # =========================================================================
    # STATE
    # =========================================================================

    def _load_month(self, month_key: str) -> tuple[list[Month], Month]:
        months = self._store.load_months()
        month = find_month(months, month_key)
        if month is None:
            raise NotFoundError(f"Month not found: {month_key}")
        return months, month

    def state_of(self, month_key: str) -> MonthState:
        """
        Persisted state of a month (OPEN or CLOSED).

        Raises:
            NotFoundError: if the month does not exist
        """
        _, month = self._load_month(month_key)
        return MonthState.CLOSED if month.is_closed else MonthState.OPEN

    def _reject_if_closed(self, month: Month, operation: str) -> None:
        if month.is_closed:
            self._audit.log_closed_month_write_rejected(month.key, operation)
            raise MonthClosedError(month.key)

    def _log_failed_check(
        self,
        month_key: str,
        check: AllocationCheck,
        correlation_id: Optional[UUID],
    ) -> None:
        self._audit.log_closure_validation_failed(
            month_key=month_key,
            stage=check.stage.value,
            remaining=str(check.remaining),
            issues=[issue.model_dump() for issue in check.issues if issue.severity == "error"],
            correlation_id=correlation_id,
        )

    # =========================================================================
    # CLOSURE
    # =========================================================================

    def begin_closure(
        self,
        month_key: str,
        reimbursements: Optional[Iterable[MemberAmount]] = None,
        correlation_id: Optional[UUID] = None,
    ) -> ClosureDraft:
        """
        OPEN -> ADJUSTING_CLOSURE.

        Args:
            month_key: Month to close
            reimbursements: Pass A "reimburse now" amounts. If None, each
                            member is proposed what they are owed.
            correlation_id: Ties the closure events together

        Returns:
            ClosureDraft with the residual allocation set to zero

        Raises:
            NotFoundError: unknown month
            MonthClosedError: the month is already closed
            AllocationMismatchError: Pass A does not balance
        """
        _, month = self._load_month(month_key)
        self._reject_if_closed(month, "begin_closure")

        summary = summarize_month(month)
        if reimbursements is None:
            lines = self._allocator.propose_expense_reimbursements(summary)
        else:
            lines = list(reimbursements)

        check = self._allocator.check_expense_reimbursements(summary, lines)
        if not check.is_valid:
            self._log_failed_check(month_key, check, correlation_id)
            self._allocator.ensure_valid(check)

        credits = compute_credits(
            self._store.load_months(),
            self._store.load_members(),
            exclude_key=month_key,
        )
        direction = self._allocator.residual_direction(summary)
        draft = ClosureDraft(
            month_key=month_key,
            transactions=[t.model_copy() for t in month.transactions],
            summary=summary,
            reimbursements=lines,
            expense_check=check,
            direction=direction,
            residual_target=self._allocator.residual_target(summary),
            credits=credits,
        )

        self._audit.log_closure_started(
            month_key=month_key,
            direction=direction.value,
            residual_target=str(draft.residual_target),
            correlation_id=correlation_id,
        )
        return draft

    def check_residual(
        self,
        draft: ClosureDraft,
        allocation: ResidualAllocation,
        roster: Optional[Iterable[str]] = None,
    ) -> AllocationCheck:
        """
        Run Pass B against a draft without committing anything.

        roster defaults to the member names currently in the store.
        """
        if roster is None:
            roster = [member.name for member in self._store.load_members()]
        return self._allocator.check_residual_allocation(
            draft.summary,
            allocation,
            credits=draft.credits,
            roster=roster,
        )

    def confirm_closure(
        self,
        draft: ClosureDraft,
        allocation: ResidualAllocation,
        correlation_id: Optional[UUID] = None,
    ) -> ClosureResult:
        """
        ADJUSTING_CLOSURE -> CLOSED.

        Writes the closed month (snapshot + settlement) in one save.

        Raises:
            NotFoundError: the month disappeared
            MonthClosedError: the month was closed meanwhile
            ValidationError: the month's transactions changed since the draft
            AllocationMismatchError: Pass B does not balance
        """
        months, month = self._load_month(draft.month_key)
        self._reject_if_closed(month, "confirm_closure")

        current = [t.model_dump() for t in month.transactions]
        frozen = [t.model_dump() for t in draft.transactions]
        if current != frozen:
            raise ValidationError(
                f"Transactions of {draft.month_key} changed since the closure "
                "started; start the closure again"
            )

        check = self.check_residual(draft, allocation)
        if not check.is_valid:
            self._log_failed_check(draft.month_key, check, correlation_id)
            self._allocator.ensure_valid(check)

        settlements = self._build_settlements(draft, allocation)
        roster = [member.model_copy(deep=True) for member in self._store.load_members()]

        closed = month.model_copy(update={
            "is_closed": True,
            "closed_member_snapshot": roster,
            "settlement_record": settlements,
        })
        months[months.index(month)] = closed
        self._store.save_months(months)

        self._audit.log_month_closed(
            month_key=draft.month_key,
            settlement_count=len(settlements),
            global_balance=str(draft.summary.global_balance),
            correlation_id=correlation_id,
        )
        return ClosureResult(
            month=closed,
            settlements=settlements,
            expense_check=draft.expense_check,
            residual_check=check,
        )

    def close_month(
        self,
        month_key: str,
        reimbursements: Optional[Iterable[MemberAmount]],
        allocation: ResidualAllocation,
        correlation_id: Optional[UUID] = None,
    ) -> ClosureResult:
        """Both closure steps in one call."""
        draft = self.begin_closure(month_key, reimbursements, correlation_id)
        return self.confirm_closure(draft, allocation, correlation_id)

    def _build_settlements(
        self,
        draft: ClosureDraft,
        allocation: ResidualAllocation,
    ) -> list[Settlement]:
        """
        Turn both passes into settlement lines. Zero amounts produce no line.

        Pass A: pool -> member for each expense reimbursement.
        Surplus: pool -> savings, pool -> member (credit reimbursement).
        Deficit: savings -> pool, member -> pool (credit grant).
        """
        pool = self._settings.pool_account_name
        savings = self._settings.savings_account_name
        key = draft.month_key
        settlements = []

        for line in draft.reimbursements:
            if line.amount > 0:
                settlements.append(Settlement(
                    from_member=pool,
                    to_member=line.member_name,
                    amount=line.amount,
                    reason=f"Remboursement des dépenses de {key}",
                    kind=SettlementKind.EXPENSE_REIMBURSEMENT,
                ))

        if draft.direction == ResidualDirection.SURPLUS:
            if allocation.savings_amount > 0:
                settlements.append(Settlement(
                    from_member=pool,
                    to_member=savings,
                    amount=allocation.savings_amount,
                    reason=f"Excédent de {key} versé à l'épargne",
                    kind=SettlementKind.SAVINGS_DEPOSIT,
                ))
            for line in allocation.lines:
                if line.amount > 0:
                    settlements.append(Settlement(
                        from_member=pool,
                        to_member=line.member_name,
                        amount=line.amount,
                        reason=f"Remboursement de crédit ({key})",
                        kind=SettlementKind.CREDIT_REIMBURSEMENT,
                    ))
        else:
            if allocation.savings_amount > 0:
                settlements.append(Settlement(
                    from_member=savings,
                    to_member=pool,
                    amount=allocation.savings_amount,
                    reason=f"Déficit de {key} couvert par l'épargne",
                    kind=SettlementKind.SAVINGS_WITHDRAWAL,
                ))
            for line in allocation.lines:
                if line.amount > 0:
                    settlements.append(Settlement(
                        from_member=line.member_name,
                        to_member=pool,
                        amount=line.amount,
                        reason=f"Avance sur le déficit de {key}",
                        kind=SettlementKind.CREDIT_GRANT,
                    ))

        return settlements

    # =========================================================================
    # REOPENING
    # =========================================================================

    def _passphrase_matches(self, passphrase: str) -> bool:
        secret = self._settings.reopen_passphrase
        if secret is None:
            return False
        return hmac.compare_digest(
            passphrase.encode("utf-8"),
            secret.get_secret_value().encode("utf-8"),
        )

    def reopen_month(self, month_key: str, passphrase: str) -> Month:
        """
        CLOSED -> OPEN, discarding the snapshot and the settlement.

        Raises:
            NotFoundError: unknown month
            ValidationError: the month is not closed
            AuthorizationError: wrong passphrase, or none configured
        """
        months, month = self._load_month(month_key)
        if not month.is_closed:
            raise ValidationError(f"Month {month_key} is not closed")

        if self._settings.reopen_passphrase is None:
            self._audit.log_reopen_denied(month_key, "no passphrase configured")
            raise AuthorizationError("Reopening months is disabled: no passphrase is configured")

        if not self._passphrase_matches(passphrase or ""):
            self._audit.log_reopen_denied(month_key, "wrong passphrase")
            raise AuthorizationError("Wrong passphrase")

        discarded = len(month.settlement_record or [])
        reopened = month.model_copy(update={
            "is_closed": False,
            "closed_member_snapshot": None,
            "settlement_record": None,
        })
        months[months.index(month)] = reopened
        self._store.save_months(months)

        self._audit.log_month_reopened(month_key, discarded)
        return reopened
