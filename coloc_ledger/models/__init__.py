"""
Data Models Package

This package contains all Pydantic models used in the Colocation Ledger.
All data flowing through the system must conform to these schemas.
"""

from coloc_ledger.models.ledger import (
    MONTH_NAMES,
    Member,
    MemberBalance,
    MemberKind,
    Month,
    MonthSummary,
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
from coloc_ledger.models.closure import (
    AllocationCheck,
    AllocationIssue,
    AllocationStage,
    ClosureDraft,
    ClosureResult,
    CreditBreakdown,
    MemberAmount,
    MonthState,
    ResidualAllocation,
    ResidualDirection,
)
from coloc_ledger.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)

__all__ = [
    # Ledger models
    "MONTH_NAMES",
    "Member",
    "MemberBalance",
    "MemberKind",
    "Month",
    "MonthSummary",
    "ReimbursementRule",
    "ReimbursementSettings",
    "Settlement",
    "SettlementKind",
    "Transaction",
    "TransactionType",
    "format_currency",
    "format_month_key",
    "parse_month_key",
    "sum_money",
    "to_money",
    # Closure models
    "AllocationCheck",
    "AllocationIssue",
    "AllocationStage",
    "ClosureDraft",
    "ClosureResult",
    "CreditBreakdown",
    "MemberAmount",
    "MonthState",
    "ResidualAllocation",
    "ResidualDirection",
    # Audit models
    "AuditEvent",
    "AuditEventBuilder",
    "AuditEventType",
    "AuditSeverity",
]
