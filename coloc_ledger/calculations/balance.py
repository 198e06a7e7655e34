"""
Balance Calculator

Turns a month's transactions into totals and per-member balances.

DESIGN DECISION: Summaries are never stored. The transaction list is the
single source of truth and the summary is recomputed every time it is
needed, so it can never drift from the data it describes.
"""

from datetime import date
from decimal import Decimal
from typing import Iterable

from coloc_ledger.models.ledger import (
    MemberBalance,
    Month,
    MonthSummary,
    Transaction,
    TransactionType,
    to_money,
)


def calculate_month_summary(transactions: Iterable[Transaction]) -> MonthSummary:
    """
    Compute dues, expenses and balances for one month.

    Members appear in the order of their first transaction. A member with
    no transaction this month is absent from balances.
    """
    total_dues = Decimal("0.00")
    total_expenses = Decimal("0.00")
    deducted_dues = Decimal("0.00")
    balances: dict[str, MemberBalance] = {}

    for transaction in transactions:
        entry = balances.setdefault(
            transaction.member_name,
            MemberBalance(member_name=transaction.member_name),
        )
        amount = to_money(transaction.amount)

        if transaction.type == TransactionType.DUE:
            total_dues = to_money(total_dues + amount)
            entry.dues = to_money(entry.dues + amount)
            if transaction.deducted_at_purchase:
                deducted_dues = to_money(deducted_dues + amount)
                entry.deducted_dues = to_money(entry.deducted_dues + amount)
        else:
            total_expenses = to_money(total_expenses + amount)
            entry.expenses = to_money(entry.expenses + amount)

    return MonthSummary(
        total_dues=total_dues,
        total_expenses=total_expenses,
        deducted_dues=deducted_dues,
        balances=balances,
    )


def summarize_month(month: Month) -> MonthSummary:
    """Shortcut for calculate_month_summary(month.transactions)."""
    return calculate_month_summary(month.transactions)


def total_savings(months: Iterable[Month]) -> Decimal:
    """Sum of every month's global balance: what the household has put aside."""
    total = Decimal("0.00")
    for month in months:
        total = to_money(total + summarize_month(month).global_balance)
    return total


def budget_history(months: Iterable[Month]) -> list[dict]:
    """
    One row per month, in calendar order, for the budget chart.

    Each row holds the month key, the first day of the month as `period`,
    and its dues, expenses and global balance.
    """
    rows = []
    for month in sorted(months, key=lambda m: m.sort_key):
        summary = summarize_month(month)
        year, index = month.sort_key
        rows.append({
            "month_key": month.key,
            "period": date(year, index + 1, 1),
            "dues": summary.total_dues,
            "expenses": summary.total_expenses,
            "balance": summary.global_balance,
        })
    return rows
