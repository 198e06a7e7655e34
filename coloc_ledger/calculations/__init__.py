"""Balance and credit calculations package."""

from coloc_ledger.calculations.balance import (
    budget_history,
    calculate_month_summary,
    summarize_month,
    total_savings,
)
from coloc_ledger.calculations.credits import compute_credits, credit_breakdown

__all__ = [
    "budget_history",
    "calculate_month_summary",
    "compute_credits",
    "credit_breakdown",
    "summarize_month",
    "total_savings",
]
