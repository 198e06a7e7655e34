"""
Month Report

The document shared with the household when a month is closed: totals,
per-member balances, the agreed settlement and available credits.
The same report feeds the spreadsheet export and the email body.
"""

from datetime import datetime
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, Field

from coloc_ledger.calculations import summarize_month
from coloc_ledger.models import (
    Member,
    Month,
    MonthSummary,
    Settlement,
    Transaction,
    TransactionType,
    format_currency,
)


class MonthReport(BaseModel):
    """Everything needed to render one month for the household."""

    month_key: str
    month_name: str
    year: int
    is_closed: bool
    generated_at: datetime = Field(default_factory=datetime.utcnow)

    summary: MonthSummary
    transactions: list[Transaction] = Field(default_factory=list)
    settlements: list[Settlement] = Field(default_factory=list)
    roster: list[Member] = Field(default_factory=list)
    credits: dict[str, Decimal] = Field(default_factory=dict)
    remarks: Optional[str] = None

    currency_symbol: str = "€"

    @property
    def title(self) -> str:
        return f"Bilan du mois de {self.month_name} {self.year}"

    def money(self, amount: Decimal) -> str:
        return format_currency(amount, self.currency_symbol)

    def render_text(self) -> str:
        """Plain-text rendering, used as the email body."""
        s = self.summary
        lines = [
            self.title,
            "=" * len(self.title),
            "",
            f"Total des cotisations : {self.money(s.total_dues)}",
            f"Total des dépenses : {self.money(s.total_expenses)}",
        ]
        if s.deducted_dues:
            lines.append(f"Cotisations déduites des courses : {self.money(s.deducted_dues)}")
        label = "Déficit" if s.is_deficit else "Excédent"
        lines.append(f"{label} du mois : {self.money(abs(s.global_balance))}")

        if s.balances:
            lines += ["", "Soldes par colocataire :"]
            for name, balance in s.balances.items():
                lines.append(
                    f"  - {name} : cotisations {self.money(balance.dues)}, "
                    f"dépenses {self.money(balance.expenses)}, "
                    f"solde {self.money(balance.balance)}"
                )

        if self.settlements:
            lines += ["", "Remboursements convenus :"]
            for settlement in self.settlements:
                lines.append(
                    f"  - {settlement.from_member} → {settlement.to_member} : "
                    f"{self.money(settlement.amount)} ({settlement.reason})"
                )
        elif not self.is_closed:
            lines += ["", "Le mois n'est pas encore clôturé."]

        credits = {name: amount for name, amount in self.credits.items() if amount}
        if credits:
            lines += ["", "Crédits disponibles :"]
            for name, amount in credits.items():
                lines.append(f"  - {name} : {self.money(amount)}")

        if self.remarks:
            lines += ["", "Remarques :", self.remarks]

        return "\n".join(lines)


def build_month_report(
    month: Month,
    summary: Optional[MonthSummary] = None,
    credits: Optional[dict[str, Decimal]] = None,
    roster: Optional[list[Member]] = None,
    currency_symbol: str = "€",
) -> MonthReport:
    """
    Assemble the report of a month.

    Args:
        month: The month (usually just closed)
        summary: Precomputed summary, derived from the month if None
        credits: Available credit per member
        roster: Members to address; defaults to the closure snapshot

    Returns:
        MonthReport with transactions in date order (dues first on ties)
    """
    if roster is None:
        roster = list(month.closed_member_snapshot or [])

    transactions = sorted(
        month.transactions,
        key=lambda t: (t.date, t.type != TransactionType.DUE),
    )
    return MonthReport(
        month_key=month.key,
        month_name=month.month_name,
        year=month.year,
        is_closed=month.is_closed,
        summary=summary or summarize_month(month),
        transactions=transactions,
        settlements=list(month.settlement_record or []),
        roster=roster,
        credits=credits or {},
        remarks=month.remarks,
        currency_symbol=currency_symbol,
    )
