"""
Credit Ledger

A member's credit is what the household owes them beyond the current
month: the manual credit entered on their profile plus every positive
balance they ended a closed month with.

Negative monthly balances are not carried as debt here. They were
already settled by the settlement recorded when that month closed.
"""

from decimal import Decimal
from typing import Iterable, Optional

from coloc_ledger.calculations.balance import summarize_month
from coloc_ledger.models.closure import CreditBreakdown
from coloc_ledger.models.ledger import Member, Month, to_money


def _carried_credits(
    months: Iterable[Month],
    exclude_key: Optional[str],
) -> dict[str, Decimal]:
    carried: dict[str, Decimal] = {}
    for month in months:
        if not month.is_closed or month.key == exclude_key:
            continue
        for name, balance in summarize_month(month).balances.items():
            if balance.balance > 0:
                carried[name] = to_money(carried.get(name, Decimal("0")) + balance.balance)
    return carried


def credit_breakdown(
    months: Iterable[Month],
    members: Iterable[Member],
    exclude_key: Optional[str] = None,
) -> dict[str, CreditBreakdown]:
    """
    Credit per member, split into manual and carried parts.

    Args:
        months: Full month history
        members: Current roster (source of manual credits)
        exclude_key: Month being closed, left out to avoid counting it twice

    Returns:
        One entry per roster member, plus any name that carried credit
        out of a closed month without being on the roster any more.
    """
    manual = {member.name: to_money(member.manual_credit) for member in members}
    carried = _carried_credits(months, exclude_key)

    result: dict[str, CreditBreakdown] = {}
    for name in list(manual) + [n for n in carried if n not in manual]:
        manual_part = manual.get(name, Decimal("0.00"))
        carried_part = carried.get(name, Decimal("0.00"))
        result[name] = CreditBreakdown(
            member_name=name,
            manual=manual_part,
            carried=carried_part,
            total=to_money(manual_part + carried_part),
        )
    return result


def compute_credits(
    months: Iterable[Month],
    members: Iterable[Member],
    exclude_key: Optional[str] = None,
) -> dict[str, Decimal]:
    """Total available credit per member name."""
    return {
        name: breakdown.total
        for name, breakdown in credit_breakdown(months, members, exclude_key).items()
    }
