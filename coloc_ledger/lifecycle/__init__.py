"""Month lifecycle package."""

from coloc_ledger.lifecycle.machine import MonthLifecycle

__all__ = ["MonthLifecycle"]
