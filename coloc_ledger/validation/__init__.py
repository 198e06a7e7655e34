"""Closure allocation validation package."""

from coloc_ledger.validation.allocator import SettlementAllocator

__all__ = ["SettlementAllocator"]
