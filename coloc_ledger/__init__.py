"""
Colocation Ledger - Source Package

Shared-expense bookkeeping for a household of roommates ("colocataires"):
monthly dues go into a common pool, shared expenses come out of it, and
every month is closed with an explicit, validated settlement.

DESIGN PRINCIPLES:
1. Balances are derived, never stored
2. The operator allocates, the system verifies
3. No silent corrections or auto-balancing
4. A closed month is frozen until explicitly reopened
5. Storage layer is swappable
"""

__version__ = "1.0.0"
__author__ = "Colocation Ledger Team"
